# Overview: Checkout orchestration; turns a cart into a committed sale and hands it to a payment strategy.

"""
Checkout Service

WHY: A sale is only real when the transaction header, its lines and the
stock decrements are committed together. Nothing a client can observe may
show a transaction without its stock movements or the reverse.

FLOW:
1. Validate the cart shape (EmptyCart, InvalidRequest)
2. Resolve the payment strategy (UnsupportedPaymentMethod)
3. Read all products in one query (ProductNotFound)
4. Fast stock pre-check against that snapshot (InsufficientStock)
5. Price in cart order: subtotal, tax, transaction discount, total
6. Strategy pre-authorization (InsufficientPayment for short cash)
7. One atomic unit: Transaction (PENDING) + items + one ledger OUT per line
8. After commit: strategy.settle, merged into the returned view

The pre-check in step 4 is advisory. The ledger's conditional decrement in
step 7 is the authoritative check; if a concurrent sale wins the race the
whole unit rolls back and the client gets InsufficientStock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from functools import partial
from typing import Mapping

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import (
    EmptyCart,
    InsufficientStock,
    InvalidRequest,
    PersistenceFailure,
    ProductNotFound,
)
from ..models import Transaction, TransactionItem, User
from ..models.inventory import money
from ..models.transactions import PAYMENT_PENDING
from . import document_service, payment_service
from .catalog_service import ProductSnapshot, resolve_many
from .concurrency import atomic, run_with_retry
from .payment_strategies import PaymentOutcome, PaymentStrategy
from .stock_service import adjust, DIRECTION_OUT

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
DEFAULT_TAX_RATE = Decimal("0.11")
DEFAULT_CODE_ATTEMPTS = 3


@dataclass(frozen=True)
class CartLine:
    product_id: str
    quantity: int
    discount: Decimal = ZERO


@dataclass(frozen=True)
class PricedLine:
    line: CartLine
    product: ProductSnapshot

    @property
    def gross(self) -> Decimal:
        return self.product.price * self.line.quantity

    @property
    def net(self) -> Decimal:
        return self.gross - self.line.discount


@dataclass(frozen=True)
class Pricing:
    lines: tuple[PricedLine, ...]
    subtotal: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal


@dataclass
class CheckoutResult:
    transaction: Transaction
    change: Decimal
    payment: PaymentOutcome | None

    def to_dict(self) -> dict:
        return {
            "transaction": self.transaction.to_dict(),
            "change": money(self.change),
            "payment": self.payment.to_dict() if self.payment else None,
        }


# =============================================================================
# INPUT PARSING
# =============================================================================

def _parse_amount(value, field: str) -> Decimal:
    if value is None:
        return ZERO
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidRequest(f"{field} must be a number", details={field: value})
    if not amount.is_finite() or amount < 0:
        raise InvalidRequest(f"{field} must be a non-negative number", details={field: value})
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def parse_cart(items) -> list[CartLine]:
    """
    Normalize raw cart items ({"product_id", "quantity", "discount"?}).

    Raises EmptyCart for an empty/missing cart and InvalidRequest for
    malformed lines.
    """
    if not items:
        raise EmptyCart()
    if not isinstance(items, (list, tuple)):
        raise InvalidRequest("items must be a list")

    lines = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise InvalidRequest("Each cart item must be an object", details={"index": index})

        product_id = item.get("product_id")
        quantity = item.get("quantity")

        if not product_id or not isinstance(product_id, str):
            raise InvalidRequest("product_id is required", details={"index": index})
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidRequest(
                "quantity must be a positive integer",
                details={"index": index, "quantity": quantity},
            )

        lines.append(CartLine(
            product_id=product_id,
            quantity=quantity,
            discount=_parse_amount(item.get("discount"), "discount"),
        ))
    return lines


def parse_tax_rate(tax_rate, default: Decimal = DEFAULT_TAX_RATE) -> Decimal:
    """None means the configured default; 0 is a real zero rate."""
    if tax_rate is None:
        return Decimal(default)
    try:
        rate = Decimal(str(tax_rate))
    except (InvalidOperation, ValueError):
        raise InvalidRequest("taxRate must be a number", details={"taxRate": tax_rate})
    if not rate.is_finite() or rate < 0 or rate > 1:
        raise InvalidRequest("taxRate must be between 0 and 1", details={"taxRate": tax_rate})
    return rate


# =============================================================================
# VALIDATION & PRICING
# =============================================================================

def _resolve_products(session: Session, lines: list[CartLine]) -> dict[str, ProductSnapshot]:
    snapshots = {p.id: p for p in resolve_many(session, [line.product_id for line in lines])}
    for line in lines:
        if line.product_id not in snapshots:
            raise ProductNotFound(line.product_id)
    return snapshots


def _precheck_stock(lines: list[CartLine], snapshots: dict[str, ProductSnapshot]) -> None:
    requested: dict[str, int] = {}
    for line in lines:
        requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

    for product_id, qty in requested.items():
        product = snapshots[product_id]
        if qty > product.stock:
            raise InsufficientStock(product.id, product.name, qty, available=product.stock)


def price_cart(
    lines: list[CartLine],
    snapshots: dict[str, ProductSnapshot],
    tax_rate: Decimal,
    discount: Decimal = ZERO,
) -> Pricing:
    """
    subtotal = sum(unit price * qty - line discount), in cart order
    tax      = subtotal * tax_rate (2 places, half-up)
    total    = subtotal + tax - transaction discount
    """
    priced = []
    subtotal = ZERO
    for line in lines:
        entry = PricedLine(line=line, product=snapshots[line.product_id])
        if line.discount > entry.gross:
            raise InvalidRequest(
                f"Discount exceeds line amount for {entry.product.name}",
                details={"product_id": line.product_id, "discount": money(line.discount)},
            )
        priced.append(entry)
        subtotal += entry.net

    subtotal = subtotal.quantize(CENTS, rounding=ROUND_HALF_UP)
    tax = (subtotal * tax_rate).quantize(CENTS, rounding=ROUND_HALF_UP)

    if discount > subtotal + tax:
        raise InvalidRequest(
            "Discount exceeds transaction amount",
            details={"discount": money(discount), "amount": money(subtotal + tax)},
        )

    return Pricing(
        lines=tuple(priced),
        subtotal=subtotal,
        tax=tax,
        discount=discount,
        total=subtotal + tax - discount,
    )


# =============================================================================
# CHECKOUT
# =============================================================================

def _commit_sale(
    session: Session,
    code: str,
    cashier_id: str,
    strategy: PaymentStrategy,
    pricing: Pricing,
) -> str:
    """Write header, lines and stock decrements as one atomic unit."""
    with atomic(session):
        transaction = Transaction(
            code=code,
            cashier_id=cashier_id,
            subtotal=pricing.subtotal,
            tax=pricing.tax,
            discount=pricing.discount,
            total_amount=pricing.total,
            payment_method=strategy.method,
            payment_status=PAYMENT_PENDING,
            paid_amount=ZERO,
            change_amount=ZERO,
        )
        session.add(transaction)
        session.flush()

        for position, entry in enumerate(pricing.lines):
            session.add(TransactionItem(
                transaction_id=transaction.id,
                product_id=entry.product.id,
                position=position,
                product_name=entry.product.name,
                quantity=entry.line.quantity,
                price=entry.product.price,
                discount=entry.line.discount,
            ))
        session.flush()

        for entry in pricing.lines:
            adjust(session, entry.product.id, DIRECTION_OUT, entry.line.quantity, f"Transaction {code}")

        transaction_id = transaction.id
    return transaction_id


def checkout(
    session: Session,
    registry: Mapping[str, PaymentStrategy],
    cashier_id: str,
    items,
    payment_method: str,
    payment_amount=None,
    tax_rate=None,
    discount=None,
    *,
    default_tax_rate: Decimal = DEFAULT_TAX_RATE,
    code_attempts: int = DEFAULT_CODE_ATTEMPTS,
) -> CheckoutResult:
    """
    Convert a cart into a committed sale and settle it.

    Args:
        cashier_id: Authenticated user ringing the sale
        items: [{"product_id": str, "quantity": int, "discount"?: number}]
        payment_method: Registered method name (CASH, QRIS, ...)
        payment_amount: Tendered amount (required for CASH)
        tax_rate: Fraction, e.g. 0.11; None uses default_tax_rate
        discount: Transaction-level discount applied after tax

    Returns:
        CheckoutResult(transaction, change, payment)

    Raises:
        EmptyCart, InvalidRequest, UnsupportedPaymentMethod, ProductNotFound,
        InsufficientStock, InsufficientPayment, PersistenceFailure
    """
    lines = parse_cart(items)
    strategy = payment_service.get_strategy(registry, payment_method)
    rate = parse_tax_rate(tax_rate, default_tax_rate)
    transaction_discount = _parse_amount(discount, "discount")

    cashier = session.get(User, cashier_id) if cashier_id else None
    if cashier is None or not cashier.is_active:
        raise InvalidRequest("Unknown or inactive cashier", details={"cashier_id": cashier_id})

    snapshots = _resolve_products(session, lines)
    _precheck_stock(lines, snapshots)
    pricing = price_cart(lines, snapshots, rate, transaction_discount)

    method_data = {"paid_amount": payment_amount}
    strategy.authorize(pricing.total, method_data)

    transaction_id = None
    for attempt in range(1, code_attempts + 1):
        code = document_service.generate_transaction_code()
        try:
            transaction_id = run_with_retry(
                partial(_commit_sale, session, code, cashier_id, strategy, pricing),
                session=session,
            )
            break
        except IntegrityError as exc:
            # transactions.code is the only unique key written here
            logger.warning("Transaction code %s collided (attempt %d/%d)", code, attempt, code_attempts)
            if attempt == code_attempts:
                raise PersistenceFailure(
                    "Could not allocate a unique transaction code",
                    details={"attempts": code_attempts},
                ) from exc

    try:
        transaction, outcome = payment_service.process_payment(
            session, registry, transaction_id, strategy.method, method_data,
        )
    except PersistenceFailure:
        # The sale is committed; payment can be retried via process_payment.
        logger.exception("Settlement failed for committed transaction %s", transaction_id)
        transaction = session.get(Transaction, transaction_id)
        return CheckoutResult(transaction=transaction, change=ZERO, payment=None)

    return CheckoutResult(transaction=transaction, change=outcome.change_amount, payment=outcome)
