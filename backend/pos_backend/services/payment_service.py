# Overview: Service-layer operations for payment; strategy registry, settlement, confirmation callbacks and status.

"""
Payment Processing Service

WHY: Checkout never knows how a method settles. It looks the method name up
in an immutable registry built once at startup and hands the committed
transaction to that strategy.

DESIGN PRINCIPLES:
- Registry is a read-only mapping (method name -> strategy instance)
- Every status change runs in one atomic unit with the transaction row locked
- PAID and FAILED are terminal
- Confirmation callbacks are idempotent: replaying a confirm on a PAID
  transaction is a no-op, so duplicate webhook deliveries are harmless
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Mapping

from sqlalchemy.orm import Session

from ..errors import (
    AlreadyPaid,
    InvalidPaymentState,
    TransactionNotFound,
    UnsupportedPaymentMethod,
)
from ..models import Transaction
from ..models.transactions import PAYMENT_PAID, PAYMENT_FAILED
from pos_backend.time_utils import to_utc_z
from .concurrency import atomic, lock_for_update, run_with_retry
from .payment_strategies import (
    CashPaymentStrategy,
    PaymentOutcome,
    PaymentStrategy,
    QrisPaymentStrategy,
)


# =============================================================================
# REGISTRY
# =============================================================================

def build_registry(strategies: Iterable[PaymentStrategy]) -> Mapping[str, PaymentStrategy]:
    """
    Freeze a set of strategies into a method-name keyed mapping.

    Raises ValueError on duplicate or empty method names.
    """
    registry: dict[str, PaymentStrategy] = {}
    for strategy in strategies:
        name = (strategy.method or "").upper()
        if not name:
            raise ValueError(f"{type(strategy).__name__} has no method name")
        if name in registry:
            raise ValueError(f"Payment method {name} registered twice")
        registry[name] = strategy
    return MappingProxyType(registry)


def build_default_registry(config: Mapping) -> Mapping[str, PaymentStrategy]:
    """Registry of the methods this deployment accepts."""
    return build_registry([
        CashPaymentStrategy(),
        QrisPaymentStrategy(
            expiry_minutes=int(config.get("QRIS_EXPIRY_MINUTES", 15)),
            qr_image_base_url=config.get("QR_IMAGE_BASE_URL", ""),
        ),
    ])


def get_strategy(registry: Mapping[str, PaymentStrategy], method: object) -> PaymentStrategy:
    if not isinstance(method, str):
        raise UnsupportedPaymentMethod(method, supported=sorted(registry))
    strategy = registry.get(method.strip().upper())
    if strategy is None:
        raise UnsupportedPaymentMethod(method, supported=sorted(registry))
    return strategy


# =============================================================================
# SETTLEMENT
# =============================================================================

def _load_transaction(session: Session, transaction_id: str, lock: bool = False) -> Transaction:
    query = session.query(Transaction).filter(Transaction.id == transaction_id)
    if lock:
        query = lock_for_update(query)
    transaction = query.first()
    if transaction is None:
        raise TransactionNotFound(transaction_id)
    return transaction


def process_payment(
    session: Session,
    registry: Mapping[str, PaymentStrategy],
    transaction_id: str,
    method: str,
    method_data: dict | None = None,
) -> tuple[Transaction, PaymentOutcome]:
    """
    Settle an existing transaction with the given method.

    Args:
        transaction_id: Transaction being paid
        method: Registered method name (CASH, QRIS, ...)
        method_data: Method-specific input, e.g. {"paid_amount": ...} for CASH

    Returns:
        (transaction, outcome)

    Raises:
        UnsupportedPaymentMethod, TransactionNotFound, AlreadyPaid,
        InvalidPaymentState (transaction FAILED), InsufficientPayment
    """
    strategy = get_strategy(registry, method)

    def _op():
        with atomic(session):
            transaction = _load_transaction(session, transaction_id, lock=True)

            if transaction.payment_status == PAYMENT_PAID:
                raise AlreadyPaid(transaction.id)
            if transaction.payment_status == PAYMENT_FAILED:
                raise InvalidPaymentState(
                    "Transaction payment already failed",
                    details={"transaction_id": transaction.id, "status": transaction.payment_status},
                )

            outcome = strategy.settle(session, transaction, method_data or {})
        return transaction, outcome

    return run_with_retry(_op, session=session)


# =============================================================================
# CALLBACKS (deferred methods)
# =============================================================================

def _apply_callback(session, registry, transaction_id: str, action: str) -> tuple[Transaction, bool]:
    def _op():
        with atomic(session):
            transaction = _load_transaction(session, transaction_id, lock=True)
            strategy = get_strategy(registry, transaction.payment_method)
            if not strategy.deferred:
                raise InvalidPaymentState(
                    f"{strategy.method} transactions are not settled by callback",
                    details={"transaction_id": transaction.id, "payment_method": strategy.method},
                )
            changed = getattr(strategy, action)(session, transaction)
        return transaction, changed

    return run_with_retry(_op, session=session)


def confirm_payment(
    session: Session,
    registry: Mapping[str, PaymentStrategy],
    transaction_id: str,
) -> tuple[Transaction, bool]:
    """
    External confirmation: PENDING -> PAID.

    Returns (transaction, changed). ``changed`` is False when the
    transaction was already PAID; that is not an error.
    """
    return _apply_callback(session, registry, transaction_id, "confirm")


def fail_payment(
    session: Session,
    registry: Mapping[str, PaymentStrategy],
    transaction_id: str,
) -> tuple[Transaction, bool]:
    """External failure notice: PENDING -> FAILED (idempotent on FAILED)."""
    return _apply_callback(session, registry, transaction_id, "fail")


# =============================================================================
# STATUS
# =============================================================================

def get_payment_status(session: Session, transaction_id: str) -> dict:
    """Current payment status of any transaction, whatever its method."""
    transaction = session.query(Transaction).filter(Transaction.id == transaction_id).first()
    if transaction is None:
        raise TransactionNotFound(transaction_id)

    return {
        "transactionId": transaction.id,
        "code": transaction.code,
        "status": transaction.payment_status,
        "paymentMethod": transaction.payment_method,
        "expiredAt": to_utc_z(transaction.qr_expires_at) if transaction.qr_expires_at else None,
        "paidAt": to_utc_z(transaction.paid_at) if transaction.paid_at else None,
    }
