# Overview: Settlement strategies, one per payment method.

"""
Payment Strategies

Each strategy knows how one payment method settles a transaction:

- CASH (immediate): the tendered amount must cover the total; the
  transaction is marked PAID in the same call and a receipt is produced.
- QRIS (deferred): settle only issues a display reference (QR image URL)
  with an advisory expiry and leaves the transaction PENDING. An external
  callback later confirms (PENDING -> PAID) or fails (PENDING -> FAILED).

Strategies only mutate the Transaction they are handed. Locking, the atomic
unit and status guards (AlreadyPaid, ...) belong to payment_service, so a
new method is a new class plus one line in build_default_registry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from urllib.parse import quote

from sqlalchemy.orm import Session

from ..errors import InsufficientPayment, InvalidRequest, InvalidPaymentState
from ..models.inventory import money
from ..models.transactions import Transaction, PAYMENT_PENDING, PAYMENT_PAID, PAYMENT_FAILED
from pos_backend.time_utils import utcnow, to_utc_z

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class PaymentOutcome:
    """Result of settle: merged into the transaction view returned to clients."""
    status: str
    paid_amount: Decimal = Decimal("0.00")
    change_amount: Decimal = Decimal("0.00")
    qr_code_url: str | None = None
    expires_at: datetime | None = None
    receipt: dict | None = field(default=None)

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "paidAmount": money(self.paid_amount),
            "changeAmount": money(self.change_amount),
            "qrCodeUrl": self.qr_code_url,
            "expiredAt": to_utc_z(self.expires_at) if self.expires_at else None,
            "receiptData": self.receipt,
        }


class PaymentStrategy:
    """
    Base class for payment strategies.

    Subclasses set `method` and implement `settle`; deferred methods also
    override `confirm` and `fail`.
    """

    method: str = ""
    deferred: bool = False

    def authorize(self, total: Decimal, method_data: dict) -> None:
        """Validate tendered data against a total before anything is written."""

    def settle(self, session: Session, transaction: Transaction, method_data: dict) -> PaymentOutcome:
        raise NotImplementedError

    def confirm(self, session: Session, transaction: Transaction) -> bool:
        raise InvalidPaymentState(
            f"{self.method} payments are settled at checkout and cannot be confirmed",
            details={"transaction_id": transaction.id, "payment_method": self.method},
        )

    def fail(self, session: Session, transaction: Transaction) -> bool:
        raise InvalidPaymentState(
            f"{self.method} payments cannot be failed by callback",
            details={"transaction_id": transaction.id, "payment_method": self.method},
        )


class CashPaymentStrategy(PaymentStrategy):
    method = "CASH"

    @staticmethod
    def _paid_amount(method_data: dict) -> Decimal | None:
        raw = (method_data or {}).get("paid_amount")
        if raw is None:
            return None
        try:
            paid = Decimal(str(raw))
        except (InvalidOperation, ValueError):
            raise InvalidRequest("paid amount must be a number", details={"paid_amount": raw})
        if not paid.is_finite() or paid < 0:
            raise InvalidRequest("paid amount must be a non-negative number", details={"paid_amount": raw})
        return paid.quantize(CENTS, rounding=ROUND_HALF_UP)

    def authorize(self, total: Decimal, method_data: dict) -> None:
        paid = self._paid_amount(method_data)
        if paid is None or paid < total:
            raise InsufficientPayment(
                "Paid amount is less than total amount",
                details={"total": money(total), "paid_amount": money(paid)},
            )

    def settle(self, session: Session, transaction: Transaction, method_data: dict) -> PaymentOutcome:
        total = Decimal(transaction.total_amount)
        self.authorize(total, method_data)
        paid = self._paid_amount(method_data)
        change = paid - total

        transaction.payment_method = self.method
        transaction.payment_status = PAYMENT_PAID
        transaction.paid_amount = paid
        transaction.change_amount = change
        transaction.paid_at = utcnow()

        return PaymentOutcome(
            status=PAYMENT_PAID,
            paid_amount=paid,
            change_amount=change,
            receipt=self._receipt(transaction, paid, change),
        )

    def _receipt(self, transaction: Transaction, paid: Decimal, change: Decimal) -> dict:
        return {
            "code": transaction.code,
            "date": to_utc_z(transaction.created_at),
            "items": [
                {
                    "name": item.product_name,
                    "quantity": item.quantity,
                    "price": money(item.price),
                    "discount": money(item.discount),
                    "total": money(item.line_total),
                }
                for item in transaction.items
            ],
            "subtotal": money(transaction.subtotal),
            "tax": money(transaction.tax),
            "discount": money(transaction.discount),
            "total": money(transaction.total_amount),
            "paidAmount": money(paid),
            "change": money(change),
            "cashier": transaction.cashier.name if transaction.cashier else None,
            "paymentMethod": self.method,
        }


class QrisPaymentStrategy(PaymentStrategy):
    """
    Callback-confirmed QR payment. No gateway is called: the QR payload is a
    local placeholder carrying the transaction code and amount.
    """

    method = "QRIS"
    deferred = True

    def __init__(self, expiry_minutes: int = 15, qr_image_base_url: str = ""):
        self.expiry = timedelta(minutes=expiry_minutes)
        self.qr_image_base_url = qr_image_base_url

    def _qr_url(self, transaction: Transaction) -> str:
        payload = f"POS.QRIS|{transaction.code}|{money(transaction.total_amount)}"
        return f"{self.qr_image_base_url}{quote(payload, safe='')}"

    def settle(self, session: Session, transaction: Transaction, method_data: dict) -> PaymentOutcome:
        expires_at = utcnow() + self.expiry
        qr_url = self._qr_url(transaction)

        transaction.payment_method = self.method
        transaction.payment_status = PAYMENT_PENDING
        transaction.qr_code_url = qr_url
        transaction.qr_expires_at = expires_at

        return PaymentOutcome(
            status=PAYMENT_PENDING,
            qr_code_url=qr_url,
            expires_at=expires_at,
        )

    def confirm(self, session: Session, transaction: Transaction) -> bool:
        """PENDING -> PAID. Returns False when already PAID (replayed callback)."""
        if transaction.payment_status == PAYMENT_PAID:
            return False
        if transaction.payment_status == PAYMENT_FAILED:
            raise InvalidPaymentState(
                "Transaction payment already failed",
                details={"transaction_id": transaction.id, "status": transaction.payment_status},
            )
        transaction.payment_status = PAYMENT_PAID
        transaction.paid_amount = transaction.total_amount
        transaction.change_amount = Decimal("0.00")
        transaction.paid_at = utcnow()
        return True

    def fail(self, session: Session, transaction: Transaction) -> bool:
        """PENDING -> FAILED. Returns False when already FAILED."""
        if transaction.payment_status == PAYMENT_FAILED:
            return False
        if transaction.payment_status == PAYMENT_PAID:
            raise InvalidPaymentState(
                "Transaction already paid",
                details={"transaction_id": transaction.id, "status": transaction.payment_status},
            )
        transaction.payment_status = PAYMENT_FAILED
        return True
