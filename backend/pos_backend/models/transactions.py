from __future__ import annotations

from ..extensions import db
from pos_backend.time_utils import to_utc_z, utcnow
from .inventory import new_id, money


PAYMENT_PENDING = "PENDING"
PAYMENT_PAID = "PAID"
PAYMENT_FAILED = "FAILED"


class Transaction(db.Model):
    """
    Sale record created by one checkout call.

    LIFECYCLE: payment_status PENDING -> PAID or PENDING -> FAILED, terminal
    once reached. Only the payment fields (status, paid/change amounts, QR
    reference, paid_at) change after creation. Rows are never deleted.

    MONEY: all amounts are fixed-point (2 places).
    total_amount = subtotal + tax - discount
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_created", "created_at"),
        db.Index("ix_transactions_status_created", "payment_status", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    # Human-readable code, e.g. "TRX-20260115-7KQ2M"
    code = db.Column(db.String(32), nullable=False, unique=True)

    cashier_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    tax = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)

    payment_method = db.Column(db.String(32), nullable=False)
    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_PENDING, index=True)
    paid_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    change_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Deferred settlement display artifact (advisory expiry, never enforced)
    qr_code_url = db.Column(db.Text, nullable=True)
    qr_expires_at = db.Column(db.DateTime(timezone=True), nullable=True)

    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    cashier = db.relationship("User", backref=db.backref("transactions", lazy=True))
    items = db.relationship(
        "TransactionItem",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="TransactionItem.position",
        lazy=True,
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "code": self.code,
            "cashierId": self.cashier_id,
            "cashierName": self.cashier.name if self.cashier else None,
            "subtotal": money(self.subtotal),
            "tax": money(self.tax),
            "discount": money(self.discount),
            "total": money(self.total_amount),
            "paymentMethod": self.payment_method,
            "paymentStatus": self.payment_status,
            "paidAmount": money(self.paid_amount),
            "changeAmount": money(self.change_amount),
            "qrCodeUrl": self.qr_code_url,
            "qrExpiresAt": to_utc_z(self.qr_expires_at) if self.qr_expires_at else None,
            "paidAt": to_utc_z(self.paid_at) if self.paid_at else None,
            "createdAt": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class TransactionItem(db.Model):
    """
    One cart line of a transaction.

    ``price`` and ``product_name`` are snapshots taken at checkout and are
    never updated, so later catalog changes do not rewrite history.
    """
    __tablename__ = "transaction_items"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    transaction_id = db.Column(
        db.String(36),
        db.ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False, index=True)

    # Cart order
    position = db.Column(db.Integer, nullable=False, default=0)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=False)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    transaction = db.relationship("Transaction", back_populates="items")
    product = db.relationship("Product")

    @property
    def line_total(self):
        return self.price * self.quantity - self.discount

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "productName": self.product_name,
            "quantity": self.quantity,
            "price": money(self.price),
            "discount": money(self.discount),
            "lineTotal": money(self.line_total),
        }
