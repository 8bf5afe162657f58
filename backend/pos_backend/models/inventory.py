from __future__ import annotations

import uuid

from ..extensions import db
from pos_backend.time_utils import to_utc_z, utcnow


def new_id() -> str:
    return str(uuid.uuid4())


def money(value) -> str | None:
    """Serialize a Numeric amount as a fixed 2-place string."""
    if value is None:
        return None
    return f"{value:.2f}"


class Product(db.Model):
    """
    Product master data (owned by the catalog, read by checkout).

    STOCK: ``stock`` is the live balance. It is only ever changed through the
    stock ledger (services/stock_service.py), which appends one StockMovement
    per change in the same DB transaction, so

        stock == initial stock + sum(IN) - sum(OUT)

    holds for every product at every commit.

    SOFT DELETE: ``deleted_at`` set means the product no longer exists for
    checkout and stock adjustments; rows are kept so historical transaction
    items still resolve.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="stock_non_negative"),
        db.CheckConstraint("price >= 0", name="price_non_negative"),
        db.Index("ix_products_name", "name"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    sku = db.Column(db.String(64), nullable=True, unique=True)
    name = db.Column(db.String(255), nullable=False)

    # Fixed-point unit price
    price = db.Column(db.Numeric(12, 2), nullable=False)

    stock = db.Column(db.Integer, nullable=False, default=0)

    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "price": money(self.price),
            "stock": self.stock,
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only stock audit log.

    TYPES:
    - IN: stock received or manually added
    - OUT: stock sold or manually removed

    ``quantity`` is always positive; the type carries the sign. Checkout
    movements reference their sale only through ``reason``
    ("Transaction TRX-..."), never by foreign key, so the log outlives any
    transaction retention policy.

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="quantity_positive"),
        db.CheckConstraint("type IN ('IN', 'OUT')", name="type_valid"),
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False, index=True)

    type = db.Column(db.String(8), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), index=True)

    product = db.relationship("Product", backref=db.backref("movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "type": self.type,
            "quantity": self.quantity,
            "reason": self.reason,
            "created_at": to_utc_z(self.created_at),
        }
