# Overview: Catalog reader used by checkout, plus the few catalog writes the CLI and tests need.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from sqlalchemy.orm import Session

from ..errors import InvalidRequest, ProductNotFound
from ..models import Product
from pos_backend.time_utils import utcnow
from .concurrency import atomic
from .stock_service import adjust, DIRECTION_IN


@dataclass(frozen=True)
class ProductSnapshot:
    """Price/stock as read at one moment; never written back."""
    id: str
    name: str
    price: Decimal
    stock: int


def resolve_many(session: Session, product_ids) -> list[ProductSnapshot]:
    """
    Resolve product ids in one read.

    Soft-deleted products are treated as absent. Unknown ids are simply
    missing from the result; the caller decides what that means.
    """
    ids = list(dict.fromkeys(product_ids))
    if not ids:
        return []

    products = (
        session.query(Product)
        .filter(Product.id.in_(ids), Product.deleted_at.is_(None))
        .all()
    )
    return [
        ProductSnapshot(id=p.id, name=p.name, price=Decimal(p.price), stock=int(p.stock))
        for p in products
    ]


def _parse_price(value) -> Decimal:
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidRequest("price must be a decimal number", details={"price": value})
    if not price.is_finite() or price < 0:
        raise InvalidRequest("price must be a non-negative number", details={"price": value})
    return price.quantize(Decimal("0.01"))


def create_product(
    session: Session,
    name: str,
    price,
    initial_stock: int = 0,
    sku: str | None = None,
) -> Product:
    """
    Create a product. Opening stock goes through the ledger as an IN
    movement so the stock/movement balance holds from the first row.
    """
    if not name or not name.strip():
        raise InvalidRequest("name is required")
    if isinstance(initial_stock, bool) or not isinstance(initial_stock, int) or initial_stock < 0:
        raise InvalidRequest("initial_stock must be a non-negative integer")

    with atomic(session):
        product = Product(name=name.strip(), sku=sku, price=_parse_price(price), stock=0)
        session.add(product)
        session.flush()
        if initial_stock:
            adjust(session, product.id, DIRECTION_IN, initial_stock, "Initial stock")
    return product


def update_price(session: Session, product_id: str, price) -> Product:
    """Change the catalog price. Existing transaction items keep their snapshot."""
    with atomic(session):
        product = (
            session.query(Product)
            .filter(Product.id == product_id, Product.deleted_at.is_(None))
            .first()
        )
        if product is None:
            raise ProductNotFound(product_id)
        product.price = _parse_price(price)
    return product


def soft_delete_product(session: Session, product_id: str) -> Product:
    with atomic(session):
        product = (
            session.query(Product)
            .filter(Product.id == product_id, Product.deleted_at.is_(None))
            .first()
        )
        if product is None:
            raise ProductNotFound(product_id)
        product.deleted_at = utcnow()
    return product
