# Overview: Stock ledger; the only code path that changes Product.stock.

from __future__ import annotations

import math

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from ..errors import InvalidRequest, ProductNotFound, InsufficientStock
from ..models import Product, StockMovement
from .concurrency import atomic, run_with_retry
"""
Stock Ledger Invariants (authoritative)

- Product.stock is the live balance; StockMovement is the append-only log.
- stock == initial stock + sum(IN quantities) - sum(OUT quantities).
- Every change writes the stock update and exactly one movement row in the
  caller's DB transaction. ``adjust`` never commits.
- OUT is a single conditional UPDATE (... WHERE stock >= quantity): the
  availability check and the decrement cannot be separated by another
  writer, so stock never goes negative and a lost race surfaces as
  InsufficientStock.
- Only IN and OUT exist. There is no absolute "set stock to N" movement.
"""

DIRECTION_IN = "IN"
DIRECTION_OUT = "OUT"
VALID_DIRECTIONS = (DIRECTION_IN, DIRECTION_OUT)


def _validate_adjustment(direction: str, quantity) -> None:
    if direction not in VALID_DIRECTIONS:
        raise InvalidRequest(
            f"Invalid stock direction: {direction}. Must be one of {list(VALID_DIRECTIONS)}",
            details={"direction": direction},
        )
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidRequest("Quantity must be a positive integer", details={"quantity": quantity})


def adjust(
    session: Session,
    product_id: str,
    direction: str,
    quantity: int,
    reason: str | None = None,
) -> int:
    """
    Apply one signed stock change inside the caller's atomic unit.

    Returns the product's new stock.

    Raises:
        InvalidRequest: bad direction or non-positive quantity
        ProductNotFound: unknown or soft-deleted product
        InsufficientStock: OUT larger than the current stock
    """
    _validate_adjustment(direction, quantity)

    live = (Product.id == product_id, Product.deleted_at.is_(None))

    if direction == DIRECTION_IN:
        stmt = update(Product).where(*live).values(stock=Product.stock + quantity)
    else:
        stmt = (
            update(Product)
            .where(*live, Product.stock >= quantity)
            .values(stock=Product.stock - quantity)
        )

    result = session.execute(stmt.execution_options(synchronize_session=False))

    if result.rowcount == 0:
        product = session.query(Product).filter(*live).first()
        if product is None:
            raise ProductNotFound(product_id)
        raise InsufficientStock(product.id, product.name, quantity, available=product.stock)

    session.add(StockMovement(
        product_id=product_id,
        type=direction,
        quantity=quantity,
        reason=reason,
    ))
    session.flush()

    new_stock = session.query(Product.stock).filter(Product.id == product_id).scalar()

    # Keep an already-loaded Product instance in step with the row
    loaded = session.identity_map.get(session.identity_key(Product, product_id))
    if loaded is not None:
        session.expire(loaded, ["stock"])

    return int(new_stock)


def adjust_stock(
    session: Session,
    product_id: str,
    direction: str,
    quantity: int,
    reason: str | None = None,
) -> int:
    """
    Manual stock adjustment as its own atomic unit (admin stock screen).
    """
    _validate_adjustment(direction, quantity)

    def _op():
        with atomic(session):
            return adjust(session, product_id, direction, quantity, reason)

    return run_with_retry(_op, session=session)


def get_stock_level(session: Session, product_id: str) -> int:
    stock = (
        session.query(Product.stock)
        .filter(Product.id == product_id, Product.deleted_at.is_(None))
        .scalar()
    )
    if stock is None:
        raise ProductNotFound(product_id)
    return int(stock)


def get_movement_totals(session: Session, product_id: str) -> dict:
    """
    Sum of IN and OUT quantities recorded for a product.

    Returns:
        {"IN": int, "OUT": int, "net": int}
    """
    rows = (
        session.query(StockMovement.type, func.coalesce(func.sum(StockMovement.quantity), 0))
        .filter(StockMovement.product_id == product_id)
        .group_by(StockMovement.type)
        .all()
    )
    totals = {DIRECTION_IN: 0, DIRECTION_OUT: 0}
    for movement_type, qty in rows:
        totals[movement_type] = int(qty)
    totals["net"] = totals[DIRECTION_IN] - totals[DIRECTION_OUT]
    return totals


def ledger_balance(session: Session, product_id: str, initial_stock: int = 0) -> int:
    """Stock implied by the movement log: initial + IN - OUT."""
    return initial_stock + get_movement_totals(session, product_id)["net"]


def get_movements(
    session: Session,
    product_id: str | None = None,
    page: int = 1,
    limit: int = 50,
) -> dict:
    """Stock history, newest first, optionally for one product."""
    if page < 1 or not 1 <= limit <= 200:
        raise InvalidRequest("page must be >= 1 and limit between 1 and 200")

    query = session.query(StockMovement)
    if product_id:
        query = query.filter(StockMovement.product_id == product_id)

    total = query.count()
    movements = (
        query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "items": movements,
        "total": total,
        "totalPages": math.ceil(total / limit),
    }
