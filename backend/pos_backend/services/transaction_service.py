# Overview: Read side of the transaction store; lookup by id and paginated history.

from __future__ import annotations

import math

from sqlalchemy.orm import Session, selectinload

from ..errors import InvalidRequest, TransactionNotFound
from ..models import Transaction

MAX_PAGE_SIZE = 100


def get_transaction(session: Session, transaction_id: str) -> Transaction:
    """Transaction with its items and cashier; TransactionNotFound when unknown."""
    transaction = (
        session.query(Transaction)
        .options(selectinload(Transaction.items), selectinload(Transaction.cashier))
        .filter(Transaction.id == transaction_id)
        .first()
    )
    if transaction is None:
        raise TransactionNotFound(transaction_id)
    return transaction


def list_transactions(session: Session, page: int = 1, limit: int = 10) -> dict:
    """
    Newest-first page of transactions.

    Returns:
        {"items": [Transaction, ...],
         "meta": {"total", "page", "limit", "totalPages"}}
    """
    if isinstance(page, bool) or not isinstance(page, int) or page < 1:
        raise InvalidRequest("page must be a positive integer", details={"page": page})
    if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_PAGE_SIZE:
        raise InvalidRequest(
            f"limit must be between 1 and {MAX_PAGE_SIZE}",
            details={"limit": limit},
        )

    total = session.query(Transaction).count()
    items = (
        session.query(Transaction)
        .options(selectinload(Transaction.items), selectinload(Transaction.cashier))
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "items": items,
        "meta": {
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": math.ceil(total / limit),
        },
    }
