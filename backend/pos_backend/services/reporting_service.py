# Overview: Dashboard aggregates over transactions and the catalog.

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models import Product, Transaction
from ..models.inventory import money
from ..models.transactions import PAYMENT_PAID, PAYMENT_PENDING
from pos_backend.time_utils import start_of_day


def get_stats(session: Session, low_stock_threshold: int = 10) -> dict:
    """
    Headline numbers for the dashboard.

    Revenue counts PAID transactions only; PENDING (unconfirmed QRIS) sales
    are reported separately.
    """
    total_transactions = session.query(func.count(Transaction.id)).scalar() or 0

    revenue = (
        session.query(func.coalesce(func.sum(Transaction.total_amount), 0))
        .filter(Transaction.payment_status == PAYMENT_PAID)
        .scalar()
    )

    pending = (
        session.query(func.count(Transaction.id))
        .filter(Transaction.payment_status == PAYMENT_PENDING)
        .scalar()
    ) or 0

    today_count = (
        session.query(func.count(Transaction.id))
        .filter(Transaction.created_at >= start_of_day())
        .scalar()
    ) or 0

    live = Product.deleted_at.is_(None)
    total_products = session.query(func.count(Product.id)).filter(live).scalar() or 0
    low_stock = (
        session.query(func.count(Product.id))
        .filter(live, Product.stock <= low_stock_threshold)
        .scalar()
    ) or 0

    return {
        "totalTransactions": int(total_transactions),
        "todayTransactions": int(today_count),
        "pendingPayments": int(pending),
        "totalRevenue": money(Decimal(str(revenue))),
        "totalProducts": int(total_products),
        "lowStockProducts": int(low_stock),
        "lowStockThreshold": low_stock_threshold,
    }
