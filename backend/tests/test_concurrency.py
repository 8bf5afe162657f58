"""
Concurrency tests against a file-backed SQLite database.

Each worker thread runs in its own app context (and so its own session),
like concurrent requests on a threaded server.

Verifies:
- Concurrent checkouts never oversell or drive stock negative
- Stock and the movement log stay in balance under contention
- Concurrent duplicate confirmations produce exactly one transition
"""

import os
import threading

import pytest

from pos_backend import create_app
from pos_backend.errors import InsufficientStock
from pos_backend.extensions import db
from pos_backend.models import StockMovement, Transaction
from pos_backend.services import (
    auth_service,
    catalog_service,
    checkout_service,
    payment_service,
    stock_service,
)


@pytest.fixture
def file_app(tmp_path):
    db_path = os.path.join(str(tmp_path), "concurrency.db")
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
        "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"timeout": 30}},
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def seeded(file_app):
    with file_app.app_context():
        cashier = auth_service.create_user(db.session, "Cashier", "c@pos.test", "Password123!", rounds=4)
        product = catalog_service.create_product(db.session, "Hot Item", "1000", initial_stock=5)
        return cashier.id, product.id


def _run_threads(target, count):
    barrier = threading.Barrier(count)

    def wrapper(index):
        barrier.wait()
        target(index)

    threads = [threading.Thread(target=wrapper, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)


def test_concurrent_checkouts_do_not_oversell(file_app, seeded):
    cashier_id, product_id = seeded
    registry = file_app.extensions["payment_registry"]
    successes, stock_errors, other_errors = [], [], []
    lock = threading.Lock()

    def worker(index):
        with file_app.app_context():
            try:
                result = checkout_service.checkout(
                    db.session, registry, cashier_id,
                    [{"product_id": product_id, "quantity": 2}], "CASH",
                    payment_amount=10**6,
                )
                with lock:
                    successes.append(result.transaction.id)
            except InsufficientStock:
                with lock:
                    stock_errors.append(index)
            except Exception as exc:
                with lock:
                    other_errors.append(exc)

    _run_threads(worker, 8)

    assert other_errors == []
    # 5 units, 2 per sale: exactly two sales fit
    assert len(successes) == 2
    assert len(stock_errors) == 6

    with file_app.app_context():
        assert stock_service.get_stock_level(db.session, product_id) == 1
        assert stock_service.ledger_balance(db.session, product_id) == 1
        assert db.session.query(Transaction).count() == 2
        assert db.session.query(StockMovement).filter_by(type="OUT").count() == 2


def test_concurrent_duplicate_confirmations(file_app, seeded):
    cashier_id, product_id = seeded
    registry = file_app.extensions["payment_registry"]

    with file_app.app_context():
        result = checkout_service.checkout(
            db.session, registry, cashier_id,
            [{"product_id": product_id, "quantity": 1}], "QRIS",
        )
        transaction_id = result.transaction.id

    changes, errors = [], []
    lock = threading.Lock()

    def worker(index):
        with file_app.app_context():
            try:
                _, changed = payment_service.confirm_payment(db.session, registry, transaction_id)
                with lock:
                    changes.append(changed)
            except Exception as exc:
                with lock:
                    errors.append(exc)

    _run_threads(worker, 6)

    assert errors == []
    assert sorted(changes) == [False] * 5 + [True]

    with file_app.app_context():
        status = payment_service.get_payment_status(db.session, transaction_id)
        assert status["status"] == "PAID"
