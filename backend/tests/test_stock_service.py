"""
Stock ledger tests.

Verifies:
- IN/OUT change stock and append exactly one movement
- OUT never drives stock negative
- Invalid direction / quantity and unknown products are rejected
- stock == initial + sum(IN) - sum(OUT) after any sequence
"""

import pytest

from pos_backend.errors import InsufficientStock, InvalidRequest, ProductNotFound
from pos_backend.models import StockMovement
from pos_backend.services import catalog_service, stock_service


class TestAdjust:

    def test_in_increases_stock_and_logs_movement(self, db_session, make_product):
        product = make_product(stock=5)

        new_stock = stock_service.adjust_stock(db_session, product.id, "IN", 3, "Restock")

        assert new_stock == 8
        assert stock_service.get_stock_level(db_session, product.id) == 8
        movements = db_session.query(StockMovement).filter_by(product_id=product.id, reason="Restock").all()
        assert len(movements) == 1
        assert movements[0].type == "IN"
        assert movements[0].quantity == 3

    def test_out_decreases_stock(self, db_session, make_product):
        product = make_product(stock=5)

        assert stock_service.adjust_stock(db_session, product.id, "OUT", 5, "Damaged") == 0
        assert stock_service.get_stock_level(db_session, product.id) == 0

    def test_out_larger_than_stock_is_rejected(self, db_session, make_product):
        product = make_product(name="Sugar", stock=2)

        with pytest.raises(InsufficientStock) as exc_info:
            stock_service.adjust_stock(db_session, product.id, "OUT", 3)

        assert "Sugar" in exc_info.value.message
        assert exc_info.value.details["available"] == 2
        assert stock_service.get_stock_level(db_session, product.id) == 2
        assert db_session.query(StockMovement).filter_by(product_id=product.id, type="OUT").count() == 0

    @pytest.mark.parametrize("direction,quantity", [
        ("ADJUSTMENT", 1),
        ("in", 1),
        ("IN", 0),
        ("OUT", -1),
        ("IN", 1.5),
        ("IN", True),
        ("IN", None),
    ])
    def test_invalid_adjustment_rejected(self, db_session, make_product, direction, quantity):
        product = make_product(stock=5)

        with pytest.raises(InvalidRequest):
            stock_service.adjust_stock(db_session, product.id, direction, quantity)

        assert stock_service.get_stock_level(db_session, product.id) == 5

    def test_unknown_product(self, db_session):
        with pytest.raises(ProductNotFound):
            stock_service.adjust_stock(db_session, "missing-id", "IN", 1)

    def test_soft_deleted_product_is_not_found(self, db_session, make_product):
        product = make_product(stock=5)
        catalog_service.soft_delete_product(db_session, product.id)

        with pytest.raises(ProductNotFound):
            stock_service.adjust_stock(db_session, product.id, "OUT", 1)


class TestLedgerConservation:

    def test_balance_matches_movement_log(self, db_session, make_product):
        product = make_product(stock=0)

        for direction, qty in [("IN", 10), ("OUT", 3), ("IN", 4), ("OUT", 11)]:
            stock_service.adjust_stock(db_session, product.id, direction, qty)

        with pytest.raises(InsufficientStock):
            stock_service.adjust_stock(db_session, product.id, "OUT", 1)

        totals = stock_service.get_movement_totals(db_session, product.id)
        assert totals == {"IN": 14, "OUT": 14, "net": 0}
        assert stock_service.get_stock_level(db_session, product.id) == 0
        assert stock_service.ledger_balance(db_session, product.id) == 0

    def test_opening_stock_is_an_in_movement(self, db_session, make_product):
        product = make_product(stock=7)

        movements = db_session.query(StockMovement).filter_by(product_id=product.id).all()
        assert [(m.type, m.quantity, m.reason) for m in movements] == [("IN", 7, "Initial stock")]


class TestMovementHistory:

    def test_filter_and_paginate(self, db_session, make_product):
        first = make_product(name="A", stock=1)
        second = make_product(name="B", stock=1)
        for _ in range(3):
            stock_service.adjust_stock(db_session, first.id, "IN", 1)

        result = stock_service.get_movements(db_session, product_id=first.id, page=1, limit=2)
        assert result["total"] == 4
        assert result["totalPages"] == 2
        assert len(result["items"]) == 2
        assert all(m.product_id == first.id for m in result["items"])

        everything = stock_service.get_movements(db_session)
        assert everything["total"] == 5
        assert second.id in {m.product_id for m in everything["items"]}

    @pytest.mark.parametrize("page,limit", [(0, 10), (1, 0), (1, 201)])
    def test_invalid_paging(self, db_session, page, limit):
        with pytest.raises(InvalidRequest):
            stock_service.get_movements(db_session, page=page, limit=limit)
