"""
Transaction store read tests: lookup and pagination metadata.
"""

import pytest

from pos_backend.errors import InvalidRequest, TransactionNotFound
from pos_backend.services import checkout_service, transaction_service


def _sell(db_session, registry, cashier, product, times):
    codes = []
    for _ in range(times):
        result = checkout_service.checkout(
            db_session, registry, cashier.id,
            [{"product_id": product.id, "quantity": 1}], "CASH", payment_amount=10**6,
        )
        codes.append(result.transaction.code)
    return codes


class TestGetTransaction:

    def test_includes_items_and_cashier(self, db_session, registry, cashier, make_product):
        product = make_product(name="Bread", stock=5)
        (code,) = _sell(db_session, registry, cashier, product, 1)

        txn_id = transaction_service.list_transactions(db_session)["items"][0].id
        txn = transaction_service.get_transaction(db_session, txn_id)

        assert txn.code == code
        view = txn.to_dict()
        assert view["cashierName"] == "Cashier One"
        assert view["items"][0]["productName"] == "Bread"

    def test_unknown_id(self, db_session):
        with pytest.raises(TransactionNotFound):
            transaction_service.get_transaction(db_session, "missing")


class TestListTransactions:

    def test_pagination_meta(self, db_session, registry, cashier, make_product):
        product = make_product(stock=50)
        codes = _sell(db_session, registry, cashier, product, 5)

        page1 = transaction_service.list_transactions(db_session, page=1, limit=2)
        page3 = transaction_service.list_transactions(db_session, page=3, limit=2)

        assert page1["meta"] == {"total": 5, "page": 1, "limit": 2, "totalPages": 3}
        assert [t.code for t in page1["items"]] == [codes[4], codes[3]]
        assert [t.code for t in page3["items"]] == [codes[0]]

    def test_empty_store(self, db_session):
        result = transaction_service.list_transactions(db_session)

        assert result["items"] == []
        assert result["meta"] == {"total": 0, "page": 1, "limit": 10, "totalPages": 0}

    @pytest.mark.parametrize("page,limit", [(0, 10), (-1, 10), (1, 0), (1, 101)])
    def test_invalid_paging(self, db_session, page, limit):
        with pytest.raises(InvalidRequest):
            transaction_service.list_transactions(db_session, page=page, limit=limit)
