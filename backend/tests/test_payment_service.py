"""
Payment strategy and settlement tests.

Verifies:
- QRIS checkout stays PENDING with a QR reference until confirmed
- Confirmation is idempotent; fail/confirm respect terminal states
- process_payment guards (AlreadyPaid, FAILED, unsupported method)
- The registry is immutable and rejects duplicate method names
"""

from decimal import Decimal

import pytest

from pos_backend.errors import (
    AlreadyPaid,
    InsufficientPayment,
    InvalidPaymentState,
    TransactionNotFound,
    UnsupportedPaymentMethod,
)
from pos_backend.services import checkout_service, payment_service, stock_service
from pos_backend.services.payment_strategies import CashPaymentStrategy, PaymentStrategy, QrisPaymentStrategy


@pytest.fixture
def qris_sale(db_session, registry, cashier, make_product):
    product = make_product(name="Milk", price="10000", stock=5)
    result = checkout_service.checkout(
        db_session, registry, cashier.id,
        [{"product_id": product.id, "quantity": 1}], "QRIS", tax_rate=0,
    )
    return result.transaction


class TestQrisSettlement:

    def test_checkout_leaves_pending_with_qr(self, db_session, registry, cashier, make_product):
        product = make_product(price="10000", stock=5)

        result = checkout_service.checkout(
            db_session, registry, cashier.id,
            [{"product_id": product.id, "quantity": 1}], "qris", tax_rate=0,
        )

        txn = result.transaction
        assert txn.payment_status == "PENDING"
        assert txn.payment_method == "QRIS"
        assert txn.code in txn.qr_code_url
        assert txn.qr_expires_at > txn.created_at
        assert result.change == Decimal("0")
        assert result.payment.to_dict()["qrCodeUrl"] == txn.qr_code_url
        # Stock is committed with the sale, not with the payment
        assert stock_service.get_stock_level(db_session, product.id) == 4

    def test_confirm_marks_paid(self, db_session, registry, qris_sale):
        txn, changed = payment_service.confirm_payment(db_session, registry, qris_sale.id)

        assert changed is True
        assert txn.payment_status == "PAID"
        assert txn.paid_amount == Decimal("10000")
        assert txn.change_amount == Decimal("0")
        assert txn.paid_at is not None

    def test_confirm_is_idempotent(self, db_session, registry, qris_sale):
        payment_service.confirm_payment(db_session, registry, qris_sale.id)
        paid_at = payment_service.get_payment_status(db_session, qris_sale.id)["paidAt"]

        txn, changed = payment_service.confirm_payment(db_session, registry, qris_sale.id)

        assert changed is False
        assert txn.payment_status == "PAID"
        assert payment_service.get_payment_status(db_session, qris_sale.id)["paidAt"] == paid_at

    def test_confirm_unknown_transaction(self, db_session, registry):
        with pytest.raises(TransactionNotFound):
            payment_service.confirm_payment(db_session, registry, "missing")

    def test_fail_then_confirm_is_rejected(self, db_session, registry, qris_sale):
        txn, changed = payment_service.fail_payment(db_session, registry, qris_sale.id)
        assert changed is True
        assert txn.payment_status == "FAILED"

        _, changed_again = payment_service.fail_payment(db_session, registry, qris_sale.id)
        assert changed_again is False

        with pytest.raises(InvalidPaymentState):
            payment_service.confirm_payment(db_session, registry, qris_sale.id)

    def test_fail_after_paid_is_rejected(self, db_session, registry, qris_sale):
        payment_service.confirm_payment(db_session, registry, qris_sale.id)

        with pytest.raises(InvalidPaymentState):
            payment_service.fail_payment(db_session, registry, qris_sale.id)

    def test_cash_transaction_cannot_be_confirmed(self, db_session, registry, cashier, make_product):
        product = make_product(stock=5)
        result = checkout_service.checkout(
            db_session, registry, cashier.id,
            [{"product_id": product.id, "quantity": 1}], "CASH", payment_amount=10**6,
        )

        with pytest.raises(InvalidPaymentState):
            payment_service.confirm_payment(db_session, registry, result.transaction.id)


class TestProcessPayment:

    def test_pending_qris_paid_in_cash(self, db_session, registry, qris_sale):
        txn, outcome = payment_service.process_payment(
            db_session, registry, qris_sale.id, "CASH", {"paid_amount": "15000"},
        )

        assert txn.payment_status == "PAID"
        assert txn.payment_method == "CASH"
        assert outcome.change_amount == Decimal("5000")

    def test_tendered_amount_rounds_half_up(self):
        # 10.005 rounds to 10.01 and so covers a 10.01 total
        CashPaymentStrategy().authorize(Decimal("10.01"), {"paid_amount": "10.005"})

        with pytest.raises(InsufficientPayment):
            CashPaymentStrategy().authorize(Decimal("10.02"), {"paid_amount": "10.005"})

    def test_short_cash_leaves_transaction_pending(self, db_session, registry, qris_sale):
        with pytest.raises(InsufficientPayment):
            payment_service.process_payment(db_session, registry, qris_sale.id, "CASH", {"paid_amount": 1})

        assert payment_service.get_payment_status(db_session, qris_sale.id)["status"] == "PENDING"

    def test_already_paid(self, db_session, registry, qris_sale):
        payment_service.confirm_payment(db_session, registry, qris_sale.id)

        with pytest.raises(AlreadyPaid):
            payment_service.process_payment(db_session, registry, qris_sale.id, "CASH", {"paid_amount": 10**6})

    def test_failed_transaction(self, db_session, registry, qris_sale):
        payment_service.fail_payment(db_session, registry, qris_sale.id)

        with pytest.raises(InvalidPaymentState):
            payment_service.process_payment(db_session, registry, qris_sale.id, "QRIS")

    def test_unsupported_method(self, db_session, registry, qris_sale):
        with pytest.raises(UnsupportedPaymentMethod):
            payment_service.process_payment(db_session, registry, qris_sale.id, "CHEQUE")

    def test_status_of_unknown_transaction(self, db_session):
        with pytest.raises(TransactionNotFound):
            payment_service.get_payment_status(db_session, "missing")


class TestRegistry:

    def test_registry_is_read_only(self, registry):
        with pytest.raises(TypeError):
            registry["CARD"] = CashPaymentStrategy()

    def test_duplicate_method_rejected(self):
        with pytest.raises(ValueError):
            payment_service.build_registry([CashPaymentStrategy(), CashPaymentStrategy()])

    def test_lookup_is_case_insensitive(self, registry):
        assert isinstance(payment_service.get_strategy(registry, " qris "), QrisPaymentStrategy)

    @pytest.mark.parametrize("method", [None, 5, ["CASH"], {"method": "CASH"}])
    def test_non_string_method_is_unsupported(self, registry, method):
        with pytest.raises(UnsupportedPaymentMethod) as exc_info:
            payment_service.get_strategy(registry, method)

        assert exc_info.value.details["supported"] == ["CASH", "QRIS"]

    def test_base_strategy_has_no_settlement(self, db_session, qris_sale):
        with pytest.raises(NotImplementedError):
            PaymentStrategy().settle(db_session, qris_sale, {})

    def test_new_method_needs_only_a_strategy(self):
        class VoucherStrategy(CashPaymentStrategy):
            method = "VOUCHER"

        registry = payment_service.build_registry([CashPaymentStrategy(), VoucherStrategy()])

        assert sorted(registry) == ["CASH", "VOUCHER"]
        assert payment_service.get_strategy(registry, "voucher").method == "VOUCHER"
