"""
Tests for PaymentProcessor.

Amounts follow the cashier screen: total = subtotal + tip, change is never
negative and cash must cover the total.
"""
from decimal import Decimal

import pytest

from tableflow.core.exceptions import InsufficientPaymentError, ValidationError
from tableflow.services.payment import PaymentProcessor
from tableflow.status import PaymentMethod


@pytest.fixture
def processor():
    return PaymentProcessor()


class TestBuildTransaction:
    """Transactions for a 15.50 bill."""

    def test_cash_with_tip_and_change(self, processor):
        tx = processor.build_transaction("cash", tip_amount="1.50", received_amount="20", subtotal="15.50")

        assert tx.method == PaymentMethod.CASH
        assert tx.total == Decimal("17.00")
        assert tx.received_amount == Decimal("20.00")
        assert tx.change_amount == Decimal("3.00")

    def test_exact_cash(self, processor):
        tx = processor.build_transaction(PaymentMethod.CASH, Decimal("0"), Decimal("15.50"), Decimal("15.50"))
        assert tx.change_amount == Decimal("0.00")

    def test_insufficient_cash(self, processor):
        with pytest.raises(InsufficientPaymentError) as exc:
            processor.build_transaction("cash", tip_amount="1.50", received_amount="10", subtotal="15.50")

        assert exc.value.details["missing"] == "7.00"

    def test_cash_needs_an_amount(self, processor):
        with pytest.raises(InsufficientPaymentError):
            processor.build_transaction("cash", subtotal="15.50")

    @pytest.mark.parametrize("method", ["card", "app"])
    def test_card_and_app_default_to_paid_in_full(self, processor, method):
        tx = processor.build_transaction(method, tip_amount="2", subtotal="15.50")

        assert tx.total == Decimal("17.50")
        assert tx.received_amount == Decimal("17.50")
        assert tx.change_amount == Decimal("0.00")

    @pytest.mark.parametrize("kwargs", [
        {"tip_amount": "-1"},
        {"received_amount": "-5"},
        {"subtotal": "-15.50"},
    ])
    def test_negative_amounts_rejected(self, processor, kwargs):
        data = {"tip_amount": "0", "received_amount": "20", "subtotal": "15.50"}
        data.update(kwargs)
        with pytest.raises(ValidationError):
            processor.build_transaction("cash", **data)

    def test_unknown_method(self, processor):
        with pytest.raises(ValidationError):
            processor.build_transaction("cheque", subtotal="15.50", received_amount="20")

    def test_amounts_rounded_half_up(self, processor):
        tx = processor.build_transaction("card", tip_amount="0.005", subtotal="10.00")
        assert tx.tip_amount == Decimal("0.01")
        assert tx.total == Decimal("10.01")


class TestChangeAndValidation:
    """The standalone helpers."""

    def test_compute_change_never_negative(self, processor):
        assert processor.compute_change("17.00", "20") == Decimal("3.00")
        assert processor.compute_change("17.00", "10") == Decimal("0.00")

    def test_validate_only_checks_cash(self, processor):
        processor.validate("card", Decimal("17.00"), Decimal("0"))
        with pytest.raises(InsufficientPaymentError):
            processor.validate("cash", Decimal("17.00"), Decimal("16.99"))

    @pytest.mark.parametrize("total,received", [
        ("abc", "20"),
        ("17.00", "twenty"),
        ("17.00", None),
        ("NaN", "20"),
        ("17.00", "-1"),
    ])
    def test_bad_amounts_are_validation_errors(self, processor, total, received):
        with pytest.raises(ValidationError):
            processor.compute_change(total, received)
        with pytest.raises(ValidationError):
            processor.validate("cash", total, received)
