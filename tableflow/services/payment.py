"""
Payment Processor

Turns the amounts entered at the cashier station into a validated
``PaymentTransaction``. Pure computation: nothing is stored or published
here; ``BillAggregator.finalize_bill()`` consumes the transaction.

    total  = subtotal + tip
    change = max(0, received - total)

Cash must cover the total. Card and app payments without an entered amount
are taken as paid in full.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from tableflow.core.exceptions import InsufficientPaymentError, ValidationError
from tableflow.domain import PaymentTransaction, money
from tableflow.schemas import PaymentRequest, validate_input
from tableflow.status import PaymentMethod

logger = logging.getLogger(__name__)

Amount = Union[Decimal, int, float, str]


class PaymentProcessor:
    """Validates tender and computes change."""

    @staticmethod
    def _method(method: Union[PaymentMethod, str]) -> PaymentMethod:
        try:
            return PaymentMethod(getattr(method, "value", method))
        except ValueError:
            raise ValidationError(
                f"Unknown payment method '{method}'",
                {"allowed": [m.value for m in PaymentMethod]},
            )

    @staticmethod
    def _amount(value: Amount, name: str) -> Decimal:
        try:
            amount = money(value)
        except (InvalidOperation, TypeError, ValueError):
            amount = None
        if amount is None or not amount.is_finite():
            raise ValidationError(f"'{value}' is not a valid {name}", {name: str(value)})
        if amount < 0:
            raise ValidationError(f"The {name} cannot be negative", {name: str(amount)})
        return amount

    def compute_change(self, total: Amount, received: Amount) -> Decimal:
        """
        Change owed to the customer, never negative.

        Raises:
            ValidationError: Non-numeric or negative amounts
        """
        return max(Decimal("0.00"), self._amount(received, "received amount") - self._amount(total, "total"))

    def validate(self, method: Union[PaymentMethod, str], total: Amount, received: Amount) -> None:
        """
        Check that the tender is acceptable.

        Raises:
            ValidationError: Unknown method, non-numeric or negative amounts
            InsufficientPaymentError: Cash below the total
        """
        method = self._method(method)
        total = self._amount(total, "total")
        received = self._amount(received, "received amount")
        if method == PaymentMethod.CASH and received < total:
            logger.info(f"Cash payment refused: received {received}, total {total}")
            raise InsufficientPaymentError(total, received)

    def build_transaction(
        self,
        method: Union[PaymentMethod, str],
        tip_amount: Amount = Decimal("0"),
        received_amount: Optional[Amount] = None,
        subtotal: Amount = Decimal("0"),
    ) -> PaymentTransaction:
        """
        Build the transaction for a bill.

        Args:
            method: cash, card or app
            tip_amount: Tip added on top of the subtotal
            received_amount: Tendered amount; optional for card/app
            subtotal: Bill subtotal

        Returns:
            PaymentTransaction: With total and change filled in

        Raises:
            ValidationError: Negative amounts or unknown method
            InsufficientPaymentError: Cash below the total
        """
        method = self._method(method)
        request = validate_input(
            PaymentRequest,
            method=method,
            subtotal=subtotal,
            tip_amount=tip_amount,
            received_amount=received_amount,
        )

        subtotal = money(request.subtotal)
        tip = money(request.tip_amount)
        total = money(subtotal + tip)

        if request.received_amount is None:
            if method == PaymentMethod.CASH:
                raise InsufficientPaymentError(total, Decimal("0.00"))
            received = total
        else:
            received = money(request.received_amount)

        self.validate(method, total, received)
        change = self.compute_change(total, received)

        logger.debug(
            f"Transaction {method.value}: subtotal {subtotal} + tip {tip} = {total}, "
            f"received {received}, change {change}"
        )
        return PaymentTransaction(
            method=method,
            subtotal=subtotal,
            tip_amount=tip,
            received_amount=received,
            change_amount=change,
            total=total,
        )
