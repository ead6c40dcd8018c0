# -*- coding: utf-8 -*-
"""
Financial Closer
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from repairflow.errors import InvalidPayment, ValidationFailed
from repairflow.models import PaymentMethod, SettlementQuote
from repairflow.money import from_cents, to_cents
from repairflow.tables import OrderRow

logger = logging.getLogger(__name__)


def _amount_cents(value: Decimal, field: str, error=ValidationFailed) -> int:
    try:
        cents = to_cents(value)
    except ValueError as e:
        raise error(f"Invalid {field}: {e}", {"field": field})
    if cents < 0:
        raise error(f"{field} must not be negative", {"field": field, "value": str(value)})
    return cents


class FinancialCloser:
    """Amount due, prepayment and final settlement"""

    def __init__(self, diagnosis_fee: Decimal):
        self.diagnosis_fee_cents = _amount_cents(diagnosis_fee, "DIAGNOSIS_FEE")

    def amount_due_cents(self, order: OrderRow) -> int:
        """Confirmed total (or diagnosis fee on the reject-all path) minus prepayment"""
        if order.diagnosis_fee_cents is not None:
            charge = order.diagnosis_fee_cents
        else:
            charge = order.total_cents or 0
        return max(charge - order.prepayment_cents, 0)

    def quote(self, order: OrderRow) -> SettlementQuote:
        return SettlementQuote(
            order_id=order.id,
            status=order.status,
            confirmed_total=from_cents(order.total_cents),
            prepayment=from_cents(order.prepayment_cents),
            diagnosis_fee=from_cents(order.diagnosis_fee_cents),
            amount_due=from_cents(self.amount_due_cents(order)),
            amount_paid=from_cents(order.paid_cents),
        )

    def record_prepayment(self, order: OrderRow, amount: Decimal) -> None:
        order.prepayment_cents = _amount_cents(amount, "prepayment")
        logger.info(f"Order {order.id}: prepayment set to {from_cents(order.prepayment_cents)}")

    def _take_payment(self, order: OrderRow, method: PaymentMethod, amount_paid: Decimal) -> int:
        paid_cents = _amount_cents(amount_paid, "amount_paid", error=InvalidPayment)
        due_cents = self.amount_due_cents(order)
        if paid_cents < due_cents:
            raise InvalidPayment(
                f"Amount paid {from_cents(paid_cents)} is below the amount due {from_cents(due_cents)}",
                {"amount_due": str(from_cents(due_cents)), "amount_paid": str(from_cents(paid_cents))},
            )
        order.payment_method = method
        order.paid_cents = paid_cents
        order.completed_at = datetime.now()
        return paid_cents

    def settle(self, order: OrderRow, method: PaymentMethod, amount_paid: Decimal) -> None:
        """Record full payment; partial settlement is not accepted"""
        paid_cents = self._take_payment(order, method, amount_paid)
        logger.info(f"Order {order.id}: settled {from_cents(paid_cents)} by {method.value}")

    def close_rejected(
        self,
        order: OrderRow,
        method: Optional[PaymentMethod] = None,
        amount_paid: Optional[Decimal] = None,
    ) -> None:
        """
        Close a proposal with nothing payable accepted. The diagnosis fee,
        less any prepayment, is paid in full before the order closes; when
        nothing is left to pay the payment fields are optional.
        """
        order.diagnosis_fee_cents = self.diagnosis_fee_cents
        due_cents = self.amount_due_cents(order)
        if method is None or amount_paid is None:
            if due_cents > 0:
                raise InvalidPayment(
                    f"Diagnosis fee of {from_cents(due_cents)} must be paid to close the order",
                    {"amount_due": str(from_cents(due_cents))},
                )
            order.completed_at = datetime.now()
            logger.info(f"Order {order.id}: proposal rejected, diagnosis fee covered by prepayment")
            return
        paid_cents = self._take_payment(order, method, amount_paid)
        logger.info(
            f"Order {order.id}: proposal rejected, diagnosis fee {from_cents(self.diagnosis_fee_cents)} "
            f"settled {from_cents(paid_cents)} by {method.value}"
        )
