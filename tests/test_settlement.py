# -*- coding: utf-8 -*-
from decimal import Decimal

import pytest

from repairflow.errors import IllegalTransition, InvalidPayment, Unauthorized, ValidationFailed
from repairflow.models import OrderStatus, PaymentMethod
from repairflow.services.settlement import FinancialCloser


def test_quote_subtracts_prepayment(machine, driver, clerk):
    order = driver.ready(prepayment=Decimal("50.00"))
    quote = machine.quote(order.id)

    assert quote.status == OrderStatus.READY
    assert quote.confirmed_total == Decimal("150.00")
    assert quote.prepayment == Decimal("50.00")
    assert quote.amount_due == Decimal("100.00")


@pytest.mark.parametrize("paid", ["100.00", "120.00"])
def test_settle_at_or_above_due(machine, driver, clerk, paid):
    order = driver.ready(prepayment=Decimal("50.00"))
    closed = machine.settle_order(order.id, clerk, PaymentMethod.CARD, Decimal(paid))

    assert closed.status == OrderStatus.CLOSED
    assert closed.amount_paid == Decimal(paid)
    assert closed.payment_method == PaymentMethod.CARD
    assert closed.completed_at is not None


def test_settle_below_due(machine, driver, clerk):
    order = driver.ready(prepayment=Decimal("50.00"))
    with pytest.raises(InvalidPayment):
        machine.settle_order(order.id, clerk, PaymentMethod.CASH, Decimal("99.99"))
    assert machine.get_order(order.id).status == OrderStatus.READY


def test_prepayment_over_total_means_nothing_due(machine, driver, clerk):
    order = driver.ready()
    machine.record_prepayment(order.id, clerk, Decimal("200.00"))

    assert machine.quote(order.id).amount_due == Decimal("0.00")
    assert machine.settle_order(order.id, clerk, PaymentMethod.CASH, Decimal("0.00")).status == OrderStatus.CLOSED


def test_prepayment_validation(machine, driver, clerk, technician):
    order = driver.create()
    with pytest.raises(ValidationFailed):
        machine.record_prepayment(order.id, clerk, Decimal("-10.00"))
    with pytest.raises(Unauthorized):
        machine.record_prepayment(order.id, technician, Decimal("10.00"))

    assert machine.record_prepayment(order.id, clerk, Decimal("10.00")).prepayment == Decimal("10.00")


def test_settle_only_when_ready(machine, driver, clerk):
    order = driver.in_work()
    with pytest.raises(IllegalTransition):
        machine.settle_order(order.id, clerk, PaymentMethod.CASH, Decimal("150.00"))


def test_rejected_order_quote_is_diagnosis_fee(machine, driver, clerk):
    order = driver.proposed(prepayment=Decimal("10.00"))
    with pytest.raises(InvalidPayment):
        machine.apply_approval_decisions(
            order.id, clerk, [], [], payment_method=PaymentMethod.CASH, amount_paid=Decimal("19.99")
        )
    assert machine.quote(order.id).status == OrderStatus.APPROVAL

    machine.apply_approval_decisions(
        order.id, clerk, [], [], payment_method=PaymentMethod.CASH, amount_paid=Decimal("20.00")
    )

    quote = machine.quote(order.id)
    assert quote.status == OrderStatus.CLOSED
    assert quote.diagnosis_fee == Decimal("30.00")
    assert quote.amount_due == Decimal("20.00")
    assert quote.amount_paid == Decimal("20.00")


def test_prepayment_covering_the_fee_closes_without_payment(machine, driver, clerk):
    order = driver.proposed(prepayment=Decimal("30.00"))
    result = machine.apply_approval_decisions(order.id, clerk, [], [])

    assert result.status == OrderStatus.CLOSED
    quote = machine.quote(order.id)
    assert quote.amount_due == Decimal("0.00")
    assert quote.amount_paid is None


def test_closer_rejects_bad_fee_setting():
    with pytest.raises(ValidationFailed):
        FinancialCloser(Decimal("-5.00"))
