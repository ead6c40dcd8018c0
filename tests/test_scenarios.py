# -*- coding: utf-8 -*-
"""
End-to-end order lifecycles
"""
from decimal import Decimal

import pytest

from repairflow.errors import ConcurrentModification, NoConfirmedWork
from repairflow.models import (
    ApprovalOutcome, DefectCreate, OrderCreate, OrderStatus, PartItemCreate, PaymentMethod, WorkItemCreate,
)

S = OrderStatus


def _to_approval(machine, clerk, diagnostician, parts_clerk):
    order = machine.create_order(clerk, OrderCreate(client_id=11, car_id=21, mileage=50000))
    order = machine.submit_diagnosis(order.id, diagnostician, [DefectCreate(description="Front brakes / worn pads")])
    return machine.propose_line_items(
        order.id,
        parts_clerk,
        works=[WorkItemCreate(name="Replace front pads", price=Decimal("100.00"), defect_id=order.defects[0].id)],
        parts=[PartItemCreate(name="Brake pad set", unit_price=Decimal("25.00"), quantity=2)],
    )


def test_full_acceptance_to_closed(machine, clerk, diagnostician, parts_clerk, technician, audit_log):
    order = _to_approval(machine, clerk, diagnostician, parts_clerk)
    assert order.mileage == 50000

    result = machine.apply_approval_decisions(order.id, clerk, [order.works[0].id], [order.parts[0].id])
    assert result.outcome == ApprovalOutcome.ACCEPTED
    assert result.confirmed_total == Decimal("150.00")

    order = machine.assign_workers(order.id, clerk, 7)
    order = machine.mark_work_item_done(order.id, technician, order.works[0].id)
    assert order.status == S.READY
    assert machine.quote(order.id).amount_due == Decimal("150.00")

    order = machine.settle_order(order.id, clerk, PaymentMethod.CASH, Decimal("150.00"))
    assert order.status == S.CLOSED
    assert audit_log.transitions(order.id) == [
        (None, "New"),
        ("New", "Diagnostics"),
        ("Diagnostics", "Parts_Selection"),
        ("Parts_Selection", "Approval"),
        ("Approval", "In_Work"),
        ("In_Work", "Ready"),
        ("Ready", "Closed"),
    ]


def test_nothing_accepted_closes_order(machine, clerk, diagnostician, parts_clerk, audit_log):
    order = _to_approval(machine, clerk, diagnostician, parts_clerk)

    result = machine.apply_approval_decisions(
        order.id, clerk, [], [], payment_method=PaymentMethod.CASH, amount_paid=Decimal("30.00")
    )
    assert result.confirmed_total == Decimal("0.00")
    assert result.status == S.CLOSED

    statuses = [new for _, new in audit_log.transitions(order.id)]
    assert "In_Work" not in statuses and "Ready" not in statuses
    assert statuses[-1] == "Closed"


def test_cancel_and_propose_race(machine, driver, clerk, parts_clerk):
    order = driver.diagnosed()
    seen = order.version

    machine.cancel_order(order.id, clerk, "Client went elsewhere", expected_version=seen)
    with pytest.raises(ConcurrentModification):
        machine.propose_line_items(
            order.id, parts_clerk, works=[WorkItemCreate(service_id=1)], expected_version=seen
        )
    assert machine.get_order(order.id).status == S.CANCELLED


def test_assignment_before_decisions(machine, clerk, diagnostician, parts_clerk):
    order = _to_approval(machine, clerk, diagnostician, parts_clerk)
    with pytest.raises(NoConfirmedWork):
        machine.assign_workers(order.id, clerk, 7)
