# -*- coding: utf-8 -*-
"""
Optimistic concurrency on the order row
"""
from decimal import Decimal

import logging

import pytest
from sqlalchemy import event
from sqlalchemy.exc import OperationalError

from repairflow.errors import ConcurrentModification, ServiceUnavailable, StoreUnavailable
from repairflow.models import OrderStatus, PartItemCreate
from repairflow.services.state_machine import OrderStateMachine
from repairflow.tables import OrderRow


class InterleavingWarehouse:
    """Runs another command while the first one is between read and write"""

    def __init__(self, interleave):
        self.interleave = interleave

    def has_stock(self, item_id, quantity):
        self.interleave()
        return True


class FailingAuditLog:
    def record(self, entry):
        raise ServiceUnavailable("Audit log is unavailable", {"order_id": entry.order_id})


def test_stale_version_is_rejected(machine, driver, clerk, parts_clerk):
    order = driver.diagnosed()
    seen = order.version

    machine.cancel_order(order.id, clerk, "Client took the car", expected_version=seen)
    with pytest.raises(ConcurrentModification):
        machine.propose_line_items(
            order.id, parts_clerk, parts=[PartItemCreate(name="Pads", unit_price=Decimal("25.00"))],
            expected_version=seen,
        )

    detail = machine.get_order(order.id)
    assert detail.status == OrderStatus.CANCELLED
    assert detail.parts == []


def test_cancel_during_proposal(database, audit_log, settings, machine, driver, clerk, parts_clerk):
    order = driver.diagnosed()
    warehouse = InterleavingWarehouse(lambda: machine.cancel_order(order.id, clerk, "Client took the car"))
    proposing = OrderStateMachine(database, audit_log, warehouse, settings)

    with pytest.raises(ConcurrentModification):
        proposing.propose_line_items(
            order.id, parts_clerk,
            parts=[PartItemCreate(warehouse_item_id=501, name="Pads", unit_price=Decimal("25.00"))],
        )

    detail = machine.get_order(order.id)
    assert detail.status == OrderStatus.CANCELLED
    assert detail.parts == []
    assert audit_log.transitions(order.id)[-1] == ("Parts_Selection", "Cancelled")


def test_stale_session_write(database, machine, driver, clerk):
    order = driver.diagnosed()

    with pytest.raises(ConcurrentModification):
        with database.transaction() as session:
            row = session.get(OrderRow, order.id)
            machine.cancel_order(order.id, clerk, "Client took the car")
            row.complaint = "Changed after cancellation"

    assert machine.get_order(order.id).complaint == "Squeaking brakes"


def test_audit_failure_rolls_back(database, settings, driver, clerk):
    order = driver.diagnosed()
    failing = OrderStateMachine(database, FailingAuditLog(), None, settings)

    with pytest.raises(ServiceUnavailable):
        failing.cancel_order(order.id, clerk, "Client took the car")

    detail = failing.get_order(order.id)
    assert detail.status == OrderStatus.PARTS_SELECTION
    assert detail.version == order.version


def test_flush_conflict_sends_no_audit_entry(database, audit_log, settings, machine, driver, clerk, parts_clerk):
    order = driver.diagnosed()
    warehouse = InterleavingWarehouse(lambda: machine.cancel_order(order.id, clerk, "Client took the car"))
    proposing = OrderStateMachine(database, audit_log, warehouse, settings)

    with pytest.raises(ConcurrentModification):
        proposing.propose_line_items(
            order.id, parts_clerk,
            parts=[PartItemCreate(warehouse_item_id=501, name="Pads", unit_price=Decimal("25.00"))],
        )

    assert ("Parts_Selection", "Approval") not in audit_log.transitions(order.id)


def test_commit_failure_reports_sent_entries(database, audit_log, machine, driver, clerk, caplog):
    order = driver.diagnosed()

    def fail_commit(session):
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    event.listen(database._session_factory, "before_commit", fail_commit)
    try:
        with caplog.at_level(logging.ERROR, logger="repairflow.database"):
            with pytest.raises(StoreUnavailable):
                machine.cancel_order(order.id, clerk, "Client took the car")
    finally:
        event.remove(database._session_factory, "before_commit", fail_commit)

    assert f"order {order.id} Parts_Selection -> Cancelled" in caplog.text
    assert machine.get_order(order.id).status == OrderStatus.PARTS_SELECTION
