# -*- coding: utf-8 -*-
from decimal import Decimal

import pytest

from repairflow.errors import IllegalTransition, NotFound, Unauthorized, ValidationFailed
from repairflow.models import Actor, OrderCreate, OrderStatus, Role
from repairflow.services.state_machine import ACTION_ROLES, EDGES, RULES, Action, authorize

S = OrderStatus

FORWARD = [
    S.NEW, S.DIAGNOSTICS, S.PARTS_SELECTION, S.APPROVAL, S.IN_WORK, S.QUALITY_CONTROL, S.READY, S.CLOSED,
]


# ==================== Authorization table ====================

def test_every_edge_moves_forward_or_to_cancelled():
    for (old, new) in EDGES:
        if old is None or new == S.CANCELLED:
            continue
        assert FORWARD.index(new) > FORWARD.index(old), f"{old} -> {new}"


def test_terminal_statuses_have_no_rules():
    assert not [key for key in RULES if key[0] is not None and key[0].is_terminal]


@pytest.mark.parametrize("role", [Role.INTAKE_CLERK, Role.ADMIN])
def test_front_desk_may_cancel_from_every_open_status(role):
    for status in OrderStatus:
        if status.is_terminal:
            continue
        assert authorize(status, Action.CANCEL, role).target == S.CANCELLED


@pytest.mark.parametrize("role", [Role.DIAGNOSTICIAN, Role.PARTS_CLERK, Role.TECHNICIAN])
def test_other_roles_may_not_cancel(role):
    with pytest.raises(Unauthorized):
        authorize(S.IN_WORK, Action.CANCEL, role)


def test_role_checked_before_status():
    with pytest.raises(Unauthorized):
        authorize(S.NEW, Action.SUBMIT_DIAGNOSIS, Role.PARTS_CLERK)


def test_right_role_wrong_status():
    with pytest.raises(IllegalTransition):
        authorize(S.NEW, Action.SUBMIT_DIAGNOSIS, Role.DIAGNOSTICIAN)


def test_terminal_status_rejects_everything():
    for action, roles in ACTION_ROLES.items():
        for role in roles:
            with pytest.raises(IllegalTransition):
                authorize(S.CLOSED, action, role)


# ==================== Commands ====================

def test_create_order_goes_to_diagnostics(machine, clerk, audit_log):
    order = machine.create_order(clerk, OrderCreate(client_id=1, car_id=2, mileage=50000))

    assert order.status == S.DIAGNOSTICS
    assert order.intake_clerk_id == clerk.user_id
    assert order.prepayment == Decimal("0.00")
    assert audit_log.transitions(order.id) == [(None, "New"), ("New", "Diagnostics")]


def test_create_order_can_stay_new(machine, clerk, diagnostician):
    order = machine.create_order(clerk, OrderCreate(client_id=1, car_id=2, send_to_diagnostics=False))
    assert order.status == S.NEW

    order = machine.send_to_diagnostics(order.id, diagnostician)
    assert order.status == S.DIAGNOSTICS


def test_create_order_requires_front_desk(machine, technician):
    with pytest.raises(Unauthorized):
        machine.create_order(technician, OrderCreate(client_id=1, car_id=2))


@pytest.mark.parametrize("field, value", [("prepayment", Decimal("-1.00")), ("mileage", -5)])
def test_create_order_rejects_negative_values(machine, clerk, field, value):
    with pytest.raises(ValidationFailed):
        machine.create_order(clerk, OrderCreate(client_id=1, car_id=2, **{field: value}))


def test_unknown_order(machine, clerk):
    with pytest.raises(NotFound):
        machine.get_order(999)
    with pytest.raises(NotFound):
        machine.cancel_order(999, clerk, "No such order")


def test_submit_diagnosis_needs_a_defect(machine, driver, diagnostician, audit_log):
    order = driver.create()
    with pytest.raises(ValidationFailed):
        machine.submit_diagnosis(order.id, diagnostician, [])

    assert machine.get_order(order.id).status == S.DIAGNOSTICS
    assert audit_log.transitions(order.id)[-1] == ("New", "Diagnostics")


def test_wrong_role_leaves_order_unchanged(machine, driver, parts_clerk):
    order = driver.create()
    with pytest.raises(Unauthorized):
        machine.submit_diagnosis(order.id, parts_clerk, [])

    after = machine.get_order(order.id)
    assert after.status == S.DIAGNOSTICS
    assert after.version == order.version


def test_skipping_ahead_is_illegal(machine, driver, clerk):
    order = driver.create()
    with pytest.raises(IllegalTransition):
        machine.apply_approval_decisions(order.id, clerk, [], [])


def test_generic_transition_dispatches_to_owner(machine, driver, clerk, audit_log):
    order = driver.create()
    cancelled = machine.transition(order.id, clerk, S.CANCELLED, {"reason": "Client changed mind"})

    assert cancelled.status == S.CANCELLED
    assert cancelled.cancel_reason == "Client changed mind"
    assert audit_log.transitions(order.id)[-1] == ("Diagnostics", "Cancelled")


def test_generic_transition_rejects_non_successor(machine, driver, clerk):
    order = driver.create()
    with pytest.raises(IllegalTransition):
        machine.transition(order.id, clerk, S.READY)


def test_generic_transition_validates_payload(machine, driver, clerk):
    order = driver.create()
    with pytest.raises(ValidationFailed):
        machine.transition(order.id, clerk, S.CANCELLED, {})


def test_cancel_needs_reason(machine, driver, clerk):
    order = driver.create()
    with pytest.raises(ValidationFailed):
        machine.cancel_order(order.id, clerk, "   ")


def test_cancelled_order_is_frozen(machine, driver, clerk, diagnostician):
    order = driver.create()
    machine.cancel_order(order.id, clerk, "Duplicate order")

    with pytest.raises(IllegalTransition):
        machine.submit_diagnosis(order.id, diagnostician, [])
    with pytest.raises(IllegalTransition):
        machine.cancel_order(order.id, clerk, "Again")
    with pytest.raises(IllegalTransition):
        machine.record_prepayment(order.id, clerk, Decimal("10.00"))


def test_admin_acts_as_front_desk(machine, admin):
    order = machine.create_order(admin, OrderCreate(client_id=1, car_id=2))
    assert machine.cancel_order(order.id, admin, "Test order").status == S.CANCELLED


def test_list_orders_filters(machine, driver, clerk):
    first = driver.create(client_id=100)
    second = driver.create(client_id=200)
    machine.cancel_order(second.id, clerk, "Wrong car")

    assert [o.id for o in machine.list_orders(client_id=100)] == [first.id]
    assert [o.id for o in machine.list_orders(status=S.CANCELLED)] == [second.id]
    assert {o.id for o in machine.list_orders()} == {first.id, second.id}


def test_list_orders_by_car(machine, driver):
    first = driver.create(car_id=501)
    driver.create(car_id=502)
    second = driver.create(car_id=501)

    assert [o.id for o in machine.list_orders(car_id=501)] == [second.id, first.id]
    assert machine.list_orders(car_id=999) == []


def test_technician_flow_with_quality_control(qc_machine, qc_driver, technician, audit_log):
    order = qc_driver.in_work()

    with pytest.raises(IllegalTransition):
        qc_machine.complete_work(order.id, technician)

    order = qc_machine.mark_work_item_done(order.id, technician, order.works[0].id)
    assert order.status == S.QUALITY_CONTROL

    order = qc_machine.pass_quality_control(order.id, technician)
    assert order.status == S.READY
    assert order.technician_id == 7
    assert audit_log.transitions(order.id)[-3:] == [
        ("Approval", "In_Work"), ("In_Work", "Quality_Control"), ("Quality_Control", "Ready"),
    ]


def test_intake_clerk_cannot_do_technician_work(machine, driver, clerk):
    order = driver.in_work()
    with pytest.raises(Unauthorized):
        machine.mark_work_item_done(order.id, clerk, order.works[0].id)


def test_actor_roles_are_plain_claims():
    assert Actor(user_id=1, role="technician").role == Role.TECHNICIAN
    assert Role.from_claim("Storekeeper") == Role.PARTS_CLERK
