# -*- coding: utf-8 -*-
"""
Order State Machine

Top-level authority over an order. Every command:

1. opens one store transaction and reads the order with its children,
2. is authorized once against `RULES`, keyed by (current status, action),
3. delegates to the ledger / negotiator / resolver / closer,
4. flushes (the order row UPDATE is version-checked), sends the audit
   entries and commits.

Any error rolls the transaction back, leaving the order as it was.
"""
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, NamedTuple, Optional, Tuple

from pydantic import BaseModel, ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from repairflow.config import Settings, get_settings
from repairflow.database import AUDITED_KEY, Database
from repairflow.errors import (
    ConcurrentModification, IllegalTransition, NotFound, Unauthorized, ValidationFailed,
)
from repairflow.models import (
    Actor, ApprovalDecision, ApprovalResult, AssignmentRequest, CancelRequest,
    Defect, DefectCreate, DiagnosisSubmit, FeePayment, ItemAssignment, LineItemKind, LineItems, Order,
    OrderCreate, OrderDetail, OrderStatus, PartItem, PartItemCreate, PaymentMethod,
    PrepaymentRequest, Proposal, Role, SettlementQuote, SettlementRequest, WorkItem, WorkItemCreate,
)
from repairflow.money import from_cents, to_cents
from repairflow.services.approval import ApprovalNegotiator, selectable_total_cents
from repairflow.services.assignment import AssignmentResolver
from repairflow.services.audit import AuditEntry, AuditLog
from repairflow.services.catalog import CatalogLookup
from repairflow.services.ledger import LineItemLedger, defect_to_model, part_to_model, work_to_model
from repairflow.services.settlement import FinancialCloser
from repairflow.services.warehouse import WarehouseClient
from repairflow.tables import OrderRow

logger = logging.getLogger(__name__)

S = OrderStatus


class Action(str, Enum):
    """Role command"""
    CREATE = "create"
    SEND_TO_DIAGNOSTICS = "send_to_diagnostics"
    ADD_DEFECT = "add_defect"
    SUBMIT_DIAGNOSIS = "submit_diagnosis"
    ADD_LINE_ITEM = "add_line_item"
    REMOVE_LINE_ITEM = "remove_line_item"
    PROPOSE = "propose"
    APPLY_DECISIONS = "apply_decisions"
    REJECT_ALL = "reject_all"
    ASSIGN = "assign"
    START_WORK_ITEM = "start_work_item"
    FINISH_WORK_ITEM = "finish_work_item"
    REQUEST_QUALITY_CONTROL = "request_quality_control"
    COMPLETE_WORK = "complete_work"
    PASS_QUALITY_CONTROL = "pass_quality_control"
    RECORD_PREPAYMENT = "record_prepayment"
    SETTLE = "settle"
    CANCEL = "cancel"


class Rule(NamedTuple):
    roles: FrozenSet[Role]
    target: Optional[OrderStatus] = None  # None: status is left unchanged


FRONT_DESK = frozenset({Role.INTAKE_CLERK, Role.ADMIN})
DIAGNOSTICIAN = frozenset({Role.DIAGNOSTICIAN})
PARTS_CLERK = frozenset({Role.PARTS_CLERK})
TECHNICIAN = frozenset({Role.TECHNICIAN})

NON_TERMINAL = [s for s in OrderStatus if not s.is_terminal]

# (current status, action) -> who may do it and where it leads
RULES: Dict[Tuple[Optional[OrderStatus], Action], Rule] = {
    (None, Action.CREATE): Rule(FRONT_DESK, S.NEW),
    (S.NEW, Action.SEND_TO_DIAGNOSTICS): Rule(FRONT_DESK | DIAGNOSTICIAN, S.DIAGNOSTICS),
    (S.DIAGNOSTICS, Action.ADD_DEFECT): Rule(DIAGNOSTICIAN),
    (S.DIAGNOSTICS, Action.SUBMIT_DIAGNOSIS): Rule(DIAGNOSTICIAN, S.PARTS_SELECTION),
    (S.PARTS_SELECTION, Action.ADD_LINE_ITEM): Rule(PARTS_CLERK),
    (S.PARTS_SELECTION, Action.REMOVE_LINE_ITEM): Rule(PARTS_CLERK),
    (S.PARTS_SELECTION, Action.PROPOSE): Rule(PARTS_CLERK, S.APPROVAL),
    (S.APPROVAL, Action.APPLY_DECISIONS): Rule(FRONT_DESK),
    (S.APPROVAL, Action.REJECT_ALL): Rule(FRONT_DESK, S.CLOSED),
    (S.APPROVAL, Action.ASSIGN): Rule(FRONT_DESK, S.IN_WORK),
    (S.IN_WORK, Action.START_WORK_ITEM): Rule(TECHNICIAN),
    (S.IN_WORK, Action.FINISH_WORK_ITEM): Rule(TECHNICIAN),
    (S.IN_WORK, Action.REQUEST_QUALITY_CONTROL): Rule(TECHNICIAN, S.QUALITY_CONTROL),
    (S.IN_WORK, Action.COMPLETE_WORK): Rule(TECHNICIAN, S.READY),
    (S.QUALITY_CONTROL, Action.PASS_QUALITY_CONTROL): Rule(TECHNICIAN, S.READY),
    (S.READY, Action.SETTLE): Rule(FRONT_DESK, S.CLOSED),
}
for _status in NON_TERMINAL:
    RULES[(_status, Action.RECORD_PREPAYMENT)] = Rule(FRONT_DESK)
    RULES[(_status, Action.CANCEL)] = Rule(FRONT_DESK, S.CANCELLED)

# Every status change the machine can make, and the action that owns it
EDGES: Dict[Tuple[Optional[OrderStatus], OrderStatus], Action] = {
    (status, rule.target): action
    for (status, action), rule in RULES.items()
    if rule.target is not None
}

# Roles that may issue an action in at least one status
ACTION_ROLES: Dict[Action, FrozenSet[Role]] = {}
for (_status, _action), _rule in RULES.items():
    ACTION_ROLES[_action] = ACTION_ROLES.get(_action, frozenset()) | _rule.roles


def authorize_role(action: Action, role: Role) -> None:
    """Role half of `authorize`, for commands whose preconditions are checked before the status"""
    if role not in ACTION_ROLES.get(action, frozenset()):
        raise Unauthorized(
            f"Role {role.value} may not {action.value.replace('_', ' ')}",
            {"role": role.value, "action": action.value},
        )


def authorize(status: Optional[OrderStatus], action: Action, role: Role) -> Rule:
    """Single authorization check for every command"""
    authorize_role(action, role)
    if status is not None and status.is_terminal:
        raise IllegalTransition(
            f"Order is {status.value}; no further changes are allowed",
            {"status": status.value, "action": action.value},
        )
    rule = RULES.get((status, action))
    if rule is None:
        raise IllegalTransition(
            f"Cannot {action.value.replace('_', ' ')} while the order is {status.value if status else 'not created'}",
            {"status": status.value if status else None, "action": action.value},
        )
    if role not in rule.roles:
        raise Unauthorized(
            f"Role {role.value} may not {action.value.replace('_', ' ')} in status {status.value}",
            {"role": role.value, "action": action.value, "status": status.value},
        )
    return rule


def order_to_model(order: OrderRow) -> Order:
    return Order(
        id=order.id,
        client_id=order.client_id,
        car_id=order.car_id,
        intake_clerk_id=order.intake_clerk_id,
        technician_id=order.technician_id,
        status=order.status,
        complaint=order.complaint,
        mileage=order.mileage,
        prepayment=from_cents(order.prepayment_cents),
        total_amount=from_cents(order.total_cents),
        created_at=order.created_at,
        completed_at=order.completed_at,
        version=order.version,
    )


def order_to_detail(order: OrderRow) -> OrderDetail:
    return OrderDetail(
        **order_to_model(order).model_dump(),
        diagnosis_fee=from_cents(order.diagnosis_fee_cents),
        payment_method=order.payment_method,
        amount_paid=from_cents(order.paid_cents),
        cancel_reason=order.cancel_reason,
        approved_at=order.approved_at,
        updated_at=order.updated_at,
        defects=[defect_to_model(d) for d in order.defects],
        works=[work_to_model(w) for w in order.works],
        parts=[part_to_model(p) for p in order.parts],
        selectable_total=from_cents(selectable_total_cents(order.works, order.parts)),
    )


class _Unit:
    """State of one command inside its transaction"""

    def __init__(self, session: Session, order: OrderRow, actor: Actor, machine: "OrderStateMachine"):
        self.session = session
        self.order = order
        self.actor = actor
        self.entries: List[AuditEntry] = []
        self.catalog = CatalogLookup(session)
        self.ledger = LineItemLedger(session, self.catalog, machine.warehouse)
        self.negotiator = ApprovalNegotiator()
        self.resolver = AssignmentResolver(self.catalog)
        self.closer = machine.closer


# Commands reachable through the generic transition() and the payload they take
PAYLOAD_MODELS: Dict[Action, Optional[type]] = {
    Action.SEND_TO_DIAGNOSTICS: None,
    Action.SUBMIT_DIAGNOSIS: DiagnosisSubmit,
    Action.PROPOSE: Proposal,
    Action.REJECT_ALL: FeePayment,
    Action.ASSIGN: AssignmentRequest,
    Action.REQUEST_QUALITY_CONTROL: None,
    Action.COMPLETE_WORK: None,
    Action.PASS_QUALITY_CONTROL: None,
    Action.SETTLE: SettlementRequest,
    Action.CANCEL: CancelRequest,
}


class OrderStateMachine:
    """Role-scoped commands over repair orders"""

    def __init__(
        self,
        database: Database,
        audit_log: AuditLog,
        warehouse: Optional[WarehouseClient] = None,
        settings: Settings = None,
    ):
        self.database = database
        self.audit_log = audit_log
        self.warehouse = warehouse
        self.settings = settings or get_settings()
        self.closer = FinancialCloser(self.settings.DIAGNOSIS_FEE)
        self._handlers: Dict[Action, Callable[[_Unit, Any], Optional[BaseModel]]] = {
            Action.SEND_TO_DIAGNOSTICS: self._send_to_diagnostics,
            Action.SUBMIT_DIAGNOSIS: self._submit_diagnosis,
            Action.PROPOSE: self._propose,
            Action.REJECT_ALL: self._reject_all,
            Action.ASSIGN: self._assign,
            Action.REQUEST_QUALITY_CONTROL: self._request_quality_control,
            Action.COMPLETE_WORK: self._complete_work,
            Action.PASS_QUALITY_CONTROL: self._pass_quality_control,
            Action.SETTLE: self._settle,
            Action.CANCEL: self._cancel,
        }

    # ==================== Plumbing ====================

    def _load(self, session: Session, order_id: int, expected_version: Optional[int] = None) -> OrderRow:
        order = session.get(OrderRow, order_id)
        if order is None:
            raise NotFound(f"Order {order_id} not found", {"order_id": order_id})
        if expected_version is not None and order.version != expected_version:
            raise ConcurrentModification(
                f"Order {order_id} is at version {order.version}, caller read {expected_version}",
                {"order_id": order_id, "version": order.version, "expected_version": expected_version},
            )
        return order

    def _move(self, unit: _Unit, target: OrderStatus, note: str = None) -> None:
        """The only writer of OrderRow.status"""
        order = unit.order
        old = order.status
        action = EDGES.get((old, target))
        if action is None:
            raise IllegalTransition(
                f"{old.value} -> {target.value} is not an allowed transition",
                {"status": old.value, "target": target.value},
            )
        authorize(old, action, unit.actor.role)
        order.status = target
        order.updated_at = datetime.now()
        unit.entries.append(AuditEntry(
            order_id=order.id,
            actor_id=unit.actor.user_id,
            actor_role=unit.actor.role,
            old_status=old,
            new_status=target,
            note=note,
        ))
        logger.info(f"Order {order.id}: {old.value} -> {target.value} by {unit.actor.role.value}#{unit.actor.user_id}")

    def _finish(self, unit: _Unit, result: Optional[BaseModel]) -> BaseModel:
        """
        Flush, then deliver the audit entries. A version conflict or constraint
        error surfaces at the flush, before anything is sent. Delivery happens
        before the commit so a failed delivery still rolls the command back; if
        the commit itself fails afterwards, the audit log holds entries for a
        change that was not stored; `Database.transaction()` logs those
        entries as unstored.
        """
        unit.session.flush()
        delivered = unit.session.info.setdefault(AUDITED_KEY, [])
        for entry in unit.entries:
            self.audit_log.record(entry)
            delivered.append(entry)
        if result is None:
            result = order_to_detail(unit.order)
        return result

    def _execute(
        self,
        order_id: int,
        actor: Actor,
        action: Action,
        handler: Callable[[_Unit, Any], Optional[BaseModel]],
        cmd: Any = None,
        expected_version: Optional[int] = None,
        precheck: Callable[[_Unit], None] = None,
    ):
        with self.database.transaction() as session:
            order = self._load(session, order_id, expected_version)
            unit = _Unit(session, order, actor, self)
            if precheck is not None:
                authorize_role(action, actor.role)
                precheck(unit)
            authorize(order.status, action, actor.role)
            order.updated_at = datetime.now()
            return self._finish(unit, handler(unit, cmd))

    def _read(self, order_id: int, build: Callable[[OrderRow], BaseModel]):
        with self.database.transaction() as session:
            return build(self._load(session, order_id))

    # ==================== Generic transition ====================

    def transition(
        self,
        order_id: int,
        actor: Actor,
        target: OrderStatus,
        payload: Dict[str, Any] = None,
        expected_version: Optional[int] = None,
    ) -> BaseModel:
        """
        Move an order to `target`, which must be an immediate successor of its
        current status. `payload` holds the arguments of the command that owns
        the edge (e.g. `reason` for Cancelled, `payment_method` and
        `amount_paid` for Closed from Ready or from Approval).
        """
        payload = dict(payload or {})
        with self.database.transaction() as session:
            order = self._load(session, order_id, expected_version)
            if order.status.is_terminal:
                raise IllegalTransition(
                    f"Order is {order.status.value}; no further changes are allowed",
                    {"status": order.status.value, "target": target.value},
                )
            action = EDGES.get((order.status, target))
            if action is None or action not in self._handlers:
                raise IllegalTransition(
                    f"{order.status.value} -> {target.value} is not an allowed transition",
                    {"status": order.status.value, "target": target.value},
                )
            model = PAYLOAD_MODELS[action]
            cmd = None
            if model is not None:
                try:
                    cmd = model(**payload)
                except ValidationError as e:
                    raise ValidationFailed(
                        f"Invalid payload for {action.value}",
                        {"errors": e.errors(include_url=False, include_context=False)},
                    )
            unit = _Unit(session, order, actor, self)
            if action == Action.ASSIGN:
                authorize_role(action, actor.role)
                unit.resolver.require_confirmed_items(order)
            authorize(order.status, action, actor.role)
            order.updated_at = datetime.now()
            return self._finish(unit, self._handlers[action](unit, cmd))

    # ==================== Intake ====================

    def create_order(self, actor: Actor, data: OrderCreate) -> OrderDetail:
        """Create an order in New and, unless asked not to, hand it to diagnostics"""
        authorize(None, Action.CREATE, actor.role)
        try:
            prepayment_cents = to_cents(data.prepayment)
        except ValueError as e:
            raise ValidationFailed(f"Invalid prepayment: {e}")
        if prepayment_cents < 0:
            raise ValidationFailed("Prepayment must not be negative")
        if data.mileage is not None and data.mileage < 0:
            raise ValidationFailed("Mileage must not be negative")

        with self.database.transaction() as session:
            order = OrderRow(
                client_id=data.client_id,
                car_id=data.car_id,
                intake_clerk_id=actor.user_id,
                status=S.NEW,
                complaint=data.complaint,
                mileage=data.mileage,
                prepayment_cents=prepayment_cents,
            )
            session.add(order)
            session.flush()
            unit = _Unit(session, order, actor, self)
            unit.entries.append(AuditEntry(
                order_id=order.id,
                actor_id=actor.user_id,
                actor_role=actor.role,
                old_status=None,
                new_status=S.NEW,
                note="created",
            ))
            logger.info(f"Order {order.id}: created by {actor.role.value}#{actor.user_id}")
            if data.send_to_diagnostics:
                self._move(unit, S.DIAGNOSTICS, note="handed over on creation")
            return self._finish(unit, None)

    def send_to_diagnostics(self, order_id: int, actor: Actor, expected_version: int = None) -> OrderDetail:
        return self._execute(order_id, actor, Action.SEND_TO_DIAGNOSTICS, self._send_to_diagnostics,
                             expected_version=expected_version)

    def _send_to_diagnostics(self, unit: _Unit, cmd: None) -> None:
        self._move(unit, S.DIAGNOSTICS)

    # ==================== Diagnostics ====================

    def add_defect(self, order_id: int, actor: Actor, data: DefectCreate, expected_version: int = None) -> Defect:
        return self._execute(order_id, actor, Action.ADD_DEFECT, self._add_defect, data, expected_version)

    def _add_defect(self, unit: _Unit, data: DefectCreate) -> Defect:
        return defect_to_model(unit.ledger.add_defect(unit.order, data, unit.actor.user_id))

    def submit_diagnosis(
        self, order_id: int, actor: Actor, defects: List[DefectCreate], expected_version: int = None
    ) -> OrderDetail:
        cmd = DiagnosisSubmit(defects=defects, expected_version=expected_version)
        return self._execute(order_id, actor, Action.SUBMIT_DIAGNOSIS, self._submit_diagnosis, cmd, expected_version)

    def _submit_diagnosis(self, unit: _Unit, cmd: DiagnosisSubmit) -> None:
        for data in cmd.defects:
            unit.ledger.add_defect(unit.order, data, unit.actor.user_id)
        if not unit.order.defects:
            raise ValidationFailed("Diagnosis must record at least one defect")
        self._move(unit, S.PARTS_SELECTION, note=f"{len(unit.order.defects)} defect(s) diagnosed")

    # ==================== Parts selection ====================

    def add_work_item(self, order_id: int, actor: Actor, data: WorkItemCreate, expected_version: int = None) -> WorkItem:
        return self._execute(order_id, actor, Action.ADD_LINE_ITEM, self._add_work_item, data, expected_version)

    def _add_work_item(self, unit: _Unit, data: WorkItemCreate) -> WorkItem:
        return work_to_model(unit.ledger.add_work_item(unit.order, data))

    def add_part_item(self, order_id: int, actor: Actor, data: PartItemCreate, expected_version: int = None) -> PartItem:
        return self._execute(order_id, actor, Action.ADD_LINE_ITEM, self._add_part_item, data, expected_version)

    def _add_part_item(self, unit: _Unit, data: PartItemCreate) -> PartItem:
        return part_to_model(unit.ledger.add_part_item(unit.order, data))

    def remove_item(
        self, order_id: int, actor: Actor, kind: LineItemKind, item_id: int, expected_version: int = None
    ) -> OrderDetail:
        return self._execute(order_id, actor, Action.REMOVE_LINE_ITEM, self._remove_item, (kind, item_id),
                             expected_version)

    def _remove_item(self, unit: _Unit, cmd: Tuple[LineItemKind, int]) -> None:
        kind, item_id = cmd
        unit.ledger.remove_item(unit.order, kind, item_id)

    def propose_line_items(
        self,
        order_id: int,
        actor: Actor,
        works: List[WorkItemCreate] = (),
        parts: List[PartItemCreate] = (),
        expected_version: int = None,
    ) -> OrderDetail:
        """Add the proposal's items and move the order to Approval"""
        cmd = Proposal(works=list(works), parts=list(parts), expected_version=expected_version)
        return self._execute(order_id, actor, Action.PROPOSE, self._propose, cmd, expected_version)

    def _propose(self, unit: _Unit, cmd: Proposal) -> None:
        for data in cmd.works:
            unit.ledger.add_work_item(unit.order, data)
        for data in cmd.parts:
            unit.ledger.add_part_item(unit.order, data)
        if not unit.order.works and not unit.order.parts:
            raise ValidationFailed("Proposal has no line items")
        self._move(
            unit, S.APPROVAL,
            note=f"proposal of {len(unit.order.works)} work(s), {len(unit.order.parts)} part(s)",
        )

    def list_items(self, order_id: int) -> LineItems:
        with self.database.transaction() as session:
            order = self._load(session, order_id)
            return LineItemLedger(session, CatalogLookup(session)).list_items(order)

    # ==================== Approval ====================

    def apply_approval_decisions(
        self,
        order_id: int,
        actor: Actor,
        accepted_work_ids: List[int] = (),
        accepted_part_ids: List[int] = (),
        payment_method: PaymentMethod = None,
        amount_paid=None,
        expected_version: int = None,
    ) -> ApprovalResult:
        """
        Apply the client's choices. A zero confirmed total closes the order on
        the diagnosis-fee path instead of going to assignment; that close needs
        `payment_method` and `amount_paid` covering the fee less prepayment.
        """
        cmd = ApprovalDecision(
            accepted_work_ids=list(accepted_work_ids),
            accepted_part_ids=list(accepted_part_ids),
            payment_method=payment_method,
            amount_paid=amount_paid,
            expected_version=expected_version,
        )
        return self._execute(order_id, actor, Action.APPLY_DECISIONS, self._apply_decisions, cmd, expected_version)

    def _apply_decisions(self, unit: _Unit, cmd: ApprovalDecision) -> ApprovalResult:
        order = unit.order
        decision = unit.negotiator.apply_decisions(order, cmd.accepted_work_ids, cmd.accepted_part_ids)
        if decision.total_cents == 0:
            unit.closer.close_rejected(order, cmd.payment_method, cmd.amount_paid)
            self._move(unit, S.CLOSED, note=f"nothing payable accepted ({decision.outcome.value})")
        return ApprovalResult(
            order_id=order.id,
            outcome=decision.outcome,
            confirmed_total=from_cents(decision.total_cents),
            status=order.status,
            accepted_works=[work_to_model(w) for w in decision.works],
            accepted_parts=[part_to_model(p) for p in decision.parts],
            diagnosis_fee=from_cents(order.diagnosis_fee_cents),
        )

    def _reject_all(self, unit: _Unit, cmd: FeePayment) -> ApprovalResult:
        return self._apply_decisions(
            unit, ApprovalDecision(payment_method=cmd.payment_method, amount_paid=cmd.amount_paid)
        )

    # ==================== Assignment ====================

    def assign_workers(
        self,
        order_id: int,
        actor: Actor,
        main_worker_id: int,
        per_item: List[ItemAssignment] = (),
        expected_version: int = None,
    ) -> OrderDetail:
        """Bind technicians and start the work"""
        cmd = AssignmentRequest(main_worker_id=main_worker_id, per_item=list(per_item),
                                expected_version=expected_version)
        return self._execute(
            order_id, actor, Action.ASSIGN, self._assign, cmd, expected_version,
            precheck=lambda unit: unit.resolver.require_confirmed_items(unit.order),
        )

    def _assign(self, unit: _Unit, cmd: AssignmentRequest) -> None:
        unit.resolver.assign(unit.order, cmd.main_worker_id, cmd.per_item)
        self._move(unit, S.IN_WORK, note=f"technician {cmd.main_worker_id}")

    # ==================== Work ====================

    def start_work_item(self, order_id: int, actor: Actor, work_item_id: int, expected_version: int = None) -> WorkItem:
        return self._execute(order_id, actor, Action.START_WORK_ITEM, self._start_work_item, work_item_id,
                             expected_version)

    def _start_work_item(self, unit: _Unit, work_item_id: int) -> WorkItem:
        return work_to_model(unit.ledger.start_work(unit.order, work_item_id))

    def mark_work_item_done(
        self, order_id: int, actor: Actor, work_item_id: int, expected_version: int = None
    ) -> OrderDetail:
        """Finish one work item; the last one moves the order on"""
        return self._execute(order_id, actor, Action.FINISH_WORK_ITEM, self._finish_work_item, work_item_id,
                             expected_version)

    def _finish_work_item(self, unit: _Unit, work_item_id: int) -> None:
        unit.ledger.finish_work(unit.order, work_item_id)
        if not unit.ledger.unfinished_works(unit.order):
            if self.settings.QUALITY_CONTROL_REQUIRED:
                self._move(unit, S.QUALITY_CONTROL, note="all work done")
            else:
                self._move(unit, S.READY, note="all work done")

    def _require_work_finished(self, unit: _Unit) -> None:
        unfinished = unit.ledger.unfinished_works(unit.order)
        if unfinished:
            raise IllegalTransition(
                f"Order {unit.order.id} has unfinished work items",
                {"work_item_ids": [w.id for w in unfinished]},
            )

    def request_quality_control(self, order_id: int, actor: Actor, expected_version: int = None) -> OrderDetail:
        return self._execute(order_id, actor, Action.REQUEST_QUALITY_CONTROL, self._request_quality_control,
                             expected_version=expected_version)

    def _request_quality_control(self, unit: _Unit, cmd: None) -> None:
        self._require_work_finished(unit)
        self._move(unit, S.QUALITY_CONTROL)

    def complete_work(self, order_id: int, actor: Actor, expected_version: int = None) -> OrderDetail:
        """Move a finished order to Ready (needed when only parts were accepted)"""
        return self._execute(order_id, actor, Action.COMPLETE_WORK, self._complete_work,
                             expected_version=expected_version)

    def _complete_work(self, unit: _Unit, cmd: None) -> None:
        self._require_work_finished(unit)
        if self.settings.QUALITY_CONTROL_REQUIRED:
            raise IllegalTransition(
                "Quality control is required before the order is ready",
                {"status": unit.order.status.value},
            )
        self._move(unit, S.READY)

    def pass_quality_control(self, order_id: int, actor: Actor, expected_version: int = None) -> OrderDetail:
        return self._execute(order_id, actor, Action.PASS_QUALITY_CONTROL, self._pass_quality_control,
                             expected_version=expected_version)

    def _pass_quality_control(self, unit: _Unit, cmd: None) -> None:
        self._move(unit, S.READY, note="quality control passed")

    # ==================== Money ====================

    def record_prepayment(self, order_id: int, actor: Actor, amount, expected_version: int = None) -> OrderDetail:
        cmd = PrepaymentRequest(amount=amount, expected_version=expected_version)
        return self._execute(order_id, actor, Action.RECORD_PREPAYMENT, self._record_prepayment, cmd,
                             expected_version)

    def _record_prepayment(self, unit: _Unit, data: PrepaymentRequest) -> None:
        unit.closer.record_prepayment(unit.order, data.amount)

    def quote(self, order_id: int) -> SettlementQuote:
        return self._read(order_id, self.closer.quote)

    def settle_order(
        self,
        order_id: int,
        actor: Actor,
        payment_method: PaymentMethod,
        amount_paid,
        expected_version: int = None,
    ) -> OrderDetail:
        """Take full payment for a Ready order and close it"""
        cmd = SettlementRequest(payment_method=payment_method, amount_paid=amount_paid,
                                expected_version=expected_version)
        return self._execute(order_id, actor, Action.SETTLE, self._settle, cmd, expected_version)

    def _settle(self, unit: _Unit, cmd: SettlementRequest) -> None:
        unit.closer.settle(unit.order, cmd.payment_method, cmd.amount_paid)
        self._move(unit, S.CLOSED, note=f"settled by {cmd.payment_method.value}")

    # ==================== Cancellation ====================

    def cancel_order(self, order_id: int, actor: Actor, reason: str, expected_version: int = None) -> OrderDetail:
        cmd = CancelRequest(reason=reason, expected_version=expected_version)
        return self._execute(order_id, actor, Action.CANCEL, self._cancel, cmd, expected_version)

    def _cancel(self, unit: _Unit, cmd: CancelRequest) -> None:
        reason = (cmd.reason or "").strip()
        if not reason:
            raise ValidationFailed("A cancellation reason is required")
        unit.order.cancel_reason = reason
        self._move(unit, S.CANCELLED, note=reason)

    # ==================== Reads ====================

    def get_order(self, order_id: int) -> OrderDetail:
        return self._read(order_id, order_to_detail)

    def list_orders(
        self,
        status: OrderStatus = None,
        client_id: int = None,
        car_id: int = None,
        technician_id: int = None,
        limit: int = 50,
    ) -> List[Order]:
        """Orders newest first; `car_id` alone gives a vehicle's service history"""
        with self.database.transaction() as session:
            query = select(OrderRow)
            if status is not None:
                query = query.where(OrderRow.status == status)
            if client_id is not None:
                query = query.where(OrderRow.client_id == client_id)
            if car_id is not None:
                query = query.where(OrderRow.car_id == car_id)
            if technician_id is not None:
                query = query.where(OrderRow.technician_id == technician_id)
            query = query.order_by(OrderRow.created_at.desc(), OrderRow.id.desc()).limit(limit)
            return [order_to_model(o) for o in session.scalars(query)]

