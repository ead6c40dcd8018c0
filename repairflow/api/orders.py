# -*- coding: utf-8 -*-
"""
Orders API Router
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from repairflow.api.deps import get_actor, get_workflow
from repairflow.models import (
    Actor, ApprovalDecision, ApprovalResult, AssignmentRequest, CancelRequest, Defect, DefectCreate,
    DiagnosisSubmit, LineItemKind, LineItems, Order, OrderCreate, OrderDetail, OrderStatus, PartItem,
    PartItemCreate, PrepaymentRequest, Proposal, SettlementQuote, SettlementRequest, TransitionRequest,
    WorkItem, WorkItemCreate,
)
from repairflow.services.state_machine import OrderStateMachine

router = APIRouter(prefix="/orders", tags=["orders"])

VERSION = Query(None, description="Order version the caller last read")


# ==================== Orders ====================

@router.post("", response_model=OrderDetail, status_code=201)
def create_order(
    data: OrderCreate,
    actor: Actor = Depends(get_actor),
    workflow: OrderStateMachine = Depends(get_workflow),
):
    """
    Open a repair order for a client's car.

    The order is handed to diagnostics immediately unless
    **send_to_diagnostics** is false.
    """
    return workflow.create_order(actor, data)


@router.get("", response_model=List[Order])
def get_orders(
    status: Optional[OrderStatus] = Query(None, description="Filter by status"),
    client_id: Optional[int] = Query(None, description="Filter by client"),
    car_id: Optional[int] = Query(None, description="Filter by vehicle"),
    technician_id: Optional[int] = Query(None, description="Filter by main technician"),
    limit: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(get_actor),
    workflow: OrderStateMachine = Depends(get_workflow),
):
    """Get list of orders, newest first"""
    return workflow.list_orders(
        status=status, client_id=client_id, car_id=car_id, technician_id=technician_id, limit=limit
    )


@router.get("/{order_id}", response_model=OrderDetail)
def get_order(
    order_id: int,
    actor: Actor = Depends(get_actor),
    workflow: OrderStateMachine = Depends(get_workflow),
):
    """Get order with defects, works and parts"""
    return workflow.get_order(order_id)


@router.post("/{order_id}/transition")
def transition(
    order_id: int,
    data: TransitionRequest,
    actor: Actor = Depends(get_actor),
    workflow: OrderStateMachine = Depends(get_workflow),
):
    """
    Move the order to **target_status**.

    - **payload**: arguments of the command that owns the transition, e.g.
      `{"reason": ...}` for Cancelled
    """
    return workflow.transition(order_id, actor, data.target_status, data.payload, data.expected_version)


# ==================== Diagnostics ====================

@router.post("/{order_id}/defects", response_model=Defect, status_code=201)
def add_defect(
    order_id: int,
    data: DefectCreate,
    expected_version: Optional[int] = VERSION,
    actor: Actor = Depends(get_actor),
    workflow: OrderStateMachine = Depends(get_workflow),
):
    """Record one defect found during diagnostics"""
    return workflow.add_defect(order_id, actor, data, expected_version)


@router.post("/{order_id}/diagnosis", response_model=OrderDetail)
def submit_diagnosis(
    order_id: int,
    data: DiagnosisSubmit,
    actor: Actor = Depends(get_actor),
    workflow: OrderStateMachine = Depends(get_workflow),
):
    """Record defects and hand the order to parts selection"""
    return workflow.submit_diagnosis(order_id, actor, data.defects, data.expected_version)


# ==================== Line items ====================

@router.post("/{order_id}/works", response_model=WorkItem, status_code=201)
def add_work_item(
    order_id: int,
    data: WorkItemCreate,
    expected_version: Optional[int] = VERSION,
    actor: Actor = Depends(get_actor),
    workflow: OrderStateMachine = Depends(get_workflow),
):
    return workflow.add_work_item(order_id, actor, data, expected_version)


@router.post("/{order_id}/parts", response_model=PartItem, status_code=201)
def add_part_item(
    order_id: int,
    data: PartItemCreate,
    expected_version: Optional[int] = VERSION,
    actor: Actor = Depends(get_actor),
    workflow: OrderStateMachine = Depends(get_workflow),
):
    return workflow.add_part_item(order_id, actor, data, expected_version)


@router.delete("/{order_id}/works/{item_id}", response_model=OrderDetail)
def remove_work_item(
    order_id: int,
    item_id: int,
    expected_version: Optional[int] = VERSION,
    actor: Actor = Depends(get_actor),
    workflow: OrderStateMachine = Depends(get_workflow),
):
    return workflow.remove_item(order_id, actor, LineItemKind.WORK, item_id, expected_version)


@router.delete("/{order_id}/parts/{item_id}", response_model=OrderDetail)
def remove_part_item(
    order_id: int,
    item_id: int,
    expected_version: Optional[int] = VERSION,
    actor: Actor = Depends(get_actor),
    workflow: OrderStateMachine = Depends(get_workflow),
):
    return workflow.remove_item(order_id, actor, LineItemKind.PART, item_id, expected_version)


@router.post("/{order_id}/proposal", response_model=OrderDetail)
def propose_line_items(
    order_id: int,
    data: Proposal,
    actor: Actor = Depends(get_actor),
    workflow: OrderStateMachine = Depends(get_workflow),
):
    """Add the proposed works and parts and send the order for client approval"""
    return workflow.propose_line_items(order_id, actor, data.works, data.parts, data.expected_version)


@router.get("/{order_id}/items", response_model=LineItems)
def list_items(
    order_id: int,
    actor: Actor = Depends(get_actor),
    workflow: OrderStateMachine = Depends(get_workflow),
):
    """Defects, works and parts with the selectable and confirmed totals"""
    return workflow.list_items(order_id)


# ==================== Approval / assignment ====================

@router.post("/{order_id}/approval", response_model=ApprovalResult)
def apply_approval_decisions(
    order_id: int,
    data: ApprovalDecision,
    actor: Actor = Depends(get_actor),
    workflow: OrderStateMachine = Depends(get_workflow),
):
    """
    Apply the client's accept/reject decisions.

    Accepting nothing payable closes the order with the diagnosis fee, which
    is paid in the same request (**payment_method**, **amount_paid**).
    """
    return workflow.apply_approval_decisions(
        order_id, actor, data.accepted_work_ids, data.accepted_part_ids,
        payment_method=data.payment_method, amount_paid=data.amount_paid, expected_version=data.expected_version,
    )


@router.post("/{order_id}/assignment", response_model=OrderDetail)
def assign_workers(
    order_id: int,
    data: AssignmentRequest,
    actor: Actor = Depends(get_actor),
    workflow: OrderStateMachine = Depends(get_workflow),
):
    """Assign the main technician (and optional per-item technicians) and start work"""
    return workflow.assign_workers(order_id, actor, data.main_worker_id, data.per_item, data.expected_version)


# ==================== Work ====================

@router.post("/{order_id}/works/{item_id}/start", response_model=WorkItem)
def start_work_item(
    order_id: int,
    item_id: int,
    expected_version: Optional[int] = VERSION,
    actor: Actor = Depends(get_actor),
    workflow: OrderStateMachine = Depends(get_workflow),
):
    return workflow.start_work_item(order_id, actor, item_id, expected_version)


@router.post("/{order_id}/works/{item_id}/done", response_model=OrderDetail)
def mark_work_item_done(
    order_id: int,
    item_id: int,
    expected_version: Optional[int] = VERSION,
    actor: Actor = Depends(get_actor),
    workflow: OrderStateMachine = Depends(get_workflow),
):
    return workflow.mark_work_item_done(order_id, actor, item_id, expected_version)


@router.post("/{order_id}/complete", response_model=OrderDetail)
def complete_work(
    order_id: int,
    expected_version: Optional[int] = VERSION,
    actor: Actor = Depends(get_actor),
    workflow: OrderStateMachine = Depends(get_workflow),
):
    return workflow.complete_work(order_id, actor, expected_version)


@router.post("/{order_id}/quality-control", response_model=OrderDetail)
def quality_control(
    order_id: int,
    passed: bool = Query(False, description="Report a passed check instead of requesting one"),
    expected_version: Optional[int] = VERSION,
    actor: Actor = Depends(get_actor),
    workflow: OrderStateMachine = Depends(get_workflow),
):
    """Send the order to quality control, or with **passed** move it on to Ready"""
    if passed:
        return workflow.pass_quality_control(order_id, actor, expected_version)
    return workflow.request_quality_control(order_id, actor, expected_version)


# ==================== Money ====================

@router.post("/{order_id}/prepayment", response_model=OrderDetail)
def record_prepayment(
    order_id: int,
    data: PrepaymentRequest,
    actor: Actor = Depends(get_actor),
    workflow: OrderStateMachine = Depends(get_workflow),
):
    return workflow.record_prepayment(order_id, actor, data.amount, data.expected_version)


@router.get("/{order_id}/settlement", response_model=SettlementQuote)
def get_settlement(
    order_id: int,
    actor: Actor = Depends(get_actor),
    workflow: OrderStateMachine = Depends(get_workflow),
):
    """Amount due: confirmed total (or diagnosis fee) minus prepayment"""
    return workflow.quote(order_id)


@router.post("/{order_id}/settlement", response_model=OrderDetail)
def settle_order(
    order_id: int,
    data: SettlementRequest,
    actor: Actor = Depends(get_actor),
    workflow: OrderStateMachine = Depends(get_workflow),
):
    """Take full payment for a Ready order and close it"""
    return workflow.settle_order(order_id, actor, data.payment_method, data.amount_paid, data.expected_version)


@router.post("/{order_id}/cancel", response_model=OrderDetail)
def cancel_order(
    order_id: int,
    data: CancelRequest,
    actor: Actor = Depends(get_actor),
    workflow: OrderStateMachine = Depends(get_workflow),
):
    return workflow.cancel_order(order_id, actor, data.reason, data.expected_version)
