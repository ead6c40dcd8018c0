# -*- coding: utf-8 -*-
"""
Approval Negotiator

Applies the client's accept/reject decisions to a proposal and produces the
confirmed total. `confirmed_total_cents` is the only formula for the order
total and `ApprovalNegotiator.apply_decisions` is the only writer of
`OrderRow.total_cents`; every other amount shown anywhere is a projection.
"""
import logging
from datetime import datetime
from typing import Iterable, List, NamedTuple

from repairflow.errors import IllegalTransition, UnknownLineItem, ValidationFailed
from repairflow.models import ApprovalOutcome, WorkStatus
from repairflow.money import MAX_CENTS
from repairflow.tables import OrderRow, PartItemRow, WorkItemRow

logger = logging.getLogger(__name__)


def confirmed_total_cents(works: Iterable[WorkItemRow], parts: Iterable[PartItemRow]) -> int:
    """Accepted works plus accepted parts (unit price x quantity), in minor units"""
    return (
        sum(w.price_cents for w in works if w.is_confirmed)
        + sum(p.unit_price_cents * p.quantity for p in parts if p.is_confirmed)
    )


def selectable_total_cents(works: Iterable[WorkItemRow], parts: Iterable[PartItemRow]) -> int:
    """What the client would pay by accepting every proposed item"""
    return sum(w.price_cents for w in works) + sum(p.unit_price_cents * p.quantity for p in parts)


class Decision(NamedTuple):
    outcome: ApprovalOutcome
    total_cents: int
    works: List[WorkItemRow]
    parts: List[PartItemRow]


class ApprovalNegotiator:
    """Client decisions over one order's proposal"""

    def apply_decisions(self, order: OrderRow, accepted_work_ids: Iterable[int], accepted_part_ids: Iterable[int]) -> Decision:
        """
        Confirm the accepted items, clear the rest and store the total.

        The batch is all-or-nothing: any id that is not a pending item of this
        order rejects the whole call before a single flag changes.
        """
        if order.approved_at is not None:
            raise IllegalTransition(
                f"Decisions for order {order.id} were already applied",
                {"approved_at": order.approved_at.isoformat()},
            )

        work_ids = set(accepted_work_ids)
        part_ids = set(accepted_part_ids)
        works = {w.id: w for w in order.works}
        parts = {p.id: p for p in order.parts}

        bad_works = sorted(i for i in work_ids if i not in works or works[i].status != WorkStatus.PENDING)
        bad_parts = sorted(i for i in part_ids if i not in parts)
        if bad_works or bad_parts:
            raise UnknownLineItem(
                f"Line items not pending on order {order.id}",
                {"work_item_ids": bad_works, "part_item_ids": bad_parts},
            )

        for defect in order.defects:
            defect.is_confirmed = True
        for item_id, work in works.items():
            work.is_confirmed = item_id in work_ids
        for item_id, part in parts.items():
            part.is_confirmed = item_id in part_ids

        total = confirmed_total_cents(order.works, order.parts)
        if total > MAX_CENTS:
            raise ValidationFailed("Confirmed total is out of range", {"order_id": order.id})
        order.total_cents = total
        order.approved_at = datetime.now()

        accepted = len(work_ids) + len(part_ids)
        if accepted == 0:
            outcome = ApprovalOutcome.REJECTED
        elif accepted == len(works) + len(parts):
            outcome = ApprovalOutcome.ACCEPTED
        else:
            outcome = ApprovalOutcome.PARTIALLY_ACCEPTED

        logger.info(f"Order {order.id}: decisions applied, outcome={outcome.value}, total_cents={total}")
        return Decision(
            outcome=outcome,
            total_cents=total,
            works=[w for w in order.works if w.is_confirmed],
            parts=[p for p in order.parts if p.is_confirmed],
        )
