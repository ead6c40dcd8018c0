# -*- coding: utf-8 -*-
"""
Assignment Resolver
"""
import logging
from typing import Iterable

from repairflow.errors import NoConfirmedWork, UnknownLineItem
from repairflow.models import ItemAssignment
from repairflow.services.catalog import CatalogLookup
from repairflow.tables import OrderRow

logger = logging.getLogger(__name__)


class AssignmentResolver:
    """Binds technicians to an order once the client has accepted items"""

    def __init__(self, catalog: CatalogLookup):
        self.catalog = catalog

    def require_confirmed_items(self, order: OrderRow) -> None:
        if not any(w.is_confirmed for w in order.works) and not any(p.is_confirmed for p in order.parts):
            raise NoConfirmedWork(f"Order {order.id} has no confirmed line items", {"order_id": order.id})

    def assign(self, order: OrderRow, worker_id: int, per_item: Iterable[ItemAssignment] = ()) -> None:
        """Set the main technician and optional per-work-item technicians"""
        self.require_confirmed_items(order)
        per_item = list(per_item)

        self.catalog.require_active_worker(worker_id)
        confirmed = {w.id: w for w in order.works if w.is_confirmed}
        for pair in per_item:
            if pair.work_item_id not in confirmed:
                raise UnknownLineItem(
                    f"Work item {pair.work_item_id} is not a confirmed item of order {order.id}",
                    {"work_item_id": pair.work_item_id},
                )
            self.catalog.require_active_worker(pair.worker_id)

        order.technician_id = worker_id
        for pair in per_item:
            confirmed[pair.work_item_id].worker_id = pair.worker_id

        logger.info(f"Order {order.id}: technician {worker_id} assigned, {len(per_item)} per-item assignments")
