# -*- coding: utf-8 -*-
"""
Line-Item Ledger

Owns the defects, works and parts attached to an order. Prices and names are
snapshots taken when an item is created; afterwards only the confirmation
flag, the execution status and the assigned technician change.
"""
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from repairflow.errors import IllegalTransition, InvalidLineItem, UnknownLineItem
from repairflow.models import (
    Defect, DefectCreate, LineItemKind, LineItems, PartItem, PartItemCreate,
    WorkItem, WorkItemCreate, WorkStatus,
)
from repairflow.money import MAX_CENTS, from_cents, to_cents
from repairflow.services.approval import selectable_total_cents
from repairflow.services.catalog import CatalogLookup
from repairflow.services.warehouse import WarehouseClient
from repairflow.tables import DefectRow, OrderRow, PartItemRow, WorkItemRow

logger = logging.getLogger(__name__)


def defect_to_model(row: DefectRow) -> Defect:
    return Defect(
        id=row.id,
        defect_type_id=row.defect_type_id,
        description=row.description,
        comment=row.comment,
        diagnostician_id=row.diagnostician_id,
        is_confirmed=row.is_confirmed,
    )


def work_to_model(row: WorkItemRow) -> WorkItem:
    return WorkItem(
        id=row.id,
        service_id=row.service_id,
        defect_id=row.defect_id,
        name=row.name,
        price=from_cents(row.price_cents),
        worker_id=row.worker_id,
        status=row.status,
        is_confirmed=row.is_confirmed,
    )


def part_to_model(row: PartItemRow) -> PartItem:
    return PartItem(
        id=row.id,
        warehouse_item_id=row.warehouse_item_id,
        name=row.name,
        brand=row.brand,
        unit_price=from_cents(row.unit_price_cents),
        quantity=row.quantity,
        sum=from_cents(row.unit_price_cents * row.quantity),
        is_confirmed=row.is_confirmed,
    )


def _price_cents(value: Decimal, field: str) -> int:
    try:
        cents = to_cents(value)
    except ValueError as e:
        raise InvalidLineItem(f"Invalid {field}: {e}", {"field": field})
    if cents < 0:
        raise InvalidLineItem(f"{field} must not be negative", {"field": field, "value": str(value)})
    return cents


class LineItemLedger:
    """Child collections of one order, inside one store session"""

    def __init__(self, session: Session, catalog: CatalogLookup, warehouse: Optional[WarehouseClient] = None):
        self.session = session
        self.catalog = catalog
        self.warehouse = warehouse

    # ==================== Defects ====================

    def add_defect(self, order: OrderRow, data: DefectCreate, diagnostician_id: int) -> DefectRow:
        """Record a diagnosed defect"""
        description = (data.description or "").strip()
        if data.defect_type_id is not None:
            defect_type = self.catalog.get_defect_type(data.defect_type_id)
            if defect_type is None:
                raise InvalidLineItem(
                    f"Unknown defect type {data.defect_type_id}",
                    {"defect_type_id": data.defect_type_id},
                )
            description = description or f"{defect_type.node.name} / {defect_type.name}"
        if not description:
            raise InvalidLineItem("Defect needs a taxonomy type or a description")

        row = DefectRow(
            diagnostician_id=diagnostician_id,
            defect_type_id=data.defect_type_id,
            description=description,
            comment=data.comment,
            is_confirmed=False,
        )
        order.defects.append(row)
        self.session.flush()
        logger.info(f"Order {order.id}: defect {row.id} recorded ({description})")
        return row

    # ==================== Works / parts ====================

    def add_work_item(self, order: OrderRow, data: WorkItemCreate) -> WorkItemRow:
        """Add a proposed service line, snapshotting name and price"""
        name = (data.name or "").strip()
        price_cents = None
        if data.price is not None:
            price_cents = _price_cents(data.price, "price")

        if data.service_id is not None:
            service = self.catalog.get_service(data.service_id)
            if service is None or not service.is_active:
                raise InvalidLineItem(f"Unknown service {data.service_id}", {"service_id": data.service_id})
            name = name or service.name
            if price_cents is None:
                price_cents = service.price_cents

        if not name:
            raise InvalidLineItem("Work item needs a catalog service or a name")
        if price_cents is None:
            raise InvalidLineItem("Work item needs a price", {"name": name})

        if data.defect_id is not None and data.defect_id not in {d.id for d in order.defects}:
            raise InvalidLineItem(
                f"Defect {data.defect_id} does not belong to order {order.id}",
                {"defect_id": data.defect_id},
            )

        row = WorkItemRow(
            service_id=data.service_id,
            defect_id=data.defect_id,
            name=name,
            price_cents=price_cents,
            status=WorkStatus.PENDING,
            is_confirmed=False,
        )
        order.works.append(row)
        self.session.flush()
        logger.info(f"Order {order.id}: work {row.id} proposed ({name}, {from_cents(price_cents)})")
        return row

    def add_part_item(self, order: OrderRow, data: PartItemCreate) -> PartItemRow:
        """Add a proposed part, snapshotting name, brand and unit price"""
        name = (data.name or "").strip()
        if not name:
            raise InvalidLineItem("Part item needs a name")
        unit_price_cents = _price_cents(data.unit_price, "unit_price")
        if data.quantity <= 0:
            raise InvalidLineItem("quantity must be a positive integer", {"quantity": data.quantity})
        if data.quantity > MAX_CENTS or unit_price_cents * data.quantity > MAX_CENTS:
            raise InvalidLineItem("Line sum is out of range", {"unit_price": str(data.unit_price), "quantity": data.quantity})

        if data.warehouse_item_id is not None and self.warehouse is not None:
            if not self.warehouse.has_stock(data.warehouse_item_id, data.quantity):
                raise InvalidLineItem(
                    f"Insufficient stock for warehouse item {data.warehouse_item_id}",
                    {"warehouse_item_id": data.warehouse_item_id, "quantity": data.quantity},
                )

        row = PartItemRow(
            warehouse_item_id=data.warehouse_item_id,
            name=name,
            brand=data.brand,
            unit_price_cents=unit_price_cents,
            quantity=data.quantity,
            is_confirmed=False,
        )
        order.parts.append(row)
        self.session.flush()
        logger.info(f"Order {order.id}: part {row.id} proposed ({name} x{data.quantity})")
        return row

    def find_work(self, order: OrderRow, item_id: int) -> WorkItemRow:
        for row in order.works:
            if row.id == item_id:
                return row
        raise UnknownLineItem(f"Work item {item_id} does not belong to order {order.id}", {"work_item_id": item_id})

    def find_part(self, order: OrderRow, item_id: int) -> PartItemRow:
        for row in order.parts:
            if row.id == item_id:
                return row
        raise UnknownLineItem(f"Part item {item_id} does not belong to order {order.id}", {"part_item_id": item_id})

    def remove_item(self, order: OrderRow, kind: LineItemKind, item_id: int) -> None:
        """Drop a proposed work or part before the proposal is locked"""
        if kind == LineItemKind.WORK:
            order.works.remove(self.find_work(order, item_id))
        else:
            order.parts.remove(self.find_part(order, item_id))
        logger.info(f"Order {order.id}: {kind.value} {item_id} removed")

    # ==================== Execution ====================

    def start_work(self, order: OrderRow, item_id: int) -> WorkItemRow:
        row = self._confirmed_work(order, item_id)
        if row.status != WorkStatus.PENDING:
            raise IllegalTransition(
                f"Work item {item_id} is {row.status.value}, expected Pending", {"work_item_id": item_id}
            )
        row.status = WorkStatus.IN_PROGRESS
        return row

    def finish_work(self, order: OrderRow, item_id: int) -> WorkItemRow:
        row = self._confirmed_work(order, item_id)
        if row.status == WorkStatus.DONE:
            raise IllegalTransition(f"Work item {item_id} is already done", {"work_item_id": item_id})
        row.status = WorkStatus.DONE
        logger.info(f"Order {order.id}: work {item_id} done")
        return row

    def unfinished_works(self, order: OrderRow):
        return [w for w in order.works if w.is_confirmed and w.status != WorkStatus.DONE]

    def _confirmed_work(self, order: OrderRow, item_id: int) -> WorkItemRow:
        row = self.find_work(order, item_id)
        if not row.is_confirmed:
            raise UnknownLineItem(
                f"Work item {item_id} was not accepted by the client", {"work_item_id": item_id}
            )
        return row

    # ==================== Listing ====================

    def list_items(self, order: OrderRow) -> LineItems:
        return LineItems(
            order_id=order.id,
            status=order.status,
            defects=[defect_to_model(d) for d in order.defects],
            works=[work_to_model(w) for w in order.works],
            parts=[part_to_model(p) for p in order.parts],
            selectable_total=from_cents(selectable_total_cents(order.works, order.parts)),
            confirmed_total=from_cents(order.total_cents),
        )
