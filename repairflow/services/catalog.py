# -*- coding: utf-8 -*-
"""
Catalog Lookup: services, defect taxonomy and workers
"""
import json
import logging
from pathlib import Path
from typing import Optional, List, Dict, Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from repairflow.errors import NotFound, UnknownWorker, ValidationFailed
from repairflow.models import (
    Service, ServiceCreate, DefectNode, DefectNodeCreate, DefectType, DefectTypeCreate,
    Worker, WorkerCreate, WorkerStatus,
)
from repairflow.money import from_cents, to_cents
from repairflow.tables import DefectNodeRow, DefectTypeRow, ServiceRow, WorkerRow

logger = logging.getLogger(__name__)


def _service_to_model(row: ServiceRow) -> Service:
    return Service(id=row.id, name=row.name, price=from_cents(row.price_cents), is_active=row.is_active)


def _type_to_model(row: DefectTypeRow) -> DefectType:
    return DefectType(
        id=row.id,
        node_id=row.node_id,
        node_name=row.node.name,
        name=row.name,
        description=row.description,
    )


class CatalogLookup:
    """Reference data access inside one store session"""

    def __init__(self, session: Session):
        self.session = session

    # ==================== Services ====================

    def get_service(self, service_id: int) -> Optional[ServiceRow]:
        return self.session.get(ServiceRow, service_id)

    def list_services(self, search: str = None, active_only: bool = True) -> List[Service]:
        query = select(ServiceRow).order_by(ServiceRow.name)
        if active_only:
            query = query.where(ServiceRow.is_active.is_(True))
        if search:
            query = query.where(ServiceRow.name.ilike(f"%{search}%"))
        return [_service_to_model(r) for r in self.session.scalars(query)]

    def add_service(self, data: ServiceCreate) -> Service:
        try:
            price_cents = to_cents(data.price)
        except ValueError as e:
            raise ValidationFailed(f"Invalid service price: {e}")
        if price_cents < 0:
            raise ValidationFailed("Service price must not be negative")
        row = ServiceRow(name=data.name.strip(), price_cents=price_cents, is_active=True)
        self.session.add(row)
        self.session.flush()
        logger.info(f"Added service {row.id}: {row.name}")
        return _service_to_model(row)

    # ==================== Defect taxonomy ====================

    def list_defect_nodes(self) -> List[DefectNode]:
        rows = self.session.scalars(select(DefectNodeRow).order_by(DefectNodeRow.name))
        return [DefectNode.model_validate(r) for r in rows]

    def add_defect_node(self, data: DefectNodeCreate) -> DefectNode:
        name = data.name.strip()
        if self.session.scalar(select(DefectNodeRow.id).where(DefectNodeRow.name == name)) is not None:
            raise ValidationFailed(f"Defect node '{name}' already exists", {"name": name})
        row = DefectNodeRow(name=name, description=data.description)
        self.session.add(row)
        self.session.flush()
        return DefectNode.model_validate(row)

    def get_defect_type(self, type_id: int) -> Optional[DefectTypeRow]:
        return self.session.get(DefectTypeRow, type_id)

    def list_defect_types(self, node_id: int = None) -> List[DefectType]:
        query = select(DefectTypeRow).order_by(DefectTypeRow.node_id, DefectTypeRow.name)
        if node_id is not None:
            query = query.where(DefectTypeRow.node_id == node_id)
        return [_type_to_model(r) for r in self.session.scalars(query)]

    def add_defect_type(self, data: DefectTypeCreate) -> DefectType:
        if self.session.get(DefectNodeRow, data.node_id) is None:
            raise NotFound(f"Defect node {data.node_id} not found")
        row = DefectTypeRow(node_id=data.node_id, name=data.name.strip(), description=data.description)
        self.session.add(row)
        self.session.flush()
        return _type_to_model(row)

    # ==================== Workers ====================

    def list_workers(self, active_only: bool = False) -> List[Worker]:
        query = select(WorkerRow).order_by(WorkerRow.full_name)
        if active_only:
            query = query.where(WorkerRow.status == WorkerStatus.ACTIVE)
        return [Worker.model_validate(r) for r in self.session.scalars(query)]

    def add_worker(self, data: WorkerCreate) -> Worker:
        row = WorkerRow(full_name=data.full_name.strip(), role=data.role, status=data.status)
        self.session.add(row)
        self.session.flush()
        logger.info(f"Added worker {row.id}: {row.full_name}")
        return Worker.model_validate(row)

    def set_worker_status(self, worker_id: int, status: WorkerStatus) -> Worker:
        row = self.session.get(WorkerRow, worker_id)
        if row is None:
            raise UnknownWorker(f"Worker {worker_id} not found", {"worker_id": worker_id})
        row.status = status
        self.session.flush()
        logger.info(f"Worker {row.id} is now {status.value}")
        return Worker.model_validate(row)

    def require_active_worker(self, worker_id: int) -> WorkerRow:
        """Return the worker or raise UnknownWorker if missing or inactive"""
        row = self.session.get(WorkerRow, worker_id)
        if row is None:
            raise UnknownWorker(f"Worker {worker_id} not found", {"worker_id": worker_id})
        if row.status != WorkerStatus.ACTIVE:
            raise UnknownWorker(f"Worker {worker_id} is not active", {"worker_id": worker_id})
        return row

    # ==================== Seed data ====================

    def is_empty(self) -> bool:
        counts = [
            self.session.scalar(select(func.count()).select_from(table))
            for table in (ServiceRow, DefectNodeRow, WorkerRow)
        ]
        return not any(counts)

    def load_seed(self, data: Dict[str, Any]) -> Dict[str, int]:
        """
        Load reference data from a seed document:

            {"services": [{"name": ..., "price": "100.00"}],
             "defect_nodes": [{"name": ..., "types": [{"name": ...}]}],
             "workers": [{"full_name": ..., "role": ..., "status": "active"}]}
        """
        stats = {"services": 0, "defect_nodes": 0, "defect_types": 0, "workers": 0}
        for item in data.get("services", []):
            self.add_service(ServiceCreate(**item))
            stats["services"] += 1
        for item in data.get("defect_nodes", []):
            node = self.add_defect_node(DefectNodeCreate(name=item["name"], description=item.get("description")))
            stats["defect_nodes"] += 1
            for type_item in item.get("types", []):
                self.add_defect_type(DefectTypeCreate(node_id=node.id, **type_item))
                stats["defect_types"] += 1
        for item in data.get("workers", []):
            self.add_worker(WorkerCreate(**item))
            stats["workers"] += 1
        return stats


def read_seed_file(path: Path) -> Dict[str, Any]:
    """Read a catalog seed document from JSON"""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
