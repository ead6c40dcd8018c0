# -*- coding: utf-8 -*-
"""
Catalog API Router - services, defect taxonomy, workers
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from repairflow.api.deps import get_actor, get_catalog, require_admin
from repairflow.models import (
    Actor, DefectNode, DefectNodeCreate, DefectType, DefectTypeCreate, Service, ServiceCreate,
    Worker, WorkerCreate, WorkerStatusUpdate,
)
from repairflow.services.catalog import CatalogLookup

router = APIRouter(prefix="/catalog", tags=["catalog"])


# ==================== Services ====================

@router.get("/services", response_model=List[Service])
def get_services(
    search: Optional[str] = Query(None, description="Search by name"),
    active_only: bool = Query(True),
    actor: Actor = Depends(get_actor),
    catalog: CatalogLookup = Depends(get_catalog),
):
    """Get the service price list"""
    return catalog.list_services(search=search, active_only=active_only)


@router.post("/services", response_model=Service, status_code=201)
def create_service(
    data: ServiceCreate,
    actor: Actor = Depends(require_admin),
    catalog: CatalogLookup = Depends(get_catalog),
):
    return catalog.add_service(data)


# ==================== Defect taxonomy ====================

@router.get("/defect-nodes", response_model=List[DefectNode])
def get_defect_nodes(
    actor: Actor = Depends(get_actor),
    catalog: CatalogLookup = Depends(get_catalog),
):
    return catalog.list_defect_nodes()


@router.post("/defect-nodes", response_model=DefectNode, status_code=201)
def create_defect_node(
    data: DefectNodeCreate,
    actor: Actor = Depends(require_admin),
    catalog: CatalogLookup = Depends(get_catalog),
):
    return catalog.add_defect_node(data)


@router.get("/defect-types", response_model=List[DefectType])
def get_defect_types(
    node_id: Optional[int] = Query(None, description="Filter by vehicle node"),
    actor: Actor = Depends(get_actor),
    catalog: CatalogLookup = Depends(get_catalog),
):
    return catalog.list_defect_types(node_id=node_id)


@router.post("/defect-types", response_model=DefectType, status_code=201)
def create_defect_type(
    data: DefectTypeCreate,
    actor: Actor = Depends(require_admin),
    catalog: CatalogLookup = Depends(get_catalog),
):
    return catalog.add_defect_type(data)


# ==================== Workers ====================

@router.get("/workers", response_model=List[Worker])
def get_workers(
    active_only: bool = Query(False),
    actor: Actor = Depends(get_actor),
    catalog: CatalogLookup = Depends(get_catalog),
):
    return catalog.list_workers(active_only=active_only)


@router.post("/workers", response_model=Worker, status_code=201)
def create_worker(
    data: WorkerCreate,
    actor: Actor = Depends(require_admin),
    catalog: CatalogLookup = Depends(get_catalog),
):
    return catalog.add_worker(data)


@router.patch("/workers/{worker_id}", response_model=Worker)
def update_worker_status(
    worker_id: int,
    data: WorkerStatusUpdate,
    actor: Actor = Depends(require_admin),
    catalog: CatalogLookup = Depends(get_catalog),
):
    """Activate or deactivate a worker; inactive workers cannot be assigned"""
    return catalog.set_worker_status(worker_id, data.status)
