# -*- coding: utf-8 -*-
"""
Reference data Pydantic Models
"""
from typing import Optional
from decimal import Decimal
from pydantic import BaseModel, Field

from .enums import WorkerStatus


class ServiceCreate(BaseModel):
    name: str = Field(..., description="Service name")
    price: Decimal = Field(..., description="Catalog price")


class Service(BaseModel):
    """Catalog service"""
    id: int
    name: str
    price: Decimal
    is_active: bool = True


class DefectNodeCreate(BaseModel):
    name: str = Field(..., description="Vehicle node, e.g. brakes")
    description: Optional[str] = None


class DefectNode(DefectNodeCreate):
    id: int

    class Config:
        from_attributes = True


class DefectTypeCreate(BaseModel):
    node_id: int = Field(..., description="Defect node id")
    name: str = Field(..., description="Fault name")
    description: Optional[str] = None


class DefectType(DefectTypeCreate):
    id: int
    node_name: str


class WorkerCreate(BaseModel):
    full_name: str
    role: str = Field("technician", description="Specialization / role")
    status: WorkerStatus = WorkerStatus.ACTIVE


class Worker(WorkerCreate):
    id: int

    class Config:
        from_attributes = True


class WorkerStatusUpdate(BaseModel):
    status: WorkerStatus
