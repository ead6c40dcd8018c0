# -*- coding: utf-8 -*-
"""
Repair order Pydantic Models
"""
from typing import Optional, List, Dict, Any
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field

from .enums import ApprovalOutcome, OrderStatus, PaymentMethod, Role, WorkStatus


class Actor(BaseModel):
    """Authenticated actor resolved from the session token"""
    user_id: int = Field(..., description="User id")
    role: Role = Field(..., description="Role claim")


# ==================== Line items ====================

class DefectCreate(BaseModel):
    """Diagnosed defect"""
    defect_type_id: Optional[int] = Field(None, description="Defect taxonomy type id")
    description: Optional[str] = Field(None, description="Node / fault; defaults to taxonomy names")
    comment: Optional[str] = Field(None, description="Diagnostician comment")


class Defect(BaseModel):
    id: int
    defect_type_id: Optional[int] = None
    description: str
    comment: Optional[str] = None
    diagnostician_id: int
    is_confirmed: bool = False


class WorkItemCreate(BaseModel):
    """Proposed service line"""
    service_id: Optional[int] = Field(None, description="Catalog service id")
    name: Optional[str] = Field(None, description="Name; defaults to the catalog name")
    price: Optional[Decimal] = Field(None, description="Price; defaults to the catalog price")
    defect_id: Optional[int] = Field(None, description="Defect this work addresses")


class WorkItem(BaseModel):
    id: int
    service_id: Optional[int] = None
    defect_id: Optional[int] = None
    name: str
    price: Decimal
    worker_id: Optional[int] = None
    status: WorkStatus = WorkStatus.PENDING
    is_confirmed: bool = False


class PartItemCreate(BaseModel):
    """Proposed part"""
    warehouse_item_id: Optional[int] = Field(None, description="Warehouse item id")
    name: str = Field(..., description="Part name")
    brand: Optional[str] = Field(None, description="Brand")
    unit_price: Decimal = Field(..., description="Price per unit")
    quantity: int = Field(1, description="Quantity")


class PartItem(BaseModel):
    id: int
    warehouse_item_id: Optional[int] = None
    name: str
    brand: Optional[str] = None
    unit_price: Decimal
    quantity: int
    sum: Decimal
    is_confirmed: bool = False


class LineItems(BaseModel):
    """Child collections of an order with read-only totals"""
    order_id: int
    status: OrderStatus
    defects: List[Defect] = Field(default_factory=list)
    works: List[WorkItem] = Field(default_factory=list)
    parts: List[PartItem] = Field(default_factory=list)
    selectable_total: Decimal = Field(Decimal("0.00"), description="Sum of every proposed item")
    confirmed_total: Optional[Decimal] = Field(None, description="Total of accepted items")


# ==================== Orders ====================

class OrderCreate(BaseModel):
    """Model for creating a new order"""
    client_id: int = Field(..., description="Client id")
    car_id: int = Field(..., description="Car id")
    complaint: Optional[str] = Field(None, description="Client complaint")
    mileage: Optional[int] = Field(None, description="Mileage at intake")
    prepayment: Decimal = Field(Decimal("0.00"), description="Prepayment taken at intake")
    send_to_diagnostics: bool = Field(True, description="Hand over to diagnostics right away")


class Order(BaseModel):
    """Order summary"""
    id: int
    client_id: int
    car_id: int
    intake_clerk_id: int
    technician_id: Optional[int] = None
    status: OrderStatus
    complaint: Optional[str] = None
    mileage: Optional[int] = None
    prepayment: Decimal = Decimal("0.00")
    total_amount: Optional[Decimal] = None
    created_at: datetime
    completed_at: Optional[datetime] = None
    version: int


class OrderDetail(Order):
    """Order with line items and settlement data"""
    diagnosis_fee: Optional[Decimal] = None
    payment_method: Optional[PaymentMethod] = None
    amount_paid: Optional[Decimal] = None
    cancel_reason: Optional[str] = None
    approved_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    defects: List[Defect] = Field(default_factory=list)
    works: List[WorkItem] = Field(default_factory=list)
    parts: List[PartItem] = Field(default_factory=list)
    selectable_total: Decimal = Decimal("0.00")


# ==================== Commands ====================

class VersionedCommand(BaseModel):
    expected_version: Optional[int] = Field(
        None, description="Order version last read by the caller; mismatch is rejected"
    )


class DiagnosisSubmit(VersionedCommand):
    defects: List[DefectCreate] = Field(..., description="Diagnosed defects")


class Proposal(VersionedCommand):
    works: List[WorkItemCreate] = Field(default_factory=list)
    parts: List[PartItemCreate] = Field(default_factory=list)


class FeePayment(VersionedCommand):
    """Diagnosis fee taken when the client accepts nothing payable"""
    payment_method: Optional[PaymentMethod] = None
    amount_paid: Optional[Decimal] = None


class ApprovalDecision(FeePayment):
    accepted_work_ids: List[int] = Field(default_factory=list)
    accepted_part_ids: List[int] = Field(default_factory=list)


class ApprovalResult(BaseModel):
    order_id: int
    outcome: ApprovalOutcome
    confirmed_total: Decimal
    status: OrderStatus
    accepted_works: List[WorkItem] = Field(default_factory=list)
    accepted_parts: List[PartItem] = Field(default_factory=list)
    diagnosis_fee: Optional[Decimal] = None


class ItemAssignment(BaseModel):
    work_item_id: int
    worker_id: int


class AssignmentRequest(VersionedCommand):
    main_worker_id: int = Field(..., description="Main technician")
    per_item: List[ItemAssignment] = Field(default_factory=list)


class PrepaymentRequest(VersionedCommand):
    amount: Decimal


class SettlementRequest(VersionedCommand):
    payment_method: PaymentMethod
    amount_paid: Decimal


class SettlementQuote(BaseModel):
    order_id: int
    status: OrderStatus
    confirmed_total: Optional[Decimal] = None
    prepayment: Decimal
    diagnosis_fee: Optional[Decimal] = None
    amount_due: Decimal
    amount_paid: Optional[Decimal] = None


class CancelRequest(VersionedCommand):
    reason: str = Field(..., description="Cancellation reason")


class TransitionRequest(VersionedCommand):
    """Generic status change; payload carries the owning command's arguments"""
    target_status: OrderStatus
    payload: Dict[str, Any] = Field(default_factory=dict)
