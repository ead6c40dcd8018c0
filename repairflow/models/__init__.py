# RepairFlow Pydantic Models
from .enums import (
    OrderStatus, Role, WorkStatus, WorkerStatus, PaymentMethod, ApprovalOutcome, LineItemKind
)
from .order import (
    Actor, Defect, DefectCreate, WorkItem, WorkItemCreate, PartItem, PartItemCreate, LineItems,
    Order, OrderCreate, OrderDetail, DiagnosisSubmit, Proposal, FeePayment, ApprovalDecision, ApprovalResult,
    ItemAssignment, AssignmentRequest, PrepaymentRequest, SettlementRequest, SettlementQuote,
    CancelRequest, TransitionRequest,
)
from .catalog import (
    Service, ServiceCreate, DefectNode, DefectNodeCreate, DefectType, DefectTypeCreate,
    Worker, WorkerCreate, WorkerStatusUpdate,
)

__all__ = [
    # Enums
    "OrderStatus",
    "Role",
    "WorkStatus",
    "WorkerStatus",
    "PaymentMethod",
    "ApprovalOutcome",
    "LineItemKind",
    # Orders
    "Actor",
    "Defect",
    "DefectCreate",
    "WorkItem",
    "WorkItemCreate",
    "PartItem",
    "PartItemCreate",
    "LineItems",
    "Order",
    "OrderCreate",
    "OrderDetail",
    "DiagnosisSubmit",
    "Proposal",
    "FeePayment",
    "ApprovalDecision",
    "ApprovalResult",
    "ItemAssignment",
    "AssignmentRequest",
    "PrepaymentRequest",
    "SettlementRequest",
    "SettlementQuote",
    "CancelRequest",
    "TransitionRequest",
    # Catalog
    "Service",
    "ServiceCreate",
    "DefectNode",
    "DefectNodeCreate",
    "DefectType",
    "DefectTypeCreate",
    "Worker",
    "WorkerCreate",
    "WorkerStatusUpdate",
]
