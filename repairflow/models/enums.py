# -*- coding: utf-8 -*-
"""
Workflow enumerations shared by tables, models and services
"""
from enum import Enum

from repairflow.config import ROLE_ALIASES


class OrderStatus(str, Enum):
    """Order lifecycle status"""
    NEW = "New"
    DIAGNOSTICS = "Diagnostics"
    PARTS_SELECTION = "Parts_Selection"
    APPROVAL = "Approval"
    IN_WORK = "In_Work"
    QUALITY_CONTROL = "Quality_Control"
    READY = "Ready"
    CLOSED = "Closed"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.CLOSED, OrderStatus.CANCELLED)


class Role(str, Enum):
    """Actor role claim"""
    INTAKE_CLERK = "intake_clerk"
    DIAGNOSTICIAN = "diagnostician"
    PARTS_CLERK = "parts_clerk"
    TECHNICIAN = "technician"
    ADMIN = "admin"

    @classmethod
    def from_claim(cls, value: str) -> "Role":
        """Parse a role claim, accepting the desktop client's role names"""
        return cls(ROLE_ALIASES.get(value, value))


class WorkStatus(str, Enum):
    """Execution status of a work item"""
    PENDING = "Pending"
    IN_PROGRESS = "In_Progress"
    DONE = "Done"


class WorkerStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"


class ApprovalOutcome(str, Enum):
    """Result of the client's decisions on a proposal"""
    REJECTED = "rejected"
    PARTIALLY_ACCEPTED = "partially_accepted"
    ACCEPTED = "accepted"


class LineItemKind(str, Enum):
    WORK = "work"
    PART = "part"
