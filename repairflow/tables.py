# -*- coding: utf-8 -*-
"""
Relational tables

One order row plus three child tables keyed by order id. Money columns hold
integer minor units. The order row carries a version counter that SQLAlchemy
checks on every UPDATE, so a write based on a stale read fails instead of
overwriting another actor's change.
"""
from datetime import datetime

from sqlalchemy import (
    Boolean, Column, DateTime, Enum as SAEnum, ForeignKey, Integer, String, Text,
)
from sqlalchemy.orm import declarative_base, relationship

from repairflow.models.enums import OrderStatus, PaymentMethod, WorkerStatus, WorkStatus

Base = declarative_base()


def _enum(enum_cls):
    """Store enum values (not member names) as plain strings"""
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
    )


# ==================== Catalog ====================

class ServiceRow(Base):
    __tablename__ = "services"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, index=True)
    price_cents = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)


class DefectNodeRow(Base):
    __tablename__ = "defect_nodes"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)
    description = Column(Text)

    types = relationship("DefectTypeRow", back_populates="node", cascade="all, delete-orphan")


class DefectTypeRow(Base):
    __tablename__ = "defect_types"
    id = Column(Integer, primary_key=True, autoincrement=True)
    node_id = Column(Integer, ForeignKey("defect_nodes.id"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text)

    node = relationship("DefectNodeRow", back_populates="types")


class WorkerRow(Base):
    __tablename__ = "workers"
    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False)
    status = Column(_enum(WorkerStatus), nullable=False, default=WorkerStatus.ACTIVE)


# ==================== Orders ====================

class OrderRow(Base):
    __tablename__ = "orders"
    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(Integer, nullable=False, index=True)
    car_id = Column(Integer, nullable=False, index=True)
    intake_clerk_id = Column(Integer, nullable=False)
    technician_id = Column(Integer, ForeignKey("workers.id"), nullable=True)
    status = Column(_enum(OrderStatus), nullable=False, index=True)
    complaint = Column(Text)
    mileage = Column(Integer)

    prepayment_cents = Column(Integer, nullable=False, default=0)
    total_cents = Column(Integer, nullable=True)  # written only by the approval negotiator
    diagnosis_fee_cents = Column(Integer, nullable=True)
    payment_method = Column(_enum(PaymentMethod), nullable=True)
    paid_cents = Column(Integer, nullable=True)
    cancel_reason = Column(Text)

    approved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now)
    completed_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False)

    defects = relationship(
        "DefectRow", back_populates="order", cascade="all, delete-orphan", order_by="DefectRow.id"
    )
    works = relationship(
        "WorkItemRow", back_populates="order", cascade="all, delete-orphan", order_by="WorkItemRow.id"
    )
    parts = relationship(
        "PartItemRow", back_populates="order", cascade="all, delete-orphan", order_by="PartItemRow.id"
    )

    __mapper_args__ = {"version_id_col": version}


class DefectRow(Base):
    __tablename__ = "defects"
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    diagnostician_id = Column(Integer, nullable=False)
    defect_type_id = Column(Integer, ForeignKey("defect_types.id"), nullable=True)
    description = Column(String(500), nullable=False)
    comment = Column(Text)
    is_confirmed = Column(Boolean, nullable=False, default=False)

    order = relationship("OrderRow", back_populates="defects")


class WorkItemRow(Base):
    __tablename__ = "work_items"
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=True)
    defect_id = Column(Integer, ForeignKey("defects.id"), nullable=True)
    name = Column(String(255), nullable=False)
    price_cents = Column(Integer, nullable=False)
    worker_id = Column(Integer, ForeignKey("workers.id"), nullable=True)
    status = Column(_enum(WorkStatus), nullable=False, default=WorkStatus.PENDING)
    is_confirmed = Column(Boolean, nullable=False, default=False)

    order = relationship("OrderRow", back_populates="works")


class PartItemRow(Base):
    __tablename__ = "part_items"
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    warehouse_item_id = Column(Integer, nullable=True)
    name = Column(String(255), nullable=False)
    brand = Column(String(255))
    unit_price_cents = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False)
    is_confirmed = Column(Boolean, nullable=False, default=False)

    order = relationship("OrderRow", back_populates="parts")
