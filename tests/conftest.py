# -*- coding: utf-8 -*-
"""
Shared fixtures: a file-backed SQLite store, a seeded catalog, one actor per
role and a driver that walks an order through the workflow.
"""
from decimal import Decimal

import httpx
import pytest
from fastapi.testclient import TestClient

from repairflow.config import Settings, get_settings
from repairflow.database import Database, get_database
from repairflow.models import (
    Actor, DefectCreate, DefectNodeCreate, DefectTypeCreate, OrderCreate, PartItemCreate, Role,
    ServiceCreate, WorkerStatus, WorkItemCreate,
)
from repairflow.services.audit import AuditLog, get_audit_log
from repairflow.services.catalog import CatalogLookup
from repairflow.services.sessions import SessionClient, get_session_client
from repairflow.services.state_machine import OrderStateMachine
from repairflow.services.warehouse import get_warehouse_client
from repairflow.tables import WorkerRow

MAIN_WORKER_ID = 7
SECOND_WORKER_ID = 8
INACTIVE_WORKER_ID = 9

SESSIONS = {
    "clerk-token": {"user_id": 1, "role": "Master"},
    "diag-token": {"user_id": 2, "role": "Diagnostician"},
    "parts-token": {"user_id": 3, "role": "Storekeeper"},
    "tech-token": {"user_id": MAIN_WORKER_ID, "role": "Worker"},
    "admin-token": {"user_id": 10, "role": "Admin"},
}


class RecordingAuditLog(AuditLog):
    """Keeps entries in memory"""

    def __init__(self):
        self.entries = []

    def record(self, entry):
        self.entries.append(entry)

    def transitions(self, order_id):
        return [
            (e.old_status.value if e.old_status else None, e.new_status.value)
            for e in self.entries
            if e.order_id == order_id
        ]


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'orders.db'}",
        DATA_DIR=tmp_path,
        DIAGNOSIS_FEE=Decimal("30.00"),
        QUALITY_CONTROL_REQUIRED=False,
    )


@pytest.fixture
def database(settings):
    db = Database(settings.DATABASE_URL)
    db.create_all()
    with db.transaction() as session:
        catalog = CatalogLookup(session)
        catalog.add_service(ServiceCreate(name="Brake pad replacement", price=Decimal("100.00")))
        catalog.add_service(ServiceCreate(name="Oil change", price=Decimal("45.50")))
        node = catalog.add_defect_node(DefectNodeCreate(name="Brakes"))
        catalog.add_defect_type(DefectTypeCreate(node_id=node.id, name="Worn pads"))
        session.add(WorkerRow(id=MAIN_WORKER_ID, full_name="Ivan Petrov", role="technician",
                              status=WorkerStatus.ACTIVE))
        session.add(WorkerRow(id=SECOND_WORKER_ID, full_name="Oleg Smirnov", role="technician",
                              status=WorkerStatus.ACTIVE))
        session.add(WorkerRow(id=INACTIVE_WORKER_ID, full_name="Pavel Orlov", role="technician",
                              status=WorkerStatus.INACTIVE))
    yield db
    db.dispose()


@pytest.fixture
def audit_log():
    return RecordingAuditLog()


@pytest.fixture
def machine(database, audit_log, settings):
    return OrderStateMachine(database, audit_log, None, settings)


@pytest.fixture
def qc_machine(database, audit_log, settings):
    qc_settings = settings.model_copy(update={"QUALITY_CONTROL_REQUIRED": True})
    return OrderStateMachine(database, audit_log, None, qc_settings)


# ==================== Actors ====================

@pytest.fixture
def clerk():
    return Actor(user_id=1, role=Role.INTAKE_CLERK)


@pytest.fixture
def diagnostician():
    return Actor(user_id=2, role=Role.DIAGNOSTICIAN)


@pytest.fixture
def parts_clerk():
    return Actor(user_id=3, role=Role.PARTS_CLERK)


@pytest.fixture
def technician():
    return Actor(user_id=MAIN_WORKER_ID, role=Role.TECHNICIAN)


@pytest.fixture
def admin():
    return Actor(user_id=10, role=Role.ADMIN)


# ==================== Workflow driver ====================

class OrderDriver:
    """Brings a fresh order to a given status with the default proposal"""

    def __init__(self, machine, clerk, diagnostician, parts_clerk, technician):
        self.machine = machine
        self.clerk = clerk
        self.diagnostician = diagnostician
        self.parts_clerk = parts_clerk
        self.technician = technician

    def create(self, **kwargs):
        data = dict(client_id=11, car_id=21, complaint="Squeaking brakes", mileage=50000)
        data.update(kwargs)
        return self.machine.create_order(self.clerk, OrderCreate(**data))

    def diagnosed(self, **kwargs):
        order = self.create(**kwargs)
        return self.machine.submit_diagnosis(
            order.id, self.diagnostician, [DefectCreate(defect_type_id=1, comment="Pads at 1 mm")]
        )

    def proposed(self, works=None, parts=None, **kwargs):
        order = self.diagnosed(**kwargs)
        if works is None:
            works = [WorkItemCreate(service_id=1, defect_id=order.defects[0].id)]
        if parts is None:
            parts = [PartItemCreate(name="Brake pad set", brand="ATE", unit_price=Decimal("25.00"), quantity=2)]
        return self.machine.propose_line_items(order.id, self.parts_clerk, works, parts)

    def approved(self, **kwargs):
        order = self.proposed(**kwargs)
        result = self.machine.apply_approval_decisions(
            order.id, self.clerk, [w.id for w in order.works], [p.id for p in order.parts]
        )
        return self.machine.get_order(order.id), result

    def in_work(self, **kwargs):
        order, _ = self.approved(**kwargs)
        return self.machine.assign_workers(order.id, self.clerk, MAIN_WORKER_ID)

    def ready(self, **kwargs):
        order = self.in_work(**kwargs)
        for work in order.works:
            order = self.machine.mark_work_item_done(order.id, self.technician, work.id)
        return order


@pytest.fixture
def driver(machine, clerk, diagnostician, parts_clerk, technician):
    return OrderDriver(machine, clerk, diagnostician, parts_clerk, technician)


# ==================== HTTP ====================

def _session_service(request: httpx.Request) -> httpx.Response:
    token = request.url.path.rsplit("/", 1)[-1]
    if token not in SESSIONS:
        return httpx.Response(404, json={"detail": "unknown session"})
    return httpx.Response(200, json=SESSIONS[token])


@pytest.fixture
def client(database, audit_log, settings):
    from repairflow.main import app

    sessions = SessionClient("http://sessions.test", transport=httpx.MockTransport(_session_service))
    app.dependency_overrides[get_database] = lambda: database
    app.dependency_overrides[get_audit_log] = lambda: audit_log
    app.dependency_overrides[get_warehouse_client] = lambda: None
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_session_client] = lambda: sessions
    yield TestClient(app)
    app.dependency_overrides.clear()
    sessions.close()



@pytest.fixture
def qc_driver(qc_machine, clerk, diagnostician, parts_clerk, technician):
    return OrderDriver(qc_machine, clerk, diagnostician, parts_clerk, technician)
