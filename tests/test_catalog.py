# -*- coding: utf-8 -*-
import pytest

from repairflow.errors import UnknownWorker, ValidationFailed
from repairflow.models import DefectNodeCreate, WorkerStatus
from repairflow.services.catalog import CatalogLookup
from repairflow.tables import WorkerRow

ADMIN = {"Authorization": "Bearer admin-token"}


def test_duplicate_defect_node(database):
    with pytest.raises(ValidationFailed):
        with database.transaction() as session:
            CatalogLookup(session).add_defect_node(DefectNodeCreate(name=" Brakes "))

    with database.transaction() as session:
        assert [n.name for n in CatalogLookup(session).list_defect_nodes()] == ["Brakes"]


def test_duplicate_defect_node_over_http(client):
    response = client.post("/api/catalog/defect-nodes", json={"name": "Brakes"}, headers=ADMIN)
    assert response.status_code == 422
    assert response.json()["error"] == "ValidationFailed"

    response = client.post("/api/catalog/defect-nodes", json={"name": "Suspension"}, headers=ADMIN)
    assert response.status_code == 201


def test_worker_status_is_written_before_return(database):
    with database.transaction() as session:
        worker = CatalogLookup(session).set_worker_status(8, WorkerStatus.INACTIVE)
        assert worker.status == WorkerStatus.INACTIVE
        assert not session.dirty

    with database.transaction() as session:
        assert session.get(WorkerRow, 8).status == WorkerStatus.INACTIVE


def test_unknown_worker_status(database):
    with pytest.raises(UnknownWorker):
        with database.transaction() as session:
            CatalogLookup(session).set_worker_status(404, WorkerStatus.ACTIVE)
