# -*- coding: utf-8 -*-
"""
Request dependencies: the acting user and the services a router needs
"""
from typing import Iterator, Optional

from fastapi import Depends, Header

from repairflow.config import Settings, get_settings
from repairflow.database import Database, get_database
from repairflow.errors import Unauthenticated, Unauthorized
from repairflow.models import Actor, Role
from repairflow.services.audit import AuditLog, get_audit_log
from repairflow.services.catalog import CatalogLookup
from repairflow.services.sessions import SessionClient, get_session_client
from repairflow.services.state_machine import OrderStateMachine
from repairflow.services.warehouse import WarehouseClient, get_warehouse_client


def get_actor(
    authorization: Optional[str] = Header(None),
    sessions: Optional[SessionClient] = Depends(get_session_client),
) -> Actor:
    """Resolve `Authorization: Bearer <token>` through the session service"""
    if sessions is None:
        raise Unauthenticated("Session service is not configured")
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
    return sessions.resolve(token)


def require_admin(actor: Actor = Depends(get_actor)) -> Actor:
    if actor.role != Role.ADMIN:
        raise Unauthorized(
            f"Role {actor.role.value} may not change reference data",
            {"role": actor.role.value},
        )
    return actor


def get_workflow(
    database: Database = Depends(get_database),
    audit_log: AuditLog = Depends(get_audit_log),
    warehouse: Optional[WarehouseClient] = Depends(get_warehouse_client),
    settings: Settings = Depends(get_settings),
) -> OrderStateMachine:
    return OrderStateMachine(database, audit_log, warehouse, settings)


def get_catalog(database: Database = Depends(get_database)) -> Iterator[CatalogLookup]:
    """Catalog lookup bound to one transaction for the request"""
    with database.transaction() as session:
        yield CatalogLookup(session)
