# -*- coding: utf-8 -*-
"""
Audit log

Each status change appends one entry. Storage belongs to an external service;
without one configured, entries go to the `repairflow.audit` logger.
"""
import logging
from datetime import datetime
from typing import Optional

import httpx
from pydantic import BaseModel, Field

from repairflow.config import get_settings
from repairflow.errors import ServiceUnavailable
from repairflow.models import OrderStatus, Role

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("repairflow.audit")


class AuditEntry(BaseModel):
    """One status change"""
    order_id: int
    actor_id: int
    actor_role: Role
    old_status: Optional[OrderStatus] = Field(None, description="None when the order is created")
    new_status: OrderStatus
    timestamp: datetime = Field(default_factory=datetime.now)
    note: Optional[str] = None


class AuditLog:
    """Writes entries to the application log"""

    def record(self, entry: AuditEntry) -> None:
        audit_logger.info(
            f"[Order: {entry.order_id}] {entry.old_status.value if entry.old_status else '-'} -> "
            f"{entry.new_status.value} by {entry.actor_role.value}#{entry.actor_id}"
            + (f" ({entry.note})" if entry.note else "")
        )

    def close(self) -> None:
        pass


class HttpAuditLog(AuditLog):
    """Delivers entries to the external audit-log service"""

    def __init__(self, base_url: str, timeout: float = 5.0, transport: httpx.BaseTransport = None):
        self.client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self.client.close()

    def record(self, entry: AuditEntry) -> None:
        """
        Post one entry.

        Raises ServiceUnavailable when delivery fails, which aborts the
        command so no status change goes unaudited.
        """
        try:
            response = self.client.post("/entries", json=entry.model_dump(mode="json"))
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"[Order: {entry.order_id}] Audit delivery failed: {e}")
            raise ServiceUnavailable("Audit log is unavailable", {"order_id": entry.order_id}) from e


# Singleton
_audit_log: Optional[AuditLog] = None


def get_audit_log() -> AuditLog:
    """Get audit log singleton"""
    global _audit_log
    if _audit_log is None:
        settings = get_settings()
        if settings.AUDIT_LOG_URL:
            _audit_log = HttpAuditLog(settings.AUDIT_LOG_URL, timeout=settings.EXTERNAL_TIMEOUT)
        else:
            _audit_log = AuditLog()
    return _audit_log
