# -*- coding: utf-8 -*-
"""
Session service client

Resolves the opaque per-request session token into an actor identity and role
claim. The workflow engine keeps no session state of its own.
"""
import logging
from typing import Optional
from urllib.parse import quote

import httpx

from repairflow.config import get_settings
from repairflow.errors import ServiceUnavailable, Unauthenticated
from repairflow.models import Actor, Role

logger = logging.getLogger(__name__)


class SessionClient:
    """Client for the external session service (REST)"""

    def __init__(self, base_url: str, timeout: float = 5.0, transport: httpx.BaseTransport = None):
        self.client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self.client.close()

    def resolve(self, token: str) -> Actor:
        """Validate a session token and return the actor it belongs to"""
        if not token:
            raise Unauthenticated("Missing session token")

        try:
            response = self.client.get(f"/sessions/{quote(token, safe='')}")
        except httpx.TransportError as e:
            logger.error(f"Session service unreachable: {e}")
            raise ServiceUnavailable("Session service is unavailable") from e

        if response.status_code in (401, 403, 404):
            raise Unauthenticated("Unknown or expired session")
        if response.status_code >= 400:
            logger.error(f"Session service error: HTTP {response.status_code}")
            raise ServiceUnavailable(
                "Session service error", {"status_code": response.status_code}
            )

        try:
            data = response.json()
            return Actor(user_id=data["user_id"], role=Role.from_claim(data["role"]))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Malformed session payload: {e}")
            raise Unauthenticated("Malformed session") from e


# Singleton
_session_client: Optional[SessionClient] = None


def get_session_client() -> Optional[SessionClient]:
    """Get session client singleton (None when no session service is configured)"""
    global _session_client
    settings = get_settings()
    if _session_client is None and settings.SESSION_SERVICE_URL:
        _session_client = SessionClient(settings.SESSION_SERVICE_URL, timeout=settings.EXTERNAL_TIMEOUT)
    return _session_client
