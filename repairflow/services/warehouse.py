# -*- coding: utf-8 -*-
"""
Warehouse stock client

Only the quantity-check interface of the warehouse ledger is used.
"""
import logging
from typing import Optional

import httpx

from repairflow.config import get_settings
from repairflow.errors import ServiceUnavailable

logger = logging.getLogger(__name__)


class WarehouseClient:
    """Client for the warehouse stock service (REST)"""

    def __init__(self, base_url: str, timeout: float = 5.0, transport: httpx.BaseTransport = None):
        self.client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self.client.close()

    def available_quantity(self, item_id: int) -> Optional[int]:
        """Units in stock, or None if the warehouse does not know the item"""
        try:
            response = self.client.get(f"/items/{item_id}/stock")
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return int(response.json()["available"])
        except httpx.HTTPError as e:
            logger.error(f"Warehouse stock check failed for item {item_id}: {e}")
            raise ServiceUnavailable("Warehouse is unavailable", {"item_id": item_id}) from e
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed warehouse stock reply for item {item_id}: {e}")
            raise ServiceUnavailable("Warehouse returned a malformed reply", {"item_id": item_id}) from e

    def has_stock(self, item_id: int, quantity: int) -> bool:
        available = self.available_quantity(item_id)
        return available is not None and available >= quantity


# Singleton
_warehouse_client: Optional[WarehouseClient] = None


def get_warehouse_client() -> Optional[WarehouseClient]:
    """Get warehouse client singleton (None when no warehouse is configured)"""
    global _warehouse_client
    settings = get_settings()
    if _warehouse_client is None and settings.WAREHOUSE_URL:
        _warehouse_client = WarehouseClient(settings.WAREHOUSE_URL, timeout=settings.EXTERNAL_TIMEOUT)
    return _warehouse_client
