# RepairFlow API Routers
from .orders import router as orders_router
from .catalog import router as catalog_router

__all__ = ["orders_router", "catalog_router"]
