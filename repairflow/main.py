# -*- coding: utf-8 -*-
"""
RepairFlow - Main FastAPI Application
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from repairflow.config import get_settings
from repairflow.api import orders_router, catalog_router
from repairflow.database import get_database
from repairflow.errors import WorkflowError
from repairflow.services.catalog import CatalogLookup, read_seed_file

# Configure logging
logging.basicConfig(
    level=get_settings().LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def seed_catalog() -> None:
    """Load reference data from CATALOG_SEED_FILE into an empty catalog"""
    settings = get_settings()
    if not settings.CATALOG_SEED_FILE:
        return
    with get_database().transaction() as session:
        catalog = CatalogLookup(session)
        if not catalog.is_empty():
            logger.info("Catalog already populated, seed file skipped")
            return
        stats = catalog.load_seed(read_seed_file(settings.CATALOG_SEED_FILE))
    logger.info(f"Catalog seeded from {settings.CATALOG_SEED_FILE}: {stats}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown events"""
    # Startup
    settings = get_settings()
    logger.info(f"Starting {settings.APP_NAME} {settings.APP_VERSION}...")
    database = get_database()
    database.create_all()
    seed_catalog()
    logger.info(
        f"Diagnosis fee: {settings.DIAGNOSIS_FEE}, quality control required: {settings.QUALITY_CONTROL_REQUIRED}"
    )

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}...")
    database.dispose()


# Create FastAPI app
app = FastAPI(
    title="RepairFlow",
    description="Repair order workflow for a vehicle service station",
    version=get_settings().APP_VERSION,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(orders_router, prefix="/api")
app.include_router(catalog_router, prefix="/api")


# ==================== Errors ====================

@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    """Render workflow errors as {error, message, details, retryable}"""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# ==================== Health Check ====================

@app.get("/health", tags=["system"])
async def health_check():
    """Health check endpoint"""
    return {"status": "ok", "service": "repairflow"}


# ==================== Run Server ====================

if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "repairflow.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
