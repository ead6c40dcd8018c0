# -*- coding: utf-8 -*-
"""
RepairFlow Configuration
"""
from decimal import Decimal
from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings"""

    # App info
    APP_NAME: str = "RepairFlow"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Relational store
    DATABASE_URL: str = ""  # empty = SQLite file in DATA_DIR
    DB_ECHO: bool = False

    # Workflow
    DIAGNOSIS_FEE: Decimal = Decimal("0.00")  # charged when the client rejects every item
    QUALITY_CONTROL_REQUIRED: bool = False

    # External collaborators (empty URL = not configured)
    SESSION_SERVICE_URL: str = ""
    AUDIT_LOG_URL: str = ""
    WAREHOUSE_URL: str = ""
    EXTERNAL_TIMEOUT: float = 5.0

    # Reference data loaded on startup
    CATALOG_SEED_FILE: Optional[Path] = None

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Paths
    BASE_DIR: Path = Path(__file__).parent.parent
    DATA_DIR: Path = BASE_DIR / "data"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


# Role claim aliases used by the session service of the desktop client
ROLE_ALIASES = {
    "Master": "intake_clerk",
    "Diagnostician": "diagnostician",
    "Storekeeper": "parts_clerk",
    "Worker": "technician",
    "Admin": "admin",
}


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
