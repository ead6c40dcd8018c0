#!/usr/bin/env python3
"""
RepairFlow Entry Point

Run the application with:
    python run.py

Or with uvicorn directly:
    uvicorn repairflow.main:app --reload --port 8000
"""
import uvicorn

from repairflow.config import get_settings


def main():
    """Run the RepairFlow server"""
    settings = get_settings()
    print("=" * 50)
    print(f"  {settings.APP_NAME} {settings.APP_VERSION}")
    print("=" * 50)
    print(f"  Server:   http://{settings.HOST}:{settings.PORT}")
    print(f"  Store:    {settings.DATABASE_URL or settings.DATA_DIR / 'repairflow.db'}")
    print(f"  Sessions: {settings.SESSION_SERVICE_URL or '(not configured)'}")
    print(f"  Audit:    {settings.AUDIT_LOG_URL or '(application log)'}")
    print(f"  Debug:    {settings.DEBUG}")
    print("=" * 50)
    print()

    uvicorn.run(
        "repairflow.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )


if __name__ == "__main__":
    main()
