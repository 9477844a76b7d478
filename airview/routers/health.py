from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging

from airview.database import get_db
from airview.providers import SUPPORTED_PROVIDERS
from airview.services.scheduler import scheduler

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])

@router.get("/healthz")
async def health_check():
    """Liveness plus background scheduler state"""
    return {
        "status": "ok",
        "service": "airview-api",
        "scheduler": "running" if scheduler.running else "stopped",
        "providers": list(SUPPORTED_PROVIDERS),
    }

@router.get("/api/v1/health")
async def api_health_check(db: Session = Depends(get_db)):
    """Readiness: the database answers a trivial query"""
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {str(e)}")
        database = "unavailable"
    return {
        "status": "ok" if database == "ok" else "degraded",
        "api_version": "v1",
        "database": database,
    }
