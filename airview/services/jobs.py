"""
Scheduled job entry points.

Each job opens its own session; provider I/O runs on a fresh event loop.
Job functions are referenced by import path from the persistent job store,
so their names and signatures are part of the stored state.
"""
import asyncio
import logging

from airview.database import SessionLocal
from airview.providers import get_provider_client
from airview.providers.qingping import QingpingProvider
from airview.services.devices import cleanup_orphaned_readings
from airview.services.retention import cleanup_device_readings, cleanup_expired_readings
from airview.services.scheduler import task_scheduler
from airview.services.sync import poll_all_readings, refresh_expiring_tokens, sync_new_device

logger = logging.getLogger(__name__)


def refresh_tokens_job():
    db = SessionLocal()
    try:
        refreshed = asyncio.run(refresh_expiring_tokens(db, QingpingProvider()))
        logger.info(f"Token refresh run complete: {refreshed} refreshed")
    except Exception as e:
        logger.error(f"Error in token refresh job: {str(e)}")
    finally:
        db.close()


def poll_readings_job():
    db = SessionLocal()
    try:
        ingested = asyncio.run(poll_all_readings(db, QingpingProvider()))
        logger.info(f"Reading poll complete: {ingested} readings ingested")
    except Exception as e:
        logger.error(f"Error in reading poll job: {str(e)}")
    finally:
        db.close()


def retention_cleanup_job():
    db = SessionLocal()
    try:
        cleanup_expired_readings(db, task_scheduler)
    except Exception as e:
        logger.error(f"Error in retention cleanup job: {str(e)}")
    finally:
        db.close()


def cleanup_device_readings_job(device_id: int, cutoff_ts: int):
    db = SessionLocal()
    try:
        cleanup_device_readings(db, device_id, cutoff_ts, task_scheduler)
    except Exception as e:
        logger.error(f"Error cleaning up readings for device {device_id}: {str(e)}")
    finally:
        db.close()


def sync_new_device_job(user_id: int, provider: str, attempt: int = 0):
    db = SessionLocal()
    try:
        client = get_provider_client(provider)
        asyncio.run(sync_new_device(db, client, user_id, provider, attempt, task_scheduler))
    except Exception as e:
        logger.error(f"Error syncing new device for user {user_id}: {str(e)}")
    finally:
        db.close()


def orphaned_readings_job():
    db = SessionLocal()
    try:
        cleanup_orphaned_readings(db)
    except Exception as e:
        logger.error(f"Error in orphaned readings sweep: {str(e)}")
    finally:
        db.close()
