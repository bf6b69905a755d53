"""Celery tasks for audit-log writes."""

import logging

from imageboard.celery_app import app as celery_app
from imageboard.database import SessionLocal
from imageboard.services.audit import write_audit_log, write_audit_log_by_name

logger = logging.getLogger(__name__)


@celery_app.task(name="tasks.record_audit_log")
def record_audit_log(user_id: int | None, log_type: str, info: str) -> dict:
    """Persist one audit record."""
    db = SessionLocal()
    try:
        entry = write_audit_log(db, user_id, log_type, info)
        return {"id": entry.id}
    except Exception as e:
        logger.error(f"Failed to write audit log {log_type} for user {user_id}: {e}")
        db.rollback()
        return {"error": str(e)}
    finally:
        db.close()


@celery_app.task(name="tasks.record_audit_log_by_name")
def record_audit_log_by_name(user_name: str, log_type: str, info: str) -> dict:
    """Persist one audit record, resolving the account by name."""
    db = SessionLocal()
    try:
        entry = write_audit_log_by_name(db, user_name, log_type, info)
        return {"id": entry.id}
    except Exception as e:
        logger.error(f"Failed to write audit log {log_type} for {user_name}: {e}")
        db.rollback()
        return {"error": str(e)}
    finally:
        db.close()
