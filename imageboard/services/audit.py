"""Audit trail for privileged actions."""

import logging

from sqlalchemy.orm import Session

from imageboard.models.audit_log import AuditLog
from imageboard.models.user import User

logger = logging.getLogger(__name__)


def write_audit_log(db: Session, user_id: int | None, log_type: str, info: str) -> AuditLog:
    """Append an audit record."""
    entry = AuditLog(user_id=user_id or None, type=log_type, info=info)
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def write_audit_log_by_name(db: Session, user_name: str, log_type: str, info: str) -> AuditLog:
    """Append an audit record for the account called ``user_name``."""
    user_id = db.query(User.id).filter(User.name == user_name).scalar()
    if user_id is None:
        logger.warning(f"Audit log for unknown user {user_name!r}: {log_type}")
    return write_audit_log(db, user_id, log_type, info)


def dispatch_audit_log(user_id: int | None, log_type: str, info: str) -> None:
    """Queue an audit write. Broker failures are logged, never raised."""
    from imageboard.tasks.audit import record_audit_log

    try:
        record_audit_log.delay(user_id, log_type, info)
    except Exception as e:
        logger.error(f"Failed to queue audit log {log_type} for user {user_id}: {e}")


def dispatch_audit_log_by_name(user_name: str, log_type: str, info: str) -> None:
    """Queue an audit write keyed by account name."""
    from imageboard.tasks.audit import record_audit_log_by_name

    try:
        record_audit_log_by_name.delay(user_name, log_type, info)
    except Exception as e:
        logger.error(f"Failed to queue audit log {log_type} for {user_name}: {e}")
