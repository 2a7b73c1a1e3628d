import json
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger("poolbid.audit")


def audit_event(
    action: str,
    actor_id: Optional[str],
    payload: Dict[str, Any],
    *,
    db: Session | None = None,
    pooled_order_id: int | None = None,
    idempotency_key: str | None = None,
    request_id: str | None = None,
    ip: str | None = None,
    user_agent: str | None = None,
) -> Optional[int]:
    """
    Persist audit event to database; if the DB write fails, log it instead.

    Runs in its own commit after the business transaction, so a failed audit
    write never undoes the outcome it describes.
    Returns the created audit log id when available.
    """
    created_session = False
    session: Session | None = db
    try:
        from app import models

        if session is None:
            from app.database import SessionLocal

            session = SessionLocal()
            created_session = True

        if idempotency_key:
            existing = (
                session.query(models.AuditLog)
                .filter(models.AuditLog.idempotency_key == idempotency_key)
                .first()
            )
            if existing is not None:
                return existing.id

        log = models.AuditLog(
            action=action,
            actor_id=None if actor_id is None else str(actor_id),
            pooled_order_id=pooled_order_id,
            payload_json=json.dumps(payload or {}, default=str),
            idempotency_key=idempotency_key,
            request_id=request_id,
            ip=ip,
            user_agent=user_agent,
        )
        session.add(log)
        session.commit()
        return log.id
    except SQLAlchemyError:
        if session is not None:
            session.rollback()
        logger.warning(
            "audit_write_failed",
            extra={"action": action, "actor_id": actor_id, "pooled_order_id": pooled_order_id},
            exc_info=True,
        )
        return None
    finally:
        if created_session and session is not None:
            session.close()
