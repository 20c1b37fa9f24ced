"""Audit trail: one immutable row per mutating action."""
import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger("prodflow-core.audit")


def log_activity(
    db: Session,
    organization_id: UUID,
    action: str,
    entity_type: str,
    entity_id: Any,
    user_id: Optional[UUID] = None,
    metadata: Optional[dict] = None,
    changes: Optional[dict] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> models.AuditLog:
    """
    Append an audit row in the caller's transaction.

    The row is flushed, not committed: it becomes durable with the action that
    wrote it and disappears if that action rolls back. Database errors
    propagate to the caller.

    Args:
        db: Database session
        organization_id: Organization the action happened in
        action: Action name (e.g. ``TEAM_CREATED``, ``START``)
        entity_type: Entity type (e.g. ``TEAM``, ``Sprint``)
        entity_id: Id of the affected entity (stored as text)
        user_id: Acting user, if any
        metadata: Free-form context about the action
        changes: Before/after values, if tracked

    Returns:
        The pending audit row
    """
    entry = models.AuditLog(
        organization_id=organization_id,
        user_id=user_id,
        action=action,
        entity=entity_type,
        entity_id=str(entity_id),
        metadata_=metadata,
        changes=changes,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(entry)
    db.flush()
    logger.debug(f"Audit {action} {entity_type}:{entity_id} in org {organization_id}")
    return entry


def get_audit_trail(
    db: Session,
    organization_id: UUID,
    entity_type: Optional[str] = None,
    entity_id: Optional[Any] = None,
    user_id: Optional[UUID] = None,
    skip: int = 0,
    limit: int = 50,
) -> tuple[list[models.AuditLog], int]:
    """
    List audit rows for an organization, newest first.

    Rows are returned whether or not the entity they describe has since been
    soft-deleted.

    Returns:
        Tuple of (rows, total count)
    """
    query = db.query(models.AuditLog).filter(models.AuditLog.organization_id == organization_id)
    if entity_type:
        query = query.filter(models.AuditLog.entity == entity_type)
    if entity_id is not None:
        query = query.filter(models.AuditLog.entity_id == str(entity_id))
    if user_id is not None:
        query = query.filter(models.AuditLog.user_id == user_id)

    total = query.count()
    rows = (
        query.order_by(models.AuditLog.created_at.desc(), models.AuditLog.id)
        .offset(skip)
        .limit(limit)
        .all()
    )
    return rows, total
