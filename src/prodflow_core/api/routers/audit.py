"""Audit trail API endpoints."""
from math import ceil
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ... import models, schemas
from ...audit import get_audit_trail
from ..dependencies import check_member, get_current_user, get_db

router = APIRouter(tags=["audit"])


@router.get("/organizations/{organization_id}/audit", response_model=schemas.AuditLogListResponse)
def list_audit_logs(
    organization_id: UUID,
    entity_type: Optional[str] = Query(None, description="Filter by entity type, e.g. TEAM"),
    entity_id: Optional[str] = Query(None, description="Filter by entity id"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    """
    List an organization's audit trail, newest first.

    Entries remain listed after the entity they describe is deleted.
    """
    check_member(user, organization_id)
    skip = (page - 1) * page_size

    rows, total = get_audit_trail(
        db,
        organization_id,
        entity_type=entity_type,
        entity_id=entity_id,
        skip=skip,
        limit=page_size,
    )

    return schemas.AuditLogListResponse(
        items=[schemas.AuditLogResponse.model_validate(row) for row in rows],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=ceil(total / page_size) if total > 0 else 0,
    )
