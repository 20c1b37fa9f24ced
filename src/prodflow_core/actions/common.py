"""Lookups and helpers shared by the entity actions."""
import enum
from datetime import datetime
from typing import Any, Optional, Type
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models
from ..errors import NotFoundError
from ..models import Role


def get_live(db: Session, model: Type[models.Base], entity_id: UUID, message: str):
    """
    Load a row that has not been soft-deleted.

    Raises:
        NotFoundError: with ``message`` when the row is missing or deleted
    """
    if entity_id is None:
        raise NotFoundError(message)
    obj = (
        db.query(model)
        .filter(model.id == entity_id, model.deleted_at.is_(None))
        .first()
    )
    if obj is None:
        raise NotFoundError(message)
    return obj


def get_product(db: Session, product_id: UUID) -> models.Product:
    """Load a live product whose organization is live too."""
    product = get_live(db, models.Product, product_id, "Product not found")
    if product.organization.deleted_at is not None:
        raise NotFoundError("Product not found")
    return product


def get_product_child(db: Session, model: Type[models.Base], entity_id: UUID, product_id: UUID, message: str):
    """Load a live row and require it to belong to ``product_id``."""
    obj = get_live(db, model, entity_id, message)
    if obj.product_id != product_id:
        raise NotFoundError(message)
    return obj


def count_admins(db: Session, organization_id: UUID) -> int:
    """Organization-level ADMIN memberships."""
    return (
        db.query(func.count(models.Membership.id))
        .filter(
            models.Membership.organization_id == organization_id,
            models.Membership.team_id.is_(None),
            models.Membership.role == Role.ADMIN,
        )
        .scalar()
    )


def get_org_membership(db: Session, user_id: UUID, organization_id: UUID) -> Optional[models.Membership]:
    return (
        db.query(models.Membership)
        .filter(
            models.Membership.user_id == user_id,
            models.Membership.organization_id == organization_id,
            models.Membership.team_id.is_(None),
        )
        .first()
    )


def jsonable(value: Any) -> Any:
    """Plain JSON value for audit ``changes``/``metadata``."""
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: jsonable(v) for k, v in value.items()}
    return value


def apply_changes(obj, values: dict) -> dict:
    """
    Set attributes on ``obj`` and return what actually changed.

    Returns:
        ``{field: {"from": old, "to": new}}`` for every field whose value differs
    """
    changes = {}
    for name, new_value in values.items():
        old_value = getattr(obj, name)
        if old_value == new_value:
            continue
        changes[name] = {"from": jsonable(old_value), "to": jsonable(new_value)}
        setattr(obj, name, new_value)
    return changes
