"""Persona actions."""
import logging
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import MANAGERS, require_role
from ..forms import parse_form
from ..results import ActionContext, action
from .common import apply_changes, get_live, get_product

logger = logging.getLogger("prodflow-core.personas")

ENTITY = "PERSONA"

_LIST_FIELDS = ("goals", "pains", "gains", "behaviors", "motivations", "channels")


def _paths(persona: models.Persona) -> tuple[str, ...]:
    return (f"/products/{persona.product_id}/personas",)


def _load(db: Session, persona_id: UUID) -> tuple[models.Persona, UUID]:
    persona = get_live(db, models.Persona, persona_id, "Persona not found")
    product = get_product(db, persona.product_id)
    return persona, product.organization_id


def _form_values(data, **dump_options) -> dict:
    values = data.model_dump(**dump_options)
    if data.demographics is not None and "demographics" in values:
        values["demographics"] = data.demographics.model_dump(by_alias=True, exclude_none=True)
    return values


def list_personas(db: Session, product_id: UUID) -> list[models.Persona]:
    """Primary personas first, then by name."""
    personas = (
        db.query(models.Persona)
        .filter(models.Persona.product_id == product_id, models.Persona.deleted_at.is_(None))
        .order_by(models.Persona.name)
        .all()
    )
    return sorted(personas, key=lambda p: not p.is_primary)


@action("Failed to create persona")
def create_persona(ctx: ActionContext, product_id: UUID, form) -> models.Persona:
    data = parse_form(schemas.PersonaCreate, form)
    db = ctx.db
    product = get_product(db, product_id)
    require_role(db, ctx.user_id, product.organization_id, MANAGERS)

    persona = models.Persona(product_id=product.id, **_form_values(data))
    db.add(persona)
    db.flush()

    ctx.audit(product.organization_id, "PERSONA_CREATED", ENTITY, persona.id,
              metadata={"name": persona.name, "isPrimary": persona.is_primary})
    ctx.revalidate(*_paths(persona))
    return persona


@action("Failed to update persona")
def update_persona(ctx: ActionContext, persona_id: UUID, form) -> models.Persona:
    data = parse_form(schemas.PersonaUpdate, form)
    db = ctx.db
    persona, organization_id = _load(db, persona_id)
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    changes = apply_changes(persona, _form_values(data, exclude_unset=True))
    db.flush()

    ctx.audit(organization_id, "PERSONA_UPDATED", ENTITY, persona.id, changes=changes,
              metadata={"name": persona.name})
    ctx.revalidate(*_paths(persona))
    return persona


@action("Failed to update persona priority")
def update_persona_priority(ctx: ActionContext, persona_id: UUID, form) -> models.Persona:
    """Flag or unflag the persona as primary. Other personas are left alone."""
    data = parse_form(schemas.PersonaPriorityForm, form)
    db = ctx.db
    persona, organization_id = _load(db, persona_id)
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    # Reassign so the JSON column sees a new value
    demographics = dict(persona.demographics or {})
    demographics["isPrimary"] = data.is_primary
    changes = apply_changes(persona, {"demographics": demographics})
    db.flush()

    ctx.audit(organization_id, "PERSONA_PRIORITY_UPDATED", ENTITY, persona.id, changes=changes,
              metadata={"name": persona.name, "isPrimary": data.is_primary})
    ctx.revalidate(*_paths(persona))
    return persona


@action("Failed to duplicate persona")
def duplicate_persona(ctx: ActionContext, persona_id: UUID) -> models.Persona:
    db = ctx.db
    original, organization_id = _load(db, persona_id)
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    copy = models.Persona(
        product_id=original.product_id,
        name=f"{original.name} (Copy)",
        description=original.description,
        demographics=dict(original.demographics or {}),
        **{field: list(getattr(original, field) or []) for field in _LIST_FIELDS},
    )
    db.add(copy)
    db.flush()

    ctx.audit(organization_id, "PERSONA_DUPLICATED", ENTITY, copy.id, metadata={
        "name": copy.name,
        "originalPersonaId": str(original.id),
    })
    ctx.revalidate(*_paths(copy))
    return copy


@action("Failed to delete persona")
def delete_persona(ctx: ActionContext, persona_id: UUID) -> None:
    db = ctx.db
    persona, organization_id = _load(db, persona_id)
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    persona.soft_delete()
    ctx.audit(organization_id, "PERSONA_DELETED", ENTITY, persona.id, metadata={"name": persona.name})
    ctx.revalidate(*_paths(persona))
