"""Epic actions. Epics group features and roadmap items of one product."""
import logging
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import MANAGERS, require_role
from ..forms import parse_form
from ..results import ActionContext, action
from .common import apply_changes, get_live, get_product

logger = logging.getLogger("prodflow-core.epics")


def _load(db: Session, epic_id: UUID) -> tuple[models.Epic, UUID]:
    epic = get_live(db, models.Epic, epic_id, "Epic not found")
    product = get_product(db, epic.product_id)
    return epic, product.organization_id


def list_epics(db: Session, product_id: UUID) -> list[models.Epic]:
    return (
        db.query(models.Epic)
        .filter(models.Epic.product_id == product_id, models.Epic.deleted_at.is_(None))
        .order_by(models.Epic.created_at)
        .all()
    )


@action("Failed to create epic")
def create_epic(ctx: ActionContext, product_id: UUID, form) -> models.Epic:
    data = parse_form(schemas.EpicCreate, form)
    db = ctx.db
    product = get_product(db, product_id)
    require_role(db, ctx.user_id, product.organization_id, MANAGERS)

    epic = models.Epic(product_id=product.id, **data.model_dump())
    db.add(epic)
    db.flush()

    ctx.audit(product.organization_id, "EPIC_CREATED", "EPIC", epic.id, metadata={"title": epic.title})
    ctx.revalidate(f"/products/{product.id}/epics", f"/products/{product.id}/roadmap")
    return epic


@action("Failed to update epic")
def update_epic(ctx: ActionContext, epic_id: UUID, form) -> models.Epic:
    data = parse_form(schemas.EpicUpdate, form)
    db = ctx.db
    epic, organization_id = _load(db, epic_id)
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    changes = apply_changes(epic, data.model_dump(exclude_unset=True))
    db.flush()

    ctx.audit(organization_id, "EPIC_UPDATED", "EPIC", epic.id, changes=changes)
    ctx.revalidate(f"/products/{epic.product_id}/epics", f"/products/{epic.product_id}/roadmap")
    return epic


@action("Failed to delete epic")
def delete_epic(ctx: ActionContext, epic_id: UUID) -> None:
    """Soft-delete an epic and unlink the features and roadmap items under it."""
    db = ctx.db
    epic, organization_id = _load(db, epic_id)
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    unlinked = 0
    for child in list(epic.features) + list(epic.roadmap_items):
        child.epic_id = None
        unlinked += 1
    epic.soft_delete()

    ctx.audit(organization_id, "EPIC_DELETED", "EPIC", epic.id,
              metadata={"title": epic.title, "unlinkedItems": unlinked})
    ctx.revalidate(f"/products/{epic.product_id}/epics", f"/products/{epic.product_id}/roadmap")
    logger.info(f"Deleted epic {epic.id}, unlinked {unlinked} items")
