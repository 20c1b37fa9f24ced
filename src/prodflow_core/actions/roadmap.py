"""Roadmap actions: items planned into NOW / NEXT / LATER / PARKED lanes."""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import MANAGERS, require_role
from ..forms import parse_form
from ..models import RoadmapItemStatus, RoadmapLane
from ..results import ActionContext, action
from .common import apply_changes, get_live, get_product, get_product_child, jsonable

logger = logging.getLogger("prodflow-core.roadmap")

ENTITY = "ROADMAP_ITEM"

_LANE_ORDER = {lane: position for position, lane in enumerate(RoadmapLane)}


def _paths(item: models.RoadmapItem) -> tuple[str, ...]:
    return (f"/products/{item.product_id}/roadmap",)


def _load(db: Session, item_id: UUID) -> tuple[models.RoadmapItem, UUID]:
    item = get_live(db, models.RoadmapItem, item_id, "Roadmap item not found")
    product = get_product(db, item.product_id)
    return item, product.organization_id


def _submitted(form, field: str) -> bool:
    # parse_form drops empty strings; an explicit empty value still counts here
    return bool(form) and field in form


def list_roadmap_items(
    db: Session,
    product_id: UUID,
    lane: Optional[RoadmapLane] = None,
) -> list[models.RoadmapItem]:
    """Live items ordered by lane (NOW first), then creation time."""
    query = db.query(models.RoadmapItem).filter(
        models.RoadmapItem.product_id == product_id,
        models.RoadmapItem.deleted_at.is_(None),
    )
    if lane is not None:
        query = query.filter(models.RoadmapItem.lane == lane)
    items = query.order_by(models.RoadmapItem.created_at, models.RoadmapItem.id).all()
    return sorted(items, key=lambda item: _LANE_ORDER[item.lane])


@action("Failed to create roadmap item")
def create_roadmap_item(ctx: ActionContext, product_id: UUID, form) -> models.RoadmapItem:
    data = parse_form(schemas.RoadmapItemCreate, form)
    db = ctx.db
    product = get_product(db, product_id)
    require_role(db, ctx.user_id, product.organization_id, MANAGERS)

    if data.epic_id is not None:
        get_product_child(db, models.Epic, data.epic_id, product.id, "Epic not found")

    item = models.RoadmapItem(product_id=product.id, status=RoadmapItemStatus.PLANNED, **data.model_dump())
    db.add(item)
    db.flush()

    ctx.audit(product.organization_id, "ROADMAP_ITEM_CREATED", ENTITY, item.id, metadata={
        "title": item.title,
        "type": item.type.value,
        "lane": item.lane.value,
    })
    ctx.revalidate(*_paths(item))
    return item


@action("Failed to update roadmap item")
def update_roadmap_item(ctx: ActionContext, item_id: UUID, form) -> models.RoadmapItem:
    data = parse_form(schemas.RoadmapItemUpdate, form)
    db = ctx.db
    item, organization_id = _load(db, item_id)
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    values = data.model_dump(exclude_unset=True)
    if values.get("epic_id") is not None:
        get_product_child(db, models.Epic, values["epic_id"], item.product_id, "Epic not found")

    changes = apply_changes(item, values)
    db.flush()

    ctx.audit(organization_id, "ROADMAP_ITEM_UPDATED", ENTITY, item.id, changes=changes)
    ctx.revalidate(*_paths(item))
    return item


@action("Failed to move roadmap item")
def move_roadmap_item(ctx: ActionContext, item_id: UUID, form) -> models.RoadmapItem:
    """
    Move an item to another lane.

    ``quarter`` is only touched when submitted; an empty value clears it.
    """
    data = parse_form(schemas.RoadmapMoveForm, form)
    db = ctx.db
    item, organization_id = _load(db, item_id)
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    values = {"lane": data.lane}
    if _submitted(form, "quarter"):
        values["quarter"] = data.quarter
    changes = apply_changes(item, values)
    db.flush()

    ctx.audit(organization_id, "ROADMAP_ITEM_MOVED", ENTITY, item.id, changes=changes,
              metadata={"title": item.title, "lane": item.lane.value, "quarter": item.quarter})
    ctx.revalidate(*_paths(item))
    return item


@action("Failed to update roadmap item status")
def update_roadmap_item_status(ctx: ActionContext, item_id: UUID, form) -> models.RoadmapItem:
    data = parse_form(schemas.RoadmapStatusForm, form)
    db = ctx.db
    item, organization_id = _load(db, item_id)
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    changes = apply_changes(item, {"status": data.status})
    db.flush()

    ctx.audit(organization_id, "ROADMAP_ITEM_STATUS_UPDATED", ENTITY, item.id, changes=changes,
              metadata={"title": item.title})
    ctx.revalidate(*_paths(item))
    return item


@action("Failed to bulk update roadmap items")
def bulk_update_roadmap_items(ctx: ActionContext, organization_id: UUID, form) -> dict:
    """
    Apply status, lane or quarter to several items at once.

    Only live items of live products in ``organization_id`` are touched; other
    ids are skipped. Returns ``{"count": <items updated>}``.
    """
    data = parse_form(schemas.RoadmapBulkForm, form)
    db = ctx.db
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    updates = {}
    if data.status is not None:
        updates["status"] = data.status
    if data.lane is not None:
        updates["lane"] = data.lane
    if _submitted(form, "quarter"):
        updates["quarter"] = data.quarter

    items = (
        db.query(models.RoadmapItem)
        .join(models.Product, models.RoadmapItem.product_id == models.Product.id)
        .filter(
            models.RoadmapItem.id.in_(data.item_ids),
            models.RoadmapItem.deleted_at.is_(None),
            models.Product.organization_id == organization_id,
            models.Product.deleted_at.is_(None),
        )
        .all()
    )
    for item in items:
        for name, value in updates.items():
            setattr(item, name, value)
    db.flush()

    ctx.audit(organization_id, "ROADMAP_ITEMS_BULK_UPDATED", ENTITY, ",".join(str(i) for i in data.item_ids),
              metadata={"itemCount": len(data.item_ids), "updatedCount": len(items), "updates": jsonable(updates)})
    ctx.revalidate(*sorted({path for item in items for path in _paths(item)}))
    logger.info(f"Bulk updated {len(items)} of {len(data.item_ids)} roadmap items in organization {organization_id}")
    return {"count": len(items)}


@action("Failed to delete roadmap item")
def delete_roadmap_item(ctx: ActionContext, item_id: UUID) -> None:
    db = ctx.db
    item, organization_id = _load(db, item_id)
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    item.soft_delete()
    ctx.audit(organization_id, "ROADMAP_ITEM_DELETED", ENTITY, item.id, metadata={"title": item.title})
    ctx.revalidate(*_paths(item))
