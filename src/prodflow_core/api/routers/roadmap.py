"""Epic and roadmap API endpoints."""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ... import models, schemas
from ...actions import epics, roadmap
from ...models import RoadmapLane
from ...results import ActionContext
from ..dependencies import form_data, get_context, get_current_user, get_db, load_product_for_member, respond

logger = logging.getLogger("prodflow-core.roadmap")

router = APIRouter(tags=["roadmap"])


@router.get("/products/{product_id}/epics", response_model=list[schemas.EpicResponse])
def list_epics(
    product_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    load_product_for_member(db, user, product_id)
    return epics.list_epics(db, product_id)


@router.post("/products/{product_id}/epics", response_model=schemas.EpicResponse, status_code=201)
def create_epic(product_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(epics.create_epic(ctx, product_id, form), schemas.EpicResponse)


@router.put("/epics/{epic_id}", response_model=schemas.EpicResponse)
def update_epic(epic_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(epics.update_epic(ctx, epic_id, form), schemas.EpicResponse)


@router.delete("/epics/{epic_id}", status_code=204)
def delete_epic(epic_id: UUID, ctx: ActionContext = Depends(get_context)):
    respond(epics.delete_epic(ctx, epic_id))


@router.get("/products/{product_id}/roadmap", response_model=list[schemas.RoadmapItemResponse])
def list_roadmap_items(
    product_id: UUID,
    lane: Optional[RoadmapLane] = Query(None, description="Only items in this lane"),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    """List live roadmap items, NOW lane first."""
    load_product_for_member(db, user, product_id)
    return roadmap.list_roadmap_items(db, product_id, lane=lane)


@router.post("/products/{product_id}/roadmap", response_model=schemas.RoadmapItemResponse, status_code=201)
def create_roadmap_item(product_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    """
    Plan a roadmap item.

    - **title**: Required
    - **type**: EPIC, FEATURE (default), INITIATIVE or MILESTONE
    - **lane**: NOW, NEXT, LATER (default) or PARKED
    - **effort**: 0-100; **confidence**: 1-5
    - **epicId**: An epic of the same product
    """
    return respond(roadmap.create_roadmap_item(ctx, product_id, form), schemas.RoadmapItemResponse)


@router.post("/organizations/{organization_id}/roadmap/bulk", response_model=schemas.BulkUpdateResponse)
def bulk_update_roadmap_items(
    organization_id: UUID,
    form: dict = Depends(form_data),
    ctx: ActionContext = Depends(get_context),
):
    """
    Update status, lane or quarter of several items.

    - **itemIds**: Comma separated or JSON list of roadmap item ids
    - **quarter**: Submit an empty value to clear it
    """
    return respond(roadmap.bulk_update_roadmap_items(ctx, organization_id, form), schemas.BulkUpdateResponse)


@router.put("/roadmap/{item_id}", response_model=schemas.RoadmapItemResponse)
def update_roadmap_item(item_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(roadmap.update_roadmap_item(ctx, item_id, form), schemas.RoadmapItemResponse)


@router.put("/roadmap/{item_id}/lane", response_model=schemas.RoadmapItemResponse)
def move_roadmap_item(item_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(roadmap.move_roadmap_item(ctx, item_id, form), schemas.RoadmapItemResponse)


@router.put("/roadmap/{item_id}/status", response_model=schemas.RoadmapItemResponse)
def update_roadmap_item_status(
    item_id: UUID,
    form: dict = Depends(form_data),
    ctx: ActionContext = Depends(get_context),
):
    return respond(roadmap.update_roadmap_item_status(ctx, item_id, form), schemas.RoadmapItemResponse)


@router.delete("/roadmap/{item_id}", status_code=204)
def delete_roadmap_item(item_id: UUID, ctx: ActionContext = Depends(get_context)):
    respond(roadmap.delete_roadmap_item(ctx, item_id))
