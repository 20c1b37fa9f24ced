"""OKR API endpoints."""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ... import models, schemas
from ...actions import okrs
from ...results import ActionContext
from ..dependencies import form_data, get_context, get_current_user, get_db, load_product_for_member, respond

logger = logging.getLogger("prodflow-core.okrs")

router = APIRouter(tags=["okrs"])


@router.get("/products/{product_id}/okrs", response_model=list[schemas.OKRResponse])
def list_okrs(
    product_id: UUID,
    quarter: Optional[str] = Query(None),
    year: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    load_product_for_member(db, user, product_id)
    return [schemas.OKRResponse.model_validate(o) for o in okrs.list_okrs(db, product_id, quarter, year)]


@router.post("/products/{product_id}/okrs", response_model=schemas.OKRResponse, status_code=201)
def create_okr(product_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    """
    Create an OKR.

    - **objective**, **quarter**, **year** (2020-2030), **ownerId**: Required
    - **keyResults**: JSON array of ``{description, target, unit?, type?}``, at least one
    """
    return respond(okrs.create_okr(ctx, product_id, form), schemas.OKRResponse)


@router.put("/okrs/{okr_id}", response_model=schemas.OKRResponse)
def update_okr(okr_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(okrs.update_okr(ctx, okr_id, form), schemas.OKRResponse)


@router.post("/okrs/{okr_id}/progress", response_model=schemas.OKRResponse)
def recalculate_okr_progress(okr_id: UUID, ctx: ActionContext = Depends(get_context)):
    return respond(okrs.recalculate_okr_progress(ctx, okr_id), schemas.OKRResponse)


@router.delete("/okrs/{okr_id}", status_code=204)
def delete_okr(okr_id: UUID, ctx: ActionContext = Depends(get_context)):
    respond(okrs.delete_okr(ctx, okr_id))


@router.put("/key-results/{key_result_id}", response_model=schemas.KeyResultResponse)
def update_key_result(
    key_result_id: UUID,
    form: dict = Depends(form_data),
    ctx: ActionContext = Depends(get_context),
):
    return respond(okrs.update_key_result(ctx, key_result_id, form), schemas.KeyResultResponse)
