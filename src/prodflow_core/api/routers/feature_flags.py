"""Feature flag API endpoints."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ... import models, schemas
from ...actions import feature_flags
from ...results import ActionContext
from ..dependencies import form_data, get_context, get_current_user, get_db, load_product_for_member, respond

logger = logging.getLogger("prodflow-core.feature_flags")

router = APIRouter(tags=["feature-flags"])


@router.get("/products/{product_id}/feature-flags", response_model=list[schemas.FeatureFlagResponse])
def list_feature_flags(
    product_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    load_product_for_member(db, user, product_id)
    return feature_flags.list_feature_flags(db, product_id)


@router.post("/products/{product_id}/feature-flags", response_model=schemas.FeatureFlagResponse, status_code=201)
def create_feature_flag(
    product_id: UUID,
    form: dict = Depends(form_data),
    ctx: ActionContext = Depends(get_context),
):
    """
    Create a flag.

    - **name**: Display name
    - **key**: Letters, digits, hyphens and underscores; unique among live flags
    - **rollout**: Fraction between 0 and 1
    - **targeting**, **variants**: JSON objects, stored as-is
    """
    return respond(feature_flags.create_feature_flag(ctx, product_id, form), schemas.FeatureFlagResponse)


@router.put("/feature-flags/{flag_id}", response_model=schemas.FeatureFlagResponse)
def update_feature_flag(flag_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(feature_flags.update_feature_flag(ctx, flag_id, form), schemas.FeatureFlagResponse)


@router.post("/feature-flags/{flag_id}/toggle", response_model=schemas.FeatureFlagResponse)
def toggle_feature_flag(flag_id: UUID, ctx: ActionContext = Depends(get_context)):
    return respond(feature_flags.toggle_feature_flag(ctx, flag_id), schemas.FeatureFlagResponse)


@router.put("/feature-flags/{flag_id}/rollout", response_model=schemas.FeatureFlagResponse)
def update_rollout(flag_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(feature_flags.update_rollout(ctx, flag_id, form), schemas.FeatureFlagResponse)


@router.delete("/feature-flags/{flag_id}", status_code=204)
def delete_feature_flag(flag_id: UUID, ctx: ActionContext = Depends(get_context)):
    respond(feature_flags.delete_feature_flag(ctx, flag_id))
