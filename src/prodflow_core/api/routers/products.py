"""Products and features API endpoints."""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ... import models, schemas
from ...actions import products
from ...results import ActionContext
from ..dependencies import (
    check_member,
    form_data,
    get_context,
    get_current_user,
    get_db,
    load_product_for_member,
    respond,
)

logger = logging.getLogger("prodflow-core.products")

router = APIRouter(tags=["products"])


@router.get("/organizations/{organization_id}/products", response_model=list[schemas.ProductResponse])
def list_products(
    organization_id: UUID,
    team_id: Optional[UUID] = Query(None, description="Only products assigned to this team"),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_member(user, organization_id)
    return [
        schemas.ProductResponse.model_validate(p)
        for p in products.list_products(db, organization_id, team_id=team_id)
    ]


@router.post("/organizations/{organization_id}/products", response_model=schemas.ProductResponse, status_code=201)
def create_product(
    organization_id: UUID,
    form: dict = Depends(form_data),
    ctx: ActionContext = Depends(get_context),
):
    """
    Create a product.

    - **name**: Product name
    - **key**: Uppercase letters and digits, unique across all organizations
    - **lifecycle**: Lifecycle stage (default IDEATION)
    - **teamId**: Optional team assignment
    """
    return respond(products.create_product(ctx, organization_id, form), schemas.ProductResponse)


@router.get("/products/{product_id}", response_model=schemas.ProductResponse)
def get_product(
    product_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return schemas.ProductResponse.model_validate(load_product_for_member(db, user, product_id))


@router.put("/products/{product_id}", response_model=schemas.ProductResponse)
def update_product(product_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(products.update_product(ctx, product_id, form), schemas.ProductResponse)


@router.put("/products/{product_id}/lifecycle", response_model=schemas.ProductResponse)
def update_product_lifecycle(
    product_id: UUID,
    form: dict = Depends(form_data),
    ctx: ActionContext = Depends(get_context),
):
    return respond(products.update_product_lifecycle(ctx, product_id, form), schemas.ProductResponse)


@router.delete("/products/{product_id}", status_code=204)
def delete_product(product_id: UUID, ctx: ActionContext = Depends(get_context)):
    respond(products.delete_product(ctx, product_id))


@router.get("/products/{product_id}/features", response_model=list[schemas.FeatureResponse])
def list_features(
    product_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    load_product_for_member(db, user, product_id)
    return products.list_features(db, product_id)


@router.post("/products/{product_id}/features", response_model=schemas.FeatureResponse, status_code=201)
def create_feature(product_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(products.create_feature(ctx, product_id, form), schemas.FeatureResponse)


@router.delete("/features/{feature_id}", status_code=204)
def delete_feature(feature_id: UUID, ctx: ActionContext = Depends(get_context)):
    respond(products.delete_feature(ctx, feature_id))
