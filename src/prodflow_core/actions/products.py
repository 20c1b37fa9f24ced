"""Product and feature actions."""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import ADMIN_ONLY, MANAGERS, WRITERS, require_role
from ..errors import BusinessRuleViolation, ConflictError, NotFoundError
from ..forms import parse_form
from ..results import ActionContext, action, flush_unique
from .common import apply_changes, get_live, get_product, get_product_child, jsonable

logger = logging.getLogger("prodflow-core.products")

KEY_TAKEN = "Product key already exists"


def _paths(product: models.Product) -> tuple[str, ...]:
    return (
        "/dashboard",
        f"/organizations/{product.organization_id}/products",
        f"/products/{product.id}",
    )


def _team_in_org(db: Session, team_id: UUID, organization_id: UUID) -> models.Team:
    team = get_live(db, models.Team, team_id, "Team not found")
    if team.organization_id != organization_id:
        raise NotFoundError("Team not found")
    return team


def list_products(db: Session, organization_id: UUID, team_id: Optional[UUID] = None) -> list[models.Product]:
    query = db.query(models.Product).filter(
        models.Product.organization_id == organization_id,
        models.Product.deleted_at.is_(None),
    )
    if team_id is not None:
        query = query.filter(models.Product.teams.any(models.Team.id == team_id))
    return query.order_by(models.Product.name).all()


def list_features(db: Session, product_id: UUID) -> list[models.Feature]:
    return (
        db.query(models.Feature)
        .filter(models.Feature.product_id == product_id, models.Feature.deleted_at.is_(None))
        .order_by(models.Feature.created_at)
        .all()
    )


def count_product_items(db: Session, product_id: UUID) -> int:
    """Live features, ideas, experiments and releases that block deleting a product."""
    total = 0
    for model in (models.Feature, models.Idea, models.Experiment, models.Release):
        total += (
            db.query(model)
            .filter(model.product_id == product_id, model.deleted_at.is_(None))
            .count()
        )
    return total


@action("Failed to create product")
def create_product(ctx: ActionContext, organization_id: UUID, form) -> models.Product:
    """
    Create a product, optionally assigned to one of the organization's teams.

    Product keys are unique across all organizations.
    """
    data = parse_form(schemas.ProductCreate, form)
    db = ctx.db
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    if db.query(models.Product.id).filter(models.Product.key == data.key).first():
        raise ConflictError(KEY_TAKEN)

    product = models.Product(
        organization_id=organization_id,
        name=data.name,
        key=data.key,
        description=data.description,
        vision=data.vision,
        lifecycle=data.lifecycle,
        settings={},
        metrics={},
    )
    if data.team_id is not None:
        product.teams.append(_team_in_org(db, data.team_id, organization_id))
    db.add(product)
    flush_unique(db, KEY_TAKEN)

    ctx.audit(organization_id, "PRODUCT_CREATED", "PRODUCT", product.id,
              metadata={"name": product.name, "key": product.key})
    ctx.revalidate(*_paths(product))
    logger.debug(f"Created product {product.id} ({product.key})")
    return product


@action("Failed to update product")
def update_product(ctx: ActionContext, product_id: UUID, form) -> models.Product:
    data = parse_form(schemas.ProductUpdate, form)
    db = ctx.db
    product = get_product(db, product_id)
    require_role(db, ctx.user_id, product.organization_id, MANAGERS)

    values = data.model_dump(exclude_unset=True)
    team_id = values.pop("team_id", None)

    if "key" in values and values["key"] != product.key:
        taken = (
            db.query(models.Product.id)
            .filter(models.Product.key == values["key"], models.Product.id != product.id)
            .first()
        )
        if taken:
            raise ConflictError(KEY_TAKEN)

    changes = apply_changes(product, values)
    if team_id is not None:
        team = _team_in_org(db, team_id, product.organization_id)
        previous = [t.id for t in product.teams]
        if previous != [team.id]:
            product.teams = [team]
            changes["teams"] = {"from": jsonable(previous), "to": [str(team.id)]}
    flush_unique(db, KEY_TAKEN)

    ctx.audit(product.organization_id, "PRODUCT_UPDATED", "PRODUCT", product.id, changes=changes)
    ctx.revalidate(*_paths(product))
    return product


@action("Failed to update product lifecycle")
def update_product_lifecycle(ctx: ActionContext, product_id: UUID, form) -> models.Product:
    """Move a product to another lifecycle stage (any stage to any stage)."""
    data = parse_form(schemas.LifecycleForm, form)
    db = ctx.db
    product = get_product(db, product_id)
    require_role(db, ctx.user_id, product.organization_id, MANAGERS)

    changes = apply_changes(product, {"lifecycle": data.lifecycle})
    db.flush()

    ctx.audit(product.organization_id, "PRODUCT_LIFECYCLE_UPDATED", "PRODUCT", product.id, changes=changes)
    ctx.revalidate(*_paths(product))
    return product


@action("Failed to delete product")
def delete_product(ctx: ActionContext, product_id: UUID) -> None:
    db = ctx.db
    product = get_product(db, product_id)
    require_role(db, ctx.user_id, product.organization_id, ADMIN_ONLY)

    items = count_product_items(db, product.id)
    if items > 0:
        raise BusinessRuleViolation(
            f"Cannot delete product with {items} associated items. "
            "Please clean up features, ideas, experiments, and releases first."
        )

    product.soft_delete()
    ctx.audit(product.organization_id, "PRODUCT_DELETED", "PRODUCT", product.id,
              metadata={"name": product.name, "key": product.key})
    ctx.revalidate(*_paths(product))


@action("Failed to create feature")
def create_feature(ctx: ActionContext, product_id: UUID, form) -> models.Feature:
    data = parse_form(schemas.FeatureCreate, form)
    db = ctx.db
    product = get_product(db, product_id)
    require_role(db, ctx.user_id, product.organization_id, WRITERS)

    if data.epic_id is not None:
        get_product_child(db, models.Epic, data.epic_id, product.id, "Epic not found")

    feature = models.Feature(product_id=product.id, **data.model_dump())
    db.add(feature)
    db.flush()

    ctx.audit(product.organization_id, "FEATURE_CREATED", "FEATURE", feature.id,
              metadata={"title": feature.title})
    ctx.revalidate(f"/products/{product.id}/features")
    return feature


@action("Failed to delete feature")
def delete_feature(ctx: ActionContext, feature_id: UUID) -> None:
    db = ctx.db
    feature = get_live(db, models.Feature, feature_id, "Feature not found")
    product = feature.product
    require_role(db, ctx.user_id, product.organization_id, MANAGERS)

    feature.soft_delete()
    feature.release_id = None
    ctx.audit(product.organization_id, "FEATURE_DELETED", "FEATURE", feature.id,
              metadata={"title": feature.title})
    ctx.revalidate(f"/products/{product.id}/features")
