"""Feature flag configuration actions (storage only, no evaluation)."""
import logging
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import MANAGERS, WRITERS, require_role
from ..errors import ConflictError, NotFoundError
from ..forms import parse_form
from ..results import ActionContext, action, flush_unique
from .common import apply_changes, get_live, get_product

logger = logging.getLogger("prodflow-core.feature_flags")

KEY_TAKEN = "A feature flag with this key already exists"


def _paths(flag: models.FeatureFlag) -> tuple[str, ...]:
    return (f"/products/{flag.product_id}/feature-flags", f"/feature-flags/{flag.id}")


def _key_taken(db: Session, key: str, exclude_id=None) -> bool:
    query = db.query(models.FeatureFlag.id).filter(
        models.FeatureFlag.key == key,
        models.FeatureFlag.deleted_at.is_(None),
    )
    if exclude_id is not None:
        query = query.filter(models.FeatureFlag.id != exclude_id)
    return query.first() is not None


def _load(db: Session, flag_id: UUID) -> models.FeatureFlag:
    flag = get_live(db, models.FeatureFlag, flag_id, "Feature flag not found")
    get_product(db, flag.product_id)
    return flag


def _check_feature(db: Session, feature_id: UUID, product_id: UUID) -> None:
    feature = get_live(db, models.Feature, feature_id, "Feature not found")
    if feature.product_id != product_id:
        raise NotFoundError("Feature not found")


def list_feature_flags(db: Session, product_id: UUID) -> list[models.FeatureFlag]:
    return (
        db.query(models.FeatureFlag)
        .filter(models.FeatureFlag.product_id == product_id, models.FeatureFlag.deleted_at.is_(None))
        .order_by(models.FeatureFlag.key)
        .all()
    )


@action("Failed to create feature flag")
def create_feature_flag(ctx: ActionContext, product_id: UUID, form) -> models.FeatureFlag:
    """Create a flag. Keys are unique among live flags; a deleted flag frees its key."""
    data = parse_form(schemas.FeatureFlagCreate, form)
    db = ctx.db
    product = get_product(db, product_id)
    require_role(db, ctx.user_id, product.organization_id, WRITERS)

    if _key_taken(db, data.key):
        raise ConflictError(KEY_TAKEN)
    if data.feature_id is not None:
        _check_feature(db, data.feature_id, product.id)

    flag = models.FeatureFlag(product_id=product.id, **data.model_dump())
    db.add(flag)
    flush_unique(db, KEY_TAKEN)

    ctx.audit(product.organization_id, "FEATURE_FLAG_CREATED", "FEATURE_FLAG", flag.id,
              metadata={"name": flag.name, "key": flag.key, "enabled": flag.enabled})
    ctx.revalidate(*_paths(flag))
    return flag


@action("Failed to update feature flag")
def update_feature_flag(ctx: ActionContext, flag_id: UUID, form) -> models.FeatureFlag:
    data = parse_form(schemas.FeatureFlagUpdate, form)
    db = ctx.db
    flag = _load(db, flag_id)
    organization_id = flag.product.organization_id
    require_role(db, ctx.user_id, organization_id, WRITERS)

    values = data.model_dump(exclude_unset=True)
    if "key" in values and values["key"] != flag.key and _key_taken(db, values["key"], exclude_id=flag.id):
        raise ConflictError(KEY_TAKEN)
    if values.get("feature_id") is not None:
        _check_feature(db, values["feature_id"], flag.product_id)

    changes = apply_changes(flag, values)
    flush_unique(db, KEY_TAKEN)

    ctx.audit(organization_id, "FEATURE_FLAG_UPDATED", "FEATURE_FLAG", flag.id, changes=changes)
    ctx.revalidate(*_paths(flag))
    return flag


@action("Failed to toggle feature flag")
def toggle_feature_flag(ctx: ActionContext, flag_id: UUID) -> models.FeatureFlag:
    db = ctx.db
    flag = _load(db, flag_id)
    organization_id = flag.product.organization_id
    require_role(db, ctx.user_id, organization_id, WRITERS)

    flag.enabled = not flag.enabled
    db.flush()

    ctx.audit(organization_id, "FEATURE_FLAG_TOGGLED", "FEATURE_FLAG", flag.id,
              metadata={"key": flag.key, "enabled": flag.enabled})
    ctx.revalidate(*_paths(flag))
    return flag


@action("Failed to update rollout")
def update_rollout(ctx: ActionContext, flag_id: UUID, form) -> models.FeatureFlag:
    """Set the rollout fraction (0 to 1 inclusive)."""
    data = parse_form(schemas.RolloutForm, form)
    db = ctx.db
    flag = _load(db, flag_id)
    organization_id = flag.product.organization_id
    require_role(db, ctx.user_id, organization_id, WRITERS)

    changes = apply_changes(flag, {"rollout": data.rollout})
    db.flush()

    ctx.audit(organization_id, "FEATURE_FLAG_ROLLOUT_UPDATED", "FEATURE_FLAG", flag.id, changes=changes)
    ctx.revalidate(*_paths(flag))
    return flag


@action("Failed to delete feature flag")
def delete_feature_flag(ctx: ActionContext, flag_id: UUID) -> None:
    db = ctx.db
    flag = _load(db, flag_id)
    organization_id = flag.product.organization_id
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    flag.soft_delete()
    ctx.audit(organization_id, "FEATURE_FLAG_DELETED", "FEATURE_FLAG", flag.id, metadata={"key": flag.key})
    ctx.revalidate(*_paths(flag))
