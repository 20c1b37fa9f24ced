"""Release and changelog actions."""
import logging
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import MANAGERS, WRITERS, require_role
from ..errors import NotFoundError
from ..forms import parse_form
from ..models import ReleaseStatus, utcnow
from ..results import ActionContext, action
from ..state_machine import validate_release_transition
from .common import apply_changes, get_live, get_product, jsonable

logger = logging.getLogger("prodflow-core.releases")


def _paths(release: models.Release) -> tuple[str, ...]:
    return (f"/products/{release.product_id}/releases", f"/releases/{release.id}")


def _load(db: Session, release_id: UUID) -> models.Release:
    release = get_live(db, models.Release, release_id, "Release not found")
    get_product(db, release.product_id)
    return release


def _set_status(release: models.Release, status: ReleaseStatus) -> dict:
    """Apply a guarded status change; reaching RELEASED stamps the release date."""
    validate_release_transition(release.status, status)
    values = {"status": status}
    if status == ReleaseStatus.RELEASED and release.status != ReleaseStatus.RELEASED:
        values["release_date"] = utcnow()
    return apply_changes(release, values)


def list_releases(db: Session, product_id: UUID) -> list[models.Release]:
    return (
        db.query(models.Release)
        .filter(models.Release.product_id == product_id, models.Release.deleted_at.is_(None))
        .order_by(models.Release.created_at.desc())
        .all()
    )


def list_changelogs(db: Session, product_id: UUID, visibility=None) -> list[models.Changelog]:
    query = db.query(models.Changelog).filter(
        models.Changelog.product_id == product_id,
        models.Changelog.deleted_at.is_(None),
    )
    if visibility is not None:
        query = query.filter(models.Changelog.visibility == visibility)
    return query.order_by(models.Changelog.created_at.desc()).all()


@action("Failed to create release")
def create_release(ctx: ActionContext, product_id: UUID, form) -> models.Release:
    """
    Create a planned release and link the given features to it.

    Only live features of the same product are linked; other ids are ignored.
    """
    data = parse_form(schemas.ReleaseCreate, form)
    db = ctx.db
    product = get_product(db, product_id)
    require_role(db, ctx.user_id, product.organization_id, MANAGERS)

    release = models.Release(
        product_id=product.id,
        name=data.name,
        version=data.version,
        description=data.description,
        notes=data.notes,
        type=data.type,
        status=ReleaseStatus.PLANNED,
        release_date=data.release_date,
        artifacts=[],
    )
    db.add(release)
    db.flush()

    linked = []
    if data.feature_ids:
        features = (
            db.query(models.Feature)
            .filter(
                models.Feature.id.in_(data.feature_ids),
                models.Feature.product_id == product.id,
                models.Feature.deleted_at.is_(None),
            )
            .all()
        )
        for feature in features:
            feature.release_id = release.id
            linked.append(str(feature.id))
        db.flush()

    ctx.audit(product.organization_id, "RELEASE_CREATED", "RELEASE", release.id,
              metadata={"name": release.name, "version": release.version, "featureIds": linked})
    ctx.revalidate(*_paths(release))
    return release


@action("Failed to update release")
def update_release(ctx: ActionContext, release_id: UUID, form) -> models.Release:
    data = parse_form(schemas.ReleaseUpdate, form)
    db = ctx.db
    release = _load(db, release_id)
    organization_id = release.product.organization_id
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    values = data.model_dump(exclude_unset=True)
    status = values.pop("status", None)
    changes = apply_changes(release, values)
    if status is not None:
        changes.update(_set_status(release, status))
    db.flush()

    ctx.audit(organization_id, "RELEASE_UPDATED", "RELEASE", release.id, changes=changes)
    ctx.revalidate(*_paths(release))
    return release


@action("Failed to update release status")
def update_release_status(ctx: ActionContext, release_id: UUID, form) -> models.Release:
    data = parse_form(schemas.ReleaseStatusForm, form)
    db = ctx.db
    release = _load(db, release_id)
    organization_id = release.product.organization_id
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    changes = _set_status(release, data.status)
    db.flush()

    ctx.audit(organization_id, "RELEASE_STATUS_UPDATED", "RELEASE", release.id, changes=changes)
    ctx.revalidate(*_paths(release))
    return release


@action("Failed to deploy release")
def deploy_release(ctx: ActionContext, release_id: UUID) -> models.Release:
    """Mark a release RELEASED as of now."""
    db = ctx.db
    release = _load(db, release_id)
    organization_id = release.product.organization_id
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    changes = _set_status(release, ReleaseStatus.RELEASED)
    db.flush()

    ctx.audit(organization_id, "RELEASE_DEPLOYED", "RELEASE", release.id, changes=changes,
              metadata={"version": release.version, "releaseDate": jsonable(release.release_date)})
    ctx.revalidate(*_paths(release), f"/products/{release.product_id}/changelog")
    return release


@action("Failed to delete release")
def delete_release(ctx: ActionContext, release_id: UUID) -> None:
    """Soft-delete a release and unlink its features."""
    db = ctx.db
    release = _load(db, release_id)
    organization_id = release.product.organization_id
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    db.query(models.Feature).filter(models.Feature.release_id == release.id).update(
        {models.Feature.release_id: None}, synchronize_session="fetch"
    )
    release.soft_delete()

    ctx.audit(organization_id, "RELEASE_DELETED", "RELEASE", release.id,
              metadata={"name": release.name, "version": release.version})
    ctx.revalidate(*_paths(release))


@action("Failed to add feature to release")
def add_feature_to_release(ctx: ActionContext, release_id: UUID, form) -> models.Feature:
    data = parse_form(schemas.ReleaseFeatureForm, form)
    db = ctx.db
    release = _load(db, release_id)
    organization_id = release.product.organization_id
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    feature = get_live(db, models.Feature, data.feature_id, "Feature not found")
    if feature.product_id != release.product_id:
        raise NotFoundError("Feature not found")

    changes = apply_changes(feature, {"release_id": release.id})
    db.flush()

    ctx.audit(organization_id, "RELEASE_FEATURE_ADDED", "RELEASE", release.id,
              changes=changes, metadata={"featureId": str(feature.id)})
    ctx.revalidate(*_paths(release))
    return feature


@action("Failed to create changelog")
def create_changelog(ctx: ActionContext, product_id: UUID, form) -> models.Changelog:
    data = parse_form(schemas.ChangelogCreate, form)
    db = ctx.db
    product = get_product(db, product_id)
    require_role(db, ctx.user_id, product.organization_id, WRITERS)

    if data.release_id is not None:
        release = get_live(db, models.Release, data.release_id, "Release not found")
        if release.product_id != product.id:
            raise NotFoundError("Release not found")

    changelog = models.Changelog(product_id=product.id, **data.model_dump())
    db.add(changelog)
    db.flush()

    ctx.audit(product.organization_id, "CHANGELOG_CREATED", "CHANGELOG", changelog.id,
              metadata={"title": changelog.title, "type": changelog.type.value})
    ctx.revalidate(f"/products/{product.id}/changelog")
    return changelog
