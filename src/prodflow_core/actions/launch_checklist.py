"""Launch checklist actions and templates."""
import logging
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import MANAGERS, WRITERS, require_role
from ..forms import parse_form
from ..models import ChecklistCategory as C
from ..models import utcnow
from ..results import ActionContext, action
from .common import apply_changes, get_live, get_product

logger = logging.getLogger("prodflow-core.launch_checklist")

# (title, category, required)
CHECKLIST_TEMPLATES: dict[str, list[tuple[str, C, bool]]] = {
    "BASIC": [
        ("Code review completed", C.PREPARATION, True),
        ("Unit tests passing", C.TESTING, True),
        ("Integration tests passing", C.TESTING, True),
        ("Production deployment completed", C.DEPLOYMENT, True),
        ("Health checks passing", C.MONITORING, True),
        ("Release notes published", C.COMMUNICATION, False),
        ("Team notified of release", C.COMMUNICATION, False),
        ("Rollback plan prepared", C.ROLLBACK, True),
    ],
    "COMPREHENSIVE": [
        ("Code review completed", C.PREPARATION, True),
        ("Security review completed", C.PREPARATION, True),
        ("Database migrations tested", C.PREPARATION, True),
        ("Feature flags configured", C.PREPARATION, False),
        ("Unit tests passing (95%+ coverage)", C.TESTING, True),
        ("Integration tests passing", C.TESTING, True),
        ("End-to-end tests passing", C.TESTING, True),
        ("Performance tests completed", C.TESTING, False),
        ("Staging deployment successful", C.DEPLOYMENT, True),
        ("Production deployment completed", C.DEPLOYMENT, True),
        ("Load balancer configuration updated", C.DEPLOYMENT, False),
        ("Application health checks passing", C.MONITORING, True),
        ("Error monitoring configured", C.MONITORING, True),
        ("Performance monitoring active", C.MONITORING, False),
        ("Release notes published", C.COMMUNICATION, True),
        ("Customer support team briefed", C.COMMUNICATION, True),
        ("Marketing team notified", C.COMMUNICATION, False),
        ("Rollback procedure documented", C.ROLLBACK, True),
        ("Database rollback tested", C.ROLLBACK, True),
    ],
    "ENTERPRISE": [
        ("Code review completed by lead developer", C.PREPARATION, True),
        ("Security review by security team", C.PREPARATION, True),
        ("Architecture review completed", C.PREPARATION, True),
        ("Database migrations tested in staging", C.PREPARATION, True),
        ("Feature flags and toggles configured", C.PREPARATION, True),
        ("Dependency security scan completed", C.PREPARATION, True),
        ("Unit tests passing (98%+ coverage)", C.TESTING, True),
        ("Integration tests passing", C.TESTING, True),
        ("End-to-end tests passing", C.TESTING, True),
        ("Performance tests meet SLA requirements", C.TESTING, True),
        ("Security penetration testing completed", C.TESTING, True),
        ("Accessibility testing completed", C.TESTING, True),
        ("Staging deployment successful", C.DEPLOYMENT, True),
        ("Blue-green deployment strategy executed", C.DEPLOYMENT, True),
        ("Production deployment completed", C.DEPLOYMENT, True),
        ("CDN cache invalidation completed", C.DEPLOYMENT, False),
        ("Application health checks passing", C.MONITORING, True),
        ("Error monitoring and alerting active", C.MONITORING, True),
        ("Performance monitoring and dashboards active", C.MONITORING, True),
        ("Security monitoring configured", C.MONITORING, True),
        ("Business metrics tracking active", C.MONITORING, False),
        ("Release notes published", C.COMMUNICATION, True),
        ("Customer support team trained and briefed", C.COMMUNICATION, True),
        ("Sales team notified of new features", C.COMMUNICATION, True),
        ("Marketing team provided with launch materials", C.COMMUNICATION, True),
        ("Executive stakeholders informed", C.COMMUNICATION, True),
        ("Customer communication plan executed", C.COMMUNICATION, False),
        ("Comprehensive rollback procedure documented", C.ROLLBACK, True),
        ("Database rollback tested and verified", C.ROLLBACK, True),
        ("Infrastructure rollback plan prepared", C.ROLLBACK, True),
        ("Emergency contact list updated", C.ROLLBACK, True),
    ],
}


def _paths(release: models.Release) -> tuple[str, ...]:
    return (f"/releases/{release.id}/checklist", f"/releases/{release.id}")


def _load_release(db: Session, release_id: UUID) -> models.Release:
    release = get_live(db, models.Release, release_id, "Release not found")
    get_product(db, release.product_id)
    return release


def _load_item(db: Session, item_id: UUID) -> models.LaunchChecklistItem:
    item = get_live(db, models.LaunchChecklistItem, item_id, "Checklist item not found")
    _load_release(db, item.release_id)
    return item


def list_checklist(db: Session, release_id: UUID) -> list[models.LaunchChecklistItem]:
    return (
        db.query(models.LaunchChecklistItem)
        .filter(
            models.LaunchChecklistItem.release_id == release_id,
            models.LaunchChecklistItem.deleted_at.is_(None),
        )
        .order_by(models.LaunchChecklistItem.created_at, models.LaunchChecklistItem.title)
        .all()
    )


def checklist_progress(db: Session, release_id: UUID) -> dict:
    """
    Completion summary for a release's checklist.

    ``ready`` is True once every required item is completed.
    """
    items = list_checklist(db, release_id)
    required = [i for i in items if i.is_required]
    completed = [i for i in items if i.is_completed]
    required_completed = [i for i in required if i.is_completed]
    percent = round(len(completed) / len(items) * 100, 1) if items else 0.0
    return {
        "total": len(items),
        "completed": len(completed),
        "required": len(required),
        "required_completed": len(required_completed),
        "percent": percent,
        "ready": len(required_completed) == len(required),
    }


@action("Failed to create checklist item")
def create_checklist_item(ctx: ActionContext, release_id: UUID, form) -> models.LaunchChecklistItem:
    data = parse_form(schemas.ChecklistItemCreate, form)
    db = ctx.db
    release = _load_release(db, release_id)
    organization_id = release.product.organization_id
    require_role(db, ctx.user_id, organization_id, WRITERS)

    item = models.LaunchChecklistItem(release_id=release.id, **data.model_dump())
    db.add(item)
    db.flush()

    ctx.audit(organization_id, "CHECKLIST_ITEM_CREATED", "LAUNCH_CHECKLIST_ITEM", item.id,
              metadata={"title": item.title, "category": item.category.value, "releaseId": str(release.id)})
    ctx.revalidate(*_paths(release))
    return item


@action("Failed to update checklist item")
def update_checklist_item(ctx: ActionContext, item_id: UUID, form) -> models.LaunchChecklistItem:
    data = parse_form(schemas.ChecklistItemUpdate, form)
    db = ctx.db
    item = _load_item(db, item_id)
    organization_id = item.release.product.organization_id
    require_role(db, ctx.user_id, organization_id, WRITERS)

    changes = apply_changes(item, data.model_dump(exclude_unset=True))
    db.flush()

    ctx.audit(organization_id, "CHECKLIST_ITEM_UPDATED", "LAUNCH_CHECKLIST_ITEM", item.id, changes=changes)
    ctx.revalidate(*_paths(item.release))
    return item


@action("Failed to toggle checklist item")
def toggle_checklist_item(ctx: ActionContext, item_id: UUID) -> models.LaunchChecklistItem:
    """Flip completion; completing stamps ``completed_at``, reopening clears it."""
    db = ctx.db
    item = _load_item(db, item_id)
    organization_id = item.release.product.organization_id
    require_role(db, ctx.user_id, organization_id, WRITERS)

    item.is_completed = not item.is_completed
    item.completed_at = utcnow() if item.is_completed else None
    db.flush()

    ctx.audit(organization_id, "CHECKLIST_ITEM_TOGGLED", "LAUNCH_CHECKLIST_ITEM", item.id,
              metadata={"title": item.title, "isCompleted": item.is_completed})
    ctx.revalidate(*_paths(item.release))
    return item


@action("Failed to delete checklist item")
def delete_checklist_item(ctx: ActionContext, item_id: UUID) -> None:
    db = ctx.db
    item = _load_item(db, item_id)
    organization_id = item.release.product.organization_id
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    item.soft_delete()
    ctx.audit(organization_id, "CHECKLIST_ITEM_DELETED", "LAUNCH_CHECKLIST_ITEM", item.id,
              metadata={"title": item.title})
    ctx.revalidate(*_paths(item.release))


@action("Failed to create checklist from template")
def create_checklist_from_template(ctx: ActionContext, release_id: UUID, form) -> list[models.LaunchChecklistItem]:
    """Add every item of a BASIC, COMPREHENSIVE or ENTERPRISE template to a release."""
    data = parse_form(schemas.ChecklistTemplateForm, form)
    db = ctx.db
    release = _load_release(db, release_id)
    organization_id = release.product.organization_id
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    items = [
        models.LaunchChecklistItem(
            release_id=release.id,
            title=title,
            category=category,
            is_required=required,
        )
        for title, category, required in CHECKLIST_TEMPLATES[data.template]
    ]
    db.add_all(items)
    db.flush()

    ctx.audit(organization_id, "CHECKLIST_TEMPLATE_APPLIED", "RELEASE", release.id,
              metadata={"template": data.template, "itemCount": len(items)})
    ctx.revalidate(*_paths(release))
    return items
