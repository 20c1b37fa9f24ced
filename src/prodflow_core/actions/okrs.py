"""OKR and key result actions."""
import logging
from typing import Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import MANAGERS, WRITERS, require_role
from ..errors import BusinessRuleViolation
from ..forms import parse_form
from ..results import ActionContext, action
from ..state_machine import validate_okr_transition
from .common import apply_changes, get_live, get_org_membership, get_product

logger = logging.getLogger("prodflow-core.okrs")


def compute_progress(key_results: Iterable) -> float:
    """
    Mean completion of key results, each capped at 1.

    A key result with a non-positive target counts as 0. Returns 0 for an OKR
    without key results.
    """
    ratios = []
    for kr in key_results:
        if kr.target is None or kr.target <= 0:
            ratios.append(0.0)
        else:
            ratios.append(max(0.0, min((kr.current or 0) / kr.target, 1.0)))
    if not ratios:
        return 0.0
    return sum(ratios) / len(ratios)


def live_key_results(okr: models.OKR) -> list[models.KeyResult]:
    return [kr for kr in okr.key_results if kr.deleted_at is None]


def _paths(okr: models.OKR) -> tuple[str, ...]:
    return (f"/products/{okr.product_id}/okrs", f"/okrs/{okr.id}")


def _load(db: Session, okr_id: UUID) -> models.OKR:
    okr = get_live(db, models.OKR, okr_id, "OKR not found")
    get_product(db, okr.product_id)
    return okr


def _check_owner(db: Session, owner_id: UUID, organization_id: UUID) -> None:
    if get_org_membership(db, owner_id, organization_id) is None:
        raise BusinessRuleViolation("Owner must be a member of this organization")


def list_okrs(db: Session, product_id: UUID, quarter: str = None, year: int = None) -> list[models.OKR]:
    query = db.query(models.OKR).filter(
        models.OKR.product_id == product_id,
        models.OKR.deleted_at.is_(None),
    )
    if quarter:
        query = query.filter(models.OKR.quarter == quarter)
    if year:
        query = query.filter(models.OKR.year == year)
    return query.order_by(models.OKR.year.desc(), models.OKR.quarter.desc(), models.OKR.created_at).all()


@action("Failed to create OKR")
def create_okr(ctx: ActionContext, product_id: UUID, form) -> models.OKR:
    """Create an OKR together with its key results (at least one)."""
    data = parse_form(schemas.OKRCreate, form)
    db = ctx.db
    product = get_product(db, product_id)
    require_role(db, ctx.user_id, product.organization_id, MANAGERS)
    _check_owner(db, data.owner_id, product.organization_id)

    okr = models.OKR(
        product_id=product.id,
        owner_id=data.owner_id,
        objective=data.objective,
        description=data.description,
        quarter=data.quarter,
        year=data.year,
        status=models.OKRStatus.ACTIVE,
        progress=0.0,
    )
    for item in data.key_results:
        okr.key_results.append(models.KeyResult(
            description=item.description,
            target=item.target,
            current=item.current,
            unit=item.unit,
            type=item.type,
        ))
    okr.progress = compute_progress(okr.key_results)
    db.add(okr)
    db.flush()

    ctx.audit(product.organization_id, "OKR_CREATED", "OKR", okr.id,
              metadata={"objective": okr.objective, "keyResults": len(data.key_results)})
    ctx.revalidate(*_paths(okr))
    return okr


@action("Failed to update OKR")
def update_okr(ctx: ActionContext, okr_id: UUID, form) -> models.OKR:
    data = parse_form(schemas.OKRUpdate, form)
    db = ctx.db
    okr = _load(db, okr_id)
    organization_id = okr.product.organization_id
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    values = data.model_dump(exclude_unset=True)
    if "status" in values:
        validate_okr_transition(okr.status, values["status"])
    if "owner_id" in values:
        _check_owner(db, values["owner_id"], organization_id)

    changes = apply_changes(okr, values)
    db.flush()

    ctx.audit(organization_id, "OKR_UPDATED", "OKR", okr.id, changes=changes)
    ctx.revalidate(*_paths(okr))
    return okr


@action("Failed to delete OKR")
def delete_okr(ctx: ActionContext, okr_id: UUID) -> None:
    """Soft-delete an OKR and its key results."""
    db = ctx.db
    okr = _load(db, okr_id)
    organization_id = okr.product.organization_id
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    for kr in live_key_results(okr):
        kr.soft_delete()
    okr.soft_delete()

    ctx.audit(organization_id, "OKR_DELETED", "OKR", okr.id, metadata={"objective": okr.objective})
    ctx.revalidate(*_paths(okr))


@action("Failed to update key result")
def update_key_result(ctx: ActionContext, key_result_id: UUID, form) -> models.KeyResult:
    """Update a key result and recompute its OKR's progress."""
    data = parse_form(schemas.KeyResultUpdate, form)
    db = ctx.db
    key_result = get_live(db, models.KeyResult, key_result_id, "Key result not found")
    okr = _load(db, key_result.okr_id)
    organization_id = okr.product.organization_id
    require_role(db, ctx.user_id, organization_id, WRITERS)

    changes = apply_changes(key_result, data.model_dump(exclude_unset=True))
    previous = okr.progress
    okr.progress = compute_progress(live_key_results(okr))
    db.flush()

    ctx.audit(organization_id, "KEY_RESULT_UPDATED", "KEY_RESULT", key_result.id,
              changes=changes, metadata={"okrId": str(okr.id), "progress": okr.progress,
                                         "previousProgress": previous})
    ctx.revalidate(*_paths(okr))
    return key_result


@action("Failed to update OKR progress")
def recalculate_okr_progress(ctx: ActionContext, okr_id: UUID) -> models.OKR:
    db = ctx.db
    okr = _load(db, okr_id)
    organization_id = okr.product.organization_id
    require_role(db, ctx.user_id, organization_id, WRITERS)

    changes = apply_changes(okr, {"progress": compute_progress(live_key_results(okr))})
    db.flush()

    ctx.audit(organization_id, "OKR_PROGRESS_UPDATED", "OKR", okr.id, changes=changes)
    ctx.revalidate(*_paths(okr))
    return okr
