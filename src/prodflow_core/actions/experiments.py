"""Experiment actions: hypotheses, variants and their run status."""
import logging
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import MANAGERS, WRITERS, require_role
from ..errors import BusinessRuleViolation
from ..forms import parse_form
from ..models import ExperimentStatus, utcnow
from ..results import ActionContext, action
from .common import apply_changes, get_live, get_org_membership, get_product

logger = logging.getLogger("prodflow-core.experiments")

ENTITY = "EXPERIMENT"


def _paths(experiment: models.Experiment) -> tuple[str, ...]:
    return (f"/products/{experiment.product_id}/experiments", f"/experiments/{experiment.id}")


def _load(db: Session, experiment_id: UUID) -> tuple[models.Experiment, UUID]:
    experiment = get_live(db, models.Experiment, experiment_id, "Experiment not found")
    product = get_product(db, experiment.product_id)
    return experiment, product.organization_id


def _check_owner(db: Session, owner_id: UUID, organization_id: UUID) -> None:
    if get_org_membership(db, owner_id, organization_id) is None:
        raise BusinessRuleViolation("Owner must be a member of this organization")


def _stamp_dates(experiment: models.Experiment, status: ExperimentStatus) -> dict:
    """Running stamps the start and completing stamps the end, unless already set."""
    values = {"status": status}
    if status == ExperimentStatus.RUNNING and experiment.start_date is None:
        values["start_date"] = utcnow()
    if status == ExperimentStatus.COMPLETED and experiment.end_date is None:
        values["end_date"] = utcnow()
    return values


def list_experiments(db: Session, product_id: UUID) -> list[models.Experiment]:
    return (
        db.query(models.Experiment)
        .filter(models.Experiment.product_id == product_id, models.Experiment.deleted_at.is_(None))
        .order_by(models.Experiment.created_at.desc())
        .all()
    )


@action("Failed to create experiment")
def create_experiment(ctx: ActionContext, product_id: UUID, form) -> models.Experiment:
    """Create a DRAFT experiment. The owner defaults to the actor."""
    data = parse_form(schemas.ExperimentCreate, form)
    db = ctx.db
    product = get_product(db, product_id)
    require_role(db, ctx.user_id, product.organization_id, WRITERS)

    values = data.model_dump()
    if values["owner_id"] is None:
        values["owner_id"] = ctx.user_id
    else:
        _check_owner(db, values["owner_id"], product.organization_id)

    experiment = models.Experiment(product_id=product.id, status=ExperimentStatus.DRAFT, **values)
    db.add(experiment)
    db.flush()

    ctx.audit(product.organization_id, "EXPERIMENT_CREATED", ENTITY, experiment.id, metadata={
        "name": experiment.name,
        "type": experiment.type.value,
    })
    ctx.revalidate(*_paths(experiment))
    return experiment


@action("Failed to update experiment")
def update_experiment(ctx: ActionContext, experiment_id: UUID, form) -> models.Experiment:
    data = parse_form(schemas.ExperimentUpdate, form)
    db = ctx.db
    experiment, organization_id = _load(db, experiment_id)
    require_role(db, ctx.user_id, organization_id, WRITERS)

    values = data.model_dump(exclude_unset=True)
    if values.get("owner_id") is not None:
        _check_owner(db, values["owner_id"], organization_id)
    status = values.pop("status", None)
    if status is not None:
        values = {**_stamp_dates(experiment, status), **values}

    changes = apply_changes(experiment, values)
    db.flush()

    ctx.audit(organization_id, "EXPERIMENT_UPDATED", ENTITY, experiment.id, changes=changes)
    ctx.revalidate(*_paths(experiment))
    return experiment


@action("Failed to update experiment status")
def update_experiment_status(ctx: ActionContext, experiment_id: UUID, form) -> models.Experiment:
    data = parse_form(schemas.ExperimentStatusForm, form)
    db = ctx.db
    experiment, organization_id = _load(db, experiment_id)
    require_role(db, ctx.user_id, organization_id, WRITERS)

    changes = apply_changes(experiment, _stamp_dates(experiment, data.status))
    db.flush()

    ctx.audit(organization_id, "EXPERIMENT_STATUS_UPDATED", ENTITY, experiment.id, changes=changes,
              metadata={"name": experiment.name})
    ctx.revalidate(*_paths(experiment))
    logger.info(f"Experiment {experiment.id} is now {experiment.status.value}")
    return experiment


@action("Failed to delete experiment")
def delete_experiment(ctx: ActionContext, experiment_id: UUID) -> None:
    db = ctx.db
    experiment, organization_id = _load(db, experiment_id)
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    experiment.soft_delete()
    ctx.audit(organization_id, "EXPERIMENT_DELETED", ENTITY, experiment.id, metadata={"name": experiment.name})
    ctx.revalidate(*_paths(experiment))
