"""Task (backlog item) actions."""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import MANAGERS, WRITERS, require_role
from ..errors import BusinessRuleViolation, NotFoundError
from ..forms import parse_form
from ..models import SprintStatus
from ..results import ActionContext, action
from .common import apply_changes, get_live, get_org_membership, get_product

logger = logging.getLogger("prodflow-core.tasks")

ENTITY = "TASK"


def _paths(task: models.Task) -> tuple[str, ...]:
    paths = [f"/products/{task.product_id}/backlog", f"/tasks/{task.id}"]
    if task.sprint_id is not None:
        paths.append(f"/sprints/{task.sprint_id}")
    return tuple(paths)


def _load(db: Session, task_id: UUID) -> tuple[models.Task, UUID]:
    """Return the live task and its organization id."""
    task = get_live(db, models.Task, task_id, "Task not found")
    product = get_product(db, task.product_id)
    return task, product.organization_id


def _open_sprint(db: Session, sprint_id: UUID, product_id: UUID) -> models.Sprint:
    sprint = get_live(db, models.Sprint, sprint_id, "Sprint not found")
    if sprint.product_id != product_id:
        raise NotFoundError("Sprint not found")
    if sprint.status in (SprintStatus.COMPLETED, SprintStatus.CANCELLED):
        raise BusinessRuleViolation("Cannot add tasks to completed or cancelled sprint")
    return sprint


def _check_assignee(db: Session, assignee_id: UUID, organization_id: UUID) -> None:
    if get_org_membership(db, assignee_id, organization_id) is None:
        raise BusinessRuleViolation("Assignee is not a member of this organization")


def _check_feature(db: Session, feature_id: UUID, product_id: UUID) -> None:
    feature = get_live(db, models.Feature, feature_id, "Feature not found")
    if feature.product_id != product_id:
        raise NotFoundError("Feature not found")


def list_tasks(
    db: Session,
    product_id: UUID,
    sprint_id: Optional[UUID] = None,
    backlog_only: bool = False,
) -> list[models.Task]:
    """
    Live tasks of a product.

    Args:
        sprint_id: Only tasks in this sprint
        backlog_only: Only tasks without a sprint (ignored when ``sprint_id`` is set)
    """
    query = db.query(models.Task).filter(
        models.Task.product_id == product_id,
        models.Task.deleted_at.is_(None),
    )
    if sprint_id is not None:
        query = query.filter(models.Task.sprint_id == sprint_id)
    elif backlog_only:
        query = query.filter(models.Task.sprint_id.is_(None))
    return query.order_by(models.Task.created_at).all()


@action("Failed to create task")
def create_task(ctx: ActionContext, product_id: UUID, form) -> models.Task:
    data = parse_form(schemas.TaskCreate, form)
    db = ctx.db
    product = get_product(db, product_id)
    require_role(db, ctx.user_id, product.organization_id, WRITERS)

    if data.sprint_id is not None:
        _open_sprint(db, data.sprint_id, product.id)
    if data.assignee_id is not None:
        _check_assignee(db, data.assignee_id, product.organization_id)
    if data.feature_id is not None:
        _check_feature(db, data.feature_id, product.id)

    task = models.Task(product_id=product.id, status=models.TaskStatus.NEW, **data.model_dump())
    db.add(task)
    db.flush()

    ctx.audit(product.organization_id, "TASK_CREATED", ENTITY, task.id,
              metadata={"title": task.title, "type": task.type.value})
    ctx.revalidate(*_paths(task))
    return task


@action("Failed to update task")
def update_task(ctx: ActionContext, task_id: UUID, form) -> models.Task:
    data = parse_form(schemas.TaskUpdate, form)
    db = ctx.db
    task, organization_id = _load(db, task_id)
    require_role(db, ctx.user_id, organization_id, WRITERS)

    values = data.model_dump(exclude_unset=True)
    if values.get("feature_id") is not None:
        _check_feature(db, values["feature_id"], task.product_id)

    changes = apply_changes(task, values)
    db.flush()

    ctx.audit(organization_id, "TASK_UPDATED", ENTITY, task.id, changes=changes)
    ctx.revalidate(*_paths(task))
    return task


@action("Failed to update task status")
def update_task_status(ctx: ActionContext, task_id: UUID, form) -> models.Task:
    data = parse_form(schemas.TaskStatusForm, form)
    db = ctx.db
    task, organization_id = _load(db, task_id)
    require_role(db, ctx.user_id, organization_id, WRITERS)

    changes = apply_changes(task, {"status": data.status})
    db.flush()

    ctx.audit(organization_id, "TASK_STATUS_UPDATED", ENTITY, task.id, changes=changes)
    ctx.revalidate(*_paths(task))
    return task


@action("Failed to update task assignee")
def update_task_assignee(ctx: ActionContext, task_id: UUID, form) -> models.Task:
    data = parse_form(schemas.TaskAssigneeForm, form)
    db = ctx.db
    task, organization_id = _load(db, task_id)
    require_role(db, ctx.user_id, organization_id, WRITERS)

    if data.assignee_id is not None:
        _check_assignee(db, data.assignee_id, organization_id)

    changes = apply_changes(task, {"assignee_id": data.assignee_id})
    db.flush()

    ctx.audit(organization_id, "TASK_ASSIGNED", ENTITY, task.id, changes=changes)
    ctx.revalidate(*_paths(task))
    return task


@action("Failed to move task")
def move_task_to_sprint(ctx: ActionContext, task_id: UUID, form) -> models.Task:
    """Move a task into an open sprint of its product, or to the backlog."""
    data = parse_form(schemas.TaskSprintForm, form)
    db = ctx.db
    task, organization_id = _load(db, task_id)
    require_role(db, ctx.user_id, organization_id, WRITERS)

    if data.sprint_id is not None:
        _open_sprint(db, data.sprint_id, task.product_id)
    elif task.sprint is not None and task.sprint.status == SprintStatus.COMPLETED:
        raise BusinessRuleViolation("Cannot remove tasks from completed sprint")

    previous_paths = _paths(task)
    changes = apply_changes(task, {"sprint_id": data.sprint_id})
    db.flush()

    ctx.audit(organization_id, "TASK_MOVED", ENTITY, task.id, changes=changes)
    ctx.revalidate(*previous_paths, *_paths(task))
    return task


@action("Failed to update task time")
def update_task_time(ctx: ActionContext, task_id: UUID, form) -> models.Task:
    data = parse_form(schemas.TaskTimeForm, form)
    db = ctx.db
    task, organization_id = _load(db, task_id)
    require_role(db, ctx.user_id, organization_id, WRITERS)

    changes = apply_changes(task, data.model_dump(exclude_unset=True))
    db.flush()

    ctx.audit(organization_id, "TASK_TIME_UPDATED", ENTITY, task.id, changes=changes)
    ctx.revalidate(*_paths(task))
    return task


@action("Failed to delete task")
def delete_task(ctx: ActionContext, task_id: UUID) -> None:
    db = ctx.db
    task, organization_id = _load(db, task_id)
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    task.soft_delete()
    ctx.audit(organization_id, "TASK_DELETED", ENTITY, task.id, metadata={"title": task.title})
    ctx.revalidate(*_paths(task))
