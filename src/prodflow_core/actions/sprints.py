"""Sprint actions.

A product has at most one ACTIVE sprint. Sprints move PLANNED -> ACTIVE through
``start_sprint`` and ACTIVE -> COMPLETED through ``complete_sprint``; both carry
their own guards. Completing records velocity as the summed effort of DONE
tasks.
"""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import MANAGERS, WRITERS, require_role
from ..errors import BusinessRuleViolation, NotFoundError
from ..forms import parse_form
from ..models import SprintStatus, TaskStatus
from ..results import ActionContext, action
from ..state_machine import validate_sprint_transition
from .common import apply_changes, get_live, get_product

logger = logging.getLogger("prodflow-core.sprints")

ENTITY = "SPRINT"


def _paths(sprint: models.Sprint) -> tuple[str, ...]:
    return (
        f"/products/{sprint.product_id}/sprints",
        f"/sprints/{sprint.id}",
        f"/products/{sprint.product_id}/backlog",
    )


def _load(db: Session, sprint_id: UUID) -> models.Sprint:
    sprint = get_live(db, models.Sprint, sprint_id, "Sprint not found")
    get_product(db, sprint.product_id)
    return sprint


def get_active_sprint(db: Session, product_id: UUID, exclude_id=None) -> Optional[models.Sprint]:
    query = db.query(models.Sprint).filter(
        models.Sprint.product_id == product_id,
        models.Sprint.status == SprintStatus.ACTIVE,
        models.Sprint.deleted_at.is_(None),
    )
    if exclude_id is not None:
        query = query.filter(models.Sprint.id != exclude_id)
    return query.first()


def sprint_tasks(db: Session, sprint_id: UUID) -> list[models.Task]:
    return (
        db.query(models.Task)
        .filter(models.Task.sprint_id == sprint_id, models.Task.deleted_at.is_(None))
        .order_by(models.Task.created_at)
        .all()
    )


def list_sprints(db: Session, product_id: UUID, status: Optional[SprintStatus] = None) -> list[models.Sprint]:
    query = db.query(models.Sprint).filter(
        models.Sprint.product_id == product_id,
        models.Sprint.deleted_at.is_(None),
    )
    if status is not None:
        query = query.filter(models.Sprint.status == status)
    return query.order_by(models.Sprint.start_date.desc()).all()


def sprint_summary(db: Session, sprint: models.Sprint) -> dict:
    """Task counts and effort totals for a sprint board."""
    tasks = sprint_tasks(db, sprint.id)
    done = [t for t in tasks if t.status == TaskStatus.DONE]
    return {
        "total_tasks": len(tasks),
        "completed_tasks": len(done),
        "total_effort": sum(t.effort or 0 for t in tasks),
        "completed_effort": sum(t.effort or 0 for t in done),
        "capacity": sprint.capacity,
    }


@action("Failed to create sprint")
def create_sprint(ctx: ActionContext, product_id: UUID, form) -> models.Sprint:
    data = parse_form(schemas.SprintCreate, form)
    db = ctx.db
    product = get_product(db, product_id)
    require_role(db, ctx.user_id, product.organization_id, MANAGERS)

    if get_active_sprint(db, product.id) is not None:
        raise BusinessRuleViolation(
            "There is already an active sprint. Complete or cancel it before creating a new one."
        )

    sprint = models.Sprint(
        product_id=product.id,
        name=data.name,
        goal=data.goal,
        start_date=data.start_date,
        end_date=data.end_date,
        capacity=data.capacity,
        status=SprintStatus.PLANNED,
    )
    db.add(sprint)
    db.flush()

    ctx.audit(product.organization_id, "CREATE", ENTITY, sprint.id,
              metadata={"name": sprint.name, "productId": str(product.id)})
    ctx.revalidate(*_paths(sprint))
    return sprint


@action("Failed to update sprint")
def update_sprint(ctx: ActionContext, sprint_id: UUID, form) -> models.Sprint:
    data = parse_form(schemas.SprintUpdate, form)
    db = ctx.db
    sprint = _load(db, sprint_id)
    organization_id = sprint.product.organization_id
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    values = data.model_dump(exclude_unset=True)
    start = values.get("start_date", sprint.start_date)
    end = values.get("end_date", sprint.end_date)
    if end <= start:
        raise BusinessRuleViolation("End date must be after start date")
    if "status" in values:
        validate_sprint_transition(sprint.status, values["status"])

    changes = apply_changes(sprint, values)
    db.flush()

    ctx.audit(organization_id, "UPDATE", ENTITY, sprint.id, changes=changes)
    ctx.revalidate(*_paths(sprint))
    return sprint


@action("Failed to start sprint")
def start_sprint(ctx: ActionContext, sprint_id: UUID) -> models.Sprint:
    """Activate a planned sprint that has tasks while no other sprint is active."""
    db = ctx.db
    sprint = _load(db, sprint_id)
    organization_id = sprint.product.organization_id
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    if sprint.status != SprintStatus.PLANNED:
        raise BusinessRuleViolation("Only planned sprints can be started")
    if get_active_sprint(db, sprint.product_id, exclude_id=sprint.id) is not None:
        raise BusinessRuleViolation("There is already an active sprint. Complete or cancel it first.")
    if not sprint_tasks(db, sprint.id):
        raise BusinessRuleViolation("Cannot start sprint without tasks. Add tasks to the sprint first.")

    sprint.status = SprintStatus.ACTIVE
    db.flush()

    ctx.audit(organization_id, "START", ENTITY, sprint.id, metadata={"name": sprint.name})
    ctx.revalidate(*_paths(sprint))
    return sprint


@action("Failed to complete sprint")
def complete_sprint(ctx: ActionContext, sprint_id: UUID, form=None) -> models.Sprint:
    """
    Close an active sprint.

    Velocity is the summed effort of DONE tasks. Unfinished tasks stay in the
    sprint unless ``move_to_backlog`` is requested explicitly.
    """
    data = parse_form(schemas.CompleteSprintForm, form)
    db = ctx.db
    sprint = _load(db, sprint_id)
    organization_id = sprint.product.organization_id
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    if sprint.status != SprintStatus.ACTIVE:
        raise BusinessRuleViolation("Only active sprints can be completed")

    tasks = sprint_tasks(db, sprint.id)
    done = [t for t in tasks if t.status == TaskStatus.DONE]
    velocity = sum(t.effort or 0 for t in done)

    if data.incomplete_task_action == "move_to_backlog":
        for task in tasks:
            if task.status != TaskStatus.DONE:
                task.sprint_id = None

    sprint.status = SprintStatus.COMPLETED
    sprint.velocity = velocity
    db.flush()

    ctx.audit(organization_id, "COMPLETE", ENTITY, sprint.id, metadata={
        "name": sprint.name,
        "velocity": velocity,
        "completedTasks": len(done),
        "totalTasks": len(tasks),
        "incompleteTaskAction": data.incomplete_task_action,
    })
    ctx.revalidate(*_paths(sprint))
    logger.info(f"Completed sprint {sprint.id} with velocity {velocity}")
    return sprint


@action("Failed to add tasks to sprint")
def add_tasks_to_sprint(ctx: ActionContext, sprint_id: UUID, form) -> list[models.Task]:
    data = parse_form(schemas.SprintTasksForm, form)
    db = ctx.db
    sprint = _load(db, sprint_id)
    organization_id = sprint.product.organization_id
    require_role(db, ctx.user_id, organization_id, WRITERS)

    if sprint.status in (SprintStatus.COMPLETED, SprintStatus.CANCELLED):
        raise BusinessRuleViolation("Cannot add tasks to completed or cancelled sprint")

    task_ids = set(data.task_ids)
    tasks = (
        db.query(models.Task)
        .filter(
            models.Task.id.in_(task_ids),
            models.Task.product_id == sprint.product_id,
            models.Task.deleted_at.is_(None),
        )
        .all()
    )
    if len(tasks) != len(task_ids):
        raise NotFoundError("Some tasks not found or don't belong to this product")

    for task in tasks:
        task.sprint_id = sprint.id
    db.flush()

    ctx.audit(organization_id, "ADD_TASKS", ENTITY, sprint.id,
              metadata={"taskIds": sorted(str(t.id) for t in tasks), "taskCount": len(tasks)})
    ctx.revalidate(*_paths(sprint))
    return tasks


@action("Failed to remove task from sprint")
def remove_task_from_sprint(ctx: ActionContext, task_id: UUID) -> models.Task:
    db = ctx.db
    task = get_live(db, models.Task, task_id, "Task not found")
    organization_id = get_product(db, task.product_id).organization_id
    require_role(db, ctx.user_id, organization_id, WRITERS)

    if task.sprint_id is None:
        raise BusinessRuleViolation("Task is not assigned to any sprint")
    sprint = task.sprint
    if sprint.status == SprintStatus.COMPLETED:
        raise BusinessRuleViolation("Cannot remove tasks from completed sprint")

    task.sprint_id = None
    db.flush()

    ctx.audit(organization_id, "REMOVE_TASK", ENTITY, sprint.id, metadata={"taskId": str(task.id)})
    ctx.revalidate(*_paths(sprint))
    return task


@action("Failed to delete sprint")
def delete_sprint(ctx: ActionContext, sprint_id: UUID) -> None:
    """Soft-delete a sprint that is not active; its tasks return to the backlog."""
    db = ctx.db
    sprint = _load(db, sprint_id)
    organization_id = sprint.product.organization_id
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    if sprint.status == SprintStatus.ACTIVE:
        raise BusinessRuleViolation("Cannot delete active sprint. Complete or cancel it first.")

    moved = 0
    for task in sprint_tasks(db, sprint.id):
        task.sprint_id = None
        moved += 1
    sprint.soft_delete()
    db.flush()

    ctx.audit(organization_id, "DELETE", ENTITY, sprint.id,
              metadata={"name": sprint.name, "tasksMovedToBacklog": moved})
    ctx.revalidate(*_paths(sprint))
