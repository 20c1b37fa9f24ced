"""Sprint and task API endpoints."""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ... import models, schemas
from ...actions import sprints, tasks
from ...models import SprintStatus
from ...results import ActionContext
from ..dependencies import form_data, get_context, get_current_user, get_db, load_product_for_member, respond

logger = logging.getLogger("prodflow-core.sprints")

router = APIRouter(tags=["sprints"])


@router.get("/products/{product_id}/sprints", response_model=list[schemas.SprintResponse])
def list_sprints(
    product_id: UUID,
    status: Optional[SprintStatus] = Query(None),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    load_product_for_member(db, user, product_id)
    return sprints.list_sprints(db, product_id, status=status)


@router.post("/products/{product_id}/sprints", response_model=schemas.SprintResponse, status_code=201)
def create_sprint(product_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    """
    Plan a sprint.

    - **name**, **startDate**, **endDate**: Required; end must be after start
    - **goal**, **capacity**: Optional

    Refused while the product has an active sprint.
    """
    return respond(sprints.create_sprint(ctx, product_id, form), schemas.SprintResponse)


@router.get("/sprints/{sprint_id}/summary")
def sprint_summary(
    sprint_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    sprint = (
        db.query(models.Sprint)
        .filter(models.Sprint.id == sprint_id, models.Sprint.deleted_at.is_(None))
        .first()
    )
    if sprint is None:
        raise HTTPException(status_code=404, detail="Sprint not found")
    load_product_for_member(db, user, sprint.product_id)
    return sprints.sprint_summary(db, sprint)


@router.put("/sprints/{sprint_id}", response_model=schemas.SprintResponse)
def update_sprint(sprint_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(sprints.update_sprint(ctx, sprint_id, form), schemas.SprintResponse)


@router.post("/sprints/{sprint_id}/start", response_model=schemas.SprintResponse)
def start_sprint(sprint_id: UUID, ctx: ActionContext = Depends(get_context)):
    return respond(sprints.start_sprint(ctx, sprint_id), schemas.SprintResponse)


@router.post("/sprints/{sprint_id}/complete", response_model=schemas.SprintResponse)
def complete_sprint(sprint_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    """
    Complete the active sprint.

    - **incompleteTaskAction**: ``move_to_backlog`` or ``keep_in_sprint``; tasks stay in the sprint when omitted
    """
    return respond(sprints.complete_sprint(ctx, sprint_id, form), schemas.SprintResponse)


@router.post("/sprints/{sprint_id}/tasks", response_model=list[schemas.TaskResponse])
def add_tasks_to_sprint(sprint_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(sprints.add_tasks_to_sprint(ctx, sprint_id, form), schemas.TaskResponse)


@router.delete("/sprints/{sprint_id}", status_code=204)
def delete_sprint(sprint_id: UUID, ctx: ActionContext = Depends(get_context)):
    respond(sprints.delete_sprint(ctx, sprint_id))


# Task endpoints

@router.get("/products/{product_id}/tasks", response_model=list[schemas.TaskResponse])
def list_tasks(
    product_id: UUID,
    sprint_id: Optional[UUID] = Query(None),
    backlog: bool = Query(False, description="Only tasks without a sprint"),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    load_product_for_member(db, user, product_id)
    return tasks.list_tasks(db, product_id, sprint_id=sprint_id, backlog_only=backlog)


@router.post("/products/{product_id}/tasks", response_model=schemas.TaskResponse, status_code=201)
def create_task(product_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(tasks.create_task(ctx, product_id, form), schemas.TaskResponse)


@router.put("/tasks/{task_id}", response_model=schemas.TaskResponse)
def update_task(task_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(tasks.update_task(ctx, task_id, form), schemas.TaskResponse)


@router.put("/tasks/{task_id}/status", response_model=schemas.TaskResponse)
def update_task_status(task_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(tasks.update_task_status(ctx, task_id, form), schemas.TaskResponse)


@router.put("/tasks/{task_id}/assignee", response_model=schemas.TaskResponse)
def update_task_assignee(task_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(tasks.update_task_assignee(ctx, task_id, form), schemas.TaskResponse)


@router.put("/tasks/{task_id}/sprint", response_model=schemas.TaskResponse)
def move_task_to_sprint(task_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(tasks.move_task_to_sprint(ctx, task_id, form), schemas.TaskResponse)


@router.delete("/tasks/{task_id}/sprint", response_model=schemas.TaskResponse)
def remove_task_from_sprint(task_id: UUID, ctx: ActionContext = Depends(get_context)):
    return respond(sprints.remove_task_from_sprint(ctx, task_id), schemas.TaskResponse)


@router.put("/tasks/{task_id}/time", response_model=schemas.TaskResponse)
def update_task_time(task_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(tasks.update_task_time(ctx, task_id, form), schemas.TaskResponse)


@router.delete("/tasks/{task_id}", status_code=204)
def delete_task(task_id: UUID, ctx: ActionContext = Depends(get_context)):
    respond(tasks.delete_task(ctx, task_id))
