"""Experiment API endpoints."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ... import models, schemas
from ...actions import experiments
from ...results import ActionContext
from ..dependencies import form_data, get_context, get_current_user, get_db, load_product_for_member, respond

logger = logging.getLogger("prodflow-core.experiments")

router = APIRouter(tags=["experiments"])


@router.get("/products/{product_id}/experiments", response_model=list[schemas.ExperimentResponse])
def list_experiments(
    product_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    load_product_for_member(db, user, product_id)
    return experiments.list_experiments(db, product_id)


@router.post("/products/{product_id}/experiments", response_model=schemas.ExperimentResponse, status_code=201)
def create_experiment(product_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    """
    Create a draft experiment.

    - **name**, **hypothesis**: Required
    - **type**: AB_TEST (default), MULTIVARIATE, FEATURE_FLAG or QUALITATIVE
    - **metrics**: List of metric names
    - **variants**: JSON list of ``{name, description, allocation}``; allocation 0-100
    - **ownerId**: Defaults to the caller
    """
    return respond(experiments.create_experiment(ctx, product_id, form), schemas.ExperimentResponse)


@router.put("/experiments/{experiment_id}", response_model=schemas.ExperimentResponse)
def update_experiment(experiment_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(experiments.update_experiment(ctx, experiment_id, form), schemas.ExperimentResponse)


@router.put("/experiments/{experiment_id}/status", response_model=schemas.ExperimentResponse)
def update_experiment_status(
    experiment_id: UUID,
    form: dict = Depends(form_data),
    ctx: ActionContext = Depends(get_context),
):
    """RUNNING stamps the start date and COMPLETED the end date when they are unset."""
    return respond(experiments.update_experiment_status(ctx, experiment_id, form), schemas.ExperimentResponse)


@router.delete("/experiments/{experiment_id}", status_code=204)
def delete_experiment(experiment_id: UUID, ctx: ActionContext = Depends(get_context)):
    respond(experiments.delete_experiment(ctx, experiment_id))
