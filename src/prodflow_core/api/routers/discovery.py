"""Customer discovery API endpoints: customers, interviews and insights."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ... import models, schemas
from ...actions import interviews
from ...results import ActionContext
from ..dependencies import form_data, get_context, get_current_user, get_db, load_product_for_member, respond

logger = logging.getLogger("prodflow-core.discovery")

router = APIRouter(tags=["discovery"])


@router.get("/products/{product_id}/customers", response_model=list[schemas.CustomerResponse])
def list_customers(
    product_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    load_product_for_member(db, user, product_id)
    return interviews.list_customers(db, product_id)


@router.post("/products/{product_id}/customers", response_model=schemas.CustomerResponse, status_code=201)
def create_customer(product_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(interviews.create_customer(ctx, product_id, form), schemas.CustomerResponse)


@router.get("/products/{product_id}/interviews", response_model=list[schemas.InterviewResponse])
def list_interviews(
    product_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    load_product_for_member(db, user, product_id)
    return interviews.list_interviews(db, product_id)


@router.post("/products/{product_id}/interviews", response_model=schemas.InterviewResponse, status_code=201)
def create_interview(product_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    """
    Schedule an interview.

    - **customerId**: One of the product's customers
    - **scheduledAt**: Must be in the future
    - **duration**: 15-180 minutes (default 60)
    """
    return respond(interviews.create_interview(ctx, product_id, form), schemas.InterviewResponse)


@router.put("/interviews/{interview_id}", response_model=schemas.InterviewResponse)
def update_interview(interview_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(interviews.update_interview(ctx, interview_id, form), schemas.InterviewResponse)


@router.delete("/interviews/{interview_id}", status_code=204)
def delete_interview(interview_id: UUID, ctx: ActionContext = Depends(get_context)):
    respond(interviews.delete_interview(ctx, interview_id))


@router.get("/products/{product_id}/insights", response_model=list[schemas.InsightResponse])
def list_insights(
    product_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    load_product_for_member(db, user, product_id)
    return interviews.list_insights(db, product_id)


@router.post("/insights", response_model=schemas.InsightResponse, status_code=201)
def create_insight(form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    """Record an insight; its product is taken from **interviewId**."""
    return respond(interviews.create_insight(ctx, form), schemas.InsightResponse)


@router.delete("/insights/{insight_id}", status_code=204)
def delete_insight(insight_id: UUID, ctx: ActionContext = Depends(get_context)):
    respond(interviews.delete_insight(ctx, insight_id))
