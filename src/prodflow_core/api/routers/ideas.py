"""Ideas API endpoints."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ... import models, schemas
from ...actions import ideas
from ...results import ActionContext
from ..dependencies import form_data, get_context, get_current_user, get_db, load_product_for_member, respond

logger = logging.getLogger("prodflow-core.ideas")

router = APIRouter(tags=["ideas"])


@router.get("/products/{product_id}/ideas", response_model=list[schemas.IdeaResponse])
def list_ideas(
    product_id: UUID,
    sort: str = Query("rice", pattern="^(rice|wsjf|recent)$", description="rice, wsjf or recent"),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    """
    List a product's ideas.

    Score sorts put the highest score first and unscored ideas last; equal
    scores keep creation order.
    """
    load_product_for_member(db, user, product_id)
    return [schemas.IdeaResponse.model_validate(i) for i in ideas.list_ideas(db, product_id, sort=sort)]


@router.post("/products/{product_id}/ideas", response_model=schemas.IdeaResponse, status_code=201)
def create_idea(product_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    """
    Submit an idea.

    - **title**, **description**: Required
    - **tags**: Comma-separated
    - **reachScore**, **impactScore**, **confidenceScore**, **effortScore**: 1-5, optional
    """
    return respond(ideas.create_idea(ctx, product_id, form), schemas.IdeaResponse)


@router.put("/ideas/{idea_id}", response_model=schemas.IdeaResponse)
def update_idea(idea_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(ideas.update_idea(ctx, idea_id, form), schemas.IdeaResponse)


@router.post("/ideas/{idea_id}/upvote", response_model=schemas.IdeaResponse)
def upvote_idea(idea_id: UUID, ctx: ActionContext = Depends(get_context)):
    return respond(ideas.upvote_idea(ctx, idea_id), schemas.IdeaResponse)


@router.post("/ideas/{idea_id}/downvote", response_model=schemas.IdeaResponse)
def downvote_idea(idea_id: UUID, ctx: ActionContext = Depends(get_context)):
    return respond(ideas.downvote_idea(ctx, idea_id), schemas.IdeaResponse)


@router.put("/ideas/{idea_id}/status", response_model=schemas.IdeaResponse)
def update_idea_status(idea_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(ideas.update_idea_status(ctx, idea_id, form), schemas.IdeaResponse)


@router.delete("/ideas/{idea_id}", status_code=204)
def delete_idea(idea_id: UUID, ctx: ActionContext = Depends(get_context)):
    respond(ideas.delete_idea(ctx, idea_id))
