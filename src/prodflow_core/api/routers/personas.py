"""Persona API endpoints."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ... import models, schemas
from ...actions import personas
from ...results import ActionContext
from ..dependencies import form_data, get_context, get_current_user, get_db, load_product_for_member, respond

logger = logging.getLogger("prodflow-core.personas")

router = APIRouter(tags=["personas"])


@router.get("/products/{product_id}/personas", response_model=list[schemas.PersonaResponse])
def list_personas(
    product_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    load_product_for_member(db, user, product_id)
    return personas.list_personas(db, product_id)


@router.post("/products/{product_id}/personas", response_model=schemas.PersonaResponse, status_code=201)
def create_persona(product_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    """
    Create a persona.

    - **demographics**: JSON object; ``isPrimary`` marks the primary persona
    - **goals**, **pains**, **gains**, **behaviors**, **motivations**, **channels**: Lists of strings
    """
    return respond(personas.create_persona(ctx, product_id, form), schemas.PersonaResponse)


@router.put("/personas/{persona_id}", response_model=schemas.PersonaResponse)
def update_persona(persona_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(personas.update_persona(ctx, persona_id, form), schemas.PersonaResponse)


@router.put("/personas/{persona_id}/priority", response_model=schemas.PersonaResponse)
def update_persona_priority(persona_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(personas.update_persona_priority(ctx, persona_id, form), schemas.PersonaResponse)


@router.post("/personas/{persona_id}/duplicate", response_model=schemas.PersonaResponse, status_code=201)
def duplicate_persona(persona_id: UUID, ctx: ActionContext = Depends(get_context)):
    return respond(personas.duplicate_persona(ctx, persona_id), schemas.PersonaResponse)


@router.delete("/personas/{persona_id}", status_code=204)
def delete_persona(persona_id: UUID, ctx: ActionContext = Depends(get_context)):
    respond(personas.delete_persona(ctx, persona_id))
