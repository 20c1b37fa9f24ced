"""Document API endpoints."""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ... import models, schemas
from ...actions import documents
from ...models import DocumentStatus
from ...results import ActionContext
from ..dependencies import form_data, get_context, get_current_user, get_db, load_product_for_member, respond

logger = logging.getLogger("prodflow-core.documents")

router = APIRouter(tags=["documents"])


@router.get("/products/{product_id}/documents", response_model=list[schemas.DocumentResponse])
def list_documents(
    product_id: UUID,
    status: Optional[DocumentStatus] = Query(None, description="Filter by status"),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    load_product_for_member(db, user, product_id)
    return documents.list_documents(db, product_id, status=status)


@router.post("/products/{product_id}/documents", response_model=schemas.DocumentResponse, status_code=201)
def create_document(product_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    """
    Create a draft document authored by the caller.

    - **type**: PRD, RFC, SPEC, DESIGN, ANALYSIS, PROPOSAL, GUIDE or OTHER
    - **template**: Optional template name
    """
    return respond(documents.create_document(ctx, product_id, form), schemas.DocumentResponse)


@router.put("/documents/{document_id}", response_model=schemas.DocumentResponse)
def update_document(document_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(documents.update_document(ctx, document_id, form), schemas.DocumentResponse)


@router.post("/documents/{document_id}/submit", response_model=schemas.DocumentResponse)
def submit_for_review(document_id: UUID, ctx: ActionContext = Depends(get_context)):
    return respond(documents.submit_for_review(ctx, document_id), schemas.DocumentResponse)


@router.post("/documents/{document_id}/approval", response_model=schemas.DocumentResponse)
def process_document_approval(
    document_id: UUID,
    form: dict = Depends(form_data),
    ctx: ActionContext = Depends(get_context),
):
    """
    Approve or reject a document in review.

    - **action**: APPROVE or REJECT
    - **comment**: Optional
    """
    return respond(documents.process_document_approval(ctx, document_id, form), schemas.DocumentResponse)


@router.post("/documents/{document_id}/duplicate", response_model=schemas.DocumentResponse, status_code=201)
def duplicate_document(document_id: UUID, ctx: ActionContext = Depends(get_context)):
    return respond(documents.duplicate_document(ctx, document_id), schemas.DocumentResponse)


@router.delete("/documents/{document_id}", status_code=204)
def delete_document(document_id: UUID, ctx: ActionContext = Depends(get_context)):
    respond(documents.delete_document(ctx, document_id))
