"""
Product document actions.

Documents move DRAFT -> REVIEW -> APPROVED/REJECTED through submit and
approval operations; plain updates may only send a document back to DRAFT or
archive it (see ``state_machine.DOCUMENT_TRANSITIONS``). Authors may edit and
delete their own documents without a manager role.
"""
import logging
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import MANAGERS, WRITERS, RoleCheck, authorize, require_role
from ..errors import AuthorizationError, BusinessRuleViolation
from ..forms import parse_form
from ..models import DocumentStatus, Role
from ..results import ActionContext, action
from ..state_machine import DOCUMENT_EDIT_TARGETS, validate_document_transition
from .common import apply_changes, get_live, get_product

logger = logging.getLogger("prodflow-core.documents")

ENTITY = "DOCUMENT"


def _paths(document: models.Document) -> tuple[str, ...]:
    return (f"/products/{document.product_id}/documents", f"/documents/{document.id}")


def _load(db: Session, document_id: UUID) -> tuple[models.Document, UUID]:
    document = get_live(db, models.Document, document_id, "Document not found")
    product = get_product(db, document.product_id)
    return document, product.organization_id


def _require_author_or(ctx: ActionContext, document: models.Document, organization_id: UUID, roles) -> None:
    """The author passes as any member; everyone else needs one of ``roles``."""
    membership = authorize(ctx.db, ctx.user_id, organization_id, [Role.STAKEHOLDER], RoleCheck.MINIMUM)
    if document.author_id != ctx.user_id and membership.role not in roles:
        raise AuthorizationError("Permission denied", ctx.user_id, organization_id)


def list_documents(db: Session, product_id: UUID, status: DocumentStatus = None) -> list[models.Document]:
    query = db.query(models.Document).filter(
        models.Document.product_id == product_id,
        models.Document.deleted_at.is_(None),
    )
    if status is not None:
        query = query.filter(models.Document.status == status)
    return query.order_by(models.Document.updated_at.desc()).all()


@action("Failed to create document")
def create_document(ctx: ActionContext, product_id: UUID, form) -> models.Document:
    data = parse_form(schemas.DocumentCreate, form)
    db = ctx.db
    product = get_product(db, product_id)
    require_role(db, ctx.user_id, product.organization_id, WRITERS)

    document = models.Document(
        product_id=product.id,
        author_id=ctx.user_id,
        status=DocumentStatus.DRAFT,
        version=1,
        **data.model_dump(),
    )
    db.add(document)
    db.flush()

    ctx.audit(product.organization_id, "DOCUMENT_CREATED", ENTITY, document.id, metadata={
        "title": document.title,
        "type": document.type.value,
        "template": document.template,
    })
    ctx.revalidate(*_paths(document))
    return document


@action("Failed to update document")
def update_document(ctx: ActionContext, document_id: UUID, form) -> models.Document:
    """Edit a document. A content change bumps the version."""
    data = parse_form(schemas.DocumentUpdate, form)
    db = ctx.db
    document, organization_id = _load(db, document_id)
    _require_author_or(ctx, document, organization_id, MANAGERS)

    values = data.model_dump(exclude_unset=True)
    new_status = values.get("status")
    if new_status is not None and new_status != document.status:
        if new_status not in DOCUMENT_EDIT_TARGETS:
            raise BusinessRuleViolation("Use the review operations to move a document into or out of review")
        validate_document_transition(document.status, new_status)

    content_changed = "content" in values and values["content"] != document.content
    if content_changed:
        values["version"] = document.version + 1

    changes = apply_changes(document, values)
    db.flush()

    ctx.audit(organization_id, "DOCUMENT_UPDATED", ENTITY, document.id, changes=changes,
              metadata={"title": document.title, "version": document.version})
    ctx.revalidate(*_paths(document))
    return document


@action("Failed to submit document for review")
def submit_for_review(ctx: ActionContext, document_id: UUID) -> models.Document:
    db = ctx.db
    document, organization_id = _load(db, document_id)
    _require_author_or(ctx, document, organization_id, MANAGERS)

    if document.status != DocumentStatus.DRAFT:
        raise BusinessRuleViolation("Only draft documents can be submitted for review")
    validate_document_transition(document.status, DocumentStatus.REVIEW)

    document.status = DocumentStatus.REVIEW
    db.flush()

    ctx.audit(organization_id, "DOCUMENT_SUBMITTED_FOR_REVIEW", ENTITY, document.id,
              metadata={"title": document.title})
    ctx.revalidate(*_paths(document))
    return document


@action("Failed to process document approval")
def process_document_approval(ctx: ActionContext, document_id: UUID, form) -> models.Document:
    """Approve or reject a document in review, with an optional comment."""
    data = parse_form(schemas.DocumentApprovalForm, form)
    db = ctx.db
    document, organization_id = _load(db, document_id)
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    if document.status != DocumentStatus.REVIEW:
        raise BusinessRuleViolation("Only documents in review can be approved or rejected")
    new_status = DocumentStatus.APPROVED if data.action == "APPROVE" else DocumentStatus.REJECTED
    validate_document_transition(document.status, new_status)

    document.status = new_status
    db.flush()

    action_name = "DOCUMENT_APPROVED" if new_status == DocumentStatus.APPROVED else "DOCUMENT_REJECTED"
    ctx.audit(organization_id, action_name, ENTITY, document.id, metadata={
        "title": document.title,
        "comment": data.comment,
    })
    ctx.revalidate(*_paths(document))
    logger.info(f"Document {document.id} {new_status.value.lower()}")
    return document


@action("Failed to delete document")
def delete_document(ctx: ActionContext, document_id: UUID) -> None:
    """Only the author or an admin may delete."""
    db = ctx.db
    document, organization_id = _load(db, document_id)
    _require_author_or(ctx, document, organization_id, (Role.ADMIN,))

    document.soft_delete()
    ctx.audit(organization_id, "DOCUMENT_DELETED", ENTITY, document.id, metadata={"title": document.title})
    ctx.revalidate(*_paths(document))


@action("Failed to duplicate document")
def duplicate_document(ctx: ActionContext, document_id: UUID) -> models.Document:
    """Copy a document into a fresh DRAFT owned by the actor."""
    db = ctx.db
    original, organization_id = _load(db, document_id)
    require_role(db, ctx.user_id, organization_id, WRITERS)

    copy = models.Document(
        product_id=original.product_id,
        author_id=ctx.user_id,
        title=f"{original.title} (Copy)",
        content=original.content,
        type=original.type,
        template=original.template,
        status=DocumentStatus.DRAFT,
        version=1,
    )
    db.add(copy)
    db.flush()

    ctx.audit(organization_id, "DOCUMENT_DUPLICATED", ENTITY, copy.id, metadata={
        "title": copy.title,
        "originalDocumentId": str(original.id),
    })
    ctx.revalidate(*_paths(copy))
    return copy
