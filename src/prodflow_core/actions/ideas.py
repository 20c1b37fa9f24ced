"""Idea actions and score-ordered listing."""
import logging
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import MANAGERS, WRITERS, RoleCheck, authorize, require_role
from ..errors import AuthorizationError
from ..forms import parse_form
from ..models import Role
from ..results import ActionContext, action
from ..scoring import SCORING_METHODS, sort_ideas
from .common import apply_changes, get_live, get_product

logger = logging.getLogger("prodflow-core.ideas")


def _paths(idea: models.Idea) -> tuple[str, ...]:
    return (f"/products/{idea.product_id}/ideas", f"/ideas/{idea.id}")


def _load(db: Session, idea_id: UUID) -> models.Idea:
    idea = get_live(db, models.Idea, idea_id, "Idea not found")
    get_product(db, idea.product_id)
    return idea


def list_ideas(db: Session, product_id: UUID, sort: str = "rice") -> list[models.Idea]:
    """
    Live ideas of a product.

    Args:
        sort: ``rice`` or ``wsjf`` (score, highest first) or ``recent``

    Returns:
        Ordered ideas; see ``scoring.sort_ideas`` for score ordering
    """
    ideas = (
        db.query(models.Idea)
        .filter(models.Idea.product_id == product_id, models.Idea.deleted_at.is_(None))
        .order_by(models.Idea.created_at.desc())
        .all()
    )
    if sort in SCORING_METHODS:
        return sort_ideas(ideas, sort)
    return ideas


@action("Failed to create idea")
def create_idea(ctx: ActionContext, product_id: UUID, form) -> models.Idea:
    data = parse_form(schemas.IdeaCreate, form)
    db = ctx.db
    product = get_product(db, product_id)
    require_role(db, ctx.user_id, product.organization_id, WRITERS)

    idea = models.Idea(
        product_id=product.id,
        creator_id=ctx.user_id,
        status=models.IdeaStatus.SUBMITTED,
        votes=0,
        **data.model_dump(),
    )
    db.add(idea)
    db.flush()

    ctx.audit(product.organization_id, "IDEA_CREATED", "IDEA", idea.id,
              metadata={"title": idea.title, "productId": str(product.id)})
    ctx.revalidate(*_paths(idea))
    return idea


@action("Failed to update idea")
def update_idea(ctx: ActionContext, idea_id: UUID, form) -> models.Idea:
    """Edit an idea. Allowed for its creator and for admins and product managers."""
    data = parse_form(schemas.IdeaUpdate, form)
    db = ctx.db
    idea = _load(db, idea_id)
    product = idea.product
    membership = authorize(db, ctx.user_id, product.organization_id, [Role.STAKEHOLDER], RoleCheck.MINIMUM)

    if idea.creator_id != ctx.user_id and membership.role not in MANAGERS:
        raise AuthorizationError("Permission denied: Cannot edit this idea", ctx.user_id, product.organization_id)

    changes = apply_changes(idea, data.model_dump(exclude_unset=True))
    db.flush()

    ctx.audit(product.organization_id, "IDEA_UPDATED", "IDEA", idea.id, changes=changes)
    ctx.revalidate(*_paths(idea))
    return idea


def _vote(ctx: ActionContext, idea_id: UUID, delta: int) -> models.Idea:
    db = ctx.db
    idea = _load(db, idea_id)
    require_role(db, ctx.user_id, idea.product.organization_id, WRITERS)

    idea.votes = max(0, (idea.votes or 0) + delta)
    db.flush()

    ctx.audit(idea.product.organization_id, "IDEA_UPVOTED" if delta > 0 else "IDEA_DOWNVOTED",
              "IDEA", idea.id, metadata={"votes": idea.votes})
    ctx.revalidate(*_paths(idea))
    return idea


@action("Failed to vote on idea")
def upvote_idea(ctx: ActionContext, idea_id: UUID) -> models.Idea:
    return _vote(ctx, idea_id, 1)


@action("Failed to vote on idea")
def downvote_idea(ctx: ActionContext, idea_id: UUID) -> models.Idea:
    """Remove a vote; the count never drops below zero."""
    return _vote(ctx, idea_id, -1)


@action("Failed to update idea status")
def update_idea_status(ctx: ActionContext, idea_id: UUID, form) -> models.Idea:
    data = parse_form(schemas.IdeaStatusForm, form)
    db = ctx.db
    idea = _load(db, idea_id)
    require_role(db, ctx.user_id, idea.product.organization_id, MANAGERS)

    changes = apply_changes(idea, {"status": data.status})
    db.flush()

    ctx.audit(idea.product.organization_id, "IDEA_STATUS_UPDATED", "IDEA", idea.id, changes=changes)
    ctx.revalidate(*_paths(idea))
    return idea


@action("Failed to delete idea")
def delete_idea(ctx: ActionContext, idea_id: UUID) -> None:
    """Soft-delete an idea. Allowed for its creator and for admins."""
    db = ctx.db
    idea = _load(db, idea_id)
    organization_id = idea.product.organization_id
    membership = authorize(db, ctx.user_id, organization_id, [Role.STAKEHOLDER], RoleCheck.MINIMUM)

    if idea.creator_id != ctx.user_id and membership.role != Role.ADMIN:
        raise AuthorizationError("Permission denied: Cannot delete this idea", ctx.user_id, organization_id)

    idea.soft_delete()
    ctx.audit(organization_id, "IDEA_DELETED", "IDEA", idea.id, metadata={"title": idea.title})
    ctx.revalidate(*_paths(idea))
