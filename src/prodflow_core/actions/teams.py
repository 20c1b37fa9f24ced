"""Team actions and team membership."""
import logging
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import ADMIN_ONLY, MANAGERS, require_role
from ..errors import BusinessRuleViolation, ConflictError, NotFoundError
from ..forms import parse_form
from ..results import ActionContext, action, flush_unique
from .common import apply_changes, get_live, get_org_membership, jsonable

logger = logging.getLogger("prodflow-core.teams")

SLUG_TAKEN = "Team slug already exists in this organization"


def _paths(organization_id) -> tuple[str, ...]:
    return (f"/organizations/{organization_id}/teams", f"/organizations/{organization_id}/settings")


def _slug_taken(db: Session, organization_id: UUID, slug: str, exclude_id=None) -> bool:
    query = db.query(models.Team.id).filter(
        models.Team.organization_id == organization_id,
        models.Team.slug == slug,
        models.Team.deleted_at.is_(None),
    )
    if exclude_id is not None:
        query = query.filter(models.Team.id != exclude_id)
    return query.first() is not None


def _team_membership(db: Session, team: models.Team, user_id: UUID):
    return (
        db.query(models.Membership)
        .filter(models.Membership.team_id == team.id, models.Membership.user_id == user_id)
        .first()
    )


def list_teams(db: Session, organization_id: UUID) -> list[models.Team]:
    return (
        db.query(models.Team)
        .filter(models.Team.organization_id == organization_id, models.Team.deleted_at.is_(None))
        .order_by(models.Team.name)
        .all()
    )


def list_team_members(db: Session, team_id: UUID) -> list[models.Membership]:
    return (
        db.query(models.Membership)
        .filter(models.Membership.team_id == team_id)
        .order_by(models.Membership.created_at)
        .all()
    )


@action("Failed to create team")
def create_team(ctx: ActionContext, organization_id: UUID, form) -> models.Team:
    """
    Create a team in an organization.

    The slug must be unique among the organization's live teams; the unique
    index decides when two requests race.
    """
    data = parse_form(schemas.TeamCreate, form)
    db = ctx.db
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    if _slug_taken(db, organization_id, data.slug):
        raise ConflictError(SLUG_TAKEN)

    team = models.Team(
        organization_id=organization_id,
        name=data.name,
        slug=data.slug,
        description=data.description,
    )
    db.add(team)
    flush_unique(db, SLUG_TAKEN)

    ctx.audit(organization_id, "TEAM_CREATED", "TEAM", team.id,
              metadata={"name": team.name, "slug": team.slug})
    ctx.revalidate(*_paths(organization_id))
    logger.debug(f"Created team {team.id} ({team.slug}) in org {organization_id}")
    return team


@action("Failed to update team")
def update_team(ctx: ActionContext, team_id: UUID, form) -> models.Team:
    data = parse_form(schemas.TeamUpdate, form)
    db = ctx.db
    team = get_live(db, models.Team, team_id, "Team not found")
    require_role(db, ctx.user_id, team.organization_id, MANAGERS)

    values = data.model_dump(exclude_unset=True)
    if "slug" in values and values["slug"] != team.slug:
        if _slug_taken(db, team.organization_id, values["slug"], exclude_id=team.id):
            raise ConflictError(SLUG_TAKEN)

    changes = apply_changes(team, values)
    flush_unique(db, SLUG_TAKEN)

    ctx.audit(team.organization_id, "TEAM_UPDATED", "TEAM", team.id, changes=changes)
    ctx.revalidate(*_paths(team.organization_id))
    return team


@action("Failed to delete team")
def delete_team(ctx: ActionContext, team_id: UUID) -> None:
    """Soft-delete a team and drop its memberships. Refused while live products use it."""
    db = ctx.db
    team = get_live(db, models.Team, team_id, "Team not found")
    require_role(db, ctx.user_id, team.organization_id, ADMIN_ONLY)

    if any(product.deleted_at is None for product in team.products):
        raise BusinessRuleViolation(
            "Cannot delete team with active products. Please reassign or delete products first."
        )

    db.query(models.Membership).filter(models.Membership.team_id == team.id).delete(
        synchronize_session="fetch"
    )
    team.soft_delete()

    ctx.audit(team.organization_id, "TEAM_DELETED", "TEAM", team.id,
              metadata={"name": team.name, "slug": team.slug})
    ctx.revalidate(*_paths(team.organization_id))


@action("Failed to add team member")
def add_team_member(ctx: ActionContext, team_id: UUID, form) -> models.Membership:
    data = parse_form(schemas.TeamMemberAdd, form)
    db = ctx.db
    team = get_live(db, models.Team, team_id, "Team not found")
    require_role(db, ctx.user_id, team.organization_id, MANAGERS)

    if get_org_membership(db, data.user_id, team.organization_id) is None:
        raise BusinessRuleViolation("User is not a member of this organization")
    if _team_membership(db, team, data.user_id) is not None:
        raise ConflictError("User is already a team member")

    membership = models.Membership(
        user_id=data.user_id,
        organization_id=team.organization_id,
        team_id=team.id,
        role=data.role,
    )
    db.add(membership)
    flush_unique(db, "User is already a team member")

    ctx.audit(team.organization_id, "TEAM_MEMBER_ADDED", "TEAM", team.id,
              metadata={"userId": str(data.user_id), "role": data.role.value})
    ctx.revalidate(*_paths(team.organization_id))
    return membership


@action("Failed to update team member role")
def update_team_member_role(ctx: ActionContext, team_id: UUID, user_id: UUID, form) -> models.Membership:
    data = parse_form(schemas.MemberRoleForm, form)
    db = ctx.db
    team = get_live(db, models.Team, team_id, "Team not found")
    require_role(db, ctx.user_id, team.organization_id, MANAGERS)

    membership = _team_membership(db, team, user_id)
    if membership is None:
        raise NotFoundError("Team membership not found")

    previous = membership.role
    membership.role = data.role
    db.flush()

    ctx.audit(team.organization_id, "TEAM_MEMBER_ROLE_UPDATED", "TEAM", team.id,
              metadata={"userId": str(user_id)},
              changes={"role": {"from": jsonable(previous), "to": jsonable(data.role)}})
    ctx.revalidate(*_paths(team.organization_id))
    return membership


@action("Failed to remove team member")
def remove_team_member(ctx: ActionContext, team_id: UUID, user_id: UUID) -> None:
    db = ctx.db
    team = get_live(db, models.Team, team_id, "Team not found")
    require_role(db, ctx.user_id, team.organization_id, MANAGERS)

    membership = _team_membership(db, team, user_id)
    if membership is None:
        raise NotFoundError("Team membership not found")
    db.delete(membership)
    db.flush()

    ctx.audit(team.organization_id, "TEAM_MEMBER_REMOVED", "TEAM", team.id,
              metadata={"userId": str(user_id)})
    ctx.revalidate(*_paths(team.organization_id))
