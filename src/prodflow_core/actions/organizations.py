"""Organization actions: tenancy, membership and invitations."""
import logging
import re
import secrets
from datetime import timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import ADMIN_ONLY, require_role
from ..config import get_settings
from ..errors import BusinessRuleViolation, ConflictError, NotFoundError, ValidationFailed
from ..forms import parse_form
from ..models import InvitationStatus, Role, utcnow
from ..results import ActionContext, action, flush_unique
from .common import apply_changes, count_admins, get_live, get_org_membership, jsonable

logger = logging.getLogger("prodflow-core.organizations")

DEFAULT_TEAM_NAME = "General"
DEFAULT_TEAM_SLUG = "general"
DEFAULT_TEAM_DESCRIPTION = "Default team for all organization members"


def slugify(name: str) -> str:
    """``"Acme Labs!"`` -> ``"acme-labs"``."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "organization"


def _paths(organization_id) -> tuple[str, ...]:
    return ("/dashboard", f"/organizations/{organization_id}", f"/organizations/{organization_id}/settings")


# =============================================================================
# Queries
# =============================================================================


def get_organization(db: Session, organization_id: UUID) -> Optional[models.Organization]:
    """
    Get a live organization by ID.

    Returns:
        Organization instance or None if not found or deleted
    """
    return (
        db.query(models.Organization)
        .filter(models.Organization.id == organization_id, models.Organization.deleted_at.is_(None))
        .first()
    )


def list_user_organizations(db: Session, user_id: UUID) -> list[models.Organization]:
    """Live organizations the user belongs to, by name."""
    return (
        db.query(models.Organization)
        .join(models.Membership, models.Membership.organization_id == models.Organization.id)
        .filter(
            models.Membership.user_id == user_id,
            models.Membership.team_id.is_(None),
            models.Organization.deleted_at.is_(None),
        )
        .order_by(models.Organization.name)
        .all()
    )


def list_members(db: Session, organization_id: UUID) -> list[models.Membership]:
    """Organization-level memberships, oldest first."""
    return (
        db.query(models.Membership)
        .filter(
            models.Membership.organization_id == organization_id,
            models.Membership.team_id.is_(None),
        )
        .order_by(models.Membership.created_at)
        .all()
    )


def list_invitations(db: Session, organization_id: UUID) -> list[models.Invitation]:
    return (
        db.query(models.Invitation)
        .filter(
            models.Invitation.organization_id == organization_id,
            models.Invitation.status == InvitationStatus.PENDING,
            models.Invitation.expires_at > utcnow(),
        )
        .order_by(models.Invitation.created_at.desc())
        .all()
    )


# =============================================================================
# Actions
# =============================================================================


@action("Failed to create organization")
def create_organization(ctx: ActionContext, form) -> models.Organization:
    """
    Create an organization owned by the acting user.

    The slug is derived from the name. The creator becomes ADMIN and a default
    "General" team is created in the same transaction.
    """
    data = parse_form(schemas.OrganizationCreate, form)
    db = ctx.db
    slug = slugify(data.name)

    if db.query(models.Organization.id).filter(models.Organization.slug == slug).first():
        raise ConflictError("Organization name already taken")

    organization = models.Organization(
        name=data.name,
        slug=slug,
        description=data.description,
        website=data.website,
        settings={},
    )
    db.add(organization)
    flush_unique(db, "Organization name already taken")

    db.add(models.Membership(
        user_id=ctx.user_id,
        organization_id=organization.id,
        role=Role.ADMIN,
    ))
    db.add(models.Team(
        organization_id=organization.id,
        name=DEFAULT_TEAM_NAME,
        slug=DEFAULT_TEAM_SLUG,
        description=DEFAULT_TEAM_DESCRIPTION,
    ))
    db.flush()

    ctx.audit(
        organization.id, "ORGANIZATION_CREATED", "ORGANIZATION", organization.id,
        metadata={"name": organization.name, "slug": organization.slug},
    )
    ctx.revalidate("/dashboard", "/organizations")
    logger.info(f"Created organization '{organization.name}' (ID: {organization.id})")
    return organization


@action("Failed to update organization")
def update_organization(ctx: ActionContext, organization_id: UUID, form) -> models.Organization:
    data = parse_form(schemas.OrganizationUpdate, form)
    db = ctx.db
    require_role(db, ctx.user_id, organization_id, ADMIN_ONLY)
    organization = get_live(db, models.Organization, organization_id, "Organization not found")

    values = data.model_dump(exclude_unset=True)
    if "slug" in values and values["slug"] != organization.slug:
        taken = (
            db.query(models.Organization.id)
            .filter(models.Organization.slug == values["slug"], models.Organization.id != organization.id)
            .first()
        )
        if taken:
            raise ConflictError("Organization slug already taken")

    changes = apply_changes(organization, values)
    flush_unique(db, "Organization slug already taken")

    ctx.audit(organization.id, "ORGANIZATION_UPDATED", "ORGANIZATION", organization.id, changes=changes)
    ctx.revalidate(*_paths(organization.id))
    return organization


@action("Failed to delete organization")
def delete_organization(ctx: ActionContext, organization_id: UUID) -> None:
    """Soft-delete an organization. Refused while it has a single admin."""
    db = ctx.db
    require_role(db, ctx.user_id, organization_id, ADMIN_ONLY)
    organization = get_live(db, models.Organization, organization_id, "Organization not found")

    if count_admins(db, organization.id) <= 1:
        raise BusinessRuleViolation("Cannot delete organization. At least one admin must remain.")

    organization.soft_delete()
    ctx.audit(organization.id, "ORGANIZATION_DELETED", "ORGANIZATION", organization.id,
              metadata={"name": organization.name})
    ctx.revalidate("/dashboard", "/organizations")


@action("Failed to invite user")
def invite_user(ctx: ActionContext, organization_id: UUID, form, ttl_days: Optional[int] = None) -> models.Invitation:
    """Invite an email address into the organization with a role."""
    data = parse_form(schemas.InviteForm, form)
    db = ctx.db
    require_role(db, ctx.user_id, organization_id, ADMIN_ONLY)

    existing_user = db.query(models.User).filter(models.User.email == data.email).first()
    if existing_user and get_org_membership(db, existing_user.id, organization_id):
        raise ConflictError("User is already a member of this organization")

    pending = (
        db.query(models.Invitation)
        .filter(
            models.Invitation.organization_id == organization_id,
            models.Invitation.email == data.email,
            models.Invitation.status == InvitationStatus.PENDING,
            models.Invitation.expires_at > utcnow(),
        )
        .first()
    )
    if pending:
        raise ConflictError("Invitation already sent to this email")

    if data.team_id is not None:
        team = get_live(db, models.Team, data.team_id, "Team not found")
        if team.organization_id != organization_id:
            raise NotFoundError("Team not found")

    if ttl_days is None:
        ttl_days = get_settings().invitation_ttl_days

    invitation = models.Invitation(
        organization_id=organization_id,
        team_id=data.team_id,
        email=data.email,
        role=data.role,
        token=secrets.token_urlsafe(32),
        invited_by_id=ctx.user_id,
        expires_at=utcnow() + timedelta(days=ttl_days),
    )
    db.add(invitation)
    db.flush()

    ctx.audit(organization_id, "USER_INVITED", "INVITATION", invitation.id,
              metadata={"email": data.email, "role": data.role.value})
    ctx.revalidate(f"/organizations/{organization_id}/members")
    return invitation


@action("Failed to accept invitation")
def accept_invitation(ctx: ActionContext, form) -> models.Membership:
    """Join the inviting organization with the invited role."""
    data = parse_form(schemas.AcceptInvitationForm, form)
    db = ctx.db
    user = ctx.user

    invitation = db.query(models.Invitation).filter(models.Invitation.token == data.token).first()
    if invitation is None or invitation.status != InvitationStatus.PENDING:
        raise NotFoundError("Invitation not found")
    if invitation.expires_at <= utcnow():
        raise BusinessRuleViolation("Invitation has expired")
    if invitation.email.lower() != user.email.lower():
        raise ValidationFailed("This invitation was sent to a different email address")
    if invitation.organization.deleted_at is not None:
        raise NotFoundError("Organization not found")
    if get_org_membership(db, user.id, invitation.organization_id):
        raise ConflictError("User is already a member of this organization")

    membership = models.Membership(
        user_id=user.id,
        organization_id=invitation.organization_id,
        role=invitation.role,
    )
    db.add(membership)
    if invitation.team_id is not None:
        db.add(models.Membership(
            user_id=user.id,
            organization_id=invitation.organization_id,
            team_id=invitation.team_id,
            role=invitation.role,
        ))
    flush_unique(db, "User is already a member of this organization")

    invitation.status = InvitationStatus.ACCEPTED
    invitation.accepted_at = utcnow()

    ctx.audit(invitation.organization_id, "INVITATION_ACCEPTED", "INVITATION", invitation.id,
              metadata={"email": invitation.email, "role": invitation.role.value})
    ctx.revalidate("/dashboard", f"/organizations/{invitation.organization_id}/members")
    return membership


@action("Failed to remove member")
def remove_member(ctx: ActionContext, organization_id: UUID, user_id: UUID) -> None:
    """Remove a user's organization and team memberships."""
    db = ctx.db
    require_role(db, ctx.user_id, organization_id, ADMIN_ONLY)

    if user_id == ctx.user_id:
        raise BusinessRuleViolation("Cannot remove yourself from the organization")

    membership = get_org_membership(db, user_id, organization_id)
    if membership is None:
        raise NotFoundError("Member not found")
    if membership.role == Role.ADMIN and count_admins(db, organization_id) <= 1:
        raise BusinessRuleViolation("Cannot remove the last admin from the organization")

    removed_role = membership.role
    db.query(models.Membership).filter(
        models.Membership.user_id == user_id,
        models.Membership.organization_id == organization_id,
    ).delete(synchronize_session="fetch")

    ctx.audit(organization_id, "MEMBER_REMOVED", "MEMBERSHIP", user_id,
              metadata={"role": removed_role.value})
    ctx.revalidate(f"/organizations/{organization_id}/members")


@action("Failed to update member role")
def update_member_role(ctx: ActionContext, organization_id: UUID, user_id: UUID, form) -> models.Membership:
    data = parse_form(schemas.MemberRoleForm, form)
    db = ctx.db
    require_role(db, ctx.user_id, organization_id, ADMIN_ONLY)

    if user_id == ctx.user_id:
        raise BusinessRuleViolation("Cannot change your own role")

    membership = get_org_membership(db, user_id, organization_id)
    if membership is None:
        raise NotFoundError("Member not found")
    if (
        membership.role == Role.ADMIN
        and data.role != Role.ADMIN
        and count_admins(db, organization_id) <= 1
    ):
        raise BusinessRuleViolation("Cannot remove admin role from the last admin in the organization")

    previous = membership.role
    membership.role = data.role
    db.flush()

    ctx.audit(organization_id, "MEMBER_ROLE_UPDATED", "MEMBERSHIP", user_id,
              changes={"role": {"from": jsonable(previous), "to": jsonable(data.role)}})
    ctx.revalidate(f"/organizations/{organization_id}/members")
    return membership
