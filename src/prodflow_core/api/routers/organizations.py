"""Organizations API endpoints."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ... import models, schemas
from ...actions import organizations
from ...auth import has_role
from ...models import Role
from ...results import ActionContext
from ..dependencies import (
    check_member,
    form_data,
    get_context,
    get_current_user,
    get_db,
    respond,
)

logger = logging.getLogger("prodflow-core.organizations")

router = APIRouter(tags=["organizations"])


@router.post("/", response_model=schemas.OrganizationResponse, status_code=201)
def create_organization(form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    """
    Create a new organization.

    - **name**: Organization name (the slug is derived from it)
    - **description**: Optional description
    - **website**: Optional website URL

    The caller becomes its ADMIN; a "General" team is created alongside.
    """
    return respond(organizations.create_organization(ctx, form), schemas.OrganizationResponse)


@router.get("/", response_model=list[schemas.OrganizationResponse])
def list_organizations(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    """List the organizations the caller belongs to."""
    return organizations.list_user_organizations(db, user.id)


@router.post("/invitations/accept", response_model=schemas.MembershipResponse)
def accept_invitation(form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(organizations.accept_invitation(ctx, form), schemas.MembershipResponse)


@router.get("/{organization_id}", response_model=schemas.OrganizationResponse)
def get_organization(
    organization_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    organization = organizations.get_organization(db, organization_id)
    if not organization:
        raise HTTPException(status_code=404, detail="Organization not found")
    check_member(user, organization_id)
    return organization


@router.put("/{organization_id}", response_model=schemas.OrganizationResponse)
def update_organization(
    organization_id: UUID,
    form: dict = Depends(form_data),
    ctx: ActionContext = Depends(get_context),
):
    return respond(organizations.update_organization(ctx, organization_id, form), schemas.OrganizationResponse)


@router.delete("/{organization_id}", status_code=204)
def delete_organization(organization_id: UUID, ctx: ActionContext = Depends(get_context)):
    """Soft-delete an organization (ADMIN; at least two admins required)."""
    respond(organizations.delete_organization(ctx, organization_id))


# Organization Members endpoints

@router.get("/{organization_id}/members", response_model=list[schemas.MembershipResponse])
def list_members(
    organization_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_member(user, organization_id)
    return organizations.list_members(db, organization_id)


@router.put("/{organization_id}/members/{user_id}", response_model=schemas.MembershipResponse)
def update_member_role(
    organization_id: UUID,
    user_id: UUID,
    form: dict = Depends(form_data),
    ctx: ActionContext = Depends(get_context),
):
    return respond(
        organizations.update_member_role(ctx, organization_id, user_id, form),
        schemas.MembershipResponse,
    )


@router.delete("/{organization_id}/members/{user_id}", status_code=204)
def remove_member(organization_id: UUID, user_id: UUID, ctx: ActionContext = Depends(get_context)):
    respond(organizations.remove_member(ctx, organization_id, user_id))


@router.get("/{organization_id}/invitations", response_model=list[schemas.InvitationResponse])
def list_invitations(
    organization_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    # Invitations carry their tokens
    if not has_role(user.memberships, organization_id, Role.ADMIN):
        raise HTTPException(status_code=403, detail="Access denied: Insufficient permissions")
    return organizations.list_invitations(db, organization_id)


@router.post("/{organization_id}/invitations", response_model=schemas.InvitationResponse, status_code=201)
def invite_user(
    organization_id: UUID,
    form: dict = Depends(form_data),
    ctx: ActionContext = Depends(get_context),
):
    """
    Invite an email address.

    - **email**: Address to invite
    - **role**: STAKEHOLDER, CONTRIBUTOR, PRODUCT_MANAGER or ADMIN
    - **teamId**: Optional team to join on acceptance
    """
    return respond(organizations.invite_user(ctx, organization_id, form), schemas.InvitationResponse)
