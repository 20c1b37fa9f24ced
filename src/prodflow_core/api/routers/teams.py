"""Teams API endpoints."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ... import models, schemas
from ...actions import teams
from ...results import ActionContext
from ..dependencies import check_member, form_data, get_context, get_current_user, get_db, respond

logger = logging.getLogger("prodflow-core.teams")

router = APIRouter(tags=["teams"])


@router.get("/organizations/{organization_id}/teams", response_model=list[schemas.TeamResponse])
def list_teams(
    organization_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    check_member(user, organization_id)
    return teams.list_teams(db, organization_id)


@router.post("/organizations/{organization_id}/teams", response_model=schemas.TeamResponse, status_code=201)
def create_team(
    organization_id: UUID,
    form: dict = Depends(form_data),
    ctx: ActionContext = Depends(get_context),
):
    """
    Create a team.

    - **name**: Team name (1-100 characters)
    - **slug**: Lowercase words joined by single hyphens, unique in the organization
    - **description**: Optional description
    """
    return respond(teams.create_team(ctx, organization_id, form), schemas.TeamResponse)


@router.put("/teams/{team_id}", response_model=schemas.TeamResponse)
def update_team(team_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(teams.update_team(ctx, team_id, form), schemas.TeamResponse)


@router.delete("/teams/{team_id}", status_code=204)
def delete_team(team_id: UUID, ctx: ActionContext = Depends(get_context)):
    respond(teams.delete_team(ctx, team_id))


@router.get("/teams/{team_id}/members", response_model=list[schemas.MembershipResponse])
def list_team_members(
    team_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    team = db.query(models.Team).filter(models.Team.id == team_id, models.Team.deleted_at.is_(None)).first()
    if team is None:
        raise HTTPException(status_code=404, detail="Team not found")
    check_member(user, team.organization_id)
    return teams.list_team_members(db, team_id)


@router.post("/teams/{team_id}/members", response_model=schemas.MembershipResponse, status_code=201)
def add_team_member(team_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(teams.add_team_member(ctx, team_id, form), schemas.MembershipResponse)


@router.put("/teams/{team_id}/members/{user_id}", response_model=schemas.MembershipResponse)
def update_team_member_role(
    team_id: UUID,
    user_id: UUID,
    form: dict = Depends(form_data),
    ctx: ActionContext = Depends(get_context),
):
    return respond(teams.update_team_member_role(ctx, team_id, user_id, form), schemas.MembershipResponse)


@router.delete("/teams/{team_id}/members/{user_id}", status_code=204)
def remove_team_member(team_id: UUID, user_id: UUID, ctx: ActionContext = Depends(get_context)):
    respond(teams.remove_team_member(ctx, team_id, user_id))
