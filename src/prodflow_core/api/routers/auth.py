"""Account endpoints: sign-up, sign-in, sign-out and the current user."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from ... import models, schemas
from ...actions import accounts
from ...results import ActionContext
from ..dependencies import (
    bearer_scheme,
    form_data,
    get_current_user,
    get_public_context,
    respond,
)

logger = logging.getLogger("prodflow-core.auth")

router = APIRouter(tags=["auth"])


@router.post("/sign-up", response_model=schemas.UserResponse, status_code=201)
def sign_up(form: dict = Depends(form_data), ctx: ActionContext = Depends(get_public_context)):
    """
    Create an account.

    - **email**: Email address (unique)
    - **password**: At least 8 characters
    - **name**: Display name (optional)
    """
    return respond(accounts.sign_up(ctx, form), schemas.UserResponse)


@router.post("/sign-in", response_model=schemas.SessionResponse)
def sign_in(form: dict = Depends(form_data), ctx: ActionContext = Depends(get_public_context)):
    """Exchange credentials for a bearer session token (shown once)."""
    data = respond(accounts.sign_in(ctx, form))
    return schemas.SessionResponse(
        token=data["token"],
        user=schemas.UserResponse.model_validate(data["user"]),
    )


@router.post("/sign-out", status_code=204)
def sign_out(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    ctx: ActionContext = Depends(get_public_context),
):
    if credentials is None or not accounts.sign_out(ctx, credentials.credentials):
        raise HTTPException(status_code=401, detail="Authentication required")


@router.get("/me", response_model=schemas.UserResponse)
def me(user: models.User = Depends(get_current_user)):
    return user
