"""Account actions: sign-up, sign-in and sign-out."""
import logging
from typing import Optional

from .. import models, schemas
from ..auth import authenticate, create_session, hash_password, revoke_session
from ..config import get_settings
from ..errors import AuthenticationRequired, ConflictError
from ..forms import parse_form
from ..results import ActionContext, action, flush_unique

logger = logging.getLogger("prodflow-core.accounts")

EMAIL_TAKEN = "An account with this email already exists"


@action("Failed to create account", authenticated=False)
def sign_up(ctx: ActionContext, form, password_rounds: int = 12) -> models.User:
    data = parse_form(schemas.SignUpForm, form)
    db = ctx.db

    if db.query(models.User.id).filter(models.User.email == data.email).first():
        raise ConflictError(EMAIL_TAKEN)

    user = models.User(
        email=data.email,
        name=data.name,
        password_hash=hash_password(data.password, rounds=password_rounds),
    )
    user.profile = models.UserProfile()
    db.add(user)
    flush_unique(db, EMAIL_TAKEN)

    logger.info(f"Created account {user.id}")
    return user


@action("Failed to sign in", authenticated=False)
def sign_in(ctx: ActionContext, form, ttl_hours: Optional[int] = None) -> dict:
    """
    Exchange credentials for a session token.

    Returns:
        ``{"token": raw_token, "user": user}``; the raw token is not stored
    """
    data = parse_form(schemas.SignInForm, form)
    user = authenticate(ctx.db, data.email, data.password)
    if user is None:
        raise AuthenticationRequired("Invalid email or password")

    if ttl_hours is None:
        ttl_hours = get_settings().session_ttl_hours
    token = create_session(ctx.db, user, ttl_hours)
    return {"token": token, "user": user}


def sign_out(ctx: ActionContext, raw_token: str) -> bool:
    """Revoke a session token. Returns False when it was unknown or already revoked."""
    return revoke_session(ctx.db, raw_token)
