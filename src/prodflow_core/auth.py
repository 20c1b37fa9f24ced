"""Identity resolution and the role gate.

Two ways of checking a role are supported, both built on ``role_satisfies``:

- ``RoleCheck.EXACT``: the member's role must be one of the listed roles.
  ADMIN does not satisfy ``[PRODUCT_MANAGER]``. Entity actions use this.
- ``RoleCheck.MINIMUM``: the member's role must rank at least as high as the
  listed role (STAKEHOLDER < CONTRIBUTOR < PRODUCT_MANAGER < ADMIN).
"""
import enum
import hashlib
import logging
import secrets
from datetime import timedelta
from typing import Iterable, Optional
from uuid import UUID

import bcrypt
from sqlalchemy import and_
from sqlalchemy.orm import Session

from . import models
from .errors import InsufficientRoleError, NotAMemberError, UserNotFoundError
from .models import Role, utcnow

logger = logging.getLogger("prodflow-core.auth")

ROLE_RANK: dict[Role, int] = {
    Role.STAKEHOLDER: 0,
    Role.CONTRIBUTOR: 1,
    Role.PRODUCT_MANAGER: 2,
    Role.ADMIN: 3,
}

# Common allowed-role sets
ADMIN_ONLY = (Role.ADMIN,)
MANAGERS = (Role.ADMIN, Role.PRODUCT_MANAGER)
WRITERS = (Role.ADMIN, Role.PRODUCT_MANAGER, Role.CONTRIBUTOR)


class RoleCheck(str, enum.Enum):
    EXACT = "exact"
    MINIMUM = "minimum"


def role_satisfies(role: Role, roles: Iterable[Role], mode: RoleCheck = RoleCheck.EXACT) -> bool:
    """
    Check a single role against an allowed set.

    Args:
        role: The member's role
        roles: Allowed roles (EXACT) or minimum roles (MINIMUM; the lowest wins)
        mode: How to compare

    Returns:
        True if the role is permitted
    """
    roles = [Role(r) for r in roles]
    if not roles:
        return False
    if mode == RoleCheck.EXACT:
        return Role(role) in roles
    minimum = min(ROLE_RANK[r] for r in roles)
    return ROLE_RANK[Role(role)] >= minimum


def get_membership(db: Session, user_id: UUID, organization_id: UUID) -> tuple[Optional[models.User], Optional[models.Membership]]:
    """
    Load a user together with their membership in one organization.

    When the user has several rows in the organization (organization-level and
    team rows), the organization-level row wins, then the oldest.

    Returns:
        (user, membership); user is None when it does not exist, membership is
        None when the user is not a member of a live organization
    """
    row = (
        db.query(models.User, models.Membership)
        .outerjoin(
            models.Membership,
            and_(
                models.Membership.user_id == models.User.id,
                models.Membership.organization_id == organization_id,
            ),
        )
        .filter(models.User.id == user_id)
        .order_by(models.Membership.team_id.isnot(None), models.Membership.created_at)
        .first()
    )
    if row is None:
        return None, None

    user, membership = row
    if membership is not None and membership.organization.deleted_at is not None:
        membership = None
    return user, membership


def authorize(
    db: Session,
    user_id: UUID,
    organization_id: UUID,
    roles: Iterable[Role],
    mode: RoleCheck = RoleCheck.EXACT,
) -> models.Membership:
    """
    The role gate: fail unless the user holds a permitted role in the organization.

    Raises:
        UserNotFoundError: If the user does not exist
        NotAMemberError: If the user has no membership in the organization
        InsufficientRoleError: If the membership's role is not permitted

    Returns:
        The membership that granted access
    """
    roles = list(roles)
    user, membership = get_membership(db, user_id, organization_id)
    if user is None:
        logger.warning(f"Authorization failed: user {user_id} not found")
        raise UserNotFoundError(user_id, organization_id)
    if membership is None:
        logger.warning(f"Authorization failed: user {user_id} not in org {organization_id}")
        raise NotAMemberError(user_id, organization_id)
    if not role_satisfies(membership.role, roles, mode):
        logger.warning(
            f"Authorization failed: user {user_id} is {membership.role.value} in org {organization_id}, "
            f"needs {mode.value} {[Role(r).value for r in roles]}"
        )
        raise InsufficientRoleError(user_id, organization_id, membership.role, roles)
    return membership


def require_role(db: Session, user_id: UUID, organization_id: UUID, allowed_roles: Iterable[Role]) -> models.Membership:
    """Exact-set role check; see ``authorize``."""
    return authorize(db, user_id, organization_id, allowed_roles, RoleCheck.EXACT)


def has_role(memberships: Iterable[models.Membership], organization_id: UUID, minimum_role: Role) -> bool:
    """
    Rank-based check over already-loaded memberships.

    Args:
        memberships: The user's memberships (any organizations)
        organization_id: Organization to check
        minimum_role: Lowest acceptable role

    Returns:
        True if any membership in the organization ranks at least ``minimum_role``
    """
    return any(
        m.organization_id == organization_id
        and role_satisfies(m.role, [minimum_role], RoleCheck.MINIMUM)
        for m in memberships
    )


def require_organization(user: models.User, organization_id: UUID) -> models.Membership:
    """
    Membership check without a role requirement, over a resolved user.

    Raises:
        NotAMemberError: If the user has no membership in the organization,
            or the organization has been deleted
    """
    matching = [
        m for m in user.memberships
        if m.organization_id == organization_id and m.organization.deleted_at is None
    ]
    if not matching:
        raise NotAMemberError(user.id, organization_id)
    matching.sort(key=lambda m: (m.team_id is not None, m.created_at))
    return matching[0]


# =============================================================================
# Passwords
# =============================================================================


def hash_password(plain_password: str, rounds: int = 12) -> str:
    """Hash a plain-text password with bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))


# =============================================================================
# Sessions
# =============================================================================


def hash_token(raw_token: str) -> str:
    """SHA-256 hex digest of a session token."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def authenticate(db: Session, email: str, password: str) -> Optional[models.User]:
    """Return the user for valid credentials, else None."""
    user = db.query(models.User).filter(models.User.email == email.lower()).first()
    if user is None or not verify_password(password, user.password_hash):
        logger.info(f"Failed sign-in for {email}")
        return None
    return user


def create_session(db: Session, user: models.User, ttl_hours: int) -> str:
    """
    Open a session for ``user``.

    Only the token hash is stored; the returned raw token cannot be recovered
    later.
    """
    raw_token = secrets.token_urlsafe(32)
    db.add(models.SessionToken(
        user_id=user.id,
        token_hash=hash_token(raw_token),
        expires_at=utcnow() + timedelta(hours=ttl_hours),
    ))
    db.flush()
    logger.debug(f"Opened session for user {user.id}")
    return raw_token


def resolve_session(db: Session, raw_token: Optional[str]) -> Optional[models.User]:
    """
    Resolve a raw session token to its user, memberships loaded.

    Returns:
        The user, or None for unknown, expired or revoked tokens
    """
    if not raw_token:
        return None
    session = (
        db.query(models.SessionToken)
        .filter(models.SessionToken.token_hash == hash_token(raw_token))
        .first()
    )
    if session is None or not session.is_active:
        return None
    session.last_used_at = utcnow()
    db.commit()
    return session.user


def revoke_session(db: Session, raw_token: str) -> bool:
    session = (
        db.query(models.SessionToken)
        .filter(models.SessionToken.token_hash == hash_token(raw_token))
        .first()
    )
    if session is None or session.revoked_at is not None:
        return False
    session.revoked_at = utcnow()
    db.commit()
    return True
