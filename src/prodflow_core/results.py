"""Action results and the transaction wrapper shared by every entity action."""
import functools
import logging
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .audit import log_activity
from .cache import CacheInvalidator
from .errors import AuthenticationRequired, ConflictError, ProdflowError

logger = logging.getLogger("prodflow-core.actions")

FAILURE_KINDS = (
    "validation",
    "authentication",
    "authorization",
    "business_rule",
    "not_found",
    "conflict",
    "internal",
)


class ActionResult(BaseModel):
    """Outcome of an action: ``data`` on success, ``error`` and ``kind`` on failure."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    data: Any = None
    error: Optional[str] = None
    kind: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None) -> "ActionResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, message: str, kind: str = "internal") -> "ActionResult":
        return cls(success=False, error=message, kind=kind)


class ActionContext:
    """
    Everything an action needs besides its form: the session, the acting user,
    the invalidator and request details for the audit trail.
    """

    def __init__(
        self,
        db: Session,
        user: Optional[models.User] = None,
        cache: Optional[CacheInvalidator] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ):
        self.db = db
        self.user = user
        self.cache = cache or CacheInvalidator()
        self.ip_address = ip_address
        self.user_agent = user_agent
        self._stale_paths: list[str] = []

    @property
    def user_id(self) -> Optional[UUID]:
        return self.user.id if self.user is not None else None

    def require_user(self) -> models.User:
        if self.user is None:
            raise AuthenticationRequired()
        return self.user

    def revalidate(self, *paths: str) -> None:
        """Mark display paths stale; published only if the action commits."""
        self._stale_paths.extend(paths)

    def audit(
        self,
        organization_id: UUID,
        action: str,
        entity_type: str,
        entity_id: Any,
        metadata: Optional[dict] = None,
        changes: Optional[dict] = None,
    ) -> models.AuditLog:
        return log_activity(
            self.db,
            organization_id=organization_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=self.user_id,
            metadata=metadata,
            changes=changes,
            ip_address=self.ip_address,
            user_agent=self.user_agent,
        )

    def _begin(self) -> None:
        self._stale_paths = []

    def _publish(self) -> None:
        paths, self._stale_paths = self._stale_paths, []
        self.cache.revalidate_many(paths)


def flush_unique(db: Session, conflict_message: str) -> None:
    """
    Flush pending writes, turning a unique-constraint violation into a conflict.

    Raises:
        ConflictError: If the flush violates a unique constraint
    """
    try:
        db.flush()
    except IntegrityError as e:
        logger.info(f"Unique constraint rejected write: {e.orig}")
        raise ConflictError(conflict_message) from e


def action(failure_message: str, authenticated: bool = True):
    """
    Run an entity action as one transaction and return an ``ActionResult``.

    The wrapped function receives the context first and returns the success
    payload. Domain errors become failures with their own message and kind;
    other database errors are logged and reported as ``failure_message``. The
    session commits once on success and rolls back on any failure; stale paths
    are published only after the commit.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(ctx: ActionContext, *args, **kwargs) -> ActionResult:
            ctx._begin()
            try:
                if authenticated:
                    ctx.require_user()
                data = func(ctx, *args, **kwargs)
                ctx.db.commit()
            except ProdflowError as e:
                ctx.db.rollback()
                logger.warning(f"{func.__name__} rejected ({e.kind}): {e.message}")
                return ActionResult.fail(e.message, e.kind)
            except SQLAlchemyError as e:
                ctx.db.rollback()
                logger.error(f"{func.__name__} failed: {e}", exc_info=True)
                return ActionResult.fail(failure_message, "internal")

            ctx._publish()
            return ActionResult.ok(data)

        return wrapper

    return decorator
