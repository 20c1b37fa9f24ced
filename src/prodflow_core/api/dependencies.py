"""FastAPI dependencies: sessions, identity, form data and result mapping."""
import logging
from typing import Generator, Optional, Type
from uuid import UUID

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .. import models
from ..actions.common import get_product
from ..auth import require_organization, resolve_session
from ..cache import CacheInvalidator
from ..database import Database, session_scope
from ..errors import ProdflowError
from ..results import ActionContext, ActionResult

logger = logging.getLogger("prodflow-core.api")

STATUS_BY_KIND = {
    "validation": 422,
    "authentication": 401,
    "authorization": 403,
    "business_rule": 400,
    "not_found": 404,
    "conflict": 409,
    "internal": 500,
}

bearer_scheme = HTTPBearer(auto_error=False)


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_cache(request: Request) -> CacheInvalidator:
    return request.app.state.cache


def get_db(database: Database = Depends(get_database)) -> Generator[Session, None, None]:
    """
    Dependency for getting a database session.

    Yields:
        Session: SQLAlchemy database session
    """
    yield from session_scope(database)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> models.User:
    """Resolve the bearer session token, or reject the request with 401."""
    token = credentials.credentials if credentials else None
    user = resolve_session(db, token)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Optional[models.User]:
    return resolve_session(db, credentials.credentials if credentials else None)


def _context(request: Request, db: Session, user: Optional[models.User]) -> ActionContext:
    return ActionContext(
        db,
        user=user,
        cache=get_cache(request),
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def get_context(
    request: Request,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> ActionContext:
    """Action context for an authenticated request."""
    return _context(request, db, user)


def get_public_context(
    request: Request,
    db: Session = Depends(get_db),
    user: Optional[models.User] = Depends(get_optional_user),
) -> ActionContext:
    return _context(request, db, user)


async def form_data(request: Request) -> dict:
    """
    Submitted fields as a plain dict.

    Accepts url-encoded, multipart or JSON bodies. A repeated form key becomes
    a list.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        body = await request.json()
        if not isinstance(body, dict):
            raise HTTPException(status_code=422, detail="Expected a JSON object")
        return body

    form = await request.form()
    data = {}
    for key in form.keys():
        values = [v for v in form.getlist(key) if isinstance(v, str)]
        if not values:
            continue
        data[key] = values[0] if len(values) == 1 else values
    return data


def raise_for_result(result: ActionResult) -> None:
    """Convert a failed action result into an HTTP error."""
    if result.success:
        return
    status_code = STATUS_BY_KIND.get(result.kind, 500)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    raise HTTPException(status_code=status_code, detail=result.error, headers=headers)


def respond(result: ActionResult, schema: Optional[Type[BaseModel]] = None):
    """Return the action's payload, validated into ``schema`` when given."""
    raise_for_result(result)
    if schema is None or result.data is None:
        return result.data
    if isinstance(result.data, list):
        return [schema.model_validate(item) for item in result.data]
    return schema.model_validate(result.data)


def check_member(user: models.User, organization_id: UUID) -> models.Membership:
    """Read access: any membership in the organization."""
    try:
        return require_organization(user, organization_id)
    except ProdflowError as e:
        raise HTTPException(status_code=403, detail=e.message)


def load_product_for_member(db: Session, user: models.User, product_id: UUID) -> models.Product:
    try:
        product = get_product(db, product_id)
    except ProdflowError as e:
        raise HTTPException(status_code=404, detail=e.message)
    check_member(user, product.organization_id)
    return product
