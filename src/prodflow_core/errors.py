"""Domain exceptions raised by services and converted to results by actions."""
from typing import Optional


class ProdflowError(Exception):
    """Base class for expected, user-facing failures."""

    kind = "internal"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(ProdflowError):
    """Raised when form input violates a schema constraint."""

    kind = "validation"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class AuthenticationRequired(ProdflowError):
    kind = "authentication"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class AuthorizationError(ProdflowError):
    """Raised when a user may not act within an organization."""

    kind = "authorization"

    def __init__(self, message: str, user_id=None, organization_id=None):
        super().__init__(message)
        self.user_id = user_id
        self.organization_id = organization_id


class UserNotFoundError(AuthorizationError):
    def __init__(self, user_id=None, organization_id=None):
        super().__init__("User not found", user_id, organization_id)


class NotAMemberError(AuthorizationError):
    def __init__(self, user_id=None, organization_id=None):
        super().__init__(
            "Access denied: Not a member of this organization", user_id, organization_id
        )


class InsufficientRoleError(AuthorizationError):
    def __init__(self, user_id=None, organization_id=None, role=None, allowed_roles=None):
        super().__init__("Access denied: Insufficient permissions", user_id, organization_id)
        self.role = role
        self.allowed_roles = list(allowed_roles or [])


class BusinessRuleViolation(ProdflowError):
    kind = "business_rule"


class NotFoundError(ProdflowError):
    kind = "not_found"


class ConflictError(ProdflowError):
    """Raised when a write collides with a unique constraint."""

    kind = "conflict"
