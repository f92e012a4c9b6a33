"""
Application exception hierarchy

Services raise these; the handlers registered in main.py turn them into
JSON responses of the form {"error": <code>, "message": <text>}.

    EcolithSwapError (500)
    ├── ValidationError        400
    ├── AuthError              401
    │   └── PermissionDeniedError 403
    ├── NotFoundError          404
    ├── ConflictError          409
    └── InternalError          500
"""
from typing import Any, Dict, Optional


class EcolithSwapError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message: user-facing description, safe to return in the response
        context: extra debug info, logged but only returned for validation errors
    """

    status_code = 500
    error_code = "internal_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(EcolithSwapError):
    """Client input failed a business validation rule"""

    status_code = 400
    error_code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthError(EcolithSwapError):
    """Missing, invalid or expired credentials"""

    status_code = 401
    error_code = "authentication_error"

    def __init__(self, message: str = "Could not validate credentials", context=None):
        super().__init__(message=message, context=context)


class PermissionDeniedError(AuthError):
    """Authenticated, but not allowed to touch this resource"""

    status_code = 403
    error_code = "permission_denied"

    def __init__(self, message: str = "Access denied", context=None):
        super().__init__(message=message, context=context)


class NotFoundError(EcolithSwapError):
    """
    A referenced entity does not exist.

    SQLAlchemy returns None for missing rows; services convert that None into
    this exception so routes stay free of lookup boilerplate.
    """

    status_code = 404
    error_code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id is not None:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(EcolithSwapError):
    """
    A state-transition precondition does not hold.

    Examples: renting a battery that is not available, returning a rental
    that is already closed, verifying a waste log twice.
    """

    status_code = 409
    error_code = "conflict"


class InternalError(EcolithSwapError):
    """Unexpected server-side failure"""
