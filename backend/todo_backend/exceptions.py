"""
Todo Backend — Custom Exception Hierarchy
==========================================

What:  Application-specific exceptions for authentication, persistence and
       lookup failures.
How:   Each exception carries a public message and a private context dict.
       Handlers registered in main.py turn them into JSON error responses;
       the context is logged server-side and never returned.
Who:   Raised by the auth components, ValidatedStore and TodoService.

Exception Hierarchy:
    TodoAppError (base)
    ├── ConfigurationError       → 500 (operator must fix settings)
    ├── InvalidCredentialError   → 401 (bad / expired / malformed token)
    ├── ValidationError          → 500 (database row does not match its schema)
    ├── DatabaseError            → 500 (driver / connection failure)
    └── NotFoundError            → 404 (missing or not owned by the caller)

None of these are retried inside the request.
"""

from typing import Any, Dict, Optional


class TodoAppError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    status_code: int = 500
    code: str = "internal_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ConfigurationError(TodoAppError):
    """
    A required external dependency is not configured.

    When:  A bearer token arrives but no JWKS URI is set.
    HTTP:  500. This is a deployment fault, not a client fault.
    """

    status_code = 500
    code = "configuration_error"

    def __init__(
        self,
        message: str = "Authentication not properly configured",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class InvalidCredentialError(TodoAppError):
    """
    A supplied bearer token could not be accepted.

    When:  Bad signature, wrong issuer, expired, unknown key id, or a claim set
           that fails shape validation.
    HTTP:  401. The response message is identical for every cause; the cause
           itself is kept in `context["reason"]` for the logs.
    """

    status_code = 401
    code = "invalid_credentials"

    def __init__(
        self,
        reason: str = "token rejected",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        ctx["reason"] = reason
        super().__init__(
            message="Invalid or expired authentication token",
            context=ctx,
        )
        self.reason = reason


class ValidationError(TodoAppError):
    """
    A database row did not match the schema it was read with.

    When:  ValidatedStore validation of a result row fails (schema drift,
           manual data edits, nullability changes).
    HTTP:  500. The row index and validation detail are logged only.
    """

    status_code = 500
    code = "data_validation_error"

    def __init__(
        self,
        row_index: int,
        detail: str,
        schema: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        ctx["row_index"] = row_index
        ctx["detail"] = detail
        if schema:
            ctx["schema"] = schema
        super().__init__(
            message=f"Database result validation failed at row {row_index}",
            context=ctx,
        )
        self.row_index = row_index
        self.detail = detail


class DatabaseError(TodoAppError):
    """
    A database operation failed unexpectedly.

    The message returned to the client is always generic; the driver error
    is only logged.
    """

    status_code = 500
    code = "database_error"

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(TodoAppError):
    """
    The resource does not exist or belongs to another user.

    Both cases produce the same response so ids of other users' todos
    cannot be probed.
    """

    status_code = 404
    code = "not_found"

    def __init__(
        self,
        resource: str = "Resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = resource_id
        super().__init__(message=f"{resource} not found", context=ctx)
