"""Domain error taxonomy.

Managers raise these, never HTTP exceptions.  Each class also derives from
the closest builtin so callers can keep catching ``LookupError`` /
``ValueError`` / ``PermissionError`` where that reads better.  The mapping to
transport status codes lives in ``error_handlers``.
"""

from __future__ import annotations


class TavernError(Exception):
    """Base class for errors surfaced to API callers."""

    code = "INTERNAL_SERVER_ERROR"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(TavernError, LookupError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Not found"


class ForbiddenError(TavernError, PermissionError):
    code = "FORBIDDEN"
    status_code = 403
    default_message = "Forbidden"


class BadRequestError(TavernError, ValueError):
    code = "BAD_REQUEST"
    status_code = 400
    default_message = "Bad request"


class UnauthorizedError(TavernError):
    code = "UNAUTHORIZED"
    status_code = 401
    default_message = "Unauthorized"


class InternalInconsistencyError(TavernError, RuntimeError):
    """An invariant that should always hold was violated.

    Fatal for the current operation: the transaction is rolled back, the
    detail is logged, and the caller only sees a generic internal error.
    """
