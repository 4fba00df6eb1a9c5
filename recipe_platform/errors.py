"""API error taxonomy.

Handlers and services raise these; `recipe_platform.api.responses` turns them
into the `{success: false, message, errors?}` envelope with the matching
HTTP status. Anything that is not an `ApiError` becomes a generic 500.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class ApiError(Exception):
    status_code: int = 500
    default_message: str = "Something went wrong"

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        errors: Optional[List[Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)
        if status_code is not None:
            self.status_code = int(status_code)
        self.errors = errors or []
        self.headers = headers

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": False, "message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationError(ApiError):
    status_code = 400
    default_message = "Invalid request"


class Unauthorized(ApiError):
    status_code = 401
    default_message = "Unauthorized request"

    def __init__(self, message: str | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("headers", {"WWW-Authenticate": "Bearer"})
        super().__init__(message, **kwargs)


class Forbidden(ApiError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class Conflict(ApiError):
    # Uniqueness violations use 409; duplicate-state violations on a user's
    # own list (favorites) pass status_code=400.
    status_code = 409
    default_message = "Conflict"


class InternalError(ApiError):
    status_code = 500
    default_message = "Something went wrong"
