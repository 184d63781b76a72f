"""
Error types raised by grid procedures.

Every error carries a machine-readable code and the HTTP status the API
reports it with. NotFoundError messages name only the entity kind so a
caller cannot tell a missing record from one owned by someone else.
"""


class GridError(Exception):
    """Base exception for all grid errors."""

    code = "GRID_ERROR"
    status = 500

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self):
        return {
            "status": "error",
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(GridError):
    """Procedure input failed its schema."""

    code = "VALIDATION_ERROR"
    status = 400

    def __init__(self, message, errors=None):
        super().__init__(message, details={"errors": errors or []})
        self.errors = errors or []


class UnauthorizedError(GridError):
    code = "UNAUTHORIZED"
    status = 401


class NotFoundError(GridError):
    code = "NOT_FOUND"
    status = 404

    def __init__(self, kind):
        super().__init__(f"{kind} not found", details={"kind": kind})
        self.kind = kind


class MethodNotAllowedError(GridError):
    code = "METHOD_NOT_ALLOWED"
    status = 405


class ConflictError(GridError):
    """A uniqueness constraint kept failing after retries."""

    code = "CONFLICT"
    status = 409


class StorageError(GridError):
    code = "STORAGE_ERROR"
    status = 500


ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (ValidationError, UnauthorizedError, NotFoundError,
                MethodNotAllowedError, ConflictError, StorageError)
}


def from_payload(payload, status):
    """Rebuild the matching error from an API error payload."""
    code = payload.get("code")
    message = payload.get("message") or f"HTTP {status}"
    details = payload.get("details") or {}
    cls = ERRORS_BY_CODE.get(code)
    if cls is NotFoundError:
        return NotFoundError(details.get("kind", "record"))
    if cls is ValidationError:
        return ValidationError(message, details.get("errors"))
    if cls is None:
        return GridError(message, details)
    return cls(message, details)
