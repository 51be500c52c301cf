"""Error taxonomy shared by the collaboration core and the HTTP routes."""

from typing import Any

from fastapi import HTTPException


class CollaborationError(Exception):
    """Base class for failures reported back to the originating caller only."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message}


class SlideNotFoundError(CollaborationError):
    """Raised when a referenced slide does not exist."""

    status_code = 404


class ProjectNotFoundError(CollaborationError):
    """Raised when a referenced project does not exist."""

    status_code = 404


class UserNotFoundError(CollaborationError):
    """Raised when an invitation names an unknown user."""

    status_code = 404


class ForbiddenError(CollaborationError):
    """Raised when the acting user lacks the membership or role required."""

    status_code = 403


class ConflictError(CollaborationError):
    """Raised when a (project, user) membership pair already exists."""

    status_code = 409


class PatchValidationError(CollaborationError):
    """Raised when an edit payload is malformed. Never reaches persistence."""

    status_code = 422

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        if self.errors:
            payload["details"] = self.errors
        return payload


class PersistenceError(CollaborationError):
    """Raised when the store fails while reading or writing."""

    status_code = 503


def to_http_exception(error: CollaborationError) -> HTTPException:
    """Map a collaboration failure onto the matching HTTP status."""
    if isinstance(error, PatchValidationError) and error.errors:
        return HTTPException(status_code=error.status_code, detail=error.errors)
    return HTTPException(status_code=error.status_code, detail=error.message)
