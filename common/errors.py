"""
Error taxonomy shared by the order, inventory and notification services.

Every error carries an HTTP-equivalent status code so the FastAPI apps can
render it without a lookup table, and optional ``details`` (a list of
human-readable messages) for aggregated failures.
"""

from __future__ import annotations

from typing import Any


class PipelineError(Exception):
    """Base class for all expected pipeline failures."""

    status_code = 500

    def __init__(self, message: str, details: list[Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(PipelineError):
    status_code = 400


class ForbiddenError(PipelineError):
    status_code = 403


class NotFoundError(PipelineError):
    status_code = 404


class ConflictError(PipelineError):
    status_code = 409


class ReservationRejected(ConflictError):
    """One or more lines of an order could not be reserved.

    ``failures`` holds a ``LineFailure`` per failing line; ``details`` holds
    their messages so the caller sees every problem in one response.
    """

    def __init__(self, failures: list[Any]) -> None:
        super().__init__("Inventory check failed", [f.message for f in failures])
        self.failures = failures


class InvalidTransitionError(ConflictError):
    pass


class MalformedPayloadError(PipelineError):
    status_code = 400


class UnknownTaskError(MalformedPayloadError):
    def __init__(self, action: Any) -> None:
        super().__init__(f"Unknown task action: {action!r}")
        self.action = action


class NotificationError(PipelineError):
    status_code = 502


class ServiceUnavailableError(PipelineError):
    status_code = 503
