"""Error taxonomy for the incentive engine.

Every failure the engine reports carries a stable ``code`` so callers can
map it to user-visible messaging without parsing strings:

- ConfigurationError: organization config that cannot be used
- PreconditionError: an operation attempted in the wrong state or by the
  wrong actor
- ValidationError: malformed or out-of-range input
- NotFoundError: referenced record does not exist
"""

from __future__ import annotations

from typing import Any


class IncentiveEngineError(Exception):
    """Base class for all engine errors."""

    code = "ENGINE_ERROR"

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, **self.details}


class ConfigurationError(IncentiveEngineError):
    """Raised when organization configuration is invalid or incomplete."""

    code = "CONFIGURATION_ERROR"


class ValidationError(IncentiveEngineError):
    """Raised for out-of-range values or malformed identifiers."""

    code = "VALIDATION_ERROR"


class NotFoundError(IncentiveEngineError):
    """Raised when a referenced record does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found", entity=entity)


class PreconditionError(IncentiveEngineError):
    """Raised when an operation's precondition does not hold."""

    code = "PRECONDITION_FAILED"

    def __init__(self, precondition: str, message: str | None = None):
        self.precondition = precondition
        super().__init__(message or precondition, precondition=precondition)


class InvalidTransitionError(PreconditionError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(f"status must allow {from_status} -> {to_status}", msg)


class ActorNotAllowedError(PreconditionError):
    """Raised when the acting user may not perform a transition."""

    code = "ACTOR_NOT_ALLOWED"
