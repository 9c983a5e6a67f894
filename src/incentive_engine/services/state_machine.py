"""Status state machines with actor-aware transition validation.

Each workflow is a table of allowed transitions; each transition names the
kind of actor that may trigger it. Services call ``validate_transition``
before changing a status, so role checks live here rather than being
scattered across the services.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar
from uuid import UUID

from incentive_engine.errors import ActorNotAllowedError, InvalidTransitionError, NotFoundError
from incentive_engine.models.organization import MANAGER_ROLES, SALES_ROLES

# Actor kinds a transition may require
MANAGER = "manager"
AFFECTED_USER = "affected_user"


@dataclass(frozen=True)
class Actor:
    """The user performing an operation, as asserted by the caller."""

    user_id: UUID
    role: str
    organization_id: UUID | None = None

    @property
    def is_manager(self) -> bool:
        return self.role in MANAGER_ROLES

    @property
    def is_sales(self) -> bool:
        return self.role in SALES_ROLES


def require_manager(actor: Actor, action: str) -> None:
    """Raise ActorNotAllowedError unless ``actor`` holds a manager role."""
    if not actor.is_manager:
        raise ActorNotAllowedError(
            "actor must be a manager",
            f"Only managers may {action} (role: {actor.role})",
        )


class IncentiveStatus(str, Enum):
    """Monthly incentive status values."""

    CALCULATING = "calculating"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


class PenaltyStatus(str, Enum):
    """Penalty record status values."""

    ACTIVE = "active"
    DISPUTED = "disputed"
    WAIVED = "waived"
    RESOLVED = "resolved"


class TeamPoolStatus(str, Enum):
    """Team pool distribution status values."""

    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    DISTRIBUTED = "distributed"


class TransitionTable:
    """Shared transition checks; subclasses supply the tables."""

    # {from_status: [allowed_to_statuses]}
    VALID_TRANSITIONS: ClassVar[dict[str, list[str]]] = {}
    # {(from_status, to_status): actor kind}
    REQUIRED_ACTOR: ClassVar[dict[tuple[str, str], str]] = {}

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        for source, targets in cls.VALID_TRANSITIONS.items():
            if _value(source) == _value(current_status):
                return [_value(t) for t in targets]
        return []

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        return _value(to_status) in cls.get_next_statuses(from_status)

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return not cls.get_next_statuses(status)

    @classmethod
    def required_actor(cls, from_status: str, to_status: str) -> str:
        key = (_value(from_status), _value(to_status))
        for (source, target), kind in cls.REQUIRED_ACTOR.items():
            if (_value(source), _value(target)) == key:
                return kind
        return MANAGER

    @classmethod
    def validate_transition(
        cls,
        from_status: str,
        to_status: str,
        actor: Actor | None = None,
        affected_user_id: UUID | None = None,
    ) -> None:
        """Validate a transition and the actor performing it.

        Raises:
            InvalidTransitionError: the table has no such transition.
            ActorNotAllowedError: the actor is not allowed to perform it.
        """
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(_value(from_status), _value(to_status))
        if actor is None:
            return

        required = cls.required_actor(from_status, to_status)
        if required == MANAGER and not actor.is_manager:
            raise ActorNotAllowedError(
                "actor must be a manager",
                f"Only managers may move {_value(from_status)} -> {_value(to_status)} "
                f"(role: {actor.role})",
            )
        if required == AFFECTED_USER and actor.user_id != affected_user_id:
            raise ActorNotAllowedError(
                "actor must be the affected user",
                f"Only the affected user may move {_value(from_status)} -> {_value(to_status)}",
            )


def _value(status: str) -> str:
    return status.value if isinstance(status, Enum) else status


class IncentiveStateMachine(TransitionTable):
    """State machine for monthly incentive status.

    Allowed transitions (all manager-only):
    - calculating -> pending_review (finalize)
    - pending_review -> approved | rejected
    - pending_review -> calculating (reopen)
    - approved -> paid
    - approved -> calculating (reopen)
    - rejected -> calculating (reopen)
    - paid: terminal
    """

    VALID_TRANSITIONS = {
        IncentiveStatus.CALCULATING: [IncentiveStatus.PENDING_REVIEW],
        IncentiveStatus.PENDING_REVIEW: [
            IncentiveStatus.APPROVED,
            IncentiveStatus.REJECTED,
            IncentiveStatus.CALCULATING,
        ],
        IncentiveStatus.APPROVED: [IncentiveStatus.PAID, IncentiveStatus.CALCULATING],
        IncentiveStatus.REJECTED: [IncentiveStatus.CALCULATING],
        IncentiveStatus.PAID: [],  # Terminal state
    }

    # Recalculation only overwrites records still in this status
    CALCULATION_ALLOWED = {IncentiveStatus.CALCULATING}

    @classmethod
    def can_calculate(cls, status: str) -> bool:
        return _value(status) in {s.value for s in cls.CALCULATION_ALLOWED}


class PenaltyStateMachine(TransitionTable):
    """State machine for penalty disputes.

    - active -> disputed: only the affected user
    - disputed -> waived | resolved: only a manager
    - waived, resolved: terminal
    """

    VALID_TRANSITIONS = {
        PenaltyStatus.ACTIVE: [PenaltyStatus.DISPUTED],
        PenaltyStatus.DISPUTED: [PenaltyStatus.WAIVED, PenaltyStatus.RESOLVED],
        PenaltyStatus.WAIVED: [],
        PenaltyStatus.RESOLVED: [],
    }

    REQUIRED_ACTOR = {
        (PenaltyStatus.ACTIVE, PenaltyStatus.DISPUTED): AFFECTED_USER,
        (PenaltyStatus.DISPUTED, PenaltyStatus.WAIVED): MANAGER,
        (PenaltyStatus.DISPUTED, PenaltyStatus.RESOLVED): MANAGER,
    }


class TeamPoolStateMachine(TransitionTable):
    """State machine for team pool distributions (all manager-only).

    - pending_approval -> approved -> distributed
    - distributed: terminal
    """

    VALID_TRANSITIONS = {
        TeamPoolStatus.PENDING_APPROVAL: [TeamPoolStatus.APPROVED],
        TeamPoolStatus.APPROVED: [TeamPoolStatus.DISTRIBUTED],
        TeamPoolStatus.DISTRIBUTED: [],
    }


def ensure_same_organization(
    actor: Actor | None, organization_id: UUID, entity: str, entity_id: object
) -> None:
    """Hide records of other organizations from an organization-bound actor."""
    if actor is not None and actor.organization_id is not None:
        if actor.organization_id != organization_id:
            raise NotFoundError(entity, entity_id)
