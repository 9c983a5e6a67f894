"""Tests for incentive, penalty and team pool state machines."""

from uuid import uuid4

import pytest

from incentive_engine.errors import ActorNotAllowedError, InvalidTransitionError
from incentive_engine.services.state_machine import (
    Actor,
    IncentiveStateMachine,
    IncentiveStatus,
    PenaltyStateMachine,
    PenaltyStatus,
    TeamPoolStateMachine,
)

MANAGER = Actor(user_id=uuid4(), role="manager")
OWNER = Actor(user_id=uuid4(), role="owner")
REP = Actor(user_id=uuid4(), role="sales_rep")


class TestIncentiveStateMachine:
    """Test monthly incentive transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        # calculating → pending_review (finalize)
        assert IncentiveStateMachine.can_transition("calculating", "pending_review") is True

        # pending_review → approved / rejected
        assert IncentiveStateMachine.can_transition("pending_review", "approved") is True
        assert IncentiveStateMachine.can_transition("pending_review", "rejected") is True

        # approved → paid
        assert IncentiveStateMachine.can_transition("approved", "paid") is True

        # reopen
        assert IncentiveStateMachine.can_transition("approved", "calculating") is True
        assert IncentiveStateMachine.can_transition("rejected", "calculating") is True

    def test_invalid_transitions(self):
        """No transition skips a state."""
        assert IncentiveStateMachine.can_transition("calculating", "paid") is False
        assert IncentiveStateMachine.can_transition("calculating", "approved") is False
        assert IncentiveStateMachine.can_transition("pending_review", "paid") is False
        assert IncentiveStateMachine.can_transition("rejected", "approved") is False

        # Paid is terminal
        assert IncentiveStateMachine.can_transition("paid", "calculating") is False
        assert IncentiveStateMachine.is_terminal("paid") is True

    def test_accepts_enum_members(self):
        assert IncentiveStateMachine.can_transition(
            IncentiveStatus.APPROVED, IncentiveStatus.PAID
        ) is True
        assert IncentiveStateMachine.get_next_statuses(IncentiveStatus.APPROVED) == [
            "paid",
            "calculating",
        ]

    def test_validate_transition_raises(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            IncentiveStateMachine.validate_transition("calculating", "paid")

        assert exc_info.value.from_status == "calculating"
        assert exc_info.value.to_status == "paid"
        assert exc_info.value.code == "INVALID_TRANSITION"

    def test_sales_rep_cannot_approve(self):
        with pytest.raises(ActorNotAllowedError):
            IncentiveStateMachine.validate_transition("pending_review", "approved", REP)

    def test_manager_roles_can_approve(self):
        IncentiveStateMachine.validate_transition("pending_review", "approved", MANAGER)
        IncentiveStateMachine.validate_transition("pending_review", "approved", OWNER)

    def test_can_calculate(self):
        assert IncentiveStateMachine.can_calculate("calculating") is True
        assert IncentiveStateMachine.can_calculate("pending_review") is False
        assert IncentiveStateMachine.can_calculate("paid") is False


class TestPenaltyStateMachine:
    """Test the dispute workflow and who may drive it."""

    def test_transitions(self):
        assert PenaltyStateMachine.can_transition("active", "disputed") is True
        assert PenaltyStateMachine.can_transition("disputed", "waived") is True
        assert PenaltyStateMachine.can_transition("disputed", "resolved") is True
        assert PenaltyStateMachine.can_transition("active", "waived") is False
        assert PenaltyStateMachine.is_terminal("waived") is True
        assert PenaltyStateMachine.is_terminal("resolved") is True

    def test_only_affected_user_can_dispute(self):
        PenaltyStateMachine.validate_transition(
            "active", "disputed", REP, affected_user_id=REP.user_id
        )
        with pytest.raises(ActorNotAllowedError):
            PenaltyStateMachine.validate_transition(
                "active", "disputed", MANAGER, affected_user_id=REP.user_id
            )

    def test_only_manager_can_resolve(self):
        PenaltyStateMachine.validate_transition(
            PenaltyStatus.DISPUTED, PenaltyStatus.WAIVED, MANAGER
        )
        with pytest.raises(ActorNotAllowedError):
            PenaltyStateMachine.validate_transition(
                PenaltyStatus.DISPUTED, PenaltyStatus.WAIVED, REP
            )

    def test_required_actor(self):
        assert PenaltyStateMachine.required_actor("active", "disputed") == "affected_user"
        assert PenaltyStateMachine.required_actor("disputed", "resolved") == "manager"


class TestTeamPoolStateMachine:
    def test_lifecycle(self):
        assert TeamPoolStateMachine.can_transition("pending_approval", "approved") is True
        assert TeamPoolStateMachine.can_transition("approved", "distributed") is True
        assert TeamPoolStateMachine.can_transition("pending_approval", "distributed") is False
        assert TeamPoolStateMachine.is_terminal("distributed") is True

    def test_manager_only(self):
        with pytest.raises(ActorNotAllowedError):
            TeamPoolStateMachine.validate_transition("pending_approval", "approved", REP)
