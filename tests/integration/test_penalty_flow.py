"""Penalty recording and the dispute workflow.

Resolving a dispute changes which penalties count, so these tests also
check what happens to the month's incentive afterwards.
"""

from datetime import date
from decimal import Decimal

import pytest

from incentive_engine.errors import (
    ActorNotAllowedError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from incentive_engine.services import (
    Actor,
    ConfigService,
    IncentiveService,
    PenaltyService,
)

from .conftest import ALICE_ID, BOB_ID, MONTH, ORG_ID, OUTSIDER_ID

pytestmark = pytest.mark.asyncio

INCIDENT = date(2026, 3, 15)


@pytest.fixture
def incentives(seeded, locks) -> IncentiveService:
    return IncentiveService(seeded, concurrency=1, timeout_seconds=10, locks=locks)


@pytest.fixture
def penalties(seeded, locks, incentives) -> PenaltyService:
    return PenaltyService(seeded, incentive_service=incentives, locks=locks)


@pytest.fixture
def bob() -> Actor:
    return Actor(user_id=BOB_ID, role="sales_rep", organization_id=ORG_ID)


async def absent(penalties: PenaltyService, manager: Actor):
    return await penalties.create_penalty(
        ORG_ID,
        ALICE_ID,
        "unauthorized_absence",
        manager,
        description="No-show on the 15th",
        incident_date=INCIDENT,
    )


class TestCreatePenalty:
    """Recording penalties."""

    async def test_fixed_percentage(self, penalties, manager):
        record = await absent(penalties, manager)

        assert record.status == "active"
        assert record.month == MONTH
        assert record.penalty_percentage == Decimal("5")
        assert record.created_by == manager.user_id

    async def test_severity_based_percentage(self, penalties, manager):
        record = await penalties.create_penalty(
            ORG_ID,
            ALICE_ID,
            "low_compliance",
            manager,
            severity=Decimal("93"),
            incident_date=INCIDENT,
        )

        assert record.penalty_percentage == Decimal("3")
        assert record.severity_value == Decimal("93")

    async def test_percentage_is_frozen_at_creation(self, penalties, seeded, manager):
        record = await absent(penalties, manager)
        await ConfigService(seeded).update_config(
            ORG_ID, {"penalty_unauthorized_absence": Decimal("10")}, manager
        )

        stored = await penalties.get_penalty(record.penalty_id)
        assert stored.penalty_percentage == Decimal("5")

    async def test_unknown_type(self, penalties, manager):
        with pytest.raises(ValidationError):
            await penalties.create_penalty(
                ORG_ID, ALICE_ID, "napping", manager, incident_date=INCIDENT
            )

    async def test_severity_required(self, penalties, manager):
        with pytest.raises(ValidationError):
            await penalties.create_penalty(
                ORG_ID, ALICE_ID, "high_error_rate", manager, incident_date=INCIDENT
            )

    async def test_only_managers_record_penalties(self, penalties, alice):
        with pytest.raises(ActorNotAllowedError):
            await penalties.create_penalty(
                ORG_ID, BOB_ID, "late_arrival", alice, incident_date=INCIDENT
            )

    async def test_user_must_belong_to_organization(self, penalties, manager):
        with pytest.raises(NotFoundError):
            await penalties.create_penalty(
                ORG_ID, OUTSIDER_ID, "late_arrival", manager, incident_date=INCIDENT
            )

    async def test_penalty_reduces_incentive(self, penalties, incentives, manager):
        await absent(penalties, manager)
        await penalties.create_penalty(
            ORG_ID, ALICE_ID, "late_arrival", manager, incident_date=INCIDENT
        )

        record = await incentives.recalculate_incentive(ALICE_ID, MONTH)

        # 10,810 less 7%
        assert record.penalty_count == 2
        assert record.penalty_percentage == Decimal("7")
        assert record.net_incentive == Decimal("10053")

    async def test_new_penalty_refreshes_open_incentive(self, penalties, incentives, manager):
        draft = await incentives.recalculate_incentive(ALICE_ID, MONTH)
        assert draft.net_incentive == Decimal("10810")

        await absent(penalties, manager)

        refreshed = await incentives.get_incentive(draft.incentive_id)
        assert refreshed.status == "calculating"
        assert refreshed.penalty_count == 1
        assert refreshed.net_incentive == Decimal("10270")

    async def test_new_penalty_leaves_finalized_incentive(self, penalties, incentives, manager):
        await incentives.finalize_organization_month(ORG_ID, MONTH, manager)

        await absent(penalties, manager)

        finalized = (await incentives.list_incentives(ORG_ID, month=MONTH, user_id=ALICE_ID))[0]
        assert finalized.status == "pending_review"
        assert finalized.net_incentive == Decimal("10810")

    async def test_list_by_user(self, penalties, manager):
        await absent(penalties, manager)
        await penalties.create_penalty(
            ORG_ID, BOB_ID, "late_arrival", manager, incident_date=INCIDENT
        )

        mine = await penalties.list_penalties(ORG_ID, month=MONTH, user_id=ALICE_ID)
        assert [p.penalty_type for p in mine] == ["unauthorized_absence"]


class TestDispute:
    """Contesting a penalty."""

    async def test_affected_user_disputes(self, penalties, manager, alice):
        record = await absent(penalties, manager)

        disputed = await penalties.dispute_penalty(record.penalty_id, "I was on leave", alice)

        assert disputed.status == "disputed"
        assert disputed.dispute_reason == "I was on leave"
        assert disputed.disputed_at is not None

    async def test_colleague_cannot_dispute(self, penalties, manager, bob):
        record = await absent(penalties, manager)

        with pytest.raises(ActorNotAllowedError):
            await penalties.dispute_penalty(record.penalty_id, "Not fair", bob)

    async def test_manager_cannot_dispute_for_user(self, penalties, manager):
        record = await absent(penalties, manager)

        with pytest.raises(ActorNotAllowedError):
            await penalties.dispute_penalty(record.penalty_id, "On their behalf", manager)

    async def test_reason_required(self, penalties, manager, alice):
        record = await absent(penalties, manager)

        with pytest.raises(ValidationError):
            await penalties.dispute_penalty(record.penalty_id, "  ", alice)

    async def test_disputed_penalty_does_not_count(self, penalties, incentives, manager, alice):
        record = await absent(penalties, manager)
        await penalties.dispute_penalty(record.penalty_id, "I was on leave", alice)

        breakdown = await incentives.preview_incentive(ALICE_ID, MONTH)
        assert breakdown.summary.penalty_percentage == Decimal("0")

    async def test_dispute_refreshes_open_incentive(self, penalties, incentives, manager, alice):
        record = await absent(penalties, manager)
        draft = await incentives.recalculate_incentive(ALICE_ID, MONTH)
        assert draft.net_incentive == Decimal("10270")

        await penalties.dispute_penalty(record.penalty_id, "I was on leave", alice)

        refreshed = await incentives.get_incentive(draft.incentive_id)
        assert refreshed.penalty_count == 0
        assert refreshed.net_incentive == Decimal("10810")

    async def test_cannot_dispute_twice(self, penalties, manager, alice):
        record = await absent(penalties, manager)
        await penalties.dispute_penalty(record.penalty_id, "I was on leave", alice)

        with pytest.raises(InvalidTransitionError):
            await penalties.dispute_penalty(record.penalty_id, "Again", alice)


class TestResolve:
    """Waiving or upholding a dispute."""

    @pytest.fixture
    async def disputed(self, penalties, manager, alice):
        record = await absent(penalties, manager)
        return await penalties.dispute_penalty(record.penalty_id, "I was on leave", alice)

    async def test_waive_recalculates_open_incentive(
        self, penalties, incentives, manager, alice
    ):
        record = await absent(penalties, manager)
        before = await incentives.recalculate_incentive(ALICE_ID, MONTH)
        assert before.net_incentive == Decimal("10270")

        await penalties.dispute_penalty(record.penalty_id, "I was on leave", alice)
        result = await penalties.resolve_penalty(
            record.penalty_id, "waived", manager, notes="Leave was approved"
        )

        assert result.penalty.status == "waived"
        assert result.penalty.resolved_by == manager.user_id
        assert result.recalculated is True
        assert result.recalculation_required is False
        assert result.incentive_status == "calculating"

        after = await incentives.get_incentive(before.incentive_id)
        assert after.net_incentive == Decimal("10810")
        assert after.penalty_count == 0

    async def test_upheld_penalty_counts_again(self, penalties, incentives, manager, disputed):
        await incentives.recalculate_incentive(ALICE_ID, MONTH)

        result = await penalties.resolve_penalty(disputed.penalty_id, "upheld", manager)

        assert result.penalty.status == "resolved"
        assert result.recalculated is True
        record = (await incentives.list_incentives(ORG_ID, month=MONTH, user_id=ALICE_ID))[0]
        assert record.net_incentive == Decimal("10270")

    async def test_waive_after_finalize_requires_reopen(
        self, penalties, incentives, manager, alice
    ):
        record = await absent(penalties, manager)
        await incentives.finalize_organization_month(ORG_ID, MONTH, manager)
        await penalties.dispute_penalty(record.penalty_id, "I was on leave", alice)

        result = await penalties.resolve_penalty(record.penalty_id, "waived", manager)

        assert result.recalculated is False
        assert result.recalculation_required is True
        assert result.incentive_status == "pending_review"

        finalized = (await incentives.list_incentives(ORG_ID, month=MONTH, user_id=ALICE_ID))[0]
        assert finalized.net_incentive == Decimal("10270")

        await incentives.reopen_incentive(finalized.incentive_id, manager)
        refreshed = await incentives.recalculate_incentive(ALICE_ID, MONTH)
        assert refreshed.net_incentive == Decimal("10810")

    async def test_resolve_without_incentive(self, penalties, manager, disputed):
        result = await penalties.resolve_penalty(disputed.penalty_id, "waived", manager)

        assert result.incentive_status is None
        assert result.recalculated is False
        assert result.recalculation_required is False

    async def test_only_managers_resolve(self, penalties, alice, disputed):
        with pytest.raises(ActorNotAllowedError):
            await penalties.resolve_penalty(disputed.penalty_id, "waived", alice)

    async def test_unknown_resolution(self, penalties, manager, disputed):
        with pytest.raises(ValidationError):
            await penalties.resolve_penalty(disputed.penalty_id, "forgiven", manager)

    async def test_active_penalty_cannot_be_resolved(self, penalties, manager):
        record = await absent(penalties, manager)

        with pytest.raises(InvalidTransitionError):
            await penalties.resolve_penalty(record.penalty_id, "waived", manager)

    async def test_waived_is_terminal(self, penalties, manager, alice, disputed):
        await penalties.resolve_penalty(disputed.penalty_id, "waived", manager)

        with pytest.raises(InvalidTransitionError):
            await penalties.dispute_penalty(disputed.penalty_id, "Once more", alice)
