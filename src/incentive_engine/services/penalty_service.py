"""Penalty creation and dispute workflow."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from incentive_engine.calculators.engine import load_organization_config
from incentive_engine.calculators.penalty import penalty_percentage_for
from incentive_engine.calculators.periods import month_of, parse_month
from incentive_engine.calculators.rules import parse_penalty_type
from incentive_engine.errors import NotFoundError, ValidationError
from incentive_engine.models import MonthlyIncentive, PenaltyRecord, User
from incentive_engine.services.audit import record_audit
from incentive_engine.services.incentive_service import IncentiveService
from incentive_engine.services.locking_service import KeyedLock, LockingService, incentive_key
from incentive_engine.services.state_machine import (
    Actor,
    IncentiveStateMachine,
    PenaltyStateMachine,
    PenaltyStatus,
    ensure_same_organization,
    require_manager,
)

logger = logging.getLogger(__name__)

RESOLUTIONS = {
    "waived": PenaltyStatus.WAIVED,
    "upheld": PenaltyStatus.RESOLVED,
}


@dataclass
class ResolutionResult:
    """A resolved penalty and what happened to the month's incentive."""

    penalty: PenaltyRecord
    incentive_status: str | None = None  # None when no incentive exists yet
    recalculated: bool = False
    recalculation_required: bool = False


class PenaltyService:
    """Service for penalty records.

    Operations:
    - create_penalty: manager records a penalty; its percentage is
      resolved from the current config and frozen on the record
    - dispute_penalty: the affected user contests an active penalty
    - resolve_penalty: a manager waives or upholds a disputed penalty

    Each of these changes which penalties count for the month. A
    ``calculating`` incentive is recomputed on the spot; a finalized one
    is left alone and flagged as needing a reopen and recalculation.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        incentive_service: IncentiveService | None = None,
        locks: KeyedLock | None = None,
    ):
        self.session_factory = session_factory
        self.locking = LockingService(session_factory, locks)
        self.incentives = incentive_service or IncentiveService(session_factory, locks=locks)

    async def get_penalty(self, penalty_id: UUID) -> PenaltyRecord:
        async with self.session_factory() as session:
            record = await session.get(PenaltyRecord, penalty_id)
            if record is None:
                raise NotFoundError("PenaltyRecord", penalty_id)
            return record

    async def list_penalties(
        self,
        organization_id: UUID,
        month: str | None = None,
        user_id: UUID | None = None,
        status: str | None = None,
    ) -> list[PenaltyRecord]:
        query = select(PenaltyRecord).where(PenaltyRecord.organization_id == organization_id)
        if month is not None:
            parse_month(month)
            query = query.where(PenaltyRecord.month == month)
        if user_id is not None:
            query = query.where(PenaltyRecord.user_id == user_id)
        if status is not None:
            query = query.where(PenaltyRecord.status == status)

        async with self.session_factory() as session:
            result = await session.execute(query.order_by(PenaltyRecord.created_at))
            return list(result.scalars().all())

    async def create_penalty(
        self,
        organization_id: UUID,
        user_id: UUID,
        penalty_type: str,
        actor: Actor,
        severity: Decimal | None = None,
        description: str | None = None,
        incident_date: date | None = None,
    ) -> PenaltyRecord:
        """Record a penalty against a user.

        The month comes from the incident date (today when omitted).

        Raises:
            ActorNotAllowedError: actor is not a manager.
            ValidationError: unknown type, or a severity value that does
                not cross its threshold.
        """
        require_manager(actor, "create penalties")
        ptype = parse_penalty_type(penalty_type)
        if severity is not None:
            severity = Decimal(str(severity))
        incident_date = incident_date or datetime.now(timezone.utc).date()
        month = month_of(incident_date)

        async with self.locking.transaction(incentive_key(user_id, month)) as session:
            user = await session.get(User, user_id)
            if user is None or user.organization_id != organization_id:
                raise NotFoundError("User", user_id)

            config = await load_organization_config(session, organization_id)
            percentage = penalty_percentage_for(ptype, severity, config)

            record = PenaltyRecord(
                organization_id=organization_id,
                user_id=user_id,
                month=month,
                penalty_type=ptype.value,
                severity_value=severity,
                penalty_percentage=percentage,
                status=PenaltyStatus.ACTIVE.value,
                description=description,
                incident_date=incident_date,
                created_by=actor.user_id,
            )
            session.add(record)
            await session.flush()

            record_audit(
                session,
                organization_id=organization_id,
                entity_type="penalty_record",
                entity_id=record.penalty_id,
                action="created",
                actor=actor,
                details={"penalty_type": ptype.value, "penalty_percentage": str(percentage)},
            )

            incentive = await self._find_incentive(session, user_id, month)

        logger.info(
            "Penalty %s (%s, %s%%) recorded for user %s %s",
            record.penalty_id,
            ptype.value,
            percentage,
            user_id,
            month,
        )
        await self._follow_up(record, incentive)
        return record

    async def dispute_penalty(self, penalty_id: UUID, reason: str, actor: Actor) -> PenaltyRecord:
        """Contest an active penalty. Only the penalized user may do this."""
        if not reason or not reason.strip():
            raise ValidationError("A dispute requires a reason")

        existing = await self.get_penalty(penalty_id)
        ensure_same_organization(actor, existing.organization_id, "PenaltyRecord", penalty_id)
        async with self.locking.transaction(incentive_key(existing.user_id, existing.month)) as session:
            record = await self._load(session, penalty_id)
            from_status = record.status
            PenaltyStateMachine.validate_transition(
                from_status, PenaltyStatus.DISPUTED, actor, affected_user_id=record.user_id
            )
            record.status = PenaltyStatus.DISPUTED.value
            record.dispute_reason = reason
            record.disputed_at = datetime.now(timezone.utc)

            record_audit(
                session,
                organization_id=record.organization_id,
                entity_type="penalty_record",
                entity_id=record.penalty_id,
                action=f"status_change:{from_status}:disputed",
                actor=actor,
                details={"reason": reason},
            )

            incentive = await self._find_incentive(session, record.user_id, record.month)

        logger.info("Penalty %s disputed by user %s", penalty_id, actor.user_id)
        await self._follow_up(record, incentive)
        return record

    async def resolve_penalty(
        self,
        penalty_id: UUID,
        resolution: str,
        actor: Actor,
        notes: str | None = None,
    ) -> ResolutionResult:
        """Waive or uphold a disputed penalty (manager only)."""
        to_status = RESOLUTIONS.get(resolution)
        if to_status is None:
            raise ValidationError(
                f"Resolution must be one of: {', '.join(RESOLUTIONS)}; got {resolution!r}"
            )

        existing = await self.get_penalty(penalty_id)
        ensure_same_organization(actor, existing.organization_id, "PenaltyRecord", penalty_id)
        async with self.locking.transaction(incentive_key(existing.user_id, existing.month)) as session:
            record = await self._load(session, penalty_id)
            from_status = record.status
            PenaltyStateMachine.validate_transition(from_status, to_status, actor)
            record.status = to_status.value
            record.resolution_notes = notes
            record.resolved_by = actor.user_id
            record.resolved_at = datetime.now(timezone.utc)

            record_audit(
                session,
                organization_id=record.organization_id,
                entity_type="penalty_record",
                entity_id=record.penalty_id,
                action=f"status_change:{from_status}:{to_status.value}",
                actor=actor,
                details={"resolution": resolution, "notes": notes},
            )

            incentive = await self._find_incentive(session, record.user_id, record.month)

        logger.info("Penalty %s %s by %s", penalty_id, resolution, actor.user_id)
        return await self._follow_up(record, incentive)

    async def _follow_up(
        self, penalty: PenaltyRecord, incentive: MonthlyIncentive | None
    ) -> ResolutionResult:
        if incentive is None:
            return ResolutionResult(penalty)

        if IncentiveStateMachine.can_calculate(incentive.status):
            refreshed = await self.incentives.recalculate_incentive(penalty.user_id, penalty.month)
            return ResolutionResult(penalty, refreshed.status, recalculated=True)

        logger.warning(
            "Penalty %s changed after incentive %s was finalized (%s); "
            "reopen and recalculate to apply it",
            penalty.penalty_id,
            incentive.incentive_id,
            incentive.status,
        )
        return ResolutionResult(penalty, incentive.status, recalculation_required=True)

    async def _load(self, session: AsyncSession, penalty_id: UUID) -> PenaltyRecord:
        record = await session.get(PenaltyRecord, penalty_id)
        if record is None:
            raise NotFoundError("PenaltyRecord", penalty_id)
        return record

    async def _find_incentive(
        self, session: AsyncSession, user_id: UUID, month: str
    ) -> MonthlyIncentive | None:
        result = await session.execute(
            select(MonthlyIncentive).where(
                MonthlyIncentive.user_id == user_id, MonthlyIncentive.month == month
            )
        )
        return result.scalar_one_or_none()
