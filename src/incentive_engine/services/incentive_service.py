"""Monthly incentive service - persistence and approval workflow."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from incentive_engine.calculators.engine import IncentiveCalculator
from incentive_engine.calculators.periods import parse_month
from incentive_engine.calculators.types import IncentiveBreakdown, round_currency
from incentive_engine.config import get_settings
from incentive_engine.errors import (
    ActorNotAllowedError,
    IncentiveEngineError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from incentive_engine.models import MonthlyIncentive, User
from incentive_engine.models.organization import SALES_ROLES
from incentive_engine.services.audit import record_audit
from incentive_engine.services.locking_service import KeyedLock, LockingService, incentive_key
from incentive_engine.services.state_machine import (
    Actor,
    IncentiveStateMachine,
    IncentiveStatus,
    ensure_same_organization,
    require_manager,
)
from incentive_engine.services.target_service import refresh_target_progress

logger = logging.getLogger(__name__)

SAVEABLE_STATUSES = (IncentiveStatus.CALCULATING, IncentiveStatus.PENDING_REVIEW)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ItemResult:
    """Outcome of one item in a batch operation."""

    item_id: UUID
    status: str  # success, skipped, error
    incentive_id: UUID | None = None
    message: str | None = None
    error_code: str | None = None

    @property
    def success(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": str(self.item_id),
            "status": self.status,
            "incentive_id": str(self.incentive_id) if self.incentive_id else None,
            "message": self.message,
            "error_code": self.error_code,
        }


@dataclass
class BatchResult:
    """Per-item results of a batch operation; one failure never aborts the rest."""

    results: list[ItemResult] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.status == "success")

    @property
    def error_count(self) -> int:
        return sum(1 for r in self.results if r.status == "error")

    @property
    def skipped_count(self) -> int:
        return sum(1 for r in self.results if r.status == "skipped")


@dataclass
class FinalizeResult(BatchResult):
    """Result of finalizing an organization's month."""

    organization_id: UUID | None = None
    month: str = ""


def _error_result(item_id: UUID, exc: Exception) -> ItemResult:
    if isinstance(exc, IncentiveEngineError):
        return ItemResult(item_id, "error", message=exc.message, error_code=exc.code)
    if isinstance(exc, asyncio.TimeoutError):
        return ItemResult(item_id, "error", message="Timed out", error_code="TIMEOUT")
    return ItemResult(item_id, "error", message=f"Unexpected error: {exc}", error_code="INTERNAL_ERROR")


def apply_breakdown(record: MonthlyIncentive, breakdown: IncentiveBreakdown) -> None:
    """Copy a breakdown onto an incentive record, rounding to whole units."""
    s = breakdown.summary
    record.gross_commission = round_currency(s.gross_commission)
    record.streak_bonus = round_currency(s.streak_bonus)
    record.review_bonus = round_currency(s.review_bonus)
    record.total_bonuses = round_currency(s.total_bonuses)
    record.penalty_count = breakdown.penalties.count
    record.penalty_percentage = s.penalty_percentage
    record.penalty_amount = round_currency(s.penalty_amount)
    record.net_incentive = round_currency(s.net_incentive)
    record.target_met = s.target_met
    record.user_monthly_salary = s.monthly_salary
    record.salary_cap_applied = s.salary_cap_applied
    record.capped_amount = round_currency(s.capped_amount) if s.capped_amount is not None else None
    record.cap_excess_amount = (
        round_currency(s.cap_excess_amount) if s.cap_excess_amount is not None else None
    )
    record.breakdown_json = breakdown.to_dict()
    record.inputs_fingerprint = breakdown.inputs_fingerprint


class IncentiveService:
    """Service for the monthly incentive lifecycle.

    Operations:
    - preview_incentive: calculate without persisting
    - save_monthly_incentive / recalculate_incentive: upsert a record
      that is still ``calculating``
    - finalize_organization_month: calculate every sales user and move
      them to ``pending_review`` (bounded concurrency, per-user results)
    - approve_incentive / bulk_approve: manager decision
    - mark_paid: approved -> paid
    - reopen_incentive: back to ``calculating`` for recomputation

    Every write to one (user, month) runs in its own transaction while
    holding that key's lock.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        concurrency: int | None = None,
        timeout_seconds: float | None = None,
        locks: KeyedLock | None = None,
    ):
        settings = get_settings()
        self.session_factory = session_factory
        self.locking = LockingService(session_factory, locks)
        self.concurrency = concurrency or settings.finalize_concurrency
        self.timeout_seconds = timeout_seconds or settings.request_timeout_seconds

    # ===== Reads =====

    async def get_incentive(self, incentive_id: UUID) -> MonthlyIncentive:
        async with self.session_factory() as session:
            record = await session.get(MonthlyIncentive, incentive_id)
            if record is None:
                raise NotFoundError("MonthlyIncentive", incentive_id)
            return record

    async def list_incentives(
        self,
        organization_id: UUID,
        month: str | None = None,
        status: str | None = None,
        user_id: UUID | None = None,
    ) -> list[MonthlyIncentive]:
        query = select(MonthlyIncentive).where(MonthlyIncentive.organization_id == organization_id)
        if month is not None:
            parse_month(month)
            query = query.where(MonthlyIncentive.month == month)
        if status is not None:
            query = query.where(MonthlyIncentive.status == status)
        if user_id is not None:
            query = query.where(MonthlyIncentive.user_id == user_id)

        async with self.session_factory() as session:
            result = await session.execute(
                query.order_by(MonthlyIncentive.month, MonthlyIncentive.user_id)
            )
            return list(result.scalars().all())

    async def preview_incentive(
        self, user_id: UUID, month: str, actor: Actor | None = None
    ) -> IncentiveBreakdown:
        """Calculate a breakdown without writing anything."""
        async with self.session_factory() as session:
            user = await session.get(User, user_id)
            if user is None:
                raise NotFoundError("User", user_id)
            ensure_same_organization(actor, user.organization_id, "User", user_id)
            if actor is not None and not actor.is_manager and actor.user_id != user_id:
                raise ActorNotAllowedError(
                    "actor must be a manager or the user", "Only managers may preview other users"
                )
            return await IncentiveCalculator(session).calculate_monthly_incentive(user_id, month)

    # ===== Calculation and persistence =====

    async def save_monthly_incentive(
        self,
        user_id: UUID,
        month: str,
        breakdown: IncentiveBreakdown,
        status: str = IncentiveStatus.CALCULATING,
    ) -> MonthlyIncentive:
        """Upsert the (user, month) record from a breakdown.

        Overwrites rather than duplicates. A record that has moved past
        ``calculating`` is never touched; it needs an explicit reopen.

        Raises:
            ValidationError: unsupported status, or a breakdown for another
                user or month.
            PreconditionError: the record is past ``calculating``.
        """
        parse_month(month)
        if status not in SAVEABLE_STATUSES:
            raise ValidationError(f"Cannot save an incentive with status '{status}'")
        if breakdown.user_id != user_id or breakdown.month != month:
            raise ValidationError("Breakdown does not belong to this user and month")

        async with self.locking.transaction(incentive_key(user_id, month)) as session:
            user = await session.get(User, user_id)
            if user is None:
                raise NotFoundError("User", user_id)
            return await self._store(session, user, month, breakdown, status)

    async def recalculate_incentive(
        self, user_id: UUID, month: str, actor: Actor | None = None
    ) -> MonthlyIncentive:
        """Recompute and overwrite a ``calculating`` record (idempotent)."""
        if actor is not None:
            require_manager(actor, "recalculate incentives")
        parse_month(month)
        async with self.locking.transaction(incentive_key(user_id, month)) as session:
            user = await session.get(User, user_id)
            if user is None:
                raise NotFoundError("User", user_id)
            ensure_same_organization(actor, user.organization_id, "User", user_id)
            breakdown = await IncentiveCalculator(session).calculate_monthly_incentive(
                user_id, month
            )
            record = await self._store(
                session, user, month, breakdown, IncentiveStatus.CALCULATING, actor
            )

        logger.info("Recalculated incentive for user %s %s", user_id, month)
        return record

    async def _store(
        self,
        session: AsyncSession,
        user: User,
        month: str,
        breakdown: IncentiveBreakdown,
        status: str,
        actor: Actor | None = None,
    ) -> MonthlyIncentive:
        record = await self._find(session, user.user_id, month)
        if record is None:
            record = MonthlyIncentive(
                organization_id=user.organization_id,
                user_id=user.user_id,
                month=month,
                status=IncentiveStatus.CALCULATING.value,
            )
            session.add(record)
        elif not IncentiveStateMachine.can_calculate(record.status):
            raise PreconditionError(
                "incentive must be calculating to be recomputed",
                f"Incentive for {month} is '{record.status}'; reopen it before recalculating",
            )

        apply_breakdown(record, breakdown)

        if status == IncentiveStatus.PENDING_REVIEW:
            IncentiveStateMachine.validate_transition(record.status, status, actor)
            record.status = IncentiveStatus.PENDING_REVIEW.value
            record.submitted_at = _now()

        await session.flush()
        record_audit(
            session,
            organization_id=record.organization_id,
            entity_type="monthly_incentive",
            entity_id=record.incentive_id,
            action="finalized" if status == IncentiveStatus.PENDING_REVIEW else "calculated",
            actor=actor,
            details={"inputs_fingerprint": breakdown.inputs_fingerprint},
        )
        return record

    async def _find(self, session: AsyncSession, user_id: UUID, month: str) -> MonthlyIncentive | None:
        result = await session.execute(
            select(MonthlyIncentive).where(
                MonthlyIncentive.user_id == user_id, MonthlyIncentive.month == month
            )
        )
        return result.scalar_one_or_none()

    # ===== Finalization =====

    async def finalize_organization_month(
        self, organization_id: UUID, month: str, actor: Actor
    ) -> FinalizeResult:
        """Calculate every active sales user and submit for review.

        Users run concurrently (bounded), each in its own transaction and
        under its own timeout. Records already past ``calculating`` are
        skipped. Failures are reported per user and never abort the batch.
        """
        require_manager(actor, "finalize a month")
        if actor.organization_id is not None and actor.organization_id != organization_id:
            raise ActorNotAllowedError(
                "actor must belong to the organization",
                f"Managers may only finalize their own organization ({organization_id})",
            )
        parse_month(month)

        async with self.session_factory() as session:
            result = await session.execute(
                select(User.user_id)
                .where(
                    User.organization_id == organization_id,
                    User.role.in_(SALES_ROLES),
                    User.is_active.is_(True),
                )
                .order_by(User.user_id)
            )
            user_ids = list(result.scalars().all())

        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(user_id: UUID) -> ItemResult:
            async with semaphore:
                try:
                    return await asyncio.wait_for(
                        self._finalize_user(user_id, month, actor), self.timeout_seconds
                    )
                except (IncentiveEngineError, asyncio.TimeoutError) as e:
                    logger.warning("Finalize failed for user %s %s: %s", user_id, month, e)
                    return _error_result(user_id, e)
                except Exception as e:
                    logger.exception("Unexpected error finalizing user %s %s", user_id, month)
                    return _error_result(user_id, e)

        results = await asyncio.gather(*(run(uid) for uid in user_ids))
        outcome = FinalizeResult(
            results=list(results), organization_id=organization_id, month=month
        )
        logger.info(
            "Finalized %s for organization %s: %d succeeded, %d skipped, %d failed",
            month,
            organization_id,
            outcome.success_count,
            outcome.skipped_count,
            outcome.error_count,
        )
        return outcome

    async def _finalize_user(self, user_id: UUID, month: str, actor: Actor) -> ItemResult:
        async with self.locking.transaction(incentive_key(user_id, month)) as session:
            existing = await self._find(session, user_id, month)
            if existing is not None and not IncentiveStateMachine.can_calculate(existing.status):
                return ItemResult(
                    user_id,
                    "skipped",
                    incentive_id=existing.incentive_id,
                    message=f"Already {existing.status}",
                )

            user = await session.get(User, user_id)
            if user is None:
                raise NotFoundError("User", user_id)

            await refresh_target_progress(session, user_id, month)
            breakdown = await IncentiveCalculator(session).calculate_monthly_incentive(
                user_id, month
            )
            record = await self._store(
                session, user, month, breakdown, IncentiveStatus.PENDING_REVIEW, actor
            )
            return ItemResult(user_id, "success", incentive_id=record.incentive_id)

    # ===== Approval workflow =====

    @asynccontextmanager
    async def _locked_incentive(
        self, incentive_id: UUID, actor: Actor | None = None
    ) -> AsyncIterator[tuple[AsyncSession, MonthlyIncentive]]:
        """Transaction holding the record's (user, month) lock."""
        record = await self.get_incentive(incentive_id)
        ensure_same_organization(actor, record.organization_id, "MonthlyIncentive", incentive_id)
        async with self.locking.transaction(incentive_key(record.user_id, record.month)) as session:
            locked = await session.get(MonthlyIncentive, incentive_id)
            if locked is None:
                raise NotFoundError("MonthlyIncentive", incentive_id)
            yield session, locked

    async def approve_incentive(
        self,
        incentive_id: UUID,
        approved: bool,
        actor: Actor,
        final_amount: Decimal | None = None,
        notes: str | None = None,
    ) -> MonthlyIncentive:
        """Approve or reject a ``pending_review`` incentive.

        The approved amount defaults to the computed payout (the capped
        amount when the salary cap applied, else the net incentive). A
        different ``final_amount`` is recorded as a manual adjustment.
        """
        to_status = IncentiveStatus.APPROVED if approved else IncentiveStatus.REJECTED
        if not approved and not (notes and notes.strip()):
            raise ValidationError("Rejection requires notes")
        if final_amount is not None:
            final_amount = Decimal(str(final_amount))
            if final_amount < 0:
                raise ValidationError("final_amount cannot be negative")

        async with self._locked_incentive(incentive_id, actor) as (session, record):
            from_status = record.status
            IncentiveStateMachine.validate_transition(from_status, to_status, actor)

            if approved:
                computed = record.computed_payout
                amount = round_currency(final_amount) if final_amount is not None else computed
                record.final_approved_amount = amount
                record.amount_adjusted = amount != computed
            record.status = to_status.value
            record.reviewed_by = actor.user_id
            record.reviewed_at = _now()
            record.review_notes = notes

            record_audit(
                session,
                organization_id=record.organization_id,
                entity_type="monthly_incentive",
                entity_id=record.incentive_id,
                action=f"status_change:{from_status}:{to_status.value}",
                actor=actor,
                details={
                    "final_approved_amount": str(record.final_approved_amount)
                    if approved
                    else None,
                    "amount_adjusted": record.amount_adjusted,
                    "notes": notes,
                },
            )

        logger.info(
            "Incentive %s %s by %s", incentive_id, to_status.value, actor.user_id
        )
        return record

    async def bulk_approve(
        self, incentive_ids: list[UUID], actor: Actor, notes: str | None = None
    ) -> BatchResult:
        """Approve each record at its computed amount, one transaction per id."""
        require_manager(actor, "approve incentives")
        batch = BatchResult()
        for incentive_id in incentive_ids:
            try:
                record = await self.approve_incentive(incentive_id, True, actor, notes=notes)
                batch.results.append(
                    ItemResult(incentive_id, "success", incentive_id=record.incentive_id)
                )
            except IncentiveEngineError as e:
                logger.warning("Bulk approve failed for %s: %s", incentive_id, e)
                batch.results.append(_error_result(incentive_id, e))
            except Exception as e:
                logger.exception("Unexpected error approving %s", incentive_id)
                batch.results.append(_error_result(incentive_id, e))
        return batch

    async def mark_paid(
        self,
        incentive_ids: list[UUID],
        actor: Actor,
        payment_reference: str | None = None,
    ) -> BatchResult:
        """Mark approved records as paid; anything else fails its precondition."""
        require_manager(actor, "mark incentives paid")
        batch = BatchResult()
        for incentive_id in incentive_ids:
            try:
                async with self._locked_incentive(incentive_id, actor) as (session, record):
                    from_status = record.status
                    IncentiveStateMachine.validate_transition(
                        from_status, IncentiveStatus.PAID, actor
                    )
                    record.status = IncentiveStatus.PAID.value
                    record.paid_at = _now()
                    record.payment_reference = payment_reference
                    record_audit(
                        session,
                        organization_id=record.organization_id,
                        entity_type="monthly_incentive",
                        entity_id=record.incentive_id,
                        action=f"status_change:{from_status}:paid",
                        actor=actor,
                        details={"payment_reference": payment_reference},
                    )
                batch.results.append(ItemResult(incentive_id, "success", incentive_id=incentive_id))
            except IncentiveEngineError as e:
                logger.warning("Mark paid failed for %s: %s", incentive_id, e)
                batch.results.append(_error_result(incentive_id, e))
            except Exception as e:
                logger.exception("Unexpected error marking %s paid", incentive_id)
                batch.results.append(_error_result(incentive_id, e))

        logger.info(
            "Marked %d of %d incentive(s) paid", batch.success_count, len(incentive_ids)
        )
        return batch

    async def reopen_incentive(
        self, incentive_id: UUID, actor: Actor, notes: str | None = None
    ) -> MonthlyIncentive:
        """Send a finalized record back to ``calculating``, clearing the decision."""
        async with self._locked_incentive(incentive_id, actor) as (session, record):
            from_status = record.status
            IncentiveStateMachine.validate_transition(
                from_status, IncentiveStatus.CALCULATING, actor
            )
            record.status = IncentiveStatus.CALCULATING.value
            record.final_approved_amount = None
            record.amount_adjusted = False
            record.reviewed_by = None
            record.reviewed_at = None
            record.submitted_at = None
            record.review_notes = notes
            record.reopen_count += 1

            record_audit(
                session,
                organization_id=record.organization_id,
                entity_type="monthly_incentive",
                entity_id=record.incentive_id,
                action=f"status_change:{from_status}:calculating",
                actor=actor,
                details={"notes": notes, "reopen_count": record.reopen_count},
            )

        logger.info("Incentive %s reopened from %s", incentive_id, from_status)
        return record
