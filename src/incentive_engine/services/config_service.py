"""Organization configuration and commission rate management."""

from __future__ import annotations

import logging
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from incentive_engine.calculators.commission import DEFAULT_CATEGORY, DEFAULT_RATES
from incentive_engine.calculators.engine import load_organization_config
from incentive_engine.calculators.rules import HUNDRED, OrganizationConfig
from incentive_engine.errors import ConfigurationError, NotFoundError, ValidationError
from incentive_engine.models import CommissionRate, IncentiveSettings, Sale
from incentive_engine.services.audit import record_audit
from incentive_engine.services.state_machine import (
    Actor,
    ensure_same_organization,
    require_manager,
)

logger = logging.getLogger(__name__)

MIN_MULTIPLIER = Decimal("1")
MAX_MULTIPLIER = Decimal("10")


def _decimal(name: str, value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{name} must be numeric, got {value!r}")


def validate_commission_rate(
    category_name: str,
    commission_percentage: Any,
    multiplier: Any,
    min_sale_price: Any,
    premium_threshold: Any,
) -> tuple[Decimal, Decimal, Decimal, Decimal]:
    """Reject out-of-range commission rate values before they are stored.

    Returns the values as Decimals.
    """
    if not category_name or not category_name.strip():
        raise ValidationError("category_name is required")

    pct = _decimal("commission_percentage", commission_percentage)
    mult = _decimal("multiplier", multiplier)
    minimum = _decimal("min_sale_price", min_sale_price)
    threshold = _decimal("premium_threshold", premium_threshold)

    if pct < 0 or pct > HUNDRED:
        raise ValidationError(f"commission_percentage must be between 0 and 100, got {pct}")
    if mult < MIN_MULTIPLIER or mult > MAX_MULTIPLIER:
        raise ValidationError(f"multiplier must be between 1 and 10, got {mult}")
    if minimum < 0:
        raise ValidationError("min_sale_price cannot be negative")
    if threshold < 0:
        raise ValidationError("premium_threshold cannot be negative")
    return pct, mult, minimum, threshold


class ConfigService:
    """Reads and writes per-organization incentive configuration.

    Every write is validated before it reaches the database; calculations
    trust what is stored.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_config(self, organization_id: UUID) -> OrganizationConfig:
        async with self.session_factory() as session:
            return await load_organization_config(session, organization_id)

    async def update_config(
        self,
        organization_id: UUID,
        updates: dict[str, Any],
        actor: Actor,
    ) -> OrganizationConfig:
        """Apply partial updates to an organization's config.

        Raises:
            ValidationError: a value is out of range.
            ConfigurationError: team pool buckets do not total 100.
        """
        require_manager(actor, "change incentive settings")

        async with self.session_factory() as session:
            async with session.begin():
                current = await load_organization_config(session, organization_id)
                config = current.with_updates(updates)

                row = await session.get(IncentiveSettings, organization_id)
                if row is None:
                    row = IncentiveSettings(organization_id=organization_id)
                    session.add(row)
                for f in fields(OrganizationConfig):
                    setattr(row, f.name, getattr(config, f.name))

                record_audit(
                    session,
                    organization_id=organization_id,
                    entity_type="incentive_settings",
                    entity_id=organization_id,
                    action="config_updated",
                    actor=actor,
                    details={k: str(v) for k, v in updates.items() if v is not None},
                )

        logger.info("Incentive config updated for organization %s", organization_id)
        return config

    async def list_commission_rates(
        self, organization_id: UUID, include_inactive: bool = False
    ) -> list[CommissionRate]:
        query = select(CommissionRate).where(CommissionRate.organization_id == organization_id)
        if not include_inactive:
            query = query.where(CommissionRate.is_active.is_(True))
        async with self.session_factory() as session:
            result = await session.execute(query.order_by(CommissionRate.category_name))
            return list(result.scalars().all())

    async def upsert_commission_rate(
        self,
        organization_id: UUID,
        category_name: str,
        commission_percentage: Any,
        actor: Actor,
        multiplier: Any = 1,
        min_sale_price: Any = 0,
        premium_threshold: Any = 50000,
    ) -> CommissionRate:
        """Create or update (and re-activate) the rate for a category."""
        require_manager(actor, "change commission rates")
        pct, mult, minimum, threshold = validate_commission_rate(
            category_name, commission_percentage, multiplier, min_sale_price, premium_threshold
        )

        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    select(CommissionRate).where(
                        CommissionRate.organization_id == organization_id,
                        CommissionRate.category_name == category_name,
                    )
                )
                rate = result.scalar_one_or_none()
                if rate is None:
                    rate = CommissionRate(
                        organization_id=organization_id, category_name=category_name
                    )
                    session.add(rate)

                rate.commission_percentage = pct
                rate.multiplier = mult
                rate.min_sale_price = minimum
                rate.premium_threshold = threshold
                rate.is_active = True
                await session.flush()

                record_audit(
                    session,
                    organization_id=organization_id,
                    entity_type="commission_rate",
                    entity_id=rate.commission_rate_id,
                    action="rate_upserted",
                    actor=actor,
                    details={
                        "category_name": category_name,
                        "commission_percentage": str(pct),
                        "multiplier": str(mult),
                    },
                )

        logger.info(
            "Commission rate for %r set to %s%% (x%s) in organization %s",
            category_name,
            pct,
            mult,
            organization_id,
        )
        return rate

    async def seed_default_rates(self, organization_id: UUID, actor: Actor) -> list[CommissionRate]:
        """Add the standard category rates an organization is missing.

        Categories that already exist, active or not, are left untouched,
        so running this again is harmless. Returns the rates created.
        """
        require_manager(actor, "seed commission rates")
        ensure_same_organization(actor, organization_id, "Organization", organization_id)

        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    select(CommissionRate.category_name).where(
                        CommissionRate.organization_id == organization_id
                    )
                )
                existing = set(result.scalars().all())

                created = [
                    CommissionRate(
                        organization_id=organization_id,
                        category_name=default.category_name,
                        commission_percentage=default.commission_percentage,
                        multiplier=default.multiplier,
                        min_sale_price=default.min_sale_price,
                        premium_threshold=default.premium_threshold,
                        is_active=True,
                    )
                    for default in DEFAULT_RATES
                    if default.category_name not in existing
                ]
                if not created:
                    return []
                session.add_all(created)
                await session.flush()

                record_audit(
                    session,
                    organization_id=organization_id,
                    entity_type="commission_rate",
                    entity_id=organization_id,
                    action="rates_seeded",
                    actor=actor,
                    details={"categories": [r.category_name for r in created]},
                )

        logger.info(
            "Seeded %d default commission rates for organization %s",
            len(created),
            organization_id,
        )
        return created

    async def deactivate_commission_rate(self, commission_rate_id: UUID, actor: Actor) -> CommissionRate:
        """Soft-delete a rate.

        Refused when sales exist that would then match neither their own
        category nor an active ``Default`` rate.
        """
        require_manager(actor, "change commission rates")

        async with self.session_factory() as session:
            async with session.begin():
                rate = await session.get(CommissionRate, commission_rate_id)
                if rate is None:
                    raise NotFoundError("CommissionRate", commission_rate_id)
                ensure_same_organization(
                    actor, rate.organization_id, "CommissionRate", commission_rate_id
                )
                if not rate.is_active:
                    return rate

                await self._check_coverage_after_removal(session, rate)
                rate.is_active = False

                record_audit(
                    session,
                    organization_id=rate.organization_id,
                    entity_type="commission_rate",
                    entity_id=rate.commission_rate_id,
                    action="rate_deactivated",
                    actor=actor,
                    details={"category_name": rate.category_name},
                )

        logger.info("Commission rate %s (%r) deactivated", commission_rate_id, rate.category_name)
        return rate

    async def _check_coverage_after_removal(
        self, session: AsyncSession, rate: CommissionRate
    ) -> None:
        result = await session.execute(
            select(CommissionRate.category_name).where(
                CommissionRate.organization_id == rate.organization_id,
                CommissionRate.is_active.is_(True),
                CommissionRate.commission_rate_id != rate.commission_rate_id,
            )
        )
        remaining = set(result.scalars().all())
        if DEFAULT_CATEGORY in remaining:
            return

        sales = select(Sale.sale_id).where(Sale.organization_id == rate.organization_id)
        if rate.category_name == DEFAULT_CATEGORY:
            # Every category without its own rate was relying on Default
            sales = sales.where(
                or_(Sale.category_name.is_(None), Sale.category_name.not_in(remaining))
            )
        else:
            sales = sales.where(Sale.category_name == rate.category_name)

        uncovered = (await session.execute(sales.limit(1))).scalar_one_or_none()
        if uncovered is not None:
            raise ConfigurationError(
                f"Deactivating the {rate.category_name!r} rate would leave recorded sales "
                "without a commission rate; add an active 'Default' rate first",
                category_name=rate.category_name,
            )
