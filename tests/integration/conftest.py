"""Integration test fixtures backed by a real SQLite database."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator
from uuid import UUID

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from incentive_engine.database import create_schema, get_engine, make_session_factory
from incentive_engine.models import (
    CommissionRate,
    DailyActivity,
    Organization,
    Sale,
    User,
)
from incentive_engine.services import Actor, KeyedLock

ORG_ID = UUID("00000000-0000-0000-0000-000000000001")
OTHER_ORG_ID = UUID("00000000-0000-0000-0000-000000000002")

ALICE_ID = UUID("00000000-0000-0000-0000-000000000101")
BOB_ID = UUID("00000000-0000-0000-0000-000000000102")
CAROL_ID = UUID("00000000-0000-0000-0000-000000000103")
DAVE_ID = UUID("00000000-0000-0000-0000-000000000104")
MANAGER_ID = UUID("00000000-0000-0000-0000-000000000201")
OWNER_ID = UUID("00000000-0000-0000-0000-000000000202")
SUPPORT_ID = UUID("00000000-0000-0000-0000-000000000301")
OUTSIDER_ID = UUID("00000000-0000-0000-0000-000000000901")

MONTH = "2026-03"


def at(day: int, hour: int = 10) -> datetime:
    return datetime(2026, 3, day, hour, 0, tzinfo=timezone.utc)


@pytest.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite so every session sees the same data."""
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'incentives.db'}")
    await create_schema(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def locks() -> KeyedLock:
    return KeyedLock()


@pytest.fixture
def manager() -> Actor:
    return Actor(user_id=MANAGER_ID, role="manager", organization_id=ORG_ID)


@pytest.fixture
def alice() -> Actor:
    return Actor(user_id=ALICE_ID, role="sales_rep", organization_id=ORG_ID)


@pytest.fixture
async def seeded(session_factory) -> async_sessionmaker[AsyncSession]:
    """Organization with four reps, a manager, an owner and support staff.

    March 2026 revenue: Alice 1,000,000 (Electric), Bob 300,000 (Solar),
    Carol 200,000 (uncategorised), Dave nothing. Alice was active every
    day from March 1 to March 10.
    """
    async with session_factory() as session:
        async with session.begin():
            session.add_all(
                [
                    Organization(organization_id=ORG_ID, name="Sunrise Solar"),
                    Organization(organization_id=OTHER_ORG_ID, name="Elsewhere Ltd"),
                ]
            )
            await session.flush()
            session.add_all(
                [
                    User(user_id=ALICE_ID, organization_id=ORG_ID, name="Alice",
                         role="sales_rep", monthly_salary=Decimal("50000")),
                    User(user_id=BOB_ID, organization_id=ORG_ID, name="Bob",
                         role="sales_rep", monthly_salary=Decimal("2000")),
                    User(user_id=CAROL_ID, organization_id=ORG_ID, name="Carol", role="staff"),
                    User(user_id=DAVE_ID, organization_id=ORG_ID, name="Dave", role="sales_rep"),
                    User(user_id=MANAGER_ID, organization_id=ORG_ID, name="Meera", role="manager"),
                    User(user_id=OWNER_ID, organization_id=ORG_ID, name="Omar", role="owner"),
                    User(user_id=SUPPORT_ID, organization_id=ORG_ID, name="Sam",
                         role="support_staff"),
                    User(user_id=OUTSIDER_ID, organization_id=OTHER_ORG_ID, name="Olga",
                         role="sales_rep"),
                ]
            )
            await session.flush()
            session.add_all(
                [
                    CommissionRate(organization_id=ORG_ID, category_name="Electric",
                                   commission_percentage=Decimal("0.7"),
                                   multiplier=Decimal("1.5"),
                                   premium_threshold=Decimal("50000")),
                    CommissionRate(organization_id=ORG_ID, category_name="Solar",
                                   commission_percentage=Decimal("2"),
                                   premium_threshold=Decimal("1000000")),
                    CommissionRate(organization_id=ORG_ID, category_name="Default",
                                   commission_percentage=Decimal("1"),
                                   premium_threshold=Decimal("1000000")),
                ]
            )
            session.add_all(
                [
                    # Alice: 60,000 premium Electric (630) + 940,000 premium Electric (9,870)
                    Sale(organization_id=ORG_ID, user_id=ALICE_ID, sale_price=Decimal("60000"),
                         category_name="Electric", review_status="reviewed",
                         invoice_no="INV-1", created_at=at(2)),
                    Sale(organization_id=ORG_ID, user_id=ALICE_ID, sale_price=Decimal("940000"),
                         category_name="Electric", review_status="pending",
                         invoice_no="INV-2", created_at=at(12)),
                    Sale(organization_id=ORG_ID, user_id=BOB_ID, sale_price=Decimal("300000"),
                         category_name="Solar", review_status="reviewed",
                         invoice_no="INV-3", created_at=at(3)),
                    Sale(organization_id=ORG_ID, user_id=CAROL_ID, sale_price=Decimal("200000"),
                         category_name=None, review_status="not_reviewed",
                         invoice_no="INV-4", created_at=at(4)),
                    # February sale must not count for March
                    Sale(organization_id=ORG_ID, user_id=ALICE_ID, sale_price=Decimal("999999"),
                         category_name="Electric", invoice_no="INV-0",
                         created_at=datetime(2026, 2, 27, tzinfo=timezone.utc)),
                ]
            )
            session.add_all(
                DailyActivity(user_id=ALICE_ID, activity_date=date(2026, 3, 1) + timedelta(days=i))
                for i in range(10)
            )
    return session_factory
