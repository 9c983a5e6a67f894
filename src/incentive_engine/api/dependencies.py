"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from incentive_engine.database import get_session_factory
from incentive_engine.models.organization import USER_ROLES
from incentive_engine.services import (
    Actor,
    ConfigService,
    IncentiveService,
    PenaltyService,
    TargetService,
    TeamPoolService,
)


def session_factory_dependency() -> async_sessionmaker[AsyncSession]:
    """Process-wide session factory; tests override this."""
    return get_session_factory()


SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(session_factory_dependency)]


async def get_db_session(factory: SessionFactory) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


def _uuid_header(name: str, value: str | None) -> UUID:
    if not value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{name} header is required",
        )
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {name} format",
        )


async def get_organization_id(
    x_organization_id: Annotated[str | None, Header()] = None
) -> UUID:
    """Extract organization ID from header."""
    return _uuid_header("X-Organization-ID", x_organization_id)


async def get_actor(
    organization_id: Annotated[UUID, Depends(get_organization_id)],
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> Actor:
    """Build the acting user from the identity headers.

    Authentication happens upstream; these headers are trusted as given.
    """
    user_id = _uuid_header("X-User-ID", x_user_id)
    if not x_user_role or x_user_role not in USER_ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"X-User-Role must be one of: {', '.join(USER_ROLES)}",
        )
    return Actor(user_id=user_id, role=x_user_role, organization_id=organization_id)


def get_incentive_service(factory: SessionFactory) -> IncentiveService:
    return IncentiveService(factory)


def get_penalty_service(
    factory: SessionFactory,
    incentives: Annotated[IncentiveService, Depends(get_incentive_service)],
) -> PenaltyService:
    return PenaltyService(factory, incentive_service=incentives)


def get_config_service(factory: SessionFactory) -> ConfigService:
    return ConfigService(factory)


def get_target_service(factory: SessionFactory) -> TargetService:
    return TargetService(factory)


def get_team_pool_service(factory: SessionFactory) -> TeamPoolService:
    return TeamPoolService(factory)


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
OrganizationId = Annotated[UUID, Depends(get_organization_id)]
CurrentActor = Annotated[Actor, Depends(get_actor)]
Incentives = Annotated[IncentiveService, Depends(get_incentive_service)]
Penalties = Annotated[PenaltyService, Depends(get_penalty_service)]
Configs = Annotated[ConfigService, Depends(get_config_service)]
Targets = Annotated[TargetService, Depends(get_target_service)]
TeamPools = Annotated[TeamPoolService, Depends(get_team_pool_service)]
