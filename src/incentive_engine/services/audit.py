"""Audit trail helper shared by the services."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from incentive_engine.models import AuditEvent
from incentive_engine.services.state_machine import Actor


def record_audit(
    session: AsyncSession,
    *,
    entity_type: str,
    entity_id: UUID,
    action: str,
    organization_id: UUID | None = None,
    actor: Actor | None = None,
    details: dict[str, Any] | None = None,
) -> AuditEvent:
    """Add an audit event to the session's current transaction."""
    event = AuditEvent(
        organization_id=organization_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor_user_id=actor.user_id if actor is not None else None,
        details=details,
    )
    session.add(event)
    return event
