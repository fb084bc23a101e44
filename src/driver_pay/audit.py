"""Audit trail helper."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from driver_pay.models import AuditEvent


async def record_event(
    session: AsyncSession,
    organization_id: UUID,
    entity_type: str,
    entity_id: UUID,
    action: str,
    actor: str | None = None,
    description: str | None = None,
    before: dict[str, Any] | None = None,
    after: dict[str, Any] | None = None,
) -> AuditEvent:
    """Add an audit event to the current transaction."""
    event = AuditEvent(
        organization_id=organization_id,
        actor=actor,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        description=description,
        before_json=before,
        after_json=after,
    )
    session.add(event)
    return event
