"""Manual pay line items, edits, locks and pay summaries."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from driver_pay.audit import record_event
from driver_pay.calculators.line_builder import LineItemBuilder
from driver_pay.calculators.types import SourceType
from driver_pay.errors import EntityNotFoundError, MissingDispatchLegError, PayableEditError
from driver_pay.models import DispatchLeg, Load, LoadPayable
from driver_pay.services.state_machine import LegPayStateMachine, LegPayStatus

logger = logging.getLogger(__name__)


@dataclass
class LegPaySummary:
    """Pay line items of one leg with their signed total."""

    leg_id: UUID
    items: list[LoadPayable]
    total: Decimal
    has_warnings: bool
    status: LegPayStatus


@dataclass
class LoadPaySummary:
    """Pay line items of a load, grouped by leg."""

    load_id: UUID
    legs: list[LegPaySummary] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return LineItemBuilder.calculate_total(leg.total for leg in self.legs)


class PayableService:
    """Service for user-managed pay line items.

    Ownership rules:
    - MANUAL items are created and deleted only by users
    - Editing any item locks it; an edited SYSTEM item becomes MANUAL
    - Unlocked SYSTEM items are owned by recalculation and cannot be
      deleted directly
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add_manual(
        self,
        leg_id: UUID,
        description: str,
        quantity: Decimal,
        rate: Decimal,
        lock: bool = False,
        actor: str | None = None,
        organization_id: UUID | None = None,
    ) -> LoadPayable:
        """Add a MANUAL line item to a leg; total is quantity x rate."""
        leg = await self._get_leg(leg_id, organization_id)
        line = LineItemBuilder.create_manual_line(description, Decimal(quantity), Decimal(rate))

        payable = LoadPayable(
            organization_id=leg.organization_id,
            load_id=leg.load_id,
            leg_id=leg.leg_id,
            driver_id=leg.driver_id,
            carrier_id=leg.carrier_id if leg.driver_id is None else None,
            description=line.description,
            quantity=line.quantity,
            rate=line.rate,
            total_amount=line.amount,
            source_type=SourceType.MANUAL.value,
            is_locked=lock,
            line_hash=LineItemBuilder.compute_line_hash(line),
            created_by=actor,
        )
        self.session.add(payable)
        await self.session.flush()

        await self._audit(payable, "create", actor, after=_payable_audit_dict(payable))
        logger.info("Added manual payable %s to leg %s: %s", payable.payable_id, leg_id, line.amount)
        return payable

    async def update(
        self,
        payable_id: UUID,
        description: str | None = None,
        quantity: Decimal | None = None,
        rate: Decimal | None = None,
        total_amount: Decimal | None = None,
        actor: str | None = None,
        organization_id: UUID | None = None,
    ) -> LoadPayable:
        """Edit a line item.

        The edited item is locked so recalculation never overwrites it. A
        SYSTEM item becomes MANUAL. Without an explicit ``total_amount`` the
        total is recomputed from quantity and rate.
        """
        payable = await self.get_payable(payable_id, organization_id)
        before = _payable_audit_dict(payable)

        if description is not None:
            if not description.strip():
                raise PayableEditError(payable_id, "description cannot be empty")
            payable.description = description
        if quantity is not None:
            payable.quantity = LineItemBuilder.round_quantity(Decimal(quantity))
        if rate is not None:
            payable.rate = Decimal(rate)

        if total_amount is not None:
            payable.total_amount = LineItemBuilder.round_to_cents(Decimal(total_amount))
        elif quantity is not None or rate is not None:
            payable.total_amount = LineItemBuilder.round_to_cents(
                Decimal(payable.quantity) * Decimal(payable.rate)
            )

        payable.source_type = SourceType.MANUAL.value
        payable.is_locked = True

        await self._audit(payable, "update", actor, before=before, after=_payable_audit_dict(payable))
        await self.session.flush()
        return payable

    async def lock(
        self,
        payable_id: UUID,
        actor: str | None = None,
        organization_id: UUID | None = None,
    ) -> LoadPayable:
        """Lock an item so recalculation leaves it alone."""
        return await self._set_locked(payable_id, True, actor, organization_id)

    async def unlock(
        self,
        payable_id: UUID,
        actor: str | None = None,
        organization_id: UUID | None = None,
    ) -> LoadPayable:
        """Unlock an item; an unlocked SYSTEM item is replaced on the next recalculation."""
        return await self._set_locked(payable_id, False, actor, organization_id)

    async def delete(
        self,
        payable_id: UUID,
        actor: str | None = None,
        organization_id: UUID | None = None,
    ) -> None:
        payable = await self.get_payable(payable_id, organization_id)
        if payable.source_type == SourceType.SYSTEM.value and not payable.is_locked:
            raise PayableEditError(
                payable_id, "calculated items are replaced by recalculation, not deleted"
            )

        await self._audit(payable, "delete", actor, before=_payable_audit_dict(payable))
        await self.session.delete(payable)
        await self.session.flush()

    async def get_payable(
        self,
        payable_id: UUID,
        organization_id: UUID | None = None,
    ) -> LoadPayable:
        payable = await self.session.get(LoadPayable, payable_id)
        if payable is None or (
            organization_id is not None and payable.organization_id != organization_id
        ):
            raise EntityNotFoundError("load_payable", payable_id)
        return payable

    async def summary_for_leg(
        self,
        leg_id: UUID,
        organization_id: UUID | None = None,
    ) -> LegPaySummary:
        leg = await self._get_leg(leg_id, organization_id)
        result = await self.session.execute(
            select(LoadPayable)
            .where(LoadPayable.leg_id == leg_id)
            .order_by(LoadPayable.created_at, LoadPayable.description)
        )
        return self._summarize(leg, list(result.scalars().all()))

    async def summary_for_load(
        self,
        load_id: UUID,
        organization_id: UUID | None = None,
    ) -> LoadPaySummary:
        load = await self.session.get(Load, load_id)
        if load is None or (organization_id is not None and load.organization_id != organization_id):
            raise EntityNotFoundError("load", load_id)

        legs = (
            await self.session.execute(
                select(DispatchLeg)
                .where(DispatchLeg.load_id == load_id)
                .order_by(DispatchLeg.sequence)
            )
        ).scalars().all()
        payables = (
            await self.session.execute(
                select(LoadPayable)
                .where(LoadPayable.load_id == load_id)
                .order_by(LoadPayable.created_at, LoadPayable.description)
            )
        ).scalars().all()

        by_leg: dict[UUID, list[LoadPayable]] = {leg.leg_id: [] for leg in legs}
        for payable in payables:
            if payable.leg_id in by_leg:
                by_leg[payable.leg_id].append(payable)

        return LoadPaySummary(
            load_id=load_id,
            legs=[self._summarize(leg, by_leg[leg.leg_id]) for leg in legs],
        )

    # === Helpers ===

    def _summarize(self, leg: DispatchLeg, items: list[LoadPayable]) -> LegPaySummary:
        return LegPaySummary(
            leg_id=leg.leg_id,
            items=items,
            total=LineItemBuilder.calculate_total(Decimal(p.total_amount) for p in items),
            has_warnings=any(p.warning_message for p in items),
            status=LegPayStateMachine.derive(leg.has_payee, [p.to_stored() for p in items]),
        )

    async def _get_leg(self, leg_id: UUID, organization_id: UUID | None) -> DispatchLeg:
        leg = await self.session.get(DispatchLeg, leg_id)
        if leg is None or (organization_id is not None and leg.organization_id != organization_id):
            raise MissingDispatchLegError(leg_id=leg_id)
        return leg

    async def _set_locked(
        self,
        payable_id: UUID,
        locked: bool,
        actor: str | None,
        organization_id: UUID | None,
    ) -> LoadPayable:
        payable = await self.get_payable(payable_id, organization_id)
        if payable.is_locked != locked:
            payable.is_locked = locked
            await self._audit(payable, "lock" if locked else "unlock", actor)
            await self.session.flush()
        return payable

    async def _audit(
        self,
        payable: LoadPayable,
        action: str,
        actor: str | None,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
    ) -> None:
        await record_event(
            self.session,
            organization_id=payable.organization_id,
            entity_type="load_payable",
            entity_id=payable.payable_id,
            action=action,
            actor=actor,
            description=payable.description,
            before=before,
            after=after,
        )


def _payable_audit_dict(payable: LoadPayable) -> dict[str, Any]:
    return {
        "description": payable.description,
        "quantity": str(payable.quantity),
        "rate": str(payable.rate),
        "total_amount": str(payable.total_amount),
        "source_type": payable.source_type,
        "is_locked": payable.is_locked,
    }
