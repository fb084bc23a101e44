"""Dispatch leg operations that change who is paid for what."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from driver_pay.audit import record_event
from driver_pay.calculators.engine import DriverPayEngine, RecalculationResult
from driver_pay.calculators.types import SourceType
from driver_pay.errors import (
    EntityNotFoundError,
    MissingDispatchLegError,
    NoActiveProfileError,
    SplitError,
    SubjectNotFoundError,
)
from driver_pay.models import Carrier, DispatchLeg, Driver, Load, LoadPayable, LoadStop

logger = logging.getLogger(__name__)

WHOLE_MILES = Decimal("1")


@dataclass
class SplitResult:
    """Outcome of splitting a leg at a stop."""

    original_leg: DispatchLeg
    new_leg: DispatchLeg
    recalculated: list[RecalculationResult] = field(default_factory=list)
    skipped: list[UUID] = field(default_factory=list)  # legs left without new pay


@dataclass
class AssignmentResult:
    """Outcome of putting a payee on a leg."""

    leg: DispatchLeg
    recalculation: RecalculationResult | None = None


def split_miles(total: Decimal, split_index: int, stop_count: int) -> tuple[Decimal, Decimal]:
    """Split loaded miles by stop position, the split stop counting for both legs.

    The first leg gets ``total * (split_index + 1) / stop_count`` rounded to
    whole miles; the second leg gets the remainder.
    """
    first = (total * (split_index + 1) / stop_count).quantize(WHOLE_MILES, rounding=ROUND_HALF_UP)
    return first, total - first


class DispatchService:
    """Service for leg splits and payee changes.

    Every change that alters what a leg pays triggers a recalculation of
    the affected legs in the same transaction.
    """

    def __init__(self, session: AsyncSession, engine: DriverPayEngine | None = None):
        self.session = session
        self.engine = engine or DriverPayEngine(session)

    async def split_at_stop(
        self,
        load_id: UUID,
        split_stop_id: UUID,
        new_driver_id: UUID | None = None,
        new_carrier_id: UUID | None = None,
        truck_id: UUID | None = None,
        trailer_id: UUID | None = None,
        actor: str | None = None,
        organization_id: UUID | None = None,
    ) -> SplitResult:
        """Split the leg covering a stop into two legs meeting at that stop.

        The original leg now ends at the split stop; a new leg runs from the
        split stop to the original leg's end stop. Both legs are
        recalculated. A leg whose payee has no profile is reported in
        ``skipped``; any other error propagates and the caller rolls back.

        Raises:
            EntityNotFoundError: If the load does not exist
            SplitError: If the stop is not an interior stop of a leg
        """
        load = await self.session.get(Load, load_id)
        if load is None or (organization_id is not None and load.organization_id != organization_id):
            raise EntityNotFoundError("load", load_id)

        stops = (
            await self.session.execute(
                select(LoadStop)
                .where(LoadStop.load_id == load_id)
                .order_by(LoadStop.sequence_number)
            )
        ).scalars().all()
        index = next((i for i, s in enumerate(stops) if s.stop_id == split_stop_id), None)
        if index is None:
            raise SplitError(load_id, f"stop {split_stop_id} is not on this load")
        if index == 0:
            raise SplitError(load_id, "cannot split at the first stop")
        if index == len(stops) - 1:
            raise SplitError(load_id, "cannot split at the last stop")

        legs = (
            await self.session.execute(
                select(DispatchLeg)
                .where(DispatchLeg.load_id == load_id)
                .order_by(DispatchLeg.sequence)
            )
        ).scalars().all()
        if not legs:
            raise MissingDispatchLegError(load_id=load_id)

        split_seq = stops[index].sequence_number
        seq_by_stop = {s.stop_id: s.sequence_number for s in stops}
        leg = next(
            (
                candidate
                for candidate in legs
                if seq_by_stop.get(candidate.start_stop_id, split_seq)
                < split_seq
                < seq_by_stop.get(candidate.end_stop_id, split_seq)
            ),
            None,
        )
        if leg is None:
            raise SplitError(load_id, f"stop {split_stop_id} is already a leg boundary")

        if new_driver_id is not None:
            await self._get_driver(new_driver_id, leg.organization_id)
        elif new_carrier_id is not None:
            await self._get_carrier(new_carrier_id, leg.organization_id)

        leg_stops = [
            s
            for s in stops
            if seq_by_stop[leg.start_stop_id] <= s.sequence_number <= seq_by_stop[leg.end_stop_id]
        ]
        split_index = next(i for i, s in enumerate(leg_stops) if s.stop_id == split_stop_id)
        total_miles = leg.loaded_miles
        if total_miles is None:
            total_miles = load.effective_miles if len(legs) == 1 else None
        first_miles, second_miles = (None, None)
        if total_miles is not None:
            first_miles, second_miles = split_miles(
                Decimal(total_miles), split_index, len(leg_stops)
            )

        # Later legs move up one sequence, highest first
        for later in sorted(
            (other for other in legs if other.sequence > leg.sequence),
            key=lambda other: other.sequence,
            reverse=True,
        ):
            later.sequence += 1
            await self.session.flush()

        original_end = leg.end_stop_id
        leg.end_stop_id = split_stop_id
        leg.loaded_miles = first_miles

        new_leg = DispatchLeg(
            load_id=load_id,
            organization_id=leg.organization_id,
            sequence=leg.sequence + 1,
            start_stop_id=split_stop_id,
            end_stop_id=original_end,
            driver_id=new_driver_id,
            carrier_id=new_carrier_id if new_driver_id is None else None,
            truck_id=truck_id,
            trailer_id=trailer_id,
            loaded_miles=second_miles,
            empty_miles=Decimal("0"),
            status="PENDING",
        )
        self.session.add(new_leg)
        await self.session.flush()

        await record_event(
            self.session,
            organization_id=leg.organization_id,
            entity_type="load",
            entity_id=load_id,
            action="split",
            actor=actor,
            description=(
                f"Split load {load.internal_id} at stop {split_seq}: "
                f"leg {leg.sequence} {first_miles} mi, leg {new_leg.sequence} {second_miles} mi"
            ),
            after={"original_leg_id": str(leg.leg_id), "new_leg_id": str(new_leg.leg_id)},
        )
        logger.info(
            "Split load %s at stop %s into legs %s and %s",
            load_id,
            split_stop_id,
            leg.leg_id,
            new_leg.leg_id,
        )

        result = SplitResult(original_leg=leg, new_leg=new_leg)
        for affected in (leg, new_leg):
            recalculation = await self._recalculate_if_payable(affected, actor)
            if recalculation is None:
                result.skipped.append(affected.leg_id)
            else:
                result.recalculated.append(recalculation)
        return result

    async def assign_driver(
        self,
        leg_id: UUID,
        driver_id: UUID,
        actor: str | None = None,
        organization_id: UUID | None = None,
    ) -> AssignmentResult:
        """Put a driver on a leg and recalculate its pay when a profile resolves."""
        leg = await self._get_leg(leg_id, organization_id)
        await self._get_driver(driver_id, leg.organization_id)
        return await self._change_payee(leg, driver_id=driver_id, carrier_id=None, actor=actor)

    async def assign_carrier(
        self,
        leg_id: UUID,
        carrier_id: UUID,
        actor: str | None = None,
        organization_id: UUID | None = None,
    ) -> AssignmentResult:
        """Put a carrier on a leg and recalculate its pay when a profile resolves."""
        leg = await self._get_leg(leg_id, organization_id)
        await self._get_carrier(carrier_id, leg.organization_id)
        return await self._change_payee(leg, driver_id=None, carrier_id=carrier_id, actor=actor)

    async def remove_driver(
        self,
        leg_id: UUID,
        actor: str | None = None,
        organization_id: UUID | None = None,
    ) -> DispatchLeg:
        """Clear the leg's payee. Existing payables are kept as history."""
        leg = await self._get_leg(leg_id, organization_id)
        before = {
            "driver_id": str(leg.driver_id) if leg.driver_id else None,
            "carrier_id": str(leg.carrier_id) if leg.carrier_id else None,
        }
        leg.driver_id = None
        leg.carrier_id = None

        await record_event(
            self.session,
            organization_id=leg.organization_id,
            entity_type="dispatch_leg",
            entity_id=leg.leg_id,
            action="remove_payee",
            actor=actor,
            before=before,
        )
        await self.session.flush()
        logger.info("Removed payee from leg %s", leg_id)
        return leg

    # === Helpers ===

    async def _change_payee(
        self,
        leg: DispatchLeg,
        driver_id: UUID | None,
        carrier_id: UUID | None,
        actor: str | None,
    ) -> AssignmentResult:
        before = {
            "driver_id": str(leg.driver_id) if leg.driver_id else None,
            "carrier_id": str(leg.carrier_id) if leg.carrier_id else None,
        }
        changed = (leg.driver_id, leg.carrier_id) != (driver_id, carrier_id)
        leg.driver_id = driver_id
        leg.carrier_id = carrier_id

        if changed:
            # Unlocked calculated items belong to the previous payee
            await self.session.execute(
                delete(LoadPayable).where(
                    LoadPayable.leg_id == leg.leg_id,
                    LoadPayable.source_type == SourceType.SYSTEM.value,
                    LoadPayable.is_locked.is_(False),
                )
            )

        await record_event(
            self.session,
            organization_id=leg.organization_id,
            entity_type="dispatch_leg",
            entity_id=leg.leg_id,
            action="assign_payee",
            actor=actor,
            before=before,
            after={
                "driver_id": str(driver_id) if driver_id else None,
                "carrier_id": str(carrier_id) if carrier_id else None,
            },
        )
        await self.session.flush()

        return AssignmentResult(leg=leg, recalculation=await self._recalculate_if_payable(leg, actor))

    async def _recalculate_if_payable(
        self,
        leg: DispatchLeg,
        actor: str | None,
    ) -> RecalculationResult | None:
        if not leg.has_payee:
            return None
        try:
            return await self.engine.recalculate_leg(leg.leg_id, actor)
        except NoActiveProfileError as e:
            logger.warning("Leg %s not recalculated: %s", leg.leg_id, e)
            return None

    async def _get_leg(self, leg_id: UUID, organization_id: UUID | None) -> DispatchLeg:
        leg = await self.session.get(DispatchLeg, leg_id)
        if leg is None or (organization_id is not None and leg.organization_id != organization_id):
            raise MissingDispatchLegError(leg_id=leg_id)
        return leg

    async def _get_driver(self, driver_id: UUID, organization_id: UUID) -> Driver:
        driver = await self.session.get(Driver, driver_id)
        if driver is None or driver.organization_id != organization_id:
            raise SubjectNotFoundError("driver", driver_id, organization_id)
        return driver

    async def _get_carrier(self, carrier_id: UUID, organization_id: UUID) -> Carrier:
        carrier = await self.session.get(Carrier, carrier_id)
        if carrier is None or carrier.organization_id != organization_id:
            raise SubjectNotFoundError("carrier", carrier_id, organization_id)
        return carrier
