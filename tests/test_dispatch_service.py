"""Tests for leg splits and payee changes."""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from driver_pay.calculators.types import ProfileType
from driver_pay.errors import SplitError, SubjectNotFoundError
from driver_pay.models import DispatchLeg, LoadPayable
from driver_pay.services.assignment_service import AssignmentService
from driver_pay.services.dispatch_service import DispatchService, split_miles
from driver_pay.services.payable_service import PayableService


@pytest.fixture
def service(session) -> DispatchService:
    return DispatchService(session)


async def payables_for(session, leg_id) -> list[LoadPayable]:
    result = await session.execute(select(LoadPayable).where(LoadPayable.leg_id == leg_id))
    return list(result.scalars().all())


class TestSplitMiles:
    """Test proportional mileage split."""

    def test_split_by_stop_position(self):
        assert split_miles(Decimal("500"), 1, 3) == (Decimal("333"), Decimal("167"))

    def test_half_up_rounding(self):
        assert split_miles(Decimal("101"), 0, 2) == (Decimal("51"), Decimal("50"))

    def test_parts_add_up(self):
        first, second = split_miles(Decimal("437"), 2, 5)
        assert first + second == Decimal("437")


class TestSplitAtStop:
    """Test splitting a leg at an interior stop."""

    async def test_split_middle_stop(
        self, session, service, load, stops, leg, assigned_driver, second_driver
    ):
        result = await service.split_at_stop(
            load.load_id, stops[1].stop_id, new_driver_id=second_driver.driver_id
        )

        assert result.original_leg.leg_id == leg.leg_id
        assert result.original_leg.end_stop_id == stops[1].stop_id
        assert result.original_leg.loaded_miles == Decimal("333")
        assert result.new_leg.start_stop_id == stops[1].stop_id
        assert result.new_leg.end_stop_id == stops[2].stop_id
        assert result.new_leg.loaded_miles == Decimal("167")
        assert result.new_leg.sequence == 2
        assert result.new_leg.driver_id == second_driver.driver_id

        # Second driver has no profile yet
        assert [r.leg_id for r in result.recalculated] == [leg.leg_id]
        assert result.skipped == [result.new_leg.leg_id]
        assert result.recalculated[0].total == Decimal("183.15")

    async def test_split_without_payee(self, service, load, stops, leg, assigned_driver):
        result = await service.split_at_stop(load.load_id, stops[1].stop_id)

        assert result.new_leg.driver_id is None
        assert result.skipped == [result.new_leg.leg_id]

    async def test_first_and_last_stop_rejected(self, service, load, stops, leg):
        with pytest.raises(SplitError, match="first stop"):
            await service.split_at_stop(load.load_id, stops[0].stop_id)
        with pytest.raises(SplitError, match="last stop"):
            await service.split_at_stop(load.load_id, stops[-1].stop_id)

    async def test_stop_not_on_load(self, service, load, stops, leg):
        with pytest.raises(SplitError, match="not on this load"):
            await service.split_at_stop(load.load_id, uuid4())

    async def test_split_at_existing_boundary(self, service, load, stops, leg):
        await service.split_at_stop(load.load_id, stops[1].stop_id)

        with pytest.raises(SplitError, match="already a leg boundary"):
            await service.split_at_stop(load.load_id, stops[1].stop_id)

    async def test_unknown_new_driver(self, service, load, stops, leg):
        with pytest.raises(SubjectNotFoundError):
            await service.split_at_stop(load.load_id, stops[1].stop_id, new_driver_id=uuid4())

    async def test_later_legs_shift(self, session, service, load, stops, leg):
        legs = (
            await session.execute(select(DispatchLeg).where(DispatchLeg.load_id == load.load_id))
        ).scalars().all()
        assert len(legs) == 1

        await service.split_at_stop(load.load_id, stops[1].stop_id)

        legs = (
            await session.execute(
                select(DispatchLeg)
                .where(DispatchLeg.load_id == load.load_id)
                .order_by(DispatchLeg.sequence)
            )
        ).scalars().all()
        assert [lg.sequence for lg in legs] == [1, 2]


class TestPayeeChanges:
    """Test assigning and removing leg payees."""

    async def test_assign_driver_recalculates(
        self, session, service, leg, second_driver, mileage_profile
    ):
        await AssignmentService(session).assign(
            ProfileType.DRIVER, second_driver.driver_id, mileage_profile.profile_id
        )

        result = await service.assign_driver(leg.leg_id, second_driver.driver_id)

        assert result.leg.driver_id == second_driver.driver_id
        assert result.recalculation is not None
        assert result.recalculation.total == Decimal("275.00")
        stored = await payables_for(session, leg.leg_id)
        assert [p.driver_id for p in stored] == [second_driver.driver_id]

    async def test_payee_change_drops_previous_system_items(
        self, session, service, leg, assigned_driver, second_driver
    ):
        await service.assign_driver(leg.leg_id, assigned_driver.driver_id)
        manual = await PayableService(session).add_manual(
            leg.leg_id, "Lumper", Decimal("1"), Decimal("45")
        )

        result = await service.assign_driver(leg.leg_id, second_driver.driver_id)

        assert result.recalculation is None
        stored = await payables_for(session, leg.leg_id)
        assert [p.payable_id for p in stored] == [manual.payable_id]

    async def test_assign_carrier_replaces_driver(self, session, service, leg, carrier):
        result = await service.assign_carrier(leg.leg_id, carrier.carrier_id)

        assert result.leg.driver_id is None
        assert result.leg.carrier_id == carrier.carrier_id
        assert result.recalculation is None

    async def test_assign_unknown_driver(self, service, leg):
        with pytest.raises(SubjectNotFoundError):
            await service.assign_driver(leg.leg_id, uuid4())

    async def test_remove_driver_keeps_payables(self, session, service, leg, assigned_driver):
        await service.assign_driver(leg.leg_id, assigned_driver.driver_id)

        removed = await service.remove_driver(leg.leg_id)

        assert removed.driver_id is None
        assert removed.has_payee is False
        assert len(await payables_for(session, leg.leg_id)) == 1
