"""Pytest fixtures for driver pay engine tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from driver_pay.calculators.types import PayBasis, ProfileType, RuleCategory, TriggerEvent
from driver_pay.database import create_schema, create_session_factory
from driver_pay.models import (
    Carrier,
    DispatchLeg,
    Driver,
    Load,
    LoadStop,
    Organization,
    RateProfile,
)
from driver_pay.services.assignment_service import AssignmentService
from driver_pay.services.profile_service import ProfileService, RuleInput

# In-memory SQLite shared by every connection of one engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

PICKUP_AT = datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh test database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_schema(engine)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    factory = create_session_factory(engine)
    async with factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def organization(session: AsyncSession) -> Organization:
    """Create a test organization."""
    org = Organization(organization_id=uuid4(), name="Acme Freight")
    session.add(org)
    await session.flush()
    return org


@pytest_asyncio.fixture
async def other_organization(session: AsyncSession) -> Organization:
    org = Organization(organization_id=uuid4(), name="Other Freight")
    session.add(org)
    await session.flush()
    return org


@pytest_asyncio.fixture
async def driver(session: AsyncSession, organization: Organization) -> Driver:
    """Create a test driver."""
    driver = Driver(
        driver_id=uuid4(),
        organization_id=organization.organization_id,
        first_name="Dana",
        last_name="Reyes",
    )
    session.add(driver)
    await session.flush()
    return driver


@pytest_asyncio.fixture
async def second_driver(session: AsyncSession, organization: Organization) -> Driver:
    driver = Driver(
        driver_id=uuid4(),
        organization_id=organization.organization_id,
        first_name="Sam",
        last_name="Okafor",
    )
    session.add(driver)
    await session.flush()
    return driver


@pytest_asyncio.fixture
async def carrier(session: AsyncSession, organization: Organization) -> Carrier:
    """Create a test carrier."""
    carrier = Carrier(
        carrier_id=uuid4(),
        organization_id=organization.organization_id,
        name="Blue Line Owner Operators",
    )
    session.add(carrier)
    await session.flush()
    return carrier


@pytest_asyncio.fixture
async def load(session: AsyncSession, organization: Organization) -> Load:
    """Create a load with revenue and contract miles."""
    load = Load(
        load_id=uuid4(),
        organization_id=organization.organization_id,
        internal_id="L-1001",
        revenue_amount=Decimal("2000.00"),
        contract_miles=Decimal("500"),
        effective_miles=Decimal("500"),
        is_hazmat=False,
        requires_tarp=False,
    )
    session.add(load)
    await session.flush()
    return load


@pytest_asyncio.fixture
async def stops(session: AsyncSession, load: Load) -> list[LoadStop]:
    """Create three stops: 10 hours end to end, 90 minutes of dwell."""
    created = [
        LoadStop(
            stop_id=uuid4(),
            load_id=load.load_id,
            sequence_number=1,
            stop_type="Pickup",
            checked_in_at=PICKUP_AT,
            checked_out_at=PICKUP_AT + timedelta(hours=1),
            dwell_minutes=60,
        ),
        LoadStop(
            stop_id=uuid4(),
            load_id=load.load_id,
            sequence_number=2,
            stop_type="Delivery",
            checked_in_at=PICKUP_AT + timedelta(hours=5),
            checked_out_at=PICKUP_AT + timedelta(hours=5, minutes=30),
            dwell_minutes=30,
        ),
        LoadStop(
            stop_id=uuid4(),
            load_id=load.load_id,
            sequence_number=3,
            stop_type="Delivery",
            checked_in_at=PICKUP_AT + timedelta(hours=9),
            checked_out_at=PICKUP_AT + timedelta(hours=10),
        ),
    ]
    session.add_all(created)
    await session.flush()
    return created


@pytest_asyncio.fixture
async def leg(
    session: AsyncSession,
    load: Load,
    stops: list[LoadStop],
    driver: Driver,
) -> DispatchLeg:
    """Create a single 500-mile leg covering every stop, driven by ``driver``."""
    leg = DispatchLeg(
        leg_id=uuid4(),
        load_id=load.load_id,
        organization_id=load.organization_id,
        sequence=1,
        start_stop_id=stops[0].stop_id,
        end_stop_id=stops[-1].stop_id,
        driver_id=driver.driver_id,
        loaded_miles=Decimal("500"),
        empty_miles=Decimal("0"),
        status="PENDING",
    )
    session.add(leg)
    await session.flush()
    return leg


@pytest_asyncio.fixture
async def mileage_profile(session: AsyncSession, organization: Organization) -> RateProfile:
    """Create a DRIVER mileage profile paying $0.55 per loaded mile."""
    return await ProfileService(session).create_profile(
        organization_id=organization.organization_id,
        name="Standard OTR",
        profile_type=ProfileType.DRIVER,
        pay_basis=PayBasis.MILEAGE,
        base_rule=RuleInput(
            name="Loaded miles",
            category=RuleCategory.BASE,
            trigger_event=TriggerEvent.MILE_LOADED,
            rate_amount=Decimal("0.55"),
        ),
    )


@pytest_asyncio.fixture
async def assigned_driver(
    session: AsyncSession,
    driver: Driver,
    mileage_profile: RateProfile,
) -> Driver:
    """The test driver, starred on the mileage profile."""
    await AssignmentService(session).assign(
        ProfileType.DRIVER, driver.driver_id, mileage_profile.profile_id
    )
    return driver
