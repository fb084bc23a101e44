"""Integration test fixtures: the API app wired to the test database."""

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from uuid import UUID

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from driver_pay.api.app import create_app
from driver_pay.api.dependencies import get_db_session
from driver_pay.database import create_session_factory
from driver_pay.models import Carrier, DispatchLeg, Driver, Load, LoadStop, Organization


@dataclass(frozen=True)
class SeedIds:
    """Identifiers of committed seed rows."""

    organization_id: UUID
    driver_id: UUID
    second_driver_id: UUID
    carrier_id: UUID
    load_id: UUID
    leg_id: UUID
    stop_ids: list[UUID]

    @property
    def headers(self) -> dict[str, str]:
        return {"X-Organization-ID": str(self.organization_id), "X-User-ID": "dispatcher"}


@pytest_asyncio.fixture
async def client(engine: AsyncEngine) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing."""
    app = create_app()
    factory = create_session_factory(engine)

    async def override_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_db_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def seeded(
    session: AsyncSession,
    organization: Organization,
    driver: Driver,
    second_driver: Driver,
    carrier: Carrier,
    load: Load,
    stops: list[LoadStop],
    leg: DispatchLeg,
) -> SeedIds:
    """Commit the base fixtures so request sessions can see them."""
    await session.commit()
    return SeedIds(
        organization_id=organization.organization_id,
        driver_id=driver.driver_id,
        second_driver_id=second_driver.driver_id,
        carrier_id=carrier.carrier_id,
        load_id=load.load_id,
        leg_id=leg.leg_id,
        stop_ids=[s.stop_id for s in stops],
    )
