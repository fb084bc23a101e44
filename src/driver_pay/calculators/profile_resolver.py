"""Compensation profile resolution for drivers and carriers."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from driver_pay.calculators.types import AssignmentSnapshot, ProfileSnapshot, ProfileType
from driver_pay.errors import NoActiveProfileError, SubjectNotFoundError
from driver_pay.models import (
    Carrier,
    CarrierProfileAssignment,
    Driver,
    DriverProfileAssignment,
    RateProfile,
)

logger = logging.getLogger(__name__)


def resolve_profile(
    assignments: Iterable[AssignmentSnapshot],
    profiles: Mapping[UUID, ProfileSnapshot],
    profile_type: ProfileType,
) -> ProfileSnapshot | None:
    """Pick the profile that pays a subject.

    Selection priority:
    1. The subject's starred assignment
    2. An assignment to the organization default profile
    3. Nothing

    Assignments to inactive profiles, or to profiles of another type, are
    ignored. If several assignments are starred, the lowest assignment id
    wins.
    """
    eligible: list[tuple[AssignmentSnapshot, ProfileSnapshot]] = []
    for assignment in assignments:
        profile = profiles.get(assignment.profile_id)
        if profile is None or not profile.is_active:
            continue
        if ProfileType(profile.profile_type) != ProfileType(profile_type):
            continue
        eligible.append((assignment, profile))

    starred = sorted(
        (pair for pair in eligible if pair[0].is_default),
        key=lambda pair: str(pair[0].assignment_id),
    )
    if len(starred) > 1:
        logger.warning(
            "Subject %s has %d starred profile assignments; using assignment %s",
            starred[0][0].subject_id,
            len(starred),
            starred[0][0].assignment_id,
        )
    if starred:
        return starred[0][1]

    for _, profile in eligible:
        if profile.is_default:
            return profile

    return None


class ProfileResolver:
    """Resolves the active compensation profile from stored assignments."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def resolve_for_driver(
        self,
        driver_id: UUID,
        organization_id: UUID,
    ) -> ProfileSnapshot | None:
        """Resolve a driver's profile.

        Raises:
            SubjectNotFoundError: If the driver does not exist in the organization
        """
        driver = await self.session.get(Driver, driver_id)
        if driver is None or driver.organization_id != organization_id:
            raise SubjectNotFoundError("driver", driver_id, organization_id)

        result = await self.session.execute(
            select(DriverProfileAssignment).where(
                DriverProfileAssignment.driver_id == driver_id,
                DriverProfileAssignment.organization_id == organization_id,
            )
        )
        assignments = [a.to_snapshot() for a in result.scalars().all()]
        return await self._resolve(assignments, ProfileType.DRIVER)

    async def resolve_for_carrier(
        self,
        carrier_id: UUID,
        organization_id: UUID,
    ) -> ProfileSnapshot | None:
        """Resolve a carrier's profile.

        Raises:
            SubjectNotFoundError: If the carrier does not exist in the organization
        """
        carrier = await self.session.get(Carrier, carrier_id)
        if carrier is None or carrier.organization_id != organization_id:
            raise SubjectNotFoundError("carrier", carrier_id, organization_id)

        result = await self.session.execute(
            select(CarrierProfileAssignment).where(
                CarrierProfileAssignment.carrier_id == carrier_id,
                CarrierProfileAssignment.organization_id == organization_id,
            )
        )
        assignments = [a.to_snapshot() for a in result.scalars().all()]
        return await self._resolve(assignments, ProfileType.CARRIER)

    async def require_for_driver(self, driver_id: UUID, organization_id: UUID) -> ProfileSnapshot:
        profile = await self.resolve_for_driver(driver_id, organization_id)
        if profile is None:
            raise NoActiveProfileError("driver", driver_id)
        return profile

    async def require_for_carrier(self, carrier_id: UUID, organization_id: UUID) -> ProfileSnapshot:
        profile = await self.resolve_for_carrier(carrier_id, organization_id)
        if profile is None:
            raise NoActiveProfileError("carrier", carrier_id)
        return profile

    async def _resolve(
        self,
        assignments: list[AssignmentSnapshot],
        profile_type: ProfileType,
    ) -> ProfileSnapshot | None:
        if not assignments:
            return None

        result = await self.session.execute(
            select(RateProfile).where(
                RateProfile.profile_id.in_([a.profile_id for a in assignments])
            )
        )
        profiles = {p.profile_id: p.to_snapshot() for p in result.scalars().all()}
        return resolve_profile(assignments, profiles, profile_type)
