"""Driver and carrier profile assignment administration."""

from __future__ import annotations

import logging
from typing import Union
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from driver_pay.audit import record_event
from driver_pay.calculators.types import ProfileType
from driver_pay.errors import AssignmentError, EntityNotFoundError, SubjectNotFoundError
from driver_pay.models import (
    Carrier,
    CarrierProfileAssignment,
    Driver,
    DriverProfileAssignment,
    RateProfile,
)

logger = logging.getLogger(__name__)

Assignment = Union[DriverProfileAssignment, CarrierProfileAssignment]


class AssignmentService:
    """Service for assigning compensation profiles to drivers and carriers.

    A subject may hold several assignments; at most one of them is starred.
    Starring an assignment unsets the subject's other stars in the same
    transaction, and a subject's first assignment is starred automatically.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def assign(
        self,
        subject_type: ProfileType,
        subject_id: UUID,
        profile_id: UUID,
        star: bool | None = None,
        actor: str | None = None,
        organization_id: UUID | None = None,
    ) -> Assignment:
        """Assign a profile to a driver or carrier.

        Raises:
            SubjectNotFoundError: If the subject does not exist
            EntityNotFoundError: If the profile does not exist
            AssignmentError: If the profile does not fit the subject or is
                already assigned
        """
        subject_type = ProfileType(subject_type)
        subject = await self._get_subject(subject_type, subject_id, organization_id)

        profile = await self.session.get(RateProfile, profile_id)
        if profile is None or profile.organization_id != subject.organization_id:
            raise EntityNotFoundError("rate_profile", profile_id)
        if profile.profile_type != subject_type.value:
            raise AssignmentError(
                f"{profile.profile_type} profile '{profile.name}' cannot be assigned "
                f"to a {subject_type.value.lower()}"
            )
        if not profile.is_active:
            raise AssignmentError(f"profile '{profile.name}' is inactive")

        existing = await self._get_for_subject(subject_type, subject_id)
        if any(a.profile_id == profile_id for a in existing):
            raise AssignmentError(
                f"profile '{profile.name}' is already assigned to "
                f"{subject_type.value.lower()} {subject_id}"
            )

        if star is None:
            star = not existing
        if star:
            await self._unset_stars(subject_type, subject_id)

        model = _assignment_model(subject_type)
        assignment = model(
            profile_id=profile_id,
            organization_id=subject.organization_id,
            is_default=star,
            **{_subject_column(subject_type): subject_id},
        )
        self.session.add(assignment)
        await self.session.flush()

        await self._audit(assignment, subject_type, "assign", actor, profile_name=profile.name)
        logger.info(
            "Assigned profile %s to %s %s (starred=%s)",
            profile_id,
            subject_type.value.lower(),
            subject_id,
            star,
        )
        return assignment

    async def set_star(
        self,
        subject_type: ProfileType,
        assignment_id: UUID,
        actor: str | None = None,
        organization_id: UUID | None = None,
    ) -> Assignment:
        """Star an assignment, unsetting the subject's other stars."""
        subject_type = ProfileType(subject_type)
        assignment = await self.get_assignment(subject_type, assignment_id, organization_id)

        await self._unset_stars(subject_type, assignment.subject_id, exclude=assignment_id)
        assignment.is_default = True

        await self._audit(assignment, subject_type, "set_star", actor)
        await self.session.flush()
        return assignment

    async def unset_star(
        self,
        subject_type: ProfileType,
        assignment_id: UUID,
        actor: str | None = None,
        organization_id: UUID | None = None,
    ) -> Assignment:
        """Remove the star; the organization default applies again."""
        subject_type = ProfileType(subject_type)
        assignment = await self.get_assignment(subject_type, assignment_id, organization_id)
        assignment.is_default = False

        await self._audit(assignment, subject_type, "unset_star", actor)
        await self.session.flush()
        return assignment

    async def remove(
        self,
        subject_type: ProfileType,
        assignment_id: UUID,
        actor: str | None = None,
        organization_id: UUID | None = None,
    ) -> None:
        subject_type = ProfileType(subject_type)
        assignment = await self.get_assignment(subject_type, assignment_id, organization_id)

        await self._audit(assignment, subject_type, "remove", actor)
        await self.session.delete(assignment)
        await self.session.flush()

    async def list_for_subject(
        self,
        subject_type: ProfileType,
        subject_id: UUID,
        organization_id: UUID | None = None,
    ) -> list[tuple[Assignment, RateProfile]]:
        """Assignments of a subject with their profiles, starred first, then by name."""
        subject_type = ProfileType(subject_type)
        await self._get_subject(subject_type, subject_id, organization_id)

        model = _assignment_model(subject_type)
        result = await self.session.execute(
            select(model, RateProfile)
            .join(RateProfile, RateProfile.profile_id == model.profile_id)
            .where(getattr(model, _subject_column(subject_type)) == subject_id)
            .order_by(model.is_default.desc(), RateProfile.name)
        )
        return [(row[0], row[1]) for row in result.all()]

    async def get_assignment(
        self,
        subject_type: ProfileType,
        assignment_id: UUID,
        organization_id: UUID | None = None,
    ) -> Assignment:
        model = _assignment_model(ProfileType(subject_type))
        assignment = await self.session.get(model, assignment_id)
        if assignment is None or (
            organization_id is not None and assignment.organization_id != organization_id
        ):
            raise EntityNotFoundError("profile_assignment", assignment_id)
        return assignment

    # === Helpers ===

    async def _get_subject(
        self,
        subject_type: ProfileType,
        subject_id: UUID,
        organization_id: UUID | None,
    ) -> Driver | Carrier:
        model = Driver if subject_type == ProfileType.DRIVER else Carrier
        subject = await self.session.get(model, subject_id)
        if subject is None or (
            organization_id is not None and subject.organization_id != organization_id
        ):
            raise SubjectNotFoundError(
                subject_type.value.lower(), subject_id, organization_id or "any"
            )
        return subject

    async def _get_for_subject(
        self,
        subject_type: ProfileType,
        subject_id: UUID,
    ) -> list[Assignment]:
        model = _assignment_model(subject_type)
        result = await self.session.execute(
            select(model).where(getattr(model, _subject_column(subject_type)) == subject_id)
        )
        return list(result.scalars().all())

    async def _unset_stars(
        self,
        subject_type: ProfileType,
        subject_id: UUID,
        exclude: UUID | None = None,
    ) -> None:
        model = _assignment_model(subject_type)
        stmt = (
            update(model)
            .where(
                getattr(model, _subject_column(subject_type)) == subject_id,
                model.is_default.is_(True),
            )
            .values(is_default=False)
        )
        if exclude is not None:
            stmt = stmt.where(model.assignment_id != exclude)
        await self.session.execute(stmt)

    async def _audit(
        self,
        assignment: Assignment,
        subject_type: ProfileType,
        action: str,
        actor: str | None,
        profile_name: str | None = None,
    ) -> None:
        await record_event(
            self.session,
            organization_id=assignment.organization_id,
            entity_type=f"{subject_type.value.lower()}_profile_assignment",
            entity_id=assignment.assignment_id,
            action=action,
            actor=actor,
            after={
                "subject_id": str(assignment.subject_id),
                "profile_id": str(assignment.profile_id),
                "profile_name": profile_name,
                "is_default": assignment.is_default,
            },
        )


def _assignment_model(subject_type: ProfileType) -> type[Assignment]:
    if subject_type == ProfileType.DRIVER:
        return DriverProfileAssignment
    return CarrierProfileAssignment


def _subject_column(subject_type: ProfileType) -> str:
    return "driver_id" if subject_type == ProfileType.DRIVER else "carrier_id"
