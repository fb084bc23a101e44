"""Driver and carrier profile assignment endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from driver_pay.api.dependencies import Actor, DbSession, OrganizationId
from driver_pay.api.schemas import AssignmentCreate, AssignmentResponse, ErrorResponse
from driver_pay.calculators.types import ProfileType
from driver_pay.services.assignment_service import Assignment, AssignmentService

router = APIRouter(prefix="/assignments", tags=["assignments"])


def _response(assignment: Assignment, profile_name: str | None = None) -> AssignmentResponse:
    return AssignmentResponse(
        assignment_id=assignment.assignment_id,
        subject_id=assignment.subject_id,
        profile_id=assignment.profile_id,
        profile_name=profile_name,
        is_default=assignment.is_default,
    )


@router.post(
    "/{subject_type}",
    response_model=AssignmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def assign_profile(
    db: DbSession,
    organization_id: OrganizationId,
    actor: Actor,
    subject_type: Annotated[ProfileType, Path()],
    payload: AssignmentCreate,
) -> AssignmentResponse:
    """Assign a profile to a driver or carrier."""
    assignment = await AssignmentService(db).assign(
        subject_type,
        payload.subject_id,
        payload.profile_id,
        star=payload.star,
        actor=actor,
        organization_id=organization_id,
    )
    await db.commit()
    return _response(assignment)


@router.get(
    "/{subject_type}/{subject_id}",
    response_model=list[AssignmentResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_assignments(
    db: DbSession,
    organization_id: OrganizationId,
    subject_type: Annotated[ProfileType, Path()],
    subject_id: Annotated[UUID, Path()],
) -> list[AssignmentResponse]:
    """List a subject's assignments, starred first."""
    rows = await AssignmentService(db).list_for_subject(subject_type, subject_id, organization_id)
    return [_response(assignment, profile.name) for assignment, profile in rows]


@router.post(
    "/{subject_type}/{assignment_id}/star",
    response_model=AssignmentResponse,
    responses={404: {"model": ErrorResponse}},
)
async def star_assignment(
    db: DbSession,
    organization_id: OrganizationId,
    actor: Actor,
    subject_type: Annotated[ProfileType, Path()],
    assignment_id: Annotated[UUID, Path()],
) -> AssignmentResponse:
    assignment = await AssignmentService(db).set_star(
        subject_type, assignment_id, actor, organization_id
    )
    await db.commit()
    return _response(assignment)


@router.delete(
    "/{subject_type}/{assignment_id}/star",
    response_model=AssignmentResponse,
    responses={404: {"model": ErrorResponse}},
)
async def unstar_assignment(
    db: DbSession,
    organization_id: OrganizationId,
    actor: Actor,
    subject_type: Annotated[ProfileType, Path()],
    assignment_id: Annotated[UUID, Path()],
) -> AssignmentResponse:
    assignment = await AssignmentService(db).unset_star(
        subject_type, assignment_id, actor, organization_id
    )
    await db.commit()
    return _response(assignment)


@router.delete(
    "/{subject_type}/{assignment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def remove_assignment(
    db: DbSession,
    organization_id: OrganizationId,
    actor: Actor,
    subject_type: Annotated[ProfileType, Path()],
    assignment_id: Annotated[UUID, Path()],
) -> None:
    await AssignmentService(db).remove(subject_type, assignment_id, actor, organization_id)
    await db.commit()
