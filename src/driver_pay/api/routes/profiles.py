"""Compensation profile and rate rule endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from driver_pay.api.dependencies import Actor, DbSession, OrganizationId
from driver_pay.api.schemas import (
    ErrorResponse,
    ProfileCreate,
    ProfileDetailResponse,
    ProfileListResponse,
    ProfileResponse,
    ProfileUpdate,
    RuleCreate,
    RuleResponse,
    RuleToggle,
    RuleUpdate,
)
from driver_pay.calculators.types import ProfileType
from driver_pay.models import RateProfile
from driver_pay.services.profile_service import ProfileService

router = APIRouter(prefix="/profiles", tags=["profiles"])


async def _detail(service: ProfileService, profile: RateProfile) -> ProfileDetailResponse:
    rules = await service.get_rules(profile.profile_id)
    return ProfileDetailResponse(
        **ProfileResponse.model_validate(profile).model_dump(),
        rules=[RuleResponse.model_validate(r) for r in rules],
    )


# ============================================================================
# Profiles
# ============================================================================


@router.post(
    "",
    response_model=ProfileDetailResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def create_profile(
    db: DbSession,
    organization_id: OrganizationId,
    actor: Actor,
    payload: ProfileCreate,
) -> ProfileDetailResponse:
    """Create a profile together with its BASE rule."""
    service = ProfileService(db)
    profile = await service.create_profile(
        organization_id=organization_id,
        name=payload.name,
        profile_type=payload.profile_type,
        pay_basis=payload.pay_basis,
        base_rule=payload.base_rule.to_input(),
        description=payload.description,
        is_default=payload.is_default,
        actor=actor,
    )
    response = await _detail(service, profile)
    await db.commit()
    return response


@router.get("", response_model=ProfileListResponse)
async def list_profiles(
    db: DbSession,
    organization_id: OrganizationId,
    profile_type: ProfileType | None = None,
    include_inactive: Annotated[bool, Query()] = False,
) -> ProfileListResponse:
    """List an organization's profiles, default first."""
    profiles = await ProfileService(db).list_profiles(
        organization_id, profile_type=profile_type, include_inactive=include_inactive
    )
    return ProfileListResponse(
        items=[ProfileResponse.model_validate(p) for p in profiles],
        total=len(profiles),
    )


@router.get(
    "/{profile_id}",
    response_model=ProfileDetailResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_profile(
    db: DbSession,
    organization_id: OrganizationId,
    profile_id: Annotated[UUID, Path()],
) -> ProfileDetailResponse:
    service = ProfileService(db)
    profile = await service.get_profile(profile_id, organization_id)
    return await _detail(service, profile)


@router.patch(
    "/{profile_id}",
    response_model=ProfileDetailResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def update_profile(
    db: DbSession,
    organization_id: OrganizationId,
    actor: Actor,
    profile_id: Annotated[UUID, Path()],
    payload: ProfileUpdate,
) -> ProfileDetailResponse:
    service = ProfileService(db)
    profile = await service.update_profile(
        profile_id,
        name=payload.name,
        description=payload.description,
        pay_basis=payload.pay_basis,
        actor=actor,
        organization_id=organization_id,
    )
    response = await _detail(service, profile)
    await db.commit()
    return response


@router.post(
    "/{profile_id}/default",
    response_model=ProfileResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def set_default(
    db: DbSession,
    organization_id: OrganizationId,
    actor: Actor,
    profile_id: Annotated[UUID, Path()],
) -> ProfileResponse:
    """Make the profile the organization default for its type."""
    profile = await ProfileService(db).set_org_default(profile_id, actor, organization_id)
    await db.commit()
    return ProfileResponse.model_validate(profile)


@router.delete(
    "/{profile_id}/default",
    response_model=ProfileResponse,
    responses={404: {"model": ErrorResponse}},
)
async def clear_default(
    db: DbSession,
    organization_id: OrganizationId,
    actor: Actor,
    profile_id: Annotated[UUID, Path()],
) -> ProfileResponse:
    profile = await ProfileService(db).clear_org_default(profile_id, actor, organization_id)
    await db.commit()
    return ProfileResponse.model_validate(profile)


@router.post(
    "/{profile_id}/deactivate",
    response_model=ProfileResponse,
    responses={404: {"model": ErrorResponse}},
)
async def deactivate_profile(
    db: DbSession,
    organization_id: OrganizationId,
    actor: Actor,
    profile_id: Annotated[UUID, Path()],
) -> ProfileResponse:
    profile = await ProfileService(db).deactivate_profile(profile_id, actor, organization_id)
    await db.commit()
    return ProfileResponse.model_validate(profile)


@router.post(
    "/{profile_id}/reactivate",
    response_model=ProfileResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def reactivate_profile(
    db: DbSession,
    organization_id: OrganizationId,
    actor: Actor,
    profile_id: Annotated[UUID, Path()],
) -> ProfileResponse:
    profile = await ProfileService(db).reactivate_profile(profile_id, actor, organization_id)
    await db.commit()
    return ProfileResponse.model_validate(profile)


# ============================================================================
# Rules
# ============================================================================


@router.post(
    "/{profile_id}/rules",
    response_model=RuleResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def add_rule(
    db: DbSession,
    organization_id: OrganizationId,
    actor: Actor,
    profile_id: Annotated[UUID, Path()],
    payload: RuleCreate,
) -> RuleResponse:
    rule = await ProfileService(db).add_rule(
        profile_id, payload.to_input(), actor, organization_id
    )
    await db.commit()
    return RuleResponse.model_validate(rule)


@router.post(
    "/{profile_id}/rules/bulk",
    response_model=list[RuleResponse],
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def bulk_add_rules(
    db: DbSession,
    organization_id: OrganizationId,
    actor: Actor,
    profile_id: Annotated[UUID, Path()],
    payload: list[RuleCreate],
) -> list[RuleResponse]:
    """Add several rules at once; either all are added or none."""
    rules = await ProfileService(db).bulk_add_rules(
        profile_id, [r.to_input() for r in payload], actor, organization_id
    )
    await db.commit()
    return [RuleResponse.model_validate(r) for r in rules]


@router.patch(
    "/rules/{rule_id}",
    response_model=RuleResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def update_rule(
    db: DbSession,
    organization_id: OrganizationId,
    actor: Actor,
    rule_id: Annotated[UUID, Path()],
    payload: RuleUpdate,
) -> RuleResponse:
    rule = await ProfileService(db).update_rule(
        rule_id, payload.model_dump(exclude_unset=True), actor, organization_id
    )
    await db.commit()
    return RuleResponse.model_validate(rule)


@router.post(
    "/rules/{rule_id}/toggle",
    response_model=RuleResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def toggle_rule(
    db: DbSession,
    organization_id: OrganizationId,
    actor: Actor,
    rule_id: Annotated[UUID, Path()],
    payload: RuleToggle,
) -> RuleResponse:
    rule = await ProfileService(db).toggle_rule(
        rule_id, payload.is_active, actor, organization_id
    )
    await db.commit()
    return RuleResponse.model_validate(rule)


@router.delete(
    "/rules/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def remove_rule(
    db: DbSession,
    organization_id: OrganizationId,
    actor: Actor,
    rule_id: Annotated[UUID, Path()],
) -> None:
    await ProfileService(db).remove_rule(rule_id, actor, organization_id)
    await db.commit()
