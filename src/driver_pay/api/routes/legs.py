"""Dispatch leg pay endpoints: recalculation, preview, payees and summaries."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from driver_pay.api.dependencies import Actor, DbSession, OrganizationId
from driver_pay.api.schemas import (
    ErrorResponse,
    LegPaySummaryResponse,
    LegResponse,
    ManualPayableCreate,
    PayableResponse,
    PayeeAssignRequest,
    PayeeAssignResponse,
    RecalculationResponse,
)
from driver_pay.calculators.engine import DriverPayEngine
from driver_pay.services.dispatch_service import DispatchService
from driver_pay.services.payable_service import LegPaySummary, PayableService

router = APIRouter(prefix="/legs", tags=["legs"])


def leg_summary_response(summary: LegPaySummary) -> LegPaySummaryResponse:
    return LegPaySummaryResponse(
        leg_id=summary.leg_id,
        status=summary.status.value,
        total=summary.total,
        has_warnings=summary.has_warnings,
        items=[PayableResponse.model_validate(p) for p in summary.items],
    )


@router.post(
    "/{leg_id}/recalculate",
    response_model=RecalculationResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def recalculate_leg(
    db: DbSession,
    organization_id: OrganizationId,
    actor: Actor,
    leg_id: Annotated[UUID, Path()],
) -> RecalculationResponse:
    """Replace the leg's calculated pay; locked and manual items are kept."""
    result = await DriverPayEngine(db).recalculate_leg(leg_id, actor, organization_id)
    await db.commit()
    return RecalculationResponse.from_result(result)


@router.get(
    "/{leg_id}/preview",
    response_model=RecalculationResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def preview_leg(
    db: DbSession,
    organization_id: OrganizationId,
    leg_id: Annotated[UUID, Path()],
) -> RecalculationResponse:
    """Show what a recalculation would produce without saving it."""
    result = await DriverPayEngine(db).preview_leg(leg_id, organization_id)
    return RecalculationResponse.from_result(result)


@router.get(
    "/{leg_id}/payables",
    response_model=LegPaySummaryResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_leg_payables(
    db: DbSession,
    organization_id: OrganizationId,
    leg_id: Annotated[UUID, Path()],
) -> LegPaySummaryResponse:
    summary = await PayableService(db).summary_for_leg(leg_id, organization_id)
    return leg_summary_response(summary)


@router.post(
    "/{leg_id}/payables",
    response_model=PayableResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}},
)
async def add_manual_payable(
    db: DbSession,
    organization_id: OrganizationId,
    actor: Actor,
    leg_id: Annotated[UUID, Path()],
    payload: ManualPayableCreate,
) -> PayableResponse:
    payable = await PayableService(db).add_manual(
        leg_id,
        payload.description,
        payload.quantity,
        payload.rate,
        lock=payload.lock,
        actor=actor,
        organization_id=organization_id,
    )
    await db.commit()
    return PayableResponse.model_validate(payable)


@router.put(
    "/{leg_id}/payee",
    response_model=PayeeAssignResponse,
    responses={404: {"model": ErrorResponse}},
)
async def assign_payee(
    db: DbSession,
    organization_id: OrganizationId,
    actor: Actor,
    leg_id: Annotated[UUID, Path()],
    payload: PayeeAssignRequest,
) -> PayeeAssignResponse:
    """Put a driver or carrier on the leg and recalculate its pay."""
    service = DispatchService(db)
    if payload.driver_id is not None:
        outcome = await service.assign_driver(leg_id, payload.driver_id, actor, organization_id)
    else:
        outcome = await service.assign_carrier(leg_id, payload.carrier_id, actor, organization_id)
    await db.commit()
    return PayeeAssignResponse(
        leg=LegResponse.model_validate(outcome.leg),
        recalculation=(
            RecalculationResponse.from_result(outcome.recalculation)
            if outcome.recalculation
            else None
        ),
    )


@router.delete(
    "/{leg_id}/payee",
    response_model=LegResponse,
    responses={404: {"model": ErrorResponse}},
)
async def remove_payee(
    db: DbSession,
    organization_id: OrganizationId,
    actor: Actor,
    leg_id: Annotated[UUID, Path()],
) -> LegResponse:
    """Clear the leg's payee; existing pay items are kept."""
    leg = await DispatchService(db).remove_driver(leg_id, actor, organization_id)
    await db.commit()
    return LegResponse.model_validate(leg)
