"""Load-level pay endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path

from driver_pay.api.dependencies import Actor, DbSession, OrganizationId
from driver_pay.api.routes.legs import leg_summary_response
from driver_pay.api.schemas import (
    ErrorResponse,
    LegResponse,
    LoadPaySummaryResponse,
    LoadRecalculationResponse,
    RecalculationResponse,
    SplitRequest,
    SplitResponse,
)
from driver_pay.calculators.engine import DriverPayEngine
from driver_pay.services.dispatch_service import DispatchService
from driver_pay.services.payable_service import PayableService

router = APIRouter(prefix="/loads", tags=["loads"])


@router.post(
    "/{load_id}/recalculate",
    response_model=LoadRecalculationResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def recalculate_load(
    db: DbSession,
    organization_id: OrganizationId,
    actor: Actor,
    load_id: Annotated[UUID, Path()],
) -> LoadRecalculationResponse:
    """Recalculate every assigned leg of a load."""
    result = await DriverPayEngine(db).recalculate_load(load_id, actor, organization_id)
    await db.commit()
    return LoadRecalculationResponse.from_result(result)


@router.get(
    "/{load_id}/payables",
    response_model=LoadPaySummaryResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_load_payables(
    db: DbSession,
    organization_id: OrganizationId,
    load_id: Annotated[UUID, Path()],
) -> LoadPaySummaryResponse:
    summary = await PayableService(db).summary_for_load(load_id, organization_id)
    return LoadPaySummaryResponse(
        load_id=summary.load_id,
        total=summary.total,
        legs=[leg_summary_response(leg) for leg in summary.legs],
    )


@router.post(
    "/{load_id}/split",
    response_model=SplitResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def split_load(
    db: DbSession,
    organization_id: OrganizationId,
    actor: Actor,
    load_id: Annotated[UUID, Path()],
    payload: SplitRequest,
) -> SplitResponse:
    """Split a load's leg at a stop and recalculate both legs."""
    result = await DispatchService(db).split_at_stop(
        load_id,
        payload.split_stop_id,
        new_driver_id=payload.new_driver_id,
        new_carrier_id=payload.new_carrier_id,
        truck_id=payload.truck_id,
        trailer_id=payload.trailer_id,
        actor=actor,
        organization_id=organization_id,
    )
    await db.commit()
    return SplitResponse(
        original_leg=LegResponse.model_validate(result.original_leg),
        new_leg=LegResponse.model_validate(result.new_leg),
        recalculated=[RecalculationResponse.from_result(r) for r in result.recalculated],
        skipped=result.skipped,
    )
