"""Pay line item endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from driver_pay.api.dependencies import Actor, DbSession, OrganizationId
from driver_pay.api.schemas import ErrorResponse, PayableResponse, PayableUpdate
from driver_pay.services.payable_service import PayableService

router = APIRouter(prefix="/payables", tags=["payables"])


@router.patch(
    "/{payable_id}",
    response_model=PayableResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def update_payable(
    db: DbSession,
    organization_id: OrganizationId,
    actor: Actor,
    payable_id: Annotated[UUID, Path()],
    payload: PayableUpdate,
) -> PayableResponse:
    """Edit a line item; the item is locked and becomes MANUAL."""
    payable = await PayableService(db).update(
        payable_id,
        description=payload.description,
        quantity=payload.quantity,
        rate=payload.rate,
        total_amount=payload.total_amount,
        actor=actor,
        organization_id=organization_id,
    )
    await db.commit()
    return PayableResponse.model_validate(payable)


@router.post(
    "/{payable_id}/lock",
    response_model=PayableResponse,
    responses={404: {"model": ErrorResponse}},
)
async def lock_payable(
    db: DbSession,
    organization_id: OrganizationId,
    actor: Actor,
    payable_id: Annotated[UUID, Path()],
) -> PayableResponse:
    payable = await PayableService(db).lock(payable_id, actor, organization_id)
    await db.commit()
    return PayableResponse.model_validate(payable)


@router.post(
    "/{payable_id}/unlock",
    response_model=PayableResponse,
    responses={404: {"model": ErrorResponse}},
)
async def unlock_payable(
    db: DbSession,
    organization_id: OrganizationId,
    actor: Actor,
    payable_id: Annotated[UUID, Path()],
) -> PayableResponse:
    payable = await PayableService(db).unlock(payable_id, actor, organization_id)
    await db.commit()
    return PayableResponse.model_validate(payable)


@router.delete(
    "/{payable_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def delete_payable(
    db: DbSession,
    organization_id: OrganizationId,
    actor: Actor,
    payable_id: Annotated[UUID, Path()],
) -> None:
    await PayableService(db).delete(payable_id, actor, organization_id)
    await db.commit()
