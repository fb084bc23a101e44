"""Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from driver_pay.calculators.engine import LoadRecalculationResult, RecalculationResult
from driver_pay.calculators.types import PayBasis, ProfileType, RuleCategory, TriggerEvent
from driver_pay.services.profile_service import RuleInput


# ============================================================================
# Rate rule schemas
# ============================================================================


class RuleCreate(BaseModel):
    """Schema for adding a rate rule."""

    name: str = Field(min_length=1)
    category: RuleCategory
    trigger_event: TriggerEvent
    rate_amount: Decimal = Field(ge=0)
    min_threshold: Decimal | None = Field(default=None, ge=0)
    max_cap: Decimal | None = Field(default=None, ge=0)
    is_active: bool = True

    def to_input(self) -> RuleInput:
        return RuleInput(
            name=self.name,
            category=self.category,
            trigger_event=self.trigger_event,
            rate_amount=self.rate_amount,
            min_threshold=self.min_threshold,
            max_cap=self.max_cap,
            is_active=self.is_active,
        )


class RuleUpdate(BaseModel):
    """Schema for changing a rate rule; only the fields sent are changed."""

    name: str | None = Field(default=None, min_length=1)
    category: RuleCategory | None = None
    trigger_event: TriggerEvent | None = None
    rate_amount: Decimal | None = Field(default=None, ge=0)
    min_threshold: Decimal | None = Field(default=None, ge=0)
    max_cap: Decimal | None = Field(default=None, ge=0)


class RuleToggle(BaseModel):
    """Schema for activating or deactivating a rule; omit to flip."""

    is_active: bool | None = None


class RuleResponse(BaseModel):
    """Schema for rate rule response."""

    model_config = ConfigDict(from_attributes=True)

    rule_id: UUID
    profile_id: UUID
    name: str
    category: RuleCategory
    trigger_event: TriggerEvent
    rate_amount: Decimal
    min_threshold: Decimal | None = None
    max_cap: Decimal | None = None
    is_active: bool
    sort_order: int


# ============================================================================
# Profile schemas
# ============================================================================


class ProfileCreate(BaseModel):
    """Schema for creating a profile with its BASE rule."""

    name: str = Field(min_length=1)
    profile_type: ProfileType
    pay_basis: PayBasis
    base_rule: RuleCreate
    description: str | None = None
    is_default: bool = False


class ProfileUpdate(BaseModel):
    """Schema for updating a profile."""

    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    pay_basis: PayBasis | None = None


class ProfileResponse(BaseModel):
    """Schema for profile response."""

    model_config = ConfigDict(from_attributes=True)

    profile_id: UUID
    organization_id: UUID
    name: str
    description: str | None = None
    profile_type: ProfileType
    pay_basis: PayBasis
    is_default: bool
    is_active: bool
    created_at: datetime


class ProfileDetailResponse(ProfileResponse):
    """Schema for a profile with its rules."""

    rules: list[RuleResponse] = Field(default_factory=list)


class ProfileListResponse(BaseModel):
    """Schema for listing profiles."""

    items: list[ProfileResponse]
    total: int


# ============================================================================
# Assignment schemas
# ============================================================================


class AssignmentCreate(BaseModel):
    """Schema for assigning a profile to a driver or carrier."""

    subject_id: UUID
    profile_id: UUID
    star: bool | None = None


class AssignmentResponse(BaseModel):
    """Schema for profile assignment response."""

    assignment_id: UUID
    subject_id: UUID
    profile_id: UUID
    profile_name: str | None = None
    is_default: bool


# ============================================================================
# Payable schemas
# ============================================================================


class PayableResponse(BaseModel):
    """Schema for pay line item response."""

    model_config = ConfigDict(from_attributes=True)

    payable_id: UUID
    load_id: UUID
    leg_id: UUID | None = None
    driver_id: UUID | None = None
    carrier_id: UUID | None = None
    description: str
    category: str | None = None
    trigger_event: str | None = None
    quantity: Decimal
    rate: Decimal
    total_amount: Decimal
    source_type: str
    is_locked: bool
    rule_id: UUID | None = None
    warning_message: str | None = None


class ManualPayableCreate(BaseModel):
    """Schema for adding a manual line item to a leg."""

    description: str = Field(min_length=1)
    quantity: Decimal
    rate: Decimal
    lock: bool = False


class PayableUpdate(BaseModel):
    """Schema for editing a line item."""

    description: str | None = Field(default=None, min_length=1)
    quantity: Decimal | None = None
    rate: Decimal | None = None
    total_amount: Decimal | None = None


class LegPaySummaryResponse(BaseModel):
    """Schema for a leg's pay summary."""

    leg_id: UUID
    status: str
    total: Decimal
    has_warnings: bool
    items: list[PayableResponse]


class LoadPaySummaryResponse(BaseModel):
    """Schema for a load's pay summary."""

    load_id: UUID
    total: Decimal
    legs: list[LegPaySummaryResponse]


# ============================================================================
# Recalculation schemas
# ============================================================================


class WarningResponse(BaseModel):
    """Schema for a computation warning."""

    message: str
    fact: str | None = None
    rule_id: UUID | None = None
    blocking: bool = False


class LineItemPreview(BaseModel):
    """Schema for a computed line item."""

    description: str
    category: str | None = None
    trigger_event: str | None = None
    quantity: Decimal
    rate: Decimal
    amount: Decimal
    rule_id: UUID | None = None
    warning_message: str | None = None


class RecalculationResponse(BaseModel):
    """Schema for a leg recalculation or preview."""

    leg_id: UUID
    load_id: UUID
    profile_id: UUID
    profile_name: str
    lines: list[LineItemPreview]
    retained_count: int
    total: Decimal
    warnings: list[WarningResponse]
    blocked: bool
    persisted: bool
    inputs_fingerprint: str

    @classmethod
    def from_result(cls, result: RecalculationResult) -> "RecalculationResponse":
        return cls(
            leg_id=result.leg_id,
            load_id=result.load_id,
            profile_id=result.profile_id,
            profile_name=result.profile_name,
            lines=[
                LineItemPreview(
                    description=line.description,
                    category=line.category.value if line.category else None,
                    trigger_event=line.trigger_event.value if line.trigger_event else None,
                    quantity=line.quantity,
                    rate=line.rate,
                    amount=line.amount,
                    rule_id=line.rule_id,
                    warning_message=line.warning_message,
                )
                for line in result.lines
            ],
            retained_count=len(result.retained),
            total=result.total,
            warnings=[
                WarningResponse(
                    message=w.message, fact=w.fact, rule_id=w.rule_id, blocking=w.blocking
                )
                for w in result.warnings
            ],
            blocked=result.blocked,
            persisted=result.persisted,
            inputs_fingerprint=result.inputs_fingerprint,
        )


class LoadRecalculationResponse(BaseModel):
    """Schema for recalculating every leg of a load."""

    load_id: UUID
    total: Decimal
    results: list[RecalculationResponse]
    skipped_leg_ids: list[UUID]

    @classmethod
    def from_result(cls, result: LoadRecalculationResult) -> "LoadRecalculationResponse":
        return cls(
            load_id=result.load_id,
            total=result.total,
            results=[RecalculationResponse.from_result(r) for r in result.results],
            skipped_leg_ids=result.skipped_leg_ids,
        )


# ============================================================================
# Dispatch schemas
# ============================================================================


class LegResponse(BaseModel):
    """Schema for dispatch leg response."""

    model_config = ConfigDict(from_attributes=True)

    leg_id: UUID
    load_id: UUID
    sequence: int
    start_stop_id: UUID
    end_stop_id: UUID
    driver_id: UUID | None = None
    carrier_id: UUID | None = None
    truck_id: UUID | None = None
    trailer_id: UUID | None = None
    loaded_miles: Decimal | None = None
    empty_miles: Decimal | None = None
    status: str


class PayeeAssignRequest(BaseModel):
    """Schema for putting a driver or a carrier on a leg."""

    driver_id: UUID | None = None
    carrier_id: UUID | None = None

    @model_validator(mode="after")
    def exactly_one_payee(self) -> "PayeeAssignRequest":
        if (self.driver_id is None) == (self.carrier_id is None):
            raise ValueError("exactly one of driver_id or carrier_id is required")
        return self


class PayeeAssignResponse(BaseModel):
    """Schema for a payee change and the resulting recalculation."""

    leg: LegResponse
    recalculation: RecalculationResponse | None = None


class SplitRequest(BaseModel):
    """Schema for splitting a load at a stop."""

    split_stop_id: UUID
    new_driver_id: UUID | None = None
    new_carrier_id: UUID | None = None
    truck_id: UUID | None = None
    trailer_id: UUID | None = None


class SplitResponse(BaseModel):
    """Schema for a split outcome."""

    original_leg: LegResponse
    new_leg: LegResponse
    recalculated: list[RecalculationResponse]
    skipped: list[UUID]


class ErrorResponse(BaseModel):
    """Schema for error responses."""

    detail: str
    code: str | None = None
