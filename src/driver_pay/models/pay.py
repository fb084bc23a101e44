"""Rate profile, rule, assignment and payable models."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from driver_pay.calculators.types import (
    AssignmentSnapshot,
    PayBasis,
    ProfileSnapshot,
    ProfileType,
    RuleCategory,
    RuleSnapshot,
    SourceType,
    StoredPayable,
    TriggerEvent,
)
from driver_pay.models.base import Base, TimestampMixin


# ===== Rate Profiles & Rules =====


class RateProfile(Base, TimestampMixin):
    """Compensation profile (pay package), e.g. "Standard OTR"."""

    __tablename__ = "rate_profile"

    profile_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    profile_type: Mapped[str] = mapped_column(String, nullable=False)
    pay_basis: Mapped[str] = mapped_column(String, nullable=False)
    # Org-level default; at most one per (organization, profile_type)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "profile_type IN ('DRIVER', 'CARRIER')",
            name="rate_profile_type_check",
        ),
        CheckConstraint(
            "pay_basis IN ('MILEAGE', 'HOURLY', 'PERCENTAGE', 'FLAT')",
            name="rate_profile_pay_basis_check",
        ),
    )

    # Relationships
    rules: Mapped[list[RateRule]] = relationship(
        back_populates="profile",
        cascade="all, delete-orphan",
        order_by="RateRule.sort_order",
    )

    def to_snapshot(self) -> ProfileSnapshot:
        return ProfileSnapshot(
            profile_id=self.profile_id,
            organization_id=self.organization_id,
            name=self.name,
            profile_type=ProfileType(self.profile_type),
            pay_basis=PayBasis(self.pay_basis),
            is_active=self.is_active,
            is_default=self.is_default,
        )


class RateRule(Base, TimestampMixin):
    """Rate rule: IF the trigger matches, THEN apply the rate."""

    __tablename__ = "rate_rule"

    rule_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    profile_id: Mapped[UUID] = mapped_column(
        ForeignKey("rate_profile.profile_id", ondelete="CASCADE"),
        nullable=False,
    )
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    trigger_event: Mapped[str] = mapped_column(String, nullable=False)
    rate_amount: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    min_threshold: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), nullable=True)
    max_cap: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # Creation order within the profile
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint(
            "category IN ('BASE', 'ACCESSORIAL', 'DEDUCTION')",
            name="rate_rule_category_check",
        ),
        CheckConstraint("rate_amount >= 0", name="rate_rule_rate_check"),
    )

    # Relationships
    profile: Mapped[RateProfile] = relationship(back_populates="rules")

    def to_snapshot(self) -> RuleSnapshot:
        return RuleSnapshot(
            rule_id=self.rule_id,
            name=self.name,
            category=RuleCategory(self.category),
            trigger_event=TriggerEvent(self.trigger_event),
            rate_amount=Decimal(self.rate_amount),
            min_threshold=Decimal(self.min_threshold) if self.min_threshold is not None else None,
            max_cap=Decimal(self.max_cap) if self.max_cap is not None else None,
            is_active=self.is_active,
            sort_order=self.sort_order,
        )


# ===== Profile Assignments =====


class DriverProfileAssignment(Base, TimestampMixin):
    """Links a driver to a rate profile."""

    __tablename__ = "driver_profile_assignment"

    assignment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    driver_id: Mapped[UUID] = mapped_column(
        ForeignKey("driver.driver_id", ondelete="CASCADE"),
        nullable=False,
    )
    profile_id: Mapped[UUID] = mapped_column(
        ForeignKey("rate_profile.profile_id", ondelete="CASCADE"),
        nullable=False,
    )
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    # Per-driver star; overrides the org default when set
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("driver_id", "profile_id", name="driver_profile_assignment_unique"),
    )

    @property
    def subject_id(self) -> UUID:
        return self.driver_id

    def to_snapshot(self) -> AssignmentSnapshot:
        return AssignmentSnapshot(
            assignment_id=self.assignment_id,
            subject_id=self.driver_id,
            profile_id=self.profile_id,
            is_default=self.is_default,
        )


class CarrierProfileAssignment(Base, TimestampMixin):
    """Links a carrier to a rate profile."""

    __tablename__ = "carrier_profile_assignment"

    assignment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    carrier_id: Mapped[UUID] = mapped_column(
        ForeignKey("carrier.carrier_id", ondelete="CASCADE"),
        nullable=False,
    )
    profile_id: Mapped[UUID] = mapped_column(
        ForeignKey("rate_profile.profile_id", ondelete="CASCADE"),
        nullable=False,
    )
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("carrier_id", "profile_id", name="carrier_profile_assignment_unique"),
    )

    @property
    def subject_id(self) -> UUID:
        return self.carrier_id

    def to_snapshot(self) -> AssignmentSnapshot:
        return AssignmentSnapshot(
            assignment_id=self.assignment_id,
            subject_id=self.carrier_id,
            profile_id=self.profile_id,
            is_default=self.is_default,
        )


# ===== Load Payables =====


class LoadPayable(Base, TimestampMixin):
    """Pay line item for a leg: computed by rules or entered by a user."""

    __tablename__ = "load_payable"

    payable_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    load_id: Mapped[UUID] = mapped_column(
        ForeignKey("load.load_id", ondelete="CASCADE"),
        nullable=False,
    )
    leg_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("dispatch_leg.leg_id", ondelete="SET NULL"),
        nullable=True,
    )
    driver_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("driver.driver_id"),
        nullable=True,
    )
    carrier_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("carrier.carrier_id"),
        nullable=True,
    )
    description: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str | None] = mapped_column(String, nullable=True)
    trigger_event: Mapped[str | None] = mapped_column(String, nullable=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    source_type: Mapped[str] = mapped_column(String, nullable=False)
    # If true, recalculation never deletes or overwrites this row
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    rule_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("rate_rule.rule_id", ondelete="SET NULL"),
        nullable=True,
    )
    warning_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    line_hash: Mapped[str | None] = mapped_column(String, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "source_type IN ('SYSTEM', 'MANUAL')",
            name="load_payable_source_type_check",
        ),
    )

    def to_stored(self) -> StoredPayable:
        return StoredPayable(
            payable_id=self.payable_id,
            source_type=SourceType(self.source_type),
            is_locked=self.is_locked,
            amount=Decimal(self.total_amount),
            description=self.description,
            quantity=Decimal(self.quantity),
            rate=Decimal(self.rate),
            rule_id=self.rule_id,
            warning_message=self.warning_message,
        )
