"""Load, stop and dispatch leg models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from driver_pay.models.base import Base, TimestampMixin


class Load(Base, TimestampMixin):
    """A customer load: revenue, attributes and an ordered list of stops."""

    __tablename__ = "load"

    load_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    internal_id: Mapped[str] = mapped_column(String, nullable=False)
    # Invoiced revenue, used by PCT_OF_LOAD rules
    revenue_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    # Miles agreed on the contract lane, used to flag divergent leg miles
    contract_miles: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    effective_miles: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    is_hazmat: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    requires_tarp: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    primary_driver_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("driver.driver_id"),
        nullable=True,
    )


class LoadStop(Base):
    """Ordered pickup or delivery stop on a load."""

    __tablename__ = "load_stop"

    stop_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    load_id: Mapped[UUID] = mapped_column(
        ForeignKey("load.load_id", ondelete="CASCADE"),
        nullable=False,
    )
    sequence_number: Mapped[int] = mapped_column(Integer, nullable=False)
    stop_type: Mapped[str] = mapped_column(String, nullable=False)
    window_begin: Mapped[datetime | None] = mapped_column(nullable=True)
    window_end: Mapped[datetime | None] = mapped_column(nullable=True)
    checked_in_at: Mapped[datetime | None] = mapped_column(nullable=True)
    checked_out_at: Mapped[datetime | None] = mapped_column(nullable=True)
    dwell_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        UniqueConstraint("load_id", "sequence_number", name="load_stop_sequence_unique"),
        CheckConstraint(
            "stop_type IN ('Pickup', 'Delivery')",
            name="load_stop_type_check",
        ),
    )


class DispatchLeg(Base, TimestampMixin):
    """One driver/truck/trailer segment of a load's stop sequence."""

    __tablename__ = "dispatch_leg"

    leg_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    load_id: Mapped[UUID] = mapped_column(
        ForeignKey("load.load_id", ondelete="CASCADE"),
        nullable=False,
    )
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    start_stop_id: Mapped[UUID] = mapped_column(
        ForeignKey("load_stop.stop_id"),
        nullable=False,
    )
    end_stop_id: Mapped[UUID] = mapped_column(
        ForeignKey("load_stop.stop_id"),
        nullable=False,
    )
    driver_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("driver.driver_id"),
        nullable=True,
    )
    carrier_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("carrier.carrier_id"),
        nullable=True,
    )
    truck_id: Mapped[UUID | None] = mapped_column(nullable=True)
    trailer_id: Mapped[UUID | None] = mapped_column(nullable=True)
    loaded_miles: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    empty_miles: Mapped[Decimal | None] = mapped_column(
        Numeric(14, 2), nullable=True, default=Decimal("0")
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default="PENDING")

    __table_args__ = (
        UniqueConstraint("load_id", "sequence", name="dispatch_leg_sequence_unique"),
        CheckConstraint(
            "status IN ('PENDING', 'ACTIVE', 'COMPLETED', 'CANCELED')",
            name="dispatch_leg_status_check",
        ),
    )

    @property
    def has_payee(self) -> bool:
        return self.driver_id is not None or self.carrier_id is not None
