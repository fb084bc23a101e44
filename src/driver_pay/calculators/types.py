"""Type definitions for the pay calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class ProfileType(str, Enum):
    """Who a compensation profile pays."""

    DRIVER = "DRIVER"
    CARRIER = "CARRIER"


class PayBasis(str, Enum):
    """Primary compensation mechanism of a profile."""

    MILEAGE = "MILEAGE"
    HOURLY = "HOURLY"
    PERCENTAGE = "PERCENTAGE"
    FLAT = "FLAT"


class RuleCategory(str, Enum):
    """Rate rule categories, in evaluation order."""

    BASE = "BASE"
    ACCESSORIAL = "ACCESSORIAL"
    DEDUCTION = "DEDUCTION"


CATEGORY_ORDER: dict[RuleCategory, int] = {
    RuleCategory.BASE: 0,
    RuleCategory.ACCESSORIAL: 1,
    RuleCategory.DEDUCTION: 2,
}


class TriggerEvent(str, Enum):
    """Leg fact a rule keys its quantity off."""

    MILE_LOADED = "MILE_LOADED"
    MILE_EMPTY = "MILE_EMPTY"
    TIME_DURATION = "TIME_DURATION"
    TIME_WAITING = "TIME_WAITING"
    COUNT_STOPS = "COUNT_STOPS"
    FLAT_LOAD = "FLAT_LOAD"
    FLAT_LEG = "FLAT_LEG"
    ATTR_HAZMAT = "ATTR_HAZMAT"
    ATTR_TARP = "ATTR_TARP"
    PCT_OF_LOAD = "PCT_OF_LOAD"


class SourceType(str, Enum):
    """Origin of a pay line item."""

    SYSTEM = "SYSTEM"
    MANUAL = "MANUAL"


@dataclass(frozen=True)
class ProfileSnapshot:
    """Detached view of a compensation profile."""

    profile_id: UUID
    organization_id: UUID
    name: str
    profile_type: ProfileType
    pay_basis: PayBasis
    is_active: bool = True
    is_default: bool = False


@dataclass(frozen=True)
class RuleSnapshot:
    """Detached view of a rate rule."""

    rule_id: UUID
    name: str
    category: RuleCategory
    trigger_event: TriggerEvent
    rate_amount: Decimal
    min_threshold: Decimal | None = None
    max_cap: Decimal | None = None
    is_active: bool = True
    sort_order: int = 0


@dataclass(frozen=True)
class AssignmentSnapshot:
    """Detached view of a driver or carrier profile assignment."""

    assignment_id: UUID
    subject_id: UUID
    profile_id: UUID
    is_default: bool = False  # per-subject star


@dataclass(frozen=True)
class ComputationWarning:
    """Non-fatal annotation on otherwise valid output."""

    message: str
    fact: str | None = None
    rule_id: UUID | None = None
    blocking: bool = False


@dataclass
class LegFacts:
    """Measured facts for one dispatch leg. ``None`` marks a missing fact."""

    loaded_miles: Decimal | None = None
    empty_miles: Decimal | None = None
    duration_hours: Decimal | None = None
    waiting_hours: Decimal | None = None
    stop_count: int = 0
    hazmat: bool = False
    tarp_required: bool = False
    revenue_amount: Decimal | None = None
    contract_miles: Decimal | None = None

    # Warnings raised while deriving the facts from stored records
    fact_warnings: list[ComputationWarning] = field(default_factory=list)

    def get(self, fact: str) -> Any:
        return getattr(self, fact)

    def warnings_for(self, fact: str) -> list[ComputationWarning]:
        return [w for w in self.fact_warnings if w.fact == fact]

    def to_canonical_dict(self) -> dict[str, Any]:
        """Return canonical dict for fingerprinting."""
        return {
            "loaded_miles": _str_or_none(self.loaded_miles),
            "empty_miles": _str_or_none(self.empty_miles),
            "duration_hours": _str_or_none(self.duration_hours),
            "waiting_hours": _str_or_none(self.waiting_hours),
            "stop_count": self.stop_count,
            "hazmat": self.hazmat,
            "tarp_required": self.tarp_required,
            "revenue_amount": _str_or_none(self.revenue_amount),
            "contract_miles": _str_or_none(self.contract_miles),
        }


@dataclass
class LineCandidate:
    """A candidate pay line item before persistence."""

    description: str
    category: RuleCategory | None
    quantity: Decimal
    rate: Decimal
    amount: Decimal  # Final amount (signed per conventions)

    trigger_event: TriggerEvent | None = None
    rule_id: UUID | None = None
    source_type: SourceType = SourceType.SYSTEM
    warning_message: str | None = None

    def add_warning(self, message: str) -> None:
        if not self.warning_message:
            self.warning_message = message
        elif message not in self.warning_message.split("; "):
            self.warning_message = f"{self.warning_message}; {message}"

    def to_canonical_dict(self) -> dict[str, Any]:
        """Return canonical dict for hashing (deterministic ordering)."""
        return {
            "description": self.description,
            "category": self.category.value if self.category else None,
            "trigger_event": self.trigger_event.value if self.trigger_event else None,
            "rule_id": str(self.rule_id) if self.rule_id else None,
            "source_type": self.source_type.value,
            "quantity": str(self.quantity),
            "rate": str(self.rate),
            "amount": str(self.amount),
            "warning_message": self.warning_message,
        }


@dataclass(frozen=True)
class StoredPayable:
    """Reconciler view of a persisted pay line item."""

    payable_id: UUID
    source_type: SourceType
    is_locked: bool
    amount: Decimal
    description: str = ""
    quantity: Decimal = Decimal("0")
    rate: Decimal = Decimal("0")
    rule_id: UUID | None = None
    warning_message: str | None = None


def _str_or_none(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None
