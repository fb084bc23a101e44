"""Merge freshly evaluated SYSTEM lines with stored payables."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from driver_pay.calculators.line_builder import LineItemBuilder
from driver_pay.calculators.triggers import MeasuredTrigger, PercentTrigger, get_trigger
from driver_pay.calculators.types import (
    LegFacts,
    LineCandidate,
    SourceType,
    StoredPayable,
    TriggerEvent,
)

DEFAULT_MILEAGE_TOLERANCE = Decimal("0.10")


@dataclass
class ReconciliationResult:
    """Final item set for a leg after recalculation."""

    to_delete: list[UUID] = field(default_factory=list)
    to_insert: list[LineCandidate] = field(default_factory=list)
    retained: list[StoredPayable] = field(default_factory=list)
    total: Decimal = Decimal("0.00")

    @property
    def has_warnings(self) -> bool:
        return any(line.warning_message for line in self.to_insert) or any(
            item.warning_message for item in self.retained
        )


class LineItemReconciler:
    """Reconciles a recalculation with what is already stored for a leg.

    Ownership rules:
    - Unlocked SYSTEM items are replaced wholesale
    - Locked items (any source) are never touched
    - Unlocked MANUAL items are never touched

    Locked and manual survival is structural: those items never reach the
    delete list, so there is no overwrite path to check at runtime.
    """

    def __init__(self, mileage_tolerance: Decimal = DEFAULT_MILEAGE_TOLERANCE):
        self.mileage_tolerance = mileage_tolerance

    def reconcile(
        self,
        new_lines: list[LineCandidate],
        stored: list[StoredPayable],
        facts: LegFacts | None = None,
    ) -> ReconciliationResult:
        locked = [p for p in stored if p.is_locked]
        manual = [p for p in stored if not p.is_locked and p.source_type == SourceType.MANUAL]
        replaceable = [p for p in stored if not p.is_locked and p.source_type == SourceType.SYSTEM]

        inserted = [line for line in new_lines if line.source_type == SourceType.SYSTEM]
        if facts is not None:
            for line in inserted:
                self._annotate(line, facts)

        retained = locked + manual
        total = LineItemBuilder.calculate_total(
            [p.amount for p in retained] + [line.amount for line in inserted]
        )

        return ReconciliationResult(
            to_delete=[p.payable_id for p in replaceable],
            to_insert=inserted,
            retained=retained,
            total=total,
        )

    def _annotate(self, line: LineCandidate, facts: LegFacts) -> None:
        """Attach warnings for anomalous inputs to an inserted line."""
        if line.trigger_event is None:
            return

        trigger = get_trigger(line.trigger_event)
        if isinstance(trigger, (MeasuredTrigger, PercentTrigger)):
            for warning in facts.warnings_for(trigger.fact):
                line.add_warning(warning.message)

        if line.trigger_event == TriggerEvent.MILE_LOADED:
            divergence = self.mileage_divergence(facts)
            if divergence is not None and divergence > self.mileage_tolerance:
                pct = (divergence * 100).quantize(Decimal("0.1"))
                line.add_warning(
                    f"Leg miles ({facts.loaded_miles}) differ from contract miles "
                    f"({facts.contract_miles}) by {pct}%"
                )

    @staticmethod
    def mileage_divergence(facts: LegFacts) -> Decimal | None:
        """Relative difference between leg loaded miles and contract miles."""
        if facts.loaded_miles is None or not facts.contract_miles:
            return None
        return abs(Decimal(facts.loaded_miles) - facts.contract_miles) / facts.contract_miles
