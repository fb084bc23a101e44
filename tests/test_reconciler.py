"""Tests for line item reconciliation."""

from decimal import Decimal
from uuid import uuid4

from driver_pay.calculators.reconciler import LineItemReconciler
from driver_pay.calculators.types import (
    ComputationWarning,
    LegFacts,
    LineCandidate,
    RuleCategory,
    SourceType,
    StoredPayable,
    TriggerEvent,
)


def stored(source: SourceType, amount: str, locked: bool = False) -> StoredPayable:
    return StoredPayable(
        payable_id=uuid4(),
        source_type=source,
        is_locked=locked,
        amount=Decimal(amount),
    )


def base_line(amount: str = "275.00", quantity: str = "500") -> LineCandidate:
    return LineCandidate(
        description="Loaded miles",
        category=RuleCategory.BASE,
        quantity=Decimal(quantity),
        rate=Decimal("0.55"),
        amount=Decimal(amount),
        trigger_event=TriggerEvent.MILE_LOADED,
    )


class TestLineItemReconciler:
    """Test ownership rules of recalculation."""

    def test_unlocked_system_items_replaced(self):
        old = stored(SourceType.SYSTEM, "250.00")

        result = LineItemReconciler().reconcile([base_line()], [old])

        assert result.to_delete == [old.payable_id]
        assert len(result.to_insert) == 1
        assert result.retained == []
        assert result.total == Decimal("275.00")

    def test_locked_item_preserved(self):
        locked = stored(SourceType.SYSTEM, "300.00", locked=True)

        result = LineItemReconciler().reconcile([base_line()], [locked])

        assert result.to_delete == []
        assert result.retained == [locked]
        assert result.total == Decimal("575.00")

    def test_manual_item_survives_in_total(self):
        manual = stored(SourceType.MANUAL, "-25.00")
        old = stored(SourceType.SYSTEM, "275.00")

        result = LineItemReconciler().reconcile([base_line()], [manual, old])

        assert result.to_delete == [old.payable_id]
        assert result.retained == [manual]
        assert result.total == Decimal("250.00")

    def test_manual_candidates_never_inserted(self):
        manual = LineCandidate(
            description="Lumper",
            category=None,
            quantity=Decimal("1"),
            rate=Decimal("40"),
            amount=Decimal("40.00"),
            source_type=SourceType.MANUAL,
        )

        result = LineItemReconciler().reconcile([base_line(), manual], [])

        assert len(result.to_insert) == 1
        assert result.total == Decimal("275.00")

    def test_mileage_divergence_warning(self):
        """600 leg miles against 500 contract miles is 20% off."""
        facts = LegFacts(loaded_miles=Decimal("600"), contract_miles=Decimal("500"))
        line = base_line("330.00", "600")

        result = LineItemReconciler().reconcile([line], [], facts)

        assert result.has_warnings
        assert "by 20.0%" in result.to_insert[0].warning_message

    def test_divergence_within_tolerance(self):
        facts = LegFacts(loaded_miles=Decimal("540"), contract_miles=Decimal("500"))

        result = LineItemReconciler().reconcile([base_line()], [], facts)

        assert result.to_insert[0].warning_message is None
        assert not result.has_warnings

    def test_no_contract_miles_no_divergence(self):
        facts = LegFacts(loaded_miles=Decimal("600"))

        assert LineItemReconciler.mileage_divergence(facts) is None

    def test_fact_warnings_attached_to_line(self):
        facts = LegFacts(
            duration_hours=Decimal("8"),
            fact_warnings=[
                ComputationWarning("Stop times estimated", fact="duration_hours")
            ],
        )
        line = LineCandidate(
            description="Hourly",
            category=RuleCategory.BASE,
            quantity=Decimal("8"),
            rate=Decimal("25"),
            amount=Decimal("200.00"),
            trigger_event=TriggerEvent.TIME_DURATION,
        )

        result = LineItemReconciler().reconcile([line], [], facts)

        assert result.to_insert[0].warning_message == "Stop times estimated"
