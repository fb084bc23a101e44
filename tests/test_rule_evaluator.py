"""Tests for rate rule evaluation."""

from decimal import Decimal
from uuid import uuid4

import pytest

from driver_pay.calculators.rule_evaluator import RuleEvaluator
from driver_pay.calculators.types import (
    ComputationWarning,
    LegFacts,
    PayBasis,
    ProfileSnapshot,
    ProfileType,
    RuleCategory,
    RuleSnapshot,
    TriggerEvent,
)
from driver_pay.errors import InvalidRuleConfigurationError


def make_profile(pay_basis: PayBasis = PayBasis.MILEAGE) -> ProfileSnapshot:
    return ProfileSnapshot(
        profile_id=uuid4(),
        organization_id=uuid4(),
        name="Standard OTR",
        profile_type=ProfileType.DRIVER,
        pay_basis=pay_basis,
    )


def make_rule(
    name: str,
    category: RuleCategory,
    trigger: TriggerEvent,
    rate: str,
    sort_order: int = 0,
    **kwargs,
) -> RuleSnapshot:
    return RuleSnapshot(
        rule_id=uuid4(),
        name=name,
        category=category,
        trigger_event=trigger,
        rate_amount=Decimal(rate),
        sort_order=sort_order,
        **kwargs,
    )


BASE_MILES = make_rule("Loaded miles", RuleCategory.BASE, TriggerEvent.MILE_LOADED, "0.55")


@pytest.fixture
def evaluator() -> RuleEvaluator:
    return RuleEvaluator()


@pytest.fixture
def facts() -> LegFacts:
    return LegFacts(
        loaded_miles=Decimal("500"),
        empty_miles=Decimal("0"),
        duration_hours=Decimal("10.00"),
        waiting_hours=Decimal("1.5"),
        stop_count=3,
        revenue_amount=Decimal("2000.00"),
        contract_miles=Decimal("500"),
    )


class TestBaseRule:
    """Test BASE rule evaluation."""

    def test_mileage_base(self, evaluator, facts):
        """500 loaded miles at $0.55 pays $275.00."""
        result = evaluator.evaluate(make_profile(), [BASE_MILES], facts)

        assert len(result.lines) == 1
        line = result.lines[0]
        assert line.amount == Decimal("275.00")
        assert line.quantity == Decimal("500")
        assert line.rate == Decimal("0.55")
        assert line.rule_id == BASE_MILES.rule_id
        assert result.subtotal == Decimal("275.00")
        assert result.blocked is False

    def test_hourly_base(self, evaluator, facts):
        rule = make_rule("Hourly", RuleCategory.BASE, TriggerEvent.TIME_DURATION, "25")

        result = evaluator.evaluate(make_profile(PayBasis.HOURLY), [rule], facts)

        assert result.lines[0].amount == Decimal("250.00")

    def test_percentage_base(self, evaluator, facts):
        """25% of $2000 revenue."""
        rule = make_rule("Revenue share", RuleCategory.BASE, TriggerEvent.PCT_OF_LOAD, "25")

        result = evaluator.evaluate(make_profile(PayBasis.PERCENTAGE), [rule], facts)

        assert result.lines[0].amount == Decimal("500.00")
        assert result.lines[0].quantity == Decimal("2000.00")

    def test_flat_base(self, evaluator, facts):
        rule = make_rule("Flat per load", RuleCategory.BASE, TriggerEvent.FLAT_LOAD, "350")

        result = evaluator.evaluate(make_profile(PayBasis.FLAT), [rule], facts)

        assert result.lines[0].amount == Decimal("350.00")
        assert result.lines[0].quantity == Decimal("1")

    def test_missing_base_fact_blocks(self, evaluator):
        """Missing loaded miles: zero placeholder with a blocking warning."""
        facts = LegFacts(
            fact_warnings=[
                ComputationWarning("No loaded miles recorded for leg", fact="loaded_miles")
            ]
        )

        result = evaluator.evaluate(make_profile(), [BASE_MILES], facts)

        assert result.blocked is True
        assert len(result.lines) == 1
        placeholder = result.lines[0]
        assert placeholder.amount == Decimal("0.00")
        assert placeholder.description == "Loaded miles (not calculated)"
        assert "missing loaded miles" in placeholder.warning_message
        assert any(w.blocking for w in result.warnings)
        assert any(w.message == "No loaded miles recorded for leg" for w in result.warnings)

    def test_missing_empty_miles_blocks(self, evaluator, facts):
        facts.empty_miles = None
        empty_base = make_rule("Empty miles", RuleCategory.BASE, TriggerEvent.MILE_EMPTY, "0.30")

        result = evaluator.evaluate(make_profile(), [empty_base], facts)

        assert result.blocked is True
        assert [line.amount for line in result.lines] == [Decimal("0.00")]
        assert "missing empty miles" in result.lines[0].warning_message

    def test_zero_base_quantity_emits_no_line(self, evaluator, facts):
        facts.loaded_miles = Decimal("0")

        result = evaluator.evaluate(make_profile(), [BASE_MILES], facts)

        assert result.lines == []
        assert result.blocked is False
        assert len(result.warnings) == 1
        assert not result.warnings[0].blocking

    def test_invalid_rule_set_rejected(self, evaluator, facts):
        accessorial = make_rule(
            "Stop pay", RuleCategory.ACCESSORIAL, TriggerEvent.COUNT_STOPS, "25"
        )

        with pytest.raises(InvalidRuleConfigurationError):
            evaluator.evaluate(make_profile(), [accessorial], facts)


class TestThresholdsAndCaps:
    """Test minimum thresholds and maximum caps."""

    def test_threshold_pays_excess_only(self, evaluator, facts):
        """150 miles over a 100 mile threshold at $0.10 pays $5.00."""
        facts.loaded_miles = Decimal("150")
        rule = make_rule(
            "Loaded miles",
            RuleCategory.BASE,
            TriggerEvent.MILE_LOADED,
            "0.10",
            min_threshold=Decimal("100"),
        )

        result = evaluator.evaluate(make_profile(), [rule], facts)

        assert result.lines[0].quantity == Decimal("50")
        assert result.lines[0].amount == Decimal("5.00")

    def test_at_threshold_suppresses_accessorial(self, evaluator, facts):
        detention = make_rule(
            "Detention",
            RuleCategory.ACCESSORIAL,
            TriggerEvent.TIME_WAITING,
            "20",
            min_threshold=Decimal("2"),
        )

        result = evaluator.evaluate(make_profile(), [BASE_MILES, detention], facts)

        assert [line.description for line in result.lines] == ["Loaded miles"]

    def test_cap_clamps_amount(self, evaluator, facts):
        """Stop pay of 3 x $50 is capped at $100."""
        stop_pay = make_rule(
            "Stop pay",
            RuleCategory.ACCESSORIAL,
            TriggerEvent.COUNT_STOPS,
            "50",
            max_cap=Decimal("100"),
        )

        result = evaluator.evaluate(make_profile(), [BASE_MILES, stop_pay], facts)

        assert result.lines[1].amount == Decimal("100.00")
        assert result.subtotal == Decimal("375.00")

    def test_threshold_ignored_for_flat(self, evaluator, facts):
        rule = make_rule(
            "Flat per leg",
            RuleCategory.BASE,
            TriggerEvent.FLAT_LEG,
            "200",
            min_threshold=Decimal("5"),
        )

        result = evaluator.evaluate(make_profile(PayBasis.FLAT), [rule], facts)

        assert result.lines[0].amount == Decimal("200.00")


class TestAccessorialsAndDeductions:
    """Test ordering and signs of non-base rules."""

    def test_deduction_is_negative(self, evaluator, facts):
        fuel = make_rule("Fuel card", RuleCategory.DEDUCTION, TriggerEvent.FLAT_LEG, "50")

        result = evaluator.evaluate(make_profile(), [BASE_MILES, fuel], facts)

        assert result.lines[1].amount == Decimal("-50.00")
        assert result.subtotal == Decimal("225.00")

    def test_category_order(self, evaluator, facts):
        rules = [
            make_rule("Fuel card", RuleCategory.DEDUCTION, TriggerEvent.FLAT_LEG, "50"),
            make_rule("Stop pay", RuleCategory.ACCESSORIAL, TriggerEvent.COUNT_STOPS, "10", 2),
            make_rule("Detention", RuleCategory.ACCESSORIAL, TriggerEvent.TIME_WAITING, "20", 1),
            BASE_MILES,
        ]

        result = evaluator.evaluate(make_profile(), rules, facts)

        assert [line.description for line in result.lines] == [
            "Loaded miles",
            "Detention",
            "Stop pay",
            "Fuel card",
        ]

    def test_attribute_fires_only_when_set(self, evaluator, facts):
        hazmat = make_rule("Hazmat", RuleCategory.ACCESSORIAL, TriggerEvent.ATTR_HAZMAT, "75")

        result = evaluator.evaluate(make_profile(), [BASE_MILES, hazmat], facts)
        assert len(result.lines) == 1

        facts.hazmat = True
        result = evaluator.evaluate(make_profile(), [BASE_MILES, hazmat], facts)
        assert result.lines[1].amount == Decimal("75.00")

    def test_inactive_rule_ignored(self, evaluator, facts):
        tarp = make_rule(
            "Tarp", RuleCategory.ACCESSORIAL, TriggerEvent.FLAT_LEG, "40", is_active=False
        )

        result = evaluator.evaluate(make_profile(), [BASE_MILES, tarp], facts)

        assert len(result.lines) == 1

    def test_missing_accessorial_fact_warns(self, evaluator, facts):
        facts.waiting_hours = None
        detention = make_rule(
            "Detention", RuleCategory.ACCESSORIAL, TriggerEvent.TIME_WAITING, "20"
        )

        result = evaluator.evaluate(make_profile(), [BASE_MILES, detention], facts)

        assert len(result.lines) == 1
        assert result.blocked is False
        assert any("Detention" in w.message for w in result.warnings)
