"""Rate rule evaluation against one leg's facts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from driver_pay.calculators.line_builder import LineItemBuilder
from driver_pay.calculators.triggers import (
    HUNDRED,
    AttributeTrigger,
    MeasuredTrigger,
    PercentTrigger,
    get_trigger,
    uses_threshold,
)
from driver_pay.calculators.types import (
    CATEGORY_ORDER,
    ComputationWarning,
    LegFacts,
    LineCandidate,
    ProfileSnapshot,
    RuleCategory,
    RuleSnapshot,
)
from driver_pay.calculators.validation import validate_rule_set

logger = logging.getLogger(__name__)


@dataclass
class EvaluationResult:
    """Raw SYSTEM lines computed for one leg."""

    profile_id: UUID
    lines: list[LineCandidate] = field(default_factory=list)
    warnings: list[ComputationWarning] = field(default_factory=list)
    blocked: bool = False

    @property
    def subtotal(self) -> Decimal:
        return LineItemBuilder.calculate_total_from_lines(self.lines)

    def add_warning(self, warning: ComputationWarning) -> None:
        if warning not in self.warnings:
            self.warnings.append(warning)


class RuleEvaluator:
    """Evaluates a profile's active rules against leg facts.

    Pipeline per rule (BASE, then ACCESSORIAL, then DEDUCTION; creation
    order within a category):
    1) Trigger quantity from leg facts
    2) Effective quantity above the minimum threshold
    3) Amount = effective quantity x rate (rate / 100 for percentages)
    4) Clamp to the maximum cap
    5) Sign by category

    A non-flat rule whose effective quantity is zero emits nothing.
    """

    def evaluate(
        self,
        profile: ProfileSnapshot,
        rules: list[RuleSnapshot],
        facts: LegFacts,
    ) -> EvaluationResult:
        validate_rule_set(profile.pay_basis, rules, profile.profile_id)

        result = EvaluationResult(profile_id=profile.profile_id)
        active = sorted(
            (r for r in rules if r.is_active),
            key=lambda r: (CATEGORY_ORDER[RuleCategory(r.category)], r.sort_order),
        )

        for rule in active:
            line = self._evaluate_rule(rule, facts, result)
            if line is not None:
                result.lines.append(line)

        logger.debug(
            "Evaluated %d rules for profile %s: %d lines, subtotal %s",
            len(active),
            profile.profile_id,
            len(result.lines),
            result.subtotal,
        )
        return result

    def _evaluate_rule(
        self,
        rule: RuleSnapshot,
        facts: LegFacts,
        result: EvaluationResult,
    ) -> LineCandidate | None:
        trigger = get_trigger(rule.trigger_event)
        is_base = rule.category == RuleCategory.BASE

        quantity = trigger.quantity(facts)

        if quantity is None:
            # Fact missing from the leg
            for warning in facts.warnings_for(trigger.fact):
                result.add_warning(warning)
            if is_base:
                message = f"Base pay not calculated: missing {trigger.label}"
                result.add_warning(
                    ComputationWarning(message, fact=trigger.fact, rule_id=rule.rule_id, blocking=True)
                )
                result.blocked = True
                return LineItemBuilder.create_placeholder_line(
                    description=f"{rule.name} (not calculated)",
                    warning_message=message,
                    rule_id=rule.rule_id,
                    trigger_event=rule.trigger_event,
                )
            result.add_warning(
                ComputationWarning(
                    f"Rule '{rule.name}' not applied: missing {trigger.label}",
                    fact=trigger.fact,
                    rule_id=rule.rule_id,
                )
            )
            return None

        if isinstance(trigger, AttributeTrigger) and quantity == 0:
            return None

        effective = quantity
        if uses_threshold(trigger) and rule.min_threshold is not None:
            effective = max(Decimal("0"), quantity - rule.min_threshold)

        if uses_threshold(trigger) and effective <= 0:
            if is_base:
                reason = (
                    f"{trigger.label} {quantity} at or below minimum threshold {rule.min_threshold}"
                    if rule.min_threshold
                    else f"{trigger.label} is 0"
                )
                result.add_warning(
                    ComputationWarning(
                        f"Base rule '{rule.name}' produced no pay: {reason}",
                        fact=trigger.fact,
                        rule_id=rule.rule_id,
                    )
                )
            return None

        if isinstance(trigger, PercentTrigger):
            amount = effective * rule.rate_amount / HUNDRED
        else:
            amount = effective * rule.rate_amount

        if rule.max_cap is not None and amount > rule.max_cap:
            amount = rule.max_cap

        if isinstance(trigger, (MeasuredTrigger, PercentTrigger)):
            for warning in facts.warnings_for(trigger.fact):
                result.add_warning(warning)

        return LineItemBuilder.create_rule_line(
            category=RuleCategory(rule.category),
            description=rule.name,
            amount=amount,
            quantity=effective,
            rate=rule.rate_amount,
            trigger_event=rule.trigger_event,
            rule_id=rule.rule_id,
        )
