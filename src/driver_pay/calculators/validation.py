"""Rate rule configuration checks, applied at edit time and before evaluation."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from driver_pay.calculators.triggers import BASE_TRIGGERS_BY_BASIS
from driver_pay.calculators.types import PayBasis, RuleCategory, RuleSnapshot, TriggerEvent
from driver_pay.errors import InvalidRuleConfigurationError

MAX_PERCENT = Decimal("100")


def validate_rule(rule: RuleSnapshot, profile_id: UUID | None = None) -> None:
    """Validate the numeric fields of a single rule."""
    if rule.rate_amount < 0:
        raise InvalidRuleConfigurationError(
            f"rule '{rule.name}' has negative rate {rule.rate_amount}",
            profile_id=profile_id,
            rule_id=rule.rule_id,
        )
    if rule.min_threshold is not None and rule.min_threshold < 0:
        raise InvalidRuleConfigurationError(
            f"rule '{rule.name}' has negative minimum threshold {rule.min_threshold}",
            profile_id=profile_id,
            rule_id=rule.rule_id,
        )
    if rule.max_cap is not None and rule.max_cap < 0:
        raise InvalidRuleConfigurationError(
            f"rule '{rule.name}' has negative maximum cap {rule.max_cap}",
            profile_id=profile_id,
            rule_id=rule.rule_id,
        )
    if rule.trigger_event == TriggerEvent.PCT_OF_LOAD and rule.rate_amount > MAX_PERCENT:
        raise InvalidRuleConfigurationError(
            f"rule '{rule.name}' pays {rule.rate_amount}% of load revenue (max 100%)",
            profile_id=profile_id,
            rule_id=rule.rule_id,
        )


def validate_rule_set(
    pay_basis: PayBasis,
    rules: Iterable[RuleSnapshot],
    profile_id: UUID | None = None,
) -> None:
    """Validate a profile's full rule set.

    Exactly one active BASE rule must exist and its trigger must match the
    profile's pay basis.

    Raises:
        InvalidRuleConfigurationError: If any invariant is broken
    """
    rules = list(rules)
    for rule in rules:
        validate_rule(rule, profile_id)

    active_base = [r for r in rules if r.is_active and r.category == RuleCategory.BASE]
    if not active_base:
        raise InvalidRuleConfigurationError(
            "profile has no active BASE rule", profile_id=profile_id
        )
    if len(active_base) > 1:
        names = ", ".join(f"'{r.name}'" for r in active_base)
        raise InvalidRuleConfigurationError(
            f"profile has {len(active_base)} active BASE rules ({names}); exactly one is allowed",
            profile_id=profile_id,
        )

    base = active_base[0]
    allowed = BASE_TRIGGERS_BY_BASIS[PayBasis(pay_basis)]
    if base.trigger_event not in allowed:
        expected = ", ".join(sorted(t.value for t in allowed))
        raise InvalidRuleConfigurationError(
            f"BASE rule '{base.name}' uses trigger {TriggerEvent(base.trigger_event).value}, "
            f"which does not match pay basis {PayBasis(pay_basis).value} (expected {expected})",
            profile_id=profile_id,
            rule_id=base.rule_id,
        )
