"""Trigger variants: how each trigger event turns leg facts into a quantity.

One variant per kind of trigger, each carrying only what it needs:

- MeasuredTrigger: quantity is a numeric leg fact (miles, hours, stops)
- FlatTrigger: quantity is always one unit
- AttributeTrigger: one unit when a boolean leg fact is set, otherwise no fire
- PercentTrigger: quantity is the load revenue, rate is a percentage
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Union

from driver_pay.calculators.types import LegFacts, PayBasis, TriggerEvent

ONE = Decimal("1")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class MeasuredTrigger:
    fact: str
    unit: str
    label: str

    def quantity(self, facts: LegFacts) -> Decimal | None:
        value = facts.get(self.fact)
        if value is None:
            return None
        return Decimal(value)


@dataclass(frozen=True)
class FlatTrigger:
    unit: str

    def quantity(self, facts: LegFacts) -> Decimal | None:
        return ONE


@dataclass(frozen=True)
class AttributeTrigger:
    fact: str
    unit: str = "flat"

    def quantity(self, facts: LegFacts) -> Decimal | None:
        # Zero means "does not fire", never "missing"
        return ONE if facts.get(self.fact) else Decimal("0")


@dataclass(frozen=True)
class PercentTrigger:
    fact: str = "revenue_amount"
    unit: str = "% of revenue"
    label: str = "load revenue"

    def quantity(self, facts: LegFacts) -> Decimal | None:
        value = facts.get(self.fact)
        if value is None:
            return None
        return Decimal(value)


Trigger = Union[MeasuredTrigger, FlatTrigger, AttributeTrigger, PercentTrigger]


TRIGGERS: dict[TriggerEvent, Trigger] = {
    TriggerEvent.MILE_LOADED: MeasuredTrigger("loaded_miles", "mi", "loaded miles"),
    TriggerEvent.MILE_EMPTY: MeasuredTrigger("empty_miles", "mi", "empty miles"),
    TriggerEvent.TIME_DURATION: MeasuredTrigger("duration_hours", "hr", "duration hours"),
    TriggerEvent.TIME_WAITING: MeasuredTrigger("waiting_hours", "hr", "waiting hours"),
    TriggerEvent.COUNT_STOPS: MeasuredTrigger("stop_count", "stops", "stop count"),
    TriggerEvent.FLAT_LOAD: FlatTrigger("load"),
    TriggerEvent.FLAT_LEG: FlatTrigger("leg"),
    TriggerEvent.ATTR_HAZMAT: AttributeTrigger("hazmat"),
    TriggerEvent.ATTR_TARP: AttributeTrigger("tarp_required"),
    TriggerEvent.PCT_OF_LOAD: PercentTrigger(),
}


BASE_TRIGGERS_BY_BASIS: dict[PayBasis, frozenset[TriggerEvent]] = {
    PayBasis.MILEAGE: frozenset({TriggerEvent.MILE_LOADED, TriggerEvent.MILE_EMPTY}),
    PayBasis.HOURLY: frozenset({TriggerEvent.TIME_DURATION}),
    PayBasis.PERCENTAGE: frozenset({TriggerEvent.PCT_OF_LOAD}),
    PayBasis.FLAT: frozenset({TriggerEvent.FLAT_LOAD, TriggerEvent.FLAT_LEG}),
}


def get_trigger(event: TriggerEvent) -> Trigger:
    return TRIGGERS[TriggerEvent(event)]


def uses_threshold(trigger: Trigger) -> bool:
    """Thresholds only apply to triggers with a measured quantity."""
    return isinstance(trigger, (MeasuredTrigger, PercentTrigger))
