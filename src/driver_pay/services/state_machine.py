"""Leg pay status derived from the leg's payee and stored payables."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

from driver_pay.calculators.types import SourceType, StoredPayable


class LegPayStatus(str, Enum):
    """Pay status of a dispatch leg."""

    UNASSIGNED = "UNASSIGNED"
    AWAITING_CALCULATION = "AWAITING_CALCULATION"
    CALCULATED = "CALCULATED"
    PARTIALLY_LOCKED = "PARTIALLY_LOCKED"
    MANUALLY_ADJUSTED = "MANUALLY_ADJUSTED"


class LegPayStateMachine:
    """Pay status of a leg.

    Status is never stored; it is derived from the leg and its items:
    - no driver or carrier → UNASSIGNED
    - payee but no items → AWAITING_CALCULATION
    - any unlocked MANUAL item → MANUALLY_ADJUSTED
    - any locked item → PARTIALLY_LOCKED
    - only unlocked SYSTEM items → CALCULATED

    Assigning a payee moves UNASSIGNED to AWAITING_CALCULATION; a
    recalculation moves any assigned status back to CALCULATED,
    PARTIALLY_LOCKED or MANUALLY_ADJUSTED depending on what survives it.
    """

    @classmethod
    def derive(cls, has_payee: bool, payables: Iterable[StoredPayable]) -> LegPayStatus:
        """Derive the leg's pay status."""
        if not has_payee:
            return LegPayStatus.UNASSIGNED

        items = list(payables)
        if not items:
            return LegPayStatus.AWAITING_CALCULATION
        if any(not p.is_locked and p.source_type == SourceType.MANUAL for p in items):
            return LegPayStatus.MANUALLY_ADJUSTED
        if any(p.is_locked for p in items):
            return LegPayStatus.PARTIALLY_LOCKED
        return LegPayStatus.CALCULATED
