"""Derive leg facts from stored load, stop and leg records."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from driver_pay.calculators.types import ComputationWarning, LegFacts
from driver_pay.models import DispatchLeg, Load, LoadStop

HOURS_PRECISION = Decimal("0.01")
SECONDS_PER_HOUR = Decimal("3600")
MINUTES_PER_HOUR = Decimal("60")


def stops_for_leg(stops: Iterable[LoadStop], leg: DispatchLeg) -> list[LoadStop]:
    """Stops between the leg's start and end stop, inclusive, in sequence order."""
    ordered = sorted(stops, key=lambda s: s.sequence_number)
    by_id = {s.stop_id: s for s in ordered}
    start = by_id.get(leg.start_stop_id)
    end = by_id.get(leg.end_stop_id)
    if start is None or end is None:
        return []
    return [
        s for s in ordered if start.sequence_number <= s.sequence_number <= end.sequence_number
    ]


def calculate_duration_hours(
    leg_stops: list[LoadStop],
) -> tuple[Decimal | None, str | None]:
    """Hours from first stop arrival to last stop departure.

    Actual check-in/check-out times are preferred over the scheduled window.
    """
    if len(leg_stops) < 2:
        return None, "Insufficient stops for duration calculation"

    first, last = leg_stops[0], leg_stops[-1]
    start = first.checked_in_at or first.window_begin
    end = last.checked_out_at or last.window_end
    if start is None or end is None:
        return None, "Missing stop times for hourly calculation"

    seconds = Decimal(str((end - start).total_seconds()))
    if seconds <= 0:
        return None, "Invalid time range (end before start)"

    hours = (seconds / SECONDS_PER_HOUR).quantize(HOURS_PRECISION, rounding=ROUND_HALF_UP)
    return hours, None


def calculate_waiting_hours(
    leg_stops: list[LoadStop],
) -> tuple[Decimal | None, str | None]:
    """Total dwell time across the leg's stops, in hours."""
    dwell = [s.dwell_minutes for s in leg_stops if s.dwell_minutes is not None]
    if not dwell:
        return None, "No dwell time recorded for detention calculation"
    return Decimal(sum(dwell)) / MINUTES_PER_HOUR, None


def build_leg_facts(
    load: Load,
    leg: DispatchLeg,
    stops: Iterable[LoadStop],
    leg_count: int = 1,
) -> LegFacts:
    """Build the fact set a profile's rules are evaluated against.

    Args:
        load: The leg's load
        leg: The dispatch leg being paid
        stops: All stops of the load
        leg_count: Number of legs on the load

    Returns:
        LegFacts with a warning for every fact that could not be derived
    """
    leg_stops = stops_for_leg(stops, leg)
    warnings: list[ComputationWarning] = []

    loaded_miles = Decimal(leg.loaded_miles) if leg.loaded_miles is not None else None
    if loaded_miles is None:
        warnings.append(
            ComputationWarning("No loaded miles recorded for leg", fact="loaded_miles")
        )

    empty_miles = Decimal(leg.empty_miles) if leg.empty_miles is not None else None
    if empty_miles is None:
        warnings.append(ComputationWarning("No empty miles recorded for leg", fact="empty_miles"))

    duration, duration_warning = calculate_duration_hours(leg_stops)
    if duration_warning:
        warnings.append(ComputationWarning(duration_warning, fact="duration_hours"))

    waiting, waiting_warning = calculate_waiting_hours(leg_stops)
    if waiting_warning:
        warnings.append(ComputationWarning(waiting_warning, fact="waiting_hours"))

    revenue = Decimal(load.revenue_amount) if load.revenue_amount is not None else None
    if revenue is None:
        warnings.append(
            ComputationWarning("No revenue recorded for load", fact="revenue_amount")
        )

    # Contract miles describe the whole lane; a partial leg cannot be compared
    contract_miles = None
    if leg_count == 1 and load.contract_miles is not None:
        contract_miles = Decimal(load.contract_miles)

    return LegFacts(
        loaded_miles=loaded_miles,
        empty_miles=empty_miles,
        duration_hours=duration,
        waiting_hours=waiting,
        stop_count=len(leg_stops),
        hazmat=bool(load.is_hazmat),
        tarp_required=bool(load.requires_tarp),
        revenue_amount=revenue,
        contract_miles=contract_miles,
        fact_warnings=warnings,
    )
