"""Line item builder with idempotent hashing."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from driver_pay.calculators.types import (
    LineCandidate,
    RuleCategory,
    SourceType,
    StoredPayable,
    TriggerEvent,
)


class LineItemBuilder:
    """Builds pay line items with deterministic hashing for idempotency.

    Sign conventions (non-negotiable):
    - BASE: positive
    - ACCESSORIAL: positive
    - DEDUCTION: negative
    - MANUAL: sign as entered (quantity x rate)

    Rounding:
    - USD to 2 decimals when a line is built
    - Quantities kept at 4 decimals
    """

    QUANTITY_PRECISION = Decimal("0.0001")
    OUTPUT_PRECISION = Decimal("0.01")

    @staticmethod
    def round_to_cents(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places (cents)."""
        return amount.quantize(LineItemBuilder.OUTPUT_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def round_quantity(quantity: Decimal) -> Decimal:
        return quantity.quantize(LineItemBuilder.QUANTITY_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def compute_line_hash(line: LineCandidate) -> str:
        """Compute deterministic hash for a line item.

        The hash is based on the canonical representation of defining fields,
        ensuring identical inputs produce identical hashes.
        """
        canonical = line.to_canonical_dict()
        json_str = json.dumps(canonical, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]

    @staticmethod
    def create_rule_line(
        category: RuleCategory,
        description: str,
        amount: Decimal,
        quantity: Decimal,
        rate: Decimal,
        trigger_event: TriggerEvent,
        rule_id: UUID | None = None,
    ) -> LineCandidate:
        """Create a SYSTEM line for a fired rule, signed by category."""
        rounded = LineItemBuilder.round_to_cents(abs(amount))
        if category == RuleCategory.DEDUCTION:
            rounded = -rounded  # Ensure negative
        return LineCandidate(
            description=description,
            category=category,
            quantity=LineItemBuilder.round_quantity(quantity),
            rate=rate,
            amount=rounded,
            trigger_event=trigger_event,
            rule_id=rule_id,
            source_type=SourceType.SYSTEM,
        )

    @staticmethod
    def create_placeholder_line(
        description: str,
        warning_message: str,
        rule_id: UUID | None = None,
        trigger_event: TriggerEvent | None = None,
    ) -> LineCandidate:
        """Create a zero-amount SYSTEM line that carries a blocking warning."""
        return LineCandidate(
            description=description,
            category=RuleCategory.BASE,
            quantity=Decimal("0"),
            rate=Decimal("0"),
            amount=Decimal("0.00"),
            trigger_event=trigger_event,
            rule_id=rule_id,
            source_type=SourceType.SYSTEM,
            warning_message=warning_message,
        )

    @staticmethod
    def create_manual_line(
        description: str,
        quantity: Decimal,
        rate: Decimal,
    ) -> LineCandidate:
        """Create a MANUAL line; the total is quantity x rate."""
        return LineCandidate(
            description=description,
            category=None,
            quantity=LineItemBuilder.round_quantity(quantity),
            rate=rate,
            amount=LineItemBuilder.round_to_cents(quantity * rate),
            source_type=SourceType.MANUAL,
        )

    @staticmethod
    def calculate_total(amounts: Iterable[Decimal]) -> Decimal:
        """Signed sum of line amounts (deductions are already negative)."""
        total = Decimal("0")
        for amount in amounts:
            total += amount
        return LineItemBuilder.round_to_cents(total)

    @staticmethod
    def calculate_total_from_lines(
        lines: Iterable[LineCandidate | StoredPayable],
    ) -> Decimal:
        return LineItemBuilder.calculate_total(line.amount for line in lines)
