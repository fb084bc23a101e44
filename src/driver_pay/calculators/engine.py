"""Driver pay engine - main orchestrator."""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from driver_pay.audit import record_event
from driver_pay.calculators.facts import build_leg_facts
from driver_pay.calculators.line_builder import LineItemBuilder
from driver_pay.calculators.profile_resolver import ProfileResolver
from driver_pay.calculators.reconciler import LineItemReconciler, ReconciliationResult
from driver_pay.calculators.rule_evaluator import EvaluationResult, RuleEvaluator
from driver_pay.calculators.types import (
    ComputationWarning,
    LegFacts,
    LineCandidate,
    ProfileSnapshot,
    RuleSnapshot,
    StoredPayable,
)
from driver_pay.config import get_settings
from driver_pay.errors import EntityNotFoundError, LegUnassignedError, MissingDispatchLegError
from driver_pay.models import DispatchLeg, Load, LoadPayable, LoadStop, RateRule

logger = logging.getLogger(__name__)


@dataclass
class RecalculationResult:
    """Result of recalculating pay for one leg."""

    leg_id: UUID
    load_id: UUID
    profile_id: UUID
    profile_name: str
    lines: list[LineCandidate]
    retained: list[StoredPayable]
    total: Decimal
    warnings: list[ComputationWarning]
    blocked: bool
    inputs_fingerprint: str
    persisted: bool = False

    @property
    def line_hashes(self) -> list[str]:
        return [LineItemBuilder.compute_line_hash(line) for line in self.lines]


@dataclass
class LoadRecalculationResult:
    """Result of recalculating every assigned leg of a load."""

    load_id: UUID
    results: list[RecalculationResult] = field(default_factory=list)
    skipped_leg_ids: list[UUID] = field(default_factory=list)  # unassigned legs

    @property
    def total(self) -> Decimal:
        return LineItemBuilder.calculate_total(r.total for r in self.results)


@dataclass
class _Computation:
    leg: DispatchLeg
    profile: ProfileSnapshot
    facts: LegFacts
    evaluation: EvaluationResult
    reconciliation: ReconciliationResult
    inputs_fingerprint: str


class DriverPayEngine:
    """Computes and persists pay for dispatch legs.

    Recalculation pipeline (per leg):
    1) Resolve the payee's compensation profile
    2) Derive leg facts from the load, its stops and the leg
    3) Evaluate the profile's active rules
    4) Reconcile with stored payables (locked and manual items survive)
    5) Replace unlocked SYSTEM payables and write an audit event

    Nothing is written until every step has succeeded, so a leg whose
    payee has no profile keeps its existing items.
    """

    def __init__(self, session: AsyncSession, reconciler: LineItemReconciler | None = None):
        self.session = session
        self.settings = get_settings()
        self.resolver = ProfileResolver(session)
        self.evaluator = RuleEvaluator()
        self.reconciler = reconciler or LineItemReconciler(self.settings.mileage_tolerance)

    async def recalculate_leg(
        self,
        leg_id: UUID,
        actor: str | None = None,
        organization_id: UUID | None = None,
    ) -> RecalculationResult:
        """Recalculate and persist SYSTEM payables for a leg.

        Raises:
            MissingDispatchLegError: If the leg does not exist
            LegUnassignedError: If the leg has no driver or carrier
            NoActiveProfileError: If no profile resolves for the payee
            InvalidRuleConfigurationError: If the profile's rules are invalid
        """
        leg = await self._get_leg(leg_id, organization_id)
        computation = await self._compute(leg)
        await self._persist(computation, actor)
        return self._to_result(computation, persisted=True)

    async def preview_leg(
        self,
        leg_id: UUID,
        organization_id: UUID | None = None,
    ) -> RecalculationResult:
        """Compute what a recalculation would produce without writing anything."""
        leg = await self._get_leg(leg_id, organization_id)
        computation = await self._compute(leg)
        return self._to_result(computation, persisted=False)

    async def recalculate_load(
        self,
        load_id: UUID,
        actor: str | None = None,
        organization_id: UUID | None = None,
    ) -> LoadRecalculationResult:
        """Recalculate every leg of a load that has a payee.

        Raises:
            EntityNotFoundError: If the load does not exist
            MissingDispatchLegError: If the load has no dispatch legs
        """
        load = await self.session.get(Load, load_id)
        if load is None or (organization_id is not None and load.organization_id != organization_id):
            raise EntityNotFoundError("load", load_id)

        legs = await self._get_legs_for_load(load_id)
        if not legs:
            raise MissingDispatchLegError(load_id=load_id)

        outcome = LoadRecalculationResult(load_id=load_id)
        for leg in legs:
            if not leg.has_payee:
                outcome.skipped_leg_ids.append(leg.leg_id)
                continue
            computation = await self._compute(leg)
            await self._persist(computation, actor)
            outcome.results.append(self._to_result(computation, persisted=True))

        logger.info(
            "Recalculated load %s: %d legs, %d unassigned, total %s",
            load_id,
            len(outcome.results),
            len(outcome.skipped_leg_ids),
            outcome.total,
        )
        return outcome

    # === Pipeline ===

    async def _compute(self, leg: DispatchLeg) -> _Computation:
        if not leg.has_payee:
            raise LegUnassignedError(leg.leg_id)

        if leg.driver_id is not None:
            profile = await self.resolver.require_for_driver(leg.driver_id, leg.organization_id)
        else:
            profile = await self.resolver.require_for_carrier(leg.carrier_id, leg.organization_id)

        load = await self.session.get(Load, leg.load_id)
        if load is None:
            raise EntityNotFoundError("load", leg.load_id)
        stops = await self._get_stops(leg.load_id)
        leg_count = await self._count_legs(leg.load_id)
        facts = build_leg_facts(load, leg, stops, leg_count)

        rules = await self._get_rules(profile.profile_id)
        evaluation = self.evaluator.evaluate(profile, rules, facts)

        stored = await self._get_payables(leg.leg_id)
        reconciliation = self.reconciler.reconcile(
            evaluation.lines, [p.to_stored() for p in stored], facts
        )

        return _Computation(
            leg=leg,
            profile=profile,
            facts=facts,
            evaluation=evaluation,
            reconciliation=reconciliation,
            inputs_fingerprint=self._compute_inputs_fingerprint(facts, rules),
        )

    async def _persist(self, computation: _Computation, actor: str | None) -> None:
        leg = computation.leg
        reconciliation = computation.reconciliation

        if reconciliation.to_delete:
            await self.session.execute(
                delete(LoadPayable).where(LoadPayable.payable_id.in_(reconciliation.to_delete))
            )

        for line in reconciliation.to_insert:
            self.session.add(
                LoadPayable(
                    organization_id=leg.organization_id,
                    load_id=leg.load_id,
                    leg_id=leg.leg_id,
                    driver_id=leg.driver_id,
                    carrier_id=leg.carrier_id if leg.driver_id is None else None,
                    description=line.description,
                    category=line.category.value if line.category else None,
                    trigger_event=line.trigger_event.value if line.trigger_event else None,
                    quantity=line.quantity,
                    rate=line.rate,
                    total_amount=line.amount,
                    source_type=line.source_type.value,
                    is_locked=False,
                    rule_id=line.rule_id,
                    warning_message=line.warning_message,
                    line_hash=LineItemBuilder.compute_line_hash(line),
                    created_by=actor,
                )
            )

        await record_event(
            self.session,
            organization_id=leg.organization_id,
            entity_type="dispatch_leg",
            entity_id=leg.leg_id,
            action="recalculate",
            actor=actor,
            description=f"Pay recalculated with profile '{computation.profile.name}'",
            before={"deleted_payable_ids": [str(i) for i in reconciliation.to_delete]},
            after={
                "profile_id": str(computation.profile.profile_id),
                "inserted": len(reconciliation.to_insert),
                "retained": len(reconciliation.retained),
                "total": str(reconciliation.total),
                "blocked": computation.evaluation.blocked,
                "inputs_fingerprint": computation.inputs_fingerprint,
            },
        )
        await self.session.flush()

        logger.info(
            "Recalculated leg %s with profile %s: %d inserted, %d deleted, %d retained, total %s",
            leg.leg_id,
            computation.profile.profile_id,
            len(reconciliation.to_insert),
            len(reconciliation.to_delete),
            len(reconciliation.retained),
            reconciliation.total,
        )
        if computation.evaluation.blocked:
            logger.warning("Leg %s pay is blocked: base pay could not be calculated", leg.leg_id)

    def _to_result(self, computation: _Computation, persisted: bool) -> RecalculationResult:
        return RecalculationResult(
            leg_id=computation.leg.leg_id,
            load_id=computation.leg.load_id,
            profile_id=computation.profile.profile_id,
            profile_name=computation.profile.name,
            lines=computation.reconciliation.to_insert,
            retained=computation.reconciliation.retained,
            total=computation.reconciliation.total,
            warnings=list(computation.evaluation.warnings),
            blocked=computation.evaluation.blocked,
            inputs_fingerprint=computation.inputs_fingerprint,
            persisted=persisted,
        )

    def _compute_inputs_fingerprint(self, facts: LegFacts, rules: list[RuleSnapshot]) -> str:
        """Compute fingerprint of the facts and rules used in a calculation."""
        data: dict[str, Any] = {
            "engine_version": self.settings.engine_version,
            "facts": facts.to_canonical_dict(),
            "rules": sorted(
                [
                    {
                        "rule_id": str(r.rule_id),
                        "trigger_event": r.trigger_event.value,
                        "rate_amount": str(r.rate_amount),
                        "min_threshold": str(r.min_threshold) if r.min_threshold is not None else None,
                        "max_cap": str(r.max_cap) if r.max_cap is not None else None,
                        "is_active": r.is_active,
                    }
                    for r in rules
                ],
                key=lambda r: r["rule_id"],
            ),
        }
        json_str = json.dumps(data, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]

    # === Data Loading Methods ===

    async def _get_leg(self, leg_id: UUID, organization_id: UUID | None) -> DispatchLeg:
        leg = await self.session.get(DispatchLeg, leg_id)
        if leg is None or (organization_id is not None and leg.organization_id != organization_id):
            raise MissingDispatchLegError(leg_id=leg_id)
        return leg

    async def _get_legs_for_load(self, load_id: UUID) -> list[DispatchLeg]:
        result = await self.session.execute(
            select(DispatchLeg)
            .where(DispatchLeg.load_id == load_id)
            .order_by(DispatchLeg.sequence)
        )
        return list(result.scalars().all())

    async def _count_legs(self, load_id: UUID) -> int:
        count = await self.session.scalar(
            select(func.count()).select_from(DispatchLeg).where(DispatchLeg.load_id == load_id)
        )
        return count or 0

    async def _get_stops(self, load_id: UUID) -> list[LoadStop]:
        result = await self.session.execute(
            select(LoadStop)
            .where(LoadStop.load_id == load_id)
            .order_by(LoadStop.sequence_number)
        )
        return list(result.scalars().all())

    async def _get_rules(self, profile_id: UUID) -> list[RuleSnapshot]:
        result = await self.session.execute(
            select(RateRule)
            .where(RateRule.profile_id == profile_id)
            .order_by(RateRule.sort_order)
        )
        return [r.to_snapshot() for r in result.scalars().all()]

    async def _get_payables(self, leg_id: UUID) -> list[LoadPayable]:
        result = await self.session.execute(
            select(LoadPayable).where(LoadPayable.leg_id == leg_id)
        )
        return list(result.scalars().all())
