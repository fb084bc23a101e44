"""Compensation profile and rate rule administration."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from driver_pay.audit import record_event
from driver_pay.calculators.types import (
    PayBasis,
    ProfileType,
    RuleCategory,
    RuleSnapshot,
    TriggerEvent,
)
from driver_pay.calculators.validation import validate_rule_set
from driver_pay.errors import EntityNotFoundError, InvalidRuleConfigurationError
from driver_pay.models import Organization, RateProfile, RateRule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleInput:
    """Rule fields supplied by a caller, before an id is assigned."""

    name: str
    category: RuleCategory
    trigger_event: TriggerEvent
    rate_amount: Decimal
    min_threshold: Decimal | None = None
    max_cap: Decimal | None = None
    is_active: bool = True

    def to_snapshot(self, sort_order: int = 0) -> RuleSnapshot:
        return RuleSnapshot(
            rule_id=uuid4(),
            name=self.name,
            category=RuleCategory(self.category),
            trigger_event=TriggerEvent(self.trigger_event),
            rate_amount=Decimal(self.rate_amount),
            min_threshold=self.min_threshold,
            max_cap=self.max_cap,
            is_active=self.is_active,
            sort_order=sort_order,
        )


UPDATABLE_RULE_FIELDS = frozenset(
    {"name", "category", "trigger_event", "rate_amount", "min_threshold", "max_cap"}
)


class ProfileService:
    """Service for managing compensation profiles and their rules.

    Every edit validates the resulting rule set before anything is written:
    a profile always has exactly one active BASE rule matching its pay
    basis, and at most one default profile exists per organization and
    profile type.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # === Profiles ===

    async def create_profile(
        self,
        organization_id: UUID,
        name: str,
        profile_type: ProfileType,
        pay_basis: PayBasis,
        base_rule: RuleInput,
        description: str | None = None,
        is_default: bool = False,
        actor: str | None = None,
    ) -> RateProfile:
        """Create a profile together with its BASE rule.

        Raises:
            EntityNotFoundError: If the organization does not exist
            InvalidRuleConfigurationError: If the BASE rule is invalid
        """
        if await self.session.get(Organization, organization_id) is None:
            raise EntityNotFoundError("organization", organization_id)
        if RuleCategory(base_rule.category) != RuleCategory.BASE:
            raise InvalidRuleConfigurationError(
                f"rule '{base_rule.name}' must be a BASE rule to create a profile"
            )

        snapshot = base_rule.to_snapshot()
        validate_rule_set(PayBasis(pay_basis), [snapshot])

        if is_default:
            await self._unset_defaults(organization_id, ProfileType(profile_type))

        profile = RateProfile(
            organization_id=organization_id,
            name=name,
            description=description,
            profile_type=ProfileType(profile_type).value,
            pay_basis=PayBasis(pay_basis).value,
            is_default=is_default,
            is_active=True,
            created_by=actor,
        )
        self.session.add(profile)
        await self.session.flush()

        self.session.add(self._rule_from_snapshot(profile, snapshot))
        await record_event(
            self.session,
            organization_id=organization_id,
            entity_type="rate_profile",
            entity_id=profile.profile_id,
            action="create",
            actor=actor,
            description=f"Created {profile.profile_type} profile '{name}'",
            after={"pay_basis": profile.pay_basis, "is_default": is_default},
        )
        await self.session.flush()

        logger.info(
            "Created profile %s (%s, %s) in organization %s",
            profile.profile_id,
            profile.profile_type,
            profile.pay_basis,
            organization_id,
        )
        return profile

    async def get_profile(
        self,
        profile_id: UUID,
        organization_id: UUID | None = None,
    ) -> RateProfile:
        profile = await self.session.get(RateProfile, profile_id)
        if profile is None or (
            organization_id is not None and profile.organization_id != organization_id
        ):
            raise EntityNotFoundError("rate_profile", profile_id)
        return profile

    async def list_profiles(
        self,
        organization_id: UUID,
        profile_type: ProfileType | None = None,
        include_inactive: bool = False,
    ) -> list[RateProfile]:
        """List profiles for an organization, default first, then by name."""
        query = select(RateProfile).where(RateProfile.organization_id == organization_id)
        if profile_type is not None:
            query = query.where(RateProfile.profile_type == ProfileType(profile_type).value)
        if not include_inactive:
            query = query.where(RateProfile.is_active.is_(True))
        query = query.order_by(RateProfile.is_default.desc(), RateProfile.name)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_rules(self, profile_id: UUID) -> list[RateRule]:
        """Rules of a profile in creation order."""
        result = await self.session.execute(
            select(RateRule)
            .where(RateRule.profile_id == profile_id)
            .order_by(RateRule.sort_order)
        )
        return list(result.scalars().all())

    async def update_profile(
        self,
        profile_id: UUID,
        name: str | None = None,
        description: str | None = None,
        pay_basis: PayBasis | None = None,
        actor: str | None = None,
        organization_id: UUID | None = None,
    ) -> RateProfile:
        """Update profile fields; a pay basis change must fit the current BASE rule."""
        profile = await self.get_profile(profile_id, organization_id)
        before = {"name": profile.name, "pay_basis": profile.pay_basis}

        if pay_basis is not None and PayBasis(pay_basis).value != profile.pay_basis:
            rules = await self.get_rules(profile_id)
            validate_rule_set(PayBasis(pay_basis), [r.to_snapshot() for r in rules], profile_id)
            profile.pay_basis = PayBasis(pay_basis).value
        if name is not None:
            profile.name = name
        if description is not None:
            profile.description = description

        await self._audit(profile, "update", actor, before=before)
        await self.session.flush()
        return profile

    async def set_org_default(
        self,
        profile_id: UUID,
        actor: str | None = None,
        organization_id: UUID | None = None,
    ) -> RateProfile:
        """Make a profile the organization default for its type.

        The previous default of the same type is unset in the same
        transaction.
        """
        profile = await self.get_profile(profile_id, organization_id)
        if not profile.is_active:
            raise InvalidRuleConfigurationError(
                "an inactive profile cannot be the organization default",
                profile_id=profile_id,
            )

        previous = await self._unset_defaults(
            profile.organization_id, ProfileType(profile.profile_type), exclude=profile_id
        )
        profile.is_default = True

        await self._audit(
            profile,
            "set_default",
            actor,
            before={"previous_default_ids": [str(p) for p in previous]},
        )
        await self.session.flush()

        logger.info(
            "Profile %s is now the %s default for organization %s (replaced %s)",
            profile_id,
            profile.profile_type,
            profile.organization_id,
            ", ".join(str(p) for p in previous) or "none",
        )
        return profile

    async def clear_org_default(
        self,
        profile_id: UUID,
        actor: str | None = None,
        organization_id: UUID | None = None,
    ) -> RateProfile:
        profile = await self.get_profile(profile_id, organization_id)
        if profile.is_default:
            profile.is_default = False
            await self._audit(profile, "clear_default", actor)
            await self.session.flush()
        return profile

    async def deactivate_profile(
        self,
        profile_id: UUID,
        actor: str | None = None,
        organization_id: UUID | None = None,
    ) -> RateProfile:
        """Deactivate a profile; an inactive profile is never selected or default."""
        profile = await self.get_profile(profile_id, organization_id)
        before = {"is_active": profile.is_active, "is_default": profile.is_default}
        profile.is_active = False
        profile.is_default = False

        await self._audit(profile, "deactivate", actor, before=before)
        await self.session.flush()
        logger.info("Deactivated profile %s", profile_id)
        return profile

    async def reactivate_profile(
        self,
        profile_id: UUID,
        actor: str | None = None,
        organization_id: UUID | None = None,
    ) -> RateProfile:
        profile = await self.get_profile(profile_id, organization_id)
        rules = await self.get_rules(profile_id)
        validate_rule_set(
            PayBasis(profile.pay_basis), [r.to_snapshot() for r in rules], profile_id
        )
        profile.is_active = True

        await self._audit(profile, "reactivate", actor)
        await self.session.flush()
        return profile

    # === Rules ===

    async def add_rule(
        self,
        profile_id: UUID,
        rule: RuleInput,
        actor: str | None = None,
        organization_id: UUID | None = None,
    ) -> RateRule:
        """Add a rule to a profile."""
        added = await self.bulk_add_rules(profile_id, [rule], actor, organization_id)
        return added[0]

    async def bulk_add_rules(
        self,
        profile_id: UUID,
        rules: Iterable[RuleInput],
        actor: str | None = None,
        organization_id: UUID | None = None,
    ) -> list[RateRule]:
        """Add several rules at once; either all are added or none."""
        profile = await self.get_profile(profile_id, organization_id)
        existing = [r.to_snapshot() for r in await self.get_rules(profile_id)]

        next_order = await self._next_sort_order(profile_id)
        snapshots = [rule.to_snapshot(next_order + i) for i, rule in enumerate(rules)]
        validate_rule_set(PayBasis(profile.pay_basis), existing + snapshots, profile_id)

        added = [self._rule_from_snapshot(profile, snapshot) for snapshot in snapshots]
        self.session.add_all(added)
        await self._audit(
            profile,
            "add_rules",
            actor,
            after={"rules": [s.name for s in snapshots]},
        )
        await self.session.flush()
        return added

    async def update_rule(
        self,
        rule_id: UUID,
        changes: Mapping[str, Any],
        actor: str | None = None,
        organization_id: UUID | None = None,
    ) -> RateRule:
        """Apply field changes to a rule.

        ``changes`` holds only the fields being changed; ``None`` clears an
        optional threshold or cap.
        """
        unknown = set(changes) - UPDATABLE_RULE_FIELDS
        if unknown:
            raise InvalidRuleConfigurationError(
                f"unknown rule fields: {', '.join(sorted(unknown))}", rule_id=rule_id
            )

        rule = await self._get_rule(rule_id, organization_id)
        profile = await self.get_profile(rule.profile_id)
        rules = await self.get_rules(rule.profile_id)

        current = rule.to_snapshot()
        proposed = RuleSnapshot(
            rule_id=current.rule_id,
            name=changes.get("name", current.name),
            category=RuleCategory(changes.get("category", current.category)),
            trigger_event=TriggerEvent(changes.get("trigger_event", current.trigger_event)),
            rate_amount=Decimal(changes.get("rate_amount", current.rate_amount)),
            min_threshold=changes.get("min_threshold", current.min_threshold),
            max_cap=changes.get("max_cap", current.max_cap),
            is_active=current.is_active,
            sort_order=current.sort_order,
        )
        validate_rule_set(
            PayBasis(profile.pay_basis),
            [proposed if r.rule_id == rule_id else r.to_snapshot() for r in rules],
            profile.profile_id,
        )

        before = _rule_audit_dict(current)
        rule.name = proposed.name
        rule.category = proposed.category.value
        rule.trigger_event = proposed.trigger_event.value
        rule.rate_amount = proposed.rate_amount
        rule.min_threshold = proposed.min_threshold
        rule.max_cap = proposed.max_cap

        await self._audit(
            profile, "update_rule", actor, before=before, after=_rule_audit_dict(proposed)
        )
        await self.session.flush()
        return rule

    async def toggle_rule(
        self,
        rule_id: UUID,
        is_active: bool | None = None,
        actor: str | None = None,
        organization_id: UUID | None = None,
    ) -> RateRule:
        """Activate or deactivate a rule; flips the flag when ``is_active`` is None."""
        rule = await self._get_rule(rule_id, organization_id)
        profile = await self.get_profile(rule.profile_id)
        target = (not rule.is_active) if is_active is None else is_active
        if target == rule.is_active:
            return rule

        rules = await self.get_rules(rule.profile_id)
        proposed = []
        for r in rules:
            snapshot = r.to_snapshot()
            if r.rule_id == rule_id:
                snapshot = replace(snapshot, is_active=target)
            proposed.append(snapshot)
        validate_rule_set(PayBasis(profile.pay_basis), proposed, profile.profile_id)

        rule.is_active = target
        await self._audit(
            profile, "toggle_rule", actor, after={"rule_id": str(rule_id), "is_active": target}
        )
        await self.session.flush()
        return rule

    async def remove_rule(
        self,
        rule_id: UUID,
        actor: str | None = None,
        organization_id: UUID | None = None,
    ) -> None:
        rule = await self._get_rule(rule_id, organization_id)
        profile = await self.get_profile(rule.profile_id)
        rules = await self.get_rules(rule.profile_id)
        validate_rule_set(
            PayBasis(profile.pay_basis),
            [r.to_snapshot() for r in rules if r.rule_id != rule_id],
            profile.profile_id,
        )

        before = _rule_audit_dict(rule.to_snapshot())
        await self.session.execute(delete(RateRule).where(RateRule.rule_id == rule_id))
        await self._audit(profile, "remove_rule", actor, before=before)
        await self.session.flush()

    # === Helpers ===

    async def _get_rule(self, rule_id: UUID, organization_id: UUID | None) -> RateRule:
        rule = await self.session.get(RateRule, rule_id)
        if rule is None or (organization_id is not None and rule.organization_id != organization_id):
            raise EntityNotFoundError("rate_rule", rule_id)
        return rule

    async def _next_sort_order(self, profile_id: UUID) -> int:
        current = await self.session.scalar(
            select(func.max(RateRule.sort_order)).where(RateRule.profile_id == profile_id)
        )
        return 0 if current is None else current + 1

    async def _unset_defaults(
        self,
        organization_id: UUID,
        profile_type: ProfileType,
        exclude: UUID | None = None,
    ) -> list[UUID]:
        """Unset the current default(s) of a type; returns the affected ids."""
        query = select(RateProfile.profile_id).where(
            RateProfile.organization_id == organization_id,
            RateProfile.profile_type == profile_type.value,
            RateProfile.is_default.is_(True),
        )
        if exclude is not None:
            query = query.where(RateProfile.profile_id != exclude)
        previous = list((await self.session.execute(query)).scalars().all())

        if previous:
            await self.session.execute(
                update(RateProfile)
                .where(RateProfile.profile_id.in_(previous))
                .values(is_default=False)
            )
        return previous

    def _rule_from_snapshot(self, profile: RateProfile, snapshot: RuleSnapshot) -> RateRule:
        return RateRule(
            rule_id=snapshot.rule_id,
            profile_id=profile.profile_id,
            organization_id=profile.organization_id,
            name=snapshot.name,
            category=snapshot.category.value,
            trigger_event=snapshot.trigger_event.value,
            rate_amount=snapshot.rate_amount,
            min_threshold=snapshot.min_threshold,
            max_cap=snapshot.max_cap,
            is_active=snapshot.is_active,
            sort_order=snapshot.sort_order,
        )

    async def _audit(
        self,
        profile: RateProfile,
        action: str,
        actor: str | None,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
    ) -> None:
        await record_event(
            self.session,
            organization_id=profile.organization_id,
            entity_type="rate_profile",
            entity_id=profile.profile_id,
            action=action,
            actor=actor,
            before=before,
            after=after,
        )


def _rule_audit_dict(rule: RuleSnapshot) -> dict[str, Any]:
    return {
        "name": rule.name,
        "category": rule.category.value,
        "trigger_event": rule.trigger_event.value,
        "rate_amount": str(rule.rate_amount),
        "min_threshold": str(rule.min_threshold) if rule.min_threshold is not None else None,
        "max_cap": str(rule.max_cap) if rule.max_cap is not None else None,
    }
