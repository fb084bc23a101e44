"""Error taxonomy for pay resolution, evaluation and reconciliation.

Structural and configuration errors abort a recalculation and are surfaced
to the caller. Computation warnings are never raised; see
``driver_pay.calculators.types.ComputationWarning``.
"""

from __future__ import annotations

from uuid import UUID


class DriverPayError(Exception):
    """Base class for all driver pay errors."""


class EntityNotFoundError(DriverPayError):
    """Raised when a referenced record does not exist."""

    def __init__(self, entity_type: str, entity_id: UUID | str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class SubjectNotFoundError(EntityNotFoundError):
    """Raised when a driver/carrier or its organization cannot be found."""

    def __init__(self, subject_type: str, subject_id: UUID, organization_id: UUID | str):
        self.organization_id = organization_id
        super().__init__(subject_type, subject_id)
        self.args = (
            f"{subject_type} {subject_id} not found in organization {organization_id}",
        )


class NoActiveProfileError(DriverPayError):
    """Raised when no compensation profile resolves for a driver or carrier."""

    def __init__(self, subject_type: str, subject_id: UUID):
        self.subject_type = subject_type
        self.subject_id = subject_id
        super().__init__(
            f"No active pay profile for {subject_type} {subject_id}. "
            "Assign a profile before calculating pay."
        )


class MissingDispatchLegError(DriverPayError):
    """Raised when pay is requested for a load or leg without a dispatch leg."""

    def __init__(self, load_id: UUID | None = None, leg_id: UUID | None = None):
        self.load_id = load_id
        self.leg_id = leg_id
        if leg_id is not None:
            msg = f"Dispatch leg {leg_id} not found"
        else:
            msg = f"Load {load_id} has no dispatch leg"
        super().__init__(f"{msg}; pay cannot be calculated without a leg")


class LegUnassignedError(DriverPayError):
    """Raised when pay is requested for a leg with no driver or carrier."""

    def __init__(self, leg_id: UUID):
        self.leg_id = leg_id
        super().__init__(f"Cannot calculate pay: no driver or carrier assigned to leg {leg_id}")


class InvalidRuleConfigurationError(DriverPayError):
    """Raised when a profile's rule set breaks a configuration invariant."""

    def __init__(self, reason: str, profile_id: UUID | None = None, rule_id: UUID | None = None):
        self.reason = reason
        self.profile_id = profile_id
        self.rule_id = rule_id
        msg = "Invalid rule configuration"
        if profile_id is not None:
            msg += f" for profile {profile_id}"
        super().__init__(f"{msg}: {reason}")


class PayableEditError(DriverPayError):
    """Raised when a payable edit is not permitted."""

    def __init__(self, payable_id: UUID, reason: str):
        self.payable_id = payable_id
        self.reason = reason
        super().__init__(f"Cannot modify payable {payable_id}: {reason}")


class AssignmentError(DriverPayError):
    """Raised when a profile assignment request is inconsistent."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class SplitError(DriverPayError):
    """Raised when a load cannot be split at the requested stop."""

    def __init__(self, load_id: UUID, reason: str):
        self.load_id = load_id
        self.reason = reason
        super().__init__(f"Cannot split load {load_id}: {reason}")
