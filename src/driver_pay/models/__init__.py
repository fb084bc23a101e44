"""ORM models."""

from driver_pay.models.audit import AuditEvent
from driver_pay.models.base import Base, TimestampMixin
from driver_pay.models.dispatch import DispatchLeg, Load, LoadStop
from driver_pay.models.organization import Carrier, Driver, Organization
from driver_pay.models.pay import (
    CarrierProfileAssignment,
    DriverProfileAssignment,
    LoadPayable,
    RateProfile,
    RateRule,
)

__all__ = [
    "AuditEvent",
    "Base",
    "Carrier",
    "CarrierProfileAssignment",
    "DispatchLeg",
    "Driver",
    "DriverProfileAssignment",
    "Load",
    "LoadPayable",
    "LoadStop",
    "Organization",
    "RateProfile",
    "RateRule",
    "TimestampMixin",
]
