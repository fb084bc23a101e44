"""Driver pay services."""

from driver_pay.services.assignment_service import AssignmentService
from driver_pay.services.dispatch_service import DispatchService, SplitResult
from driver_pay.services.payable_service import LegPaySummary, LoadPaySummary, PayableService
from driver_pay.services.profile_service import ProfileService, RuleInput
from driver_pay.services.state_machine import LegPayStateMachine, LegPayStatus

__all__ = [
    "AssignmentService",
    "DispatchService",
    "LegPayStateMachine",
    "LegPayStatus",
    "LegPaySummary",
    "LoadPaySummary",
    "PayableService",
    "ProfileService",
    "RuleInput",
    "SplitResult",
]
