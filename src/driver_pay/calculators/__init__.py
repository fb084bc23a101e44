"""Driver pay calculation: rule evaluation and line-item reconciliation.

The store-backed pieces (``engine``, ``profile_resolver``, ``facts``) are
imported from their modules directly; the models depend on this package's
types.
"""

from driver_pay.calculators.line_builder import LineItemBuilder
from driver_pay.calculators.reconciler import LineItemReconciler, ReconciliationResult
from driver_pay.calculators.rule_evaluator import EvaluationResult, RuleEvaluator
from driver_pay.calculators.types import LegFacts, LineCandidate

__all__ = [
    "EvaluationResult",
    "LegFacts",
    "LineCandidate",
    "LineItemBuilder",
    "LineItemReconciler",
    "ReconciliationResult",
    "RuleEvaluator",
]
