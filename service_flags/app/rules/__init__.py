"""
Rule models and evaluation engine.
"""

from .engine import RuleEngine, evaluate
from .models import (
    ContextField,
    EvaluationResult,
    Flag,
    FlagDocument,
    Rule,
    RuleCondition,
    RuleConditionOperator,
)

__all__ = [
    "ContextField",
    "EvaluationResult",
    "Flag",
    "FlagDocument",
    "Rule",
    "RuleCondition",
    "RuleConditionOperator",
    "RuleEngine",
    "evaluate",
]
