"""
Rule evaluation engine for the Flags Service.
"""

from numbers import Real
from typing import Any, Optional

from ..context import EvaluationContext, NUMERIC_FIELDS, parse_coordinate
from .models import (
    Flag, Rule, RuleCondition, RuleConditionOperator, EvaluationResult
)


class RuleEngine:
    """Resolves a flag value for a context.

    Rules are tried in stored order and the first rule whose conditions
    all hold wins. A condition on an unknown context field never holds,
    whatever its operator. The engine keeps no state between calls.
    """

    def __init__(self, logger=None):
        self.logger = logger

    def evaluate(self, flag: Flag, context: EvaluationContext) -> EvaluationResult:
        """Evaluate flag rules against context."""
        rule = self.first_match(flag, context)
        if self.logger is not None:
            self.logger.debug(
                "Flag rules evaluated",
                flag=flag.name,
                environment=flag.environment,
                matched=rule is not None
            )
        if rule is None:
            return EvaluationResult(value=None)
        return EvaluationResult(value=rule.value)

    def first_match(self, flag: Flag, context: EvaluationContext) -> Optional[Rule]:
        """Return the first rule satisfied by context, if any."""
        for rule in flag.rules:
            if self._evaluate_rule_conditions(rule, context):
                return rule
        return None

    def _evaluate_rule_conditions(self, rule: Rule, context: EvaluationContext) -> bool:
        """Evaluate rule conditions against context."""
        return all(self._evaluate_condition(c, context) for c in rule.conditions)

    def _evaluate_condition(self, condition: RuleCondition, context: EvaluationContext) -> bool:
        """Evaluate a single condition."""
        field_name = condition.field.value
        field_value = context.get(field_name)

        if field_value is None:
            return False

        operator = condition.operator
        numeric = field_name in NUMERIC_FIELDS

        if operator == RuleConditionOperator.EQUALS:
            return self._matches(field_value, condition.value, numeric)

        if operator == RuleConditionOperator.NOT_EQUALS:
            expected = self._coerce(condition.value, numeric)
            if expected is None:
                return False
            return field_value != expected

        if operator in (RuleConditionOperator.IN, RuleConditionOperator.NOT_IN):
            if not isinstance(condition.value, (list, tuple)):
                return False
            found = any(self._matches(field_value, v, numeric) for v in condition.value)
            return found if operator == RuleConditionOperator.IN else not found

        # Numeric comparisons
        if not numeric or not _is_number(condition.value):
            return False

        if operator == RuleConditionOperator.GREATER_THAN:
            return field_value > condition.value
        if operator == RuleConditionOperator.GREATER_THAN_OR_EQUAL:
            return field_value >= condition.value
        if operator == RuleConditionOperator.LESS_THAN:
            return field_value < condition.value
        if operator == RuleConditionOperator.LESS_THAN_OR_EQUAL:
            return field_value <= condition.value

        return False

    def _matches(self, field_value: Any, expected: Any, numeric: bool) -> bool:
        expected = self._coerce(expected, numeric)
        return expected is not None and field_value == expected

    @staticmethod
    def _coerce(value: Any, numeric: bool) -> Any:
        """Bring a condition value to the field's type; None if impossible."""
        if numeric:
            if _is_number(value):
                return float(value)
            if isinstance(value, str):
                return parse_coordinate(value)
            return None
        if isinstance(value, str):
            return value
        if _is_number(value):
            return str(value)
        return None


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


_default_engine = RuleEngine()


def evaluate(flag: Flag, context: EvaluationContext) -> EvaluationResult:
    """Evaluate flag against context with a shared engine."""
    return _default_engine.evaluate(flag, context)
