"""
Unit tests for the Flags Rule Engine.
"""

import pytest
from unittest.mock import MagicMock, call

from service_flags.app.context import EvaluationContext
from service_flags.app.rules.engine import RuleEngine, evaluate
from service_flags.app.rules.models import (
    ContextField, Flag, Rule, RuleCondition, RuleConditionOperator, EvaluationResult
)


def condition(field, operator, value):
    return RuleCondition(field=ContextField(field), operator=RuleConditionOperator(operator), value=value)


def make_flag(*rules, name="beta", environment="production"):
    return Flag(name=name, environment=environment, rules=tuple(rules))


class TestRuleEngine:
    """Test cases for RuleEngine."""

    @pytest.fixture
    def rule_engine(self):
        """Create RuleEngine instance."""
        return RuleEngine()

    @pytest.fixture
    def beta_flag(self):
        """Flag with a US rule and an unconditional fallback."""
        return make_flag(
            Rule(conditions=(condition("country", "equals", "US"),), value="on"),
            Rule(value="off"),
        )

    def test_matching_rule_value(self, rule_engine, beta_flag):
        """Test first rule matches for US."""
        result = rule_engine.evaluate(beta_flag, EvaluationContext(country="US"))

        assert result == EvaluationResult(value="on")

    def test_fallback_rule_matches_unconditionally(self, rule_engine, beta_flag):
        """Test rule without conditions catches everything else."""
        result = rule_engine.evaluate(beta_flag, EvaluationContext(country="DE"))

        assert result.value == "off"

    def test_fallback_rule_matches_empty_context(self, rule_engine, beta_flag):
        """Test unknown country falls through to the fallback."""
        result = rule_engine.evaluate(beta_flag, EvaluationContext())

        assert result.value == "off"

    @pytest.mark.parametrize("context", [
        EvaluationContext(),
        EvaluationContext(country="US", identifier="user-1"),
        EvaluationContext(latitude=48.85, longitude=2.35, city="Paris"),
    ])
    def test_empty_rules_return_null(self, rule_engine, context):
        """Test flag without rules never resolves a value."""
        result = rule_engine.evaluate(make_flag(), context)

        assert result.value is None
        assert result.to_dict() == {"value": None}

    def test_no_rule_matches(self, rule_engine):
        """Test null value when no rule holds."""
        flag = make_flag(Rule(conditions=(condition("country", "equals", "US"),), value="on"))

        result = rule_engine.evaluate(flag, EvaluationContext(country="FR"))

        assert result.value is None

    def test_first_match_wins_over_later_matches(self, rule_engine):
        """Test earlier rule wins even when later ones also match."""
        flag = make_flag(
            Rule(conditions=(condition("city", "equals", "Paris"),), value="first"),
            Rule(conditions=(condition("country", "equals", "FR"),), value="second"),
            Rule(value="fallback"),
        )

        result = rule_engine.evaluate(flag, EvaluationContext(city="Paris", country="FR"))

        assert result.value == "first"

    def test_rule_order_is_not_resorted(self, rule_engine):
        """Test an unconditional first rule shadows everything after it."""
        flag = make_flag(
            Rule(value="always"),
            Rule(conditions=(condition("country", "equals", "US"),), value="us"),
        )

        assert rule_engine.evaluate(flag, EvaluationContext(country="US")).value == "always"

    def test_later_rules_not_evaluated_after_match(self, rule_engine, monkeypatch):
        """Test evaluation stops at the first satisfied rule."""
        flag = make_flag(
            Rule(conditions=(condition("country", "equals", "US"),), value="on"),
            Rule(conditions=(condition("city", "equals", "Austin"),), value="later"),
        )
        seen = []
        original = rule_engine._evaluate_condition

        def spy(cond, context):
            seen.append(cond.field)
            return original(cond, context)

        monkeypatch.setattr(rule_engine, "_evaluate_condition", spy)

        rule_engine.evaluate(flag, EvaluationContext(country="US", city="Austin"))

        assert seen == [ContextField.COUNTRY]

    def test_conditions_are_conjunctive(self, rule_engine):
        """Test all conditions in a rule must hold."""
        flag = make_flag(Rule(
            conditions=(
                condition("country", "equals", "US"),
                condition("region", "equals", "TX"),
            ),
            value="texas",
        ))

        assert rule_engine.evaluate(flag, EvaluationContext(country="US", region="TX")).value == "texas"
        assert rule_engine.evaluate(flag, EvaluationContext(country="US", region="CA")).value is None
        assert rule_engine.evaluate(flag, EvaluationContext(country="US")).value is None

    @pytest.mark.parametrize("operator,value", [
        ("equals", "US"),
        ("not_equals", "US"),
        ("in", ("US", "DE")),
        ("not_in", ("US", "DE")),
    ])
    def test_absent_string_field_never_satisfies(self, rule_engine, operator, value):
        """Test unknown country never satisfies any operator."""
        flag = make_flag(Rule(conditions=(condition("country", operator, value),), value="hit"))

        assert rule_engine.evaluate(flag, EvaluationContext(city="Berlin")).value is None

    @pytest.mark.parametrize("operator", list(RuleConditionOperator))
    def test_absent_numeric_field_never_satisfies(self, rule_engine, operator):
        """Test unknown latitude never satisfies any operator."""
        value = (10.0, 20.0) if operator in (RuleConditionOperator.IN, RuleConditionOperator.NOT_IN) else 10.0
        flag = make_flag(Rule(
            conditions=(RuleCondition(field=ContextField.LATITUDE, operator=operator, value=value),),
            value="hit",
        ))

        assert rule_engine.evaluate(flag, EvaluationContext(country="US")).value is None

    def test_not_equals(self, rule_engine):
        """Test not_equals on a known field."""
        flag = make_flag(Rule(conditions=(condition("country", "not_equals", "US"),), value="abroad"))

        assert rule_engine.evaluate(flag, EvaluationContext(country="DE")).value == "abroad"
        assert rule_engine.evaluate(flag, EvaluationContext(country="US")).value is None

    def test_membership(self, rule_engine):
        """Test in / not_in operators."""
        eu = ("DE", "FR", "NL")
        flag = make_flag(
            Rule(conditions=(condition("country", "in", eu),), value="eu"),
            Rule(conditions=(condition("country", "not_in", eu),), value="non-eu"),
        )

        assert rule_engine.evaluate(flag, EvaluationContext(country="FR")).value == "eu"
        assert rule_engine.evaluate(flag, EvaluationContext(country="US")).value == "non-eu"

    def test_membership_requires_sequence(self, rule_engine):
        """Test scalar value for in is unsatisfied."""
        flag = make_flag(Rule(conditions=(condition("country", "in", "US"),), value="hit"))

        assert rule_engine.evaluate(flag, EvaluationContext(country="US")).value is None

    def test_identifier_targeting(self, rule_engine):
        """Test targeting specific identifiers."""
        flag = make_flag(Rule(conditions=(condition("identifier", "in", ("alice", "bob")),), value=True))

        assert rule_engine.evaluate(flag, EvaluationContext(identifier="bob")).value is True
        assert rule_engine.evaluate(flag, EvaluationContext(identifier="carol")).value is None

    @pytest.mark.parametrize("operator,threshold,expected", [
        ("greater_than", 40, True),
        ("greater_than", 48.85, False),
        ("greater_than_or_equal", 48.85, True),
        ("less_than", 50, True),
        ("less_than", 48.85, False),
        ("less_than_or_equal", 48.85, True),
    ])
    def test_numeric_comparisons(self, rule_engine, operator, threshold, expected):
        """Test numeric comparisons on latitude."""
        flag = make_flag(Rule(conditions=(condition("latitude", operator, threshold),), value="hit"))

        result = rule_engine.evaluate(flag, EvaluationContext(latitude=48.85))

        assert (result.value == "hit") is expected

    def test_numeric_comparison_on_string_field(self, rule_engine):
        """Test numeric operators never hold on string fields."""
        flag = make_flag(Rule(conditions=(condition("region", "greater_than", 5),), value="hit"))

        assert rule_engine.evaluate(flag, EvaluationContext(region="7")).value is None

    def test_numeric_comparison_with_non_numeric_value(self, rule_engine):
        """Test malformed threshold is unsatisfied."""
        flag = make_flag(Rule(conditions=(condition("latitude", "greater_than", "north"),), value="hit"))

        assert rule_engine.evaluate(flag, EvaluationContext(latitude=10.0)).value is None

    def test_numeric_equality(self, rule_engine):
        """Test coordinate equality compares numerically."""
        flag = make_flag(Rule(conditions=(condition("longitude", "equals", 2),), value="hit"))

        assert rule_engine.evaluate(flag, EvaluationContext(longitude=2.0)).value == "hit"

    def test_rule_value_is_opaque(self, rule_engine):
        """Test structured rule values are returned untouched."""
        payload = {"variant": "b", "weights": [1, 2]}
        flag = make_flag(Rule(value=payload))

        assert rule_engine.evaluate(flag, EvaluationContext()).value is payload

    def test_evaluation_is_idempotent(self, rule_engine, beta_flag):
        """Test repeated evaluation yields the same result and leaves inputs alone."""
        context = EvaluationContext(country="US", ip="203.0.113.7")
        before = (beta_flag, context)

        results = [rule_engine.evaluate(beta_flag, context) for _ in range(5)]

        assert all(r == results[0] for r in results)
        assert (beta_flag, context) == before

    def test_module_level_evaluate(self, beta_flag):
        """Test the shared engine helper."""
        assert evaluate(beta_flag, EvaluationContext(country="US")).value == "on"

    def test_injected_logger_observes_evaluation(self, beta_flag):
        """Test evaluations are reported to an injected logger."""
        logger = MagicMock()
        engine = RuleEngine(logger=logger)

        engine.evaluate(beta_flag, EvaluationContext(country="US"))
        engine.evaluate(make_flag(name="empty"), EvaluationContext())

        assert logger.debug.call_args_list == [
            call("Flag rules evaluated", flag="beta", environment="production", matched=True),
            call("Flag rules evaluated", flag="empty", environment="production", matched=False),
        ]

    def test_no_logger_by_default(self, rule_engine, beta_flag):
        """Test the engine runs without a logger."""
        assert rule_engine.logger is None
        assert rule_engine.evaluate(beta_flag, EvaluationContext(country="US")).value == "on"
