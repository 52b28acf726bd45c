"""
Rule data models for the Flags Service.
"""

from typing import Any, Optional, List, Tuple, Union
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ContextField(str, Enum):
    """Context fields a condition may reference."""
    IDENTIFIER = "identifier"
    IP = "ip"
    COUNTRY = "country"
    REGION = "region"
    CITY = "city"
    LATITUDE = "latitude"
    LONGITUDE = "longitude"


class RuleConditionOperator(str, Enum):
    """Rule condition operators."""
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    IN = "in"
    NOT_IN = "not_in"
    GREATER_THAN = "greater_than"
    GREATER_THAN_OR_EQUAL = "greater_than_or_equal"
    LESS_THAN = "less_than"
    LESS_THAN_OR_EQUAL = "less_than_or_equal"


MEMBERSHIP_OPERATORS = frozenset({RuleConditionOperator.IN, RuleConditionOperator.NOT_IN})

NUMERIC_OPERATORS = frozenset({
    RuleConditionOperator.GREATER_THAN,
    RuleConditionOperator.GREATER_THAN_OR_EQUAL,
    RuleConditionOperator.LESS_THAN,
    RuleConditionOperator.LESS_THAN_OR_EQUAL,
})

ConditionValue = Union[str, int, float, List[Union[str, int, float]]]


@dataclass(frozen=True)
class RuleCondition:
    """Rule condition."""
    field: ContextField
    operator: RuleConditionOperator
    value: ConditionValue


@dataclass(frozen=True)
class Rule:
    """Targeting rule. All conditions must hold; none means always."""
    conditions: Tuple[RuleCondition, ...] = ()
    value: Any = None


@dataclass(frozen=True)
class Flag:
    """Named, environment-scoped flag with rules in priority order."""
    name: str
    environment: str
    rules: Tuple[Rule, ...] = ()


@dataclass(frozen=True)
class EvaluationResult:
    """Evaluation result. value is None when no rule matched."""
    value: Any = None

    def to_dict(self):
        return {"value": self.value}


class ConditionDocument(BaseModel):
    """Stored representation of a rule condition."""
    model_config = ConfigDict(extra="forbid")

    field: ContextField
    operator: RuleConditionOperator
    value: ConditionValue

    @model_validator(mode="after")
    def check_value_shape(self) -> "ConditionDocument":
        is_list = isinstance(self.value, list)
        if self.operator in MEMBERSHIP_OPERATORS and not is_list:
            raise ValueError(f"operator '{self.operator.value}' requires a list value")
        if self.operator not in MEMBERSHIP_OPERATORS and is_list:
            raise ValueError(f"operator '{self.operator.value}' requires a scalar value")
        if self.operator in NUMERIC_OPERATORS and (
            isinstance(self.value, bool) or not isinstance(self.value, (int, float))
        ):
            raise ValueError(f"operator '{self.operator.value}' requires a numeric value")
        return self

    def to_condition(self) -> RuleCondition:
        value = tuple(self.value) if isinstance(self.value, list) else self.value
        return RuleCondition(field=self.field, operator=self.operator, value=value)


class RuleDocument(BaseModel):
    """Stored representation of a rule."""
    model_config = ConfigDict(extra="forbid")

    conditions: List[ConditionDocument] = Field(default_factory=list)
    value: Any = None

    def to_rule(self) -> Rule:
        return Rule(
            conditions=tuple(c.to_condition() for c in self.conditions),
            value=self.value
        )


class FlagDocument(BaseModel):
    """Stored representation of a flag, as kept in the flag store."""
    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1)
    environment: str = Field(..., min_length=1)
    rules: List[RuleDocument] = Field(default_factory=list)

    @field_validator("rules", mode="before")
    @classmethod
    def null_rules(cls, value: Optional[list]) -> list:
        return [] if value is None else value

    def to_flag(self) -> Flag:
        return Flag(
            name=self.name,
            environment=self.environment,
            rules=tuple(r.to_rule() for r in self.rules)
        )

    @classmethod
    def from_flag(cls, flag: Flag) -> "FlagDocument":
        return cls(
            name=flag.name,
            environment=flag.environment,
            rules=[
                RuleDocument(
                    conditions=[
                        ConditionDocument(
                            field=c.field,
                            operator=c.operator,
                            value=list(c.value) if isinstance(c.value, tuple) else c.value
                        )
                        for c in rule.conditions
                    ],
                    value=rule.value
                )
                for rule in flag.rules
            ]
        )
