"""Questionnaire, question and gate rule schemas."""

from __future__ import annotations

import json
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

Scalar = Union[bool, int, float, str]


class QuestionType(str, Enum):
    """Answer shape declared by a question."""

    BOOLEAN = "BOOLEAN"
    SINGLE_SELECT = "SINGLE_SELECT"
    MULTI_SELECT = "MULTI_SELECT"
    NUMBER = "NUMBER"
    COUNTRY = "COUNTRY"


class GateOperator(str, Enum):
    """Comparison operators supported by gate rules."""

    EQ = "EQ"
    GTE = "GTE"
    INCLUDES_ANY = "INCLUDES_ANY"
    INCLUDES_ALL = "INCLUDES_ALL"
    IN = "IN"


class Question(BaseModel):
    """Single screening question."""

    key: str
    label: str = ""
    type: QuestionType
    required: bool = True
    options: list[str] | None = None
    order_index: int = 0

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def display_label(self) -> str:
        return self.label or self.key


class _GateRuleBase(BaseModel):
    question_key: str
    order_index: int = 0

    model_config = ConfigDict(frozen=True, extra="forbid")


def _as_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


class EqRule(_GateRuleBase):
    """Answer must equal a scalar after type normalization."""

    operator: Literal["EQ"] = "EQ"
    value: Scalar


class GteRule(_GateRuleBase):
    """Numeric answer must be greater than or equal to the threshold."""

    operator: Literal["GTE"] = "GTE"
    value: int | float


class _SetRuleBase(_GateRuleBase):
    value: list[Scalar] = Field(default_factory=list)

    @field_validator("value", mode="before")
    @classmethod
    def wrap_scalar_value(cls, value: Any) -> Any:
        # a bare scalar is treated as a one-element set
        return _as_list(value)


class IncludesAnyRule(_SetRuleBase):
    """List answer must share at least one member with the expected set."""

    operator: Literal["INCLUDES_ANY"] = "INCLUDES_ANY"


class IncludesAllRule(_SetRuleBase):
    """List answer must contain every member of the expected set."""

    operator: Literal["INCLUDES_ALL"] = "INCLUDES_ALL"


class InRule(_SetRuleBase):
    """Scalar answer must be one of the expected values."""

    operator: Literal["IN"] = "IN"


GateRule = Annotated[
    Union[EqRule, GteRule, IncludesAnyRule, IncludesAllRule, InRule],
    Field(discriminator="operator"),
]

_GATE_RULE_ADAPTER: TypeAdapter[Any] = TypeAdapter(GateRule)
_GATE_RULE_LIST_ADAPTER: TypeAdapter[Any] = TypeAdapter(list[GateRule])


def parse_gate_rule(payload: dict[str, Any]) -> GateRule:
    """Validate a mapping into the operator-specific rule model."""
    return _GATE_RULE_ADAPTER.validate_python(payload)


def parse_gate_rules(payload: list[dict[str, Any]]) -> list[GateRule]:
    return _GATE_RULE_LIST_ADAPTER.validate_python(payload)


def decode_gate_rule(
    question_key: str,
    operator: str,
    value_json: str,
    order_index: int = 0,
) -> GateRule:
    """Decode a stored rule whose expected value is a serialized JSON blob."""
    try:
        value = json.loads(value_json)
    except json.JSONDecodeError as exc:
        raise ValueError(
            f"Invalid JSON value for gate rule on {question_key!r}: {exc}"
        ) from exc
    return parse_gate_rule(
        {
            "question_key": question_key,
            "operator": operator,
            "value": value,
            "order_index": order_index,
        }
    )


def encode_gate_rule_value(rule: GateRule) -> str:
    return json.dumps(rule.value, ensure_ascii=False)


class Questionnaire(BaseModel):
    """Ordered questions and gate rules attached to a job."""

    version: int = 1
    questions: list[Question] = Field(default_factory=list)
    gate_rules: list[GateRule] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    def ordered_questions(self) -> list[Question]:
        return sorted(self.questions, key=lambda question: question.order_index)

    def ordered_rules(self) -> list[GateRule]:
        return sorted(self.gate_rules, key=lambda rule: rule.order_index)

    def question_map(self) -> dict[str, Question]:
        return {question.key: question for question in self.questions}

    def gate_question_keys(self) -> list[str]:
        """Distinct rule keys in evaluation order."""
        return list(dict.fromkeys(rule.question_key for rule in self.ordered_rules()))
