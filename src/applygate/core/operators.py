"""Per-operator rule checks and answer coercion."""

from __future__ import annotations

import math
from collections.abc import Hashable
from typing import Any, Callable, Optional

from ..schemas import GateOperator, GateRule, QuestionType

NOT_PROVIDED = "not provided"

_TRUE_STRINGS = {"true"}
_FALSE_STRINGS = {"false"}

RuleCheck = Callable[[GateRule, Any, Optional[QuestionType]], bool]


def is_blank(value: Any) -> bool:
    """Return True when an answer counts as unanswered."""
    return value is None or (isinstance(value, str) and value == "")


def to_number(value: Any) -> float | None:
    """Parse a finite number out of an answer, or None when not numeric."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


def normalize(value: Any, question_type: QuestionType | None) -> Any:
    """Coerce string answers to the question's declared scalar type."""
    if value is None or question_type is None:
        return value
    if question_type == QuestionType.BOOLEAN and isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
        return value
    if question_type == QuestionType.NUMBER and isinstance(value, str):
        number = to_number(value)
        return value if number is None else number
    return value


def member_set(value: Any) -> set[Any]:
    if not isinstance(value, (list, tuple, set, frozenset)):
        return set()
    return {item for item in value if isinstance(item, Hashable)}


def check_eq(rule: GateRule, answer: Any, question_type: QuestionType | None) -> bool:
    actual = normalize(answer, question_type)
    if actual is None:
        return False
    expected = normalize(rule.value, question_type)
    if question_type == QuestionType.NUMBER:
        actual_number = to_number(actual)
        expected_number = to_number(expected)
        if actual_number is not None and expected_number is not None:
            return actual_number == expected_number
    return actual == expected


def check_gte(rule: GateRule, answer: Any, question_type: QuestionType | None) -> bool:
    # unanswered or non-numeric compares as zero
    actual = to_number(answer)
    return (actual if actual is not None else 0.0) >= float(rule.value)


def check_includes_any(rule: GateRule, answer: Any, question_type: QuestionType | None) -> bool:
    expected = set(rule.value)
    if not expected:
        return True
    return bool(member_set(answer) & expected)


def check_includes_all(rule: GateRule, answer: Any, question_type: QuestionType | None) -> bool:
    return set(rule.value) <= member_set(answer)


def check_in(rule: GateRule, answer: Any, question_type: QuestionType | None) -> bool:
    actual = normalize(answer, question_type)
    if actual is None or not isinstance(actual, Hashable) or isinstance(actual, (tuple, frozenset)):
        return False
    return any(actual == normalize(candidate, question_type) for candidate in rule.value)


DEFAULT_CHECKS: dict[GateOperator, RuleCheck] = {
    GateOperator.EQ: check_eq,
    GateOperator.GTE: check_gte,
    GateOperator.INCLUDES_ANY: check_includes_any,
    GateOperator.INCLUDES_ALL: check_includes_all,
    GateOperator.IN: check_in,
}


__all__ = [
    "NOT_PROVIDED",
    "DEFAULT_CHECKS",
    "RuleCheck",
    "check_eq",
    "check_gte",
    "check_in",
    "check_includes_all",
    "check_includes_any",
    "is_blank",
    "member_set",
    "normalize",
    "to_number",
]
