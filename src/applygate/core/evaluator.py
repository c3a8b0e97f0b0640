"""Gate evaluation over a questionnaire's rules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from ..schemas import GateOperator, GateRule, Question, parse_gate_rule
from .operators import DEFAULT_CHECKS, NOT_PROVIDED


@dataclass(slots=True)
class FailureDetail:
    """Why a single rule rejected the candidate."""

    question_key: str
    label: str
    operator: str
    expected: Any
    actual: Any

    def to_dict(self) -> dict[str, Any]:
        return {
            "question_key": self.question_key,
            "label": self.label,
            "operator": self.operator,
            "expected": self.expected,
            "actual": self.actual,
        }


@dataclass(slots=True)
class GateEvaluation:
    """Overall pass/fail plus every failing rule in rule order."""

    passed: bool
    failed_rules: list[FailureDetail] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "failed_rules": [detail.to_dict() for detail in self.failed_rules],
        }


class GateEvaluator:
    """Runs every gate rule against an answer set.

    Rules are matched to questions by key only. A rule whose key has no
    question is still evaluated, without type coercion, and reported under
    its raw key. Evaluation never short-circuits so callers can show every
    reason for a rejection at once.
    """

    def __init__(self) -> None:
        self._checks = DEFAULT_CHECKS

    def evaluate(
        self,
        rules: Iterable[GateRule | dict[str, Any]],
        answers: Mapping[str, Any] | None,
        questions: Iterable[Question] = (),
    ) -> GateEvaluation:
        answers = answers or {}
        question_map = {question.key: question for question in questions}
        ordered = sorted(
            (self._normalize_rule(rule) for rule in rules),
            key=lambda rule: rule.order_index,
        )

        failed: list[FailureDetail] = []
        for rule in ordered:
            question = question_map.get(rule.question_key)
            answer = answers.get(rule.question_key)
            check = self._checks[GateOperator(rule.operator)]
            if check(rule, answer, question.type if question else None):
                continue
            failed.append(
                FailureDetail(
                    question_key=rule.question_key,
                    label=question.display_label if question else rule.question_key,
                    operator=rule.operator,
                    expected=rule.value,
                    actual=NOT_PROVIDED if answer is None else answer,
                )
            )

        return GateEvaluation(passed=not failed, failed_rules=failed)

    @staticmethod
    def _normalize_rule(rule: GateRule | dict[str, Any]) -> GateRule:
        if isinstance(rule, dict):
            return parse_gate_rule(rule)
        return rule


def evaluate_gates(
    rules: Iterable[GateRule | dict[str, Any]],
    answers: Mapping[str, Any] | None,
    questions: Iterable[Question] = (),
) -> GateEvaluation:
    """Evaluate with the default operator checks."""
    return GateEvaluator().evaluate(rules, answers, questions)
