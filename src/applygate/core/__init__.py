"""Pure gate evaluation components."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Protocol, runtime_checkable

from ..schemas import GateRule, Question

# NOTE: keep imports explicit for export clarity.
from .evaluator import FailureDetail, GateEvaluation, GateEvaluator, evaluate_gates
from .merge import AnswerMergeResolver, MergeResolution
from .operators import NOT_PROVIDED, is_blank
from .validation import answer_errors, validate_answers


@runtime_checkable
class Evaluator(Protocol):
    """Evaluator contract for deciding gate eligibility."""

    def evaluate(
        self,
        rules: Iterable[GateRule],
        answers: Mapping[str, Any] | None,
        questions: Iterable[Question] = (),
    ) -> GateEvaluation:
        """Return pass/fail and failure detail for the answers."""


__all__ = [
    "Evaluator",
    "GateEvaluator",
    "GateEvaluation",
    "FailureDetail",
    "evaluate_gates",
    "AnswerMergeResolver",
    "MergeResolution",
    "NOT_PROVIDED",
    "is_blank",
    "answer_errors",
    "validate_answers",
]
