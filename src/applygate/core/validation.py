"""Shape validation of answers against declared question types."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from ..errors import ValidationError
from ..schemas import Question, QuestionType
from .operators import to_number


def answer_errors(answers: Any, questions: Iterable[Question]) -> list[dict[str, str]]:
    """Return one error per malformed answer.

    Unanswered keys are not errors here; evaluation fails them instead.
    Keys without a matching question are passed through unchecked.
    """
    if not isinstance(answers, Mapping):
        return [{"field": "answers", "message": "answers must be an object"}]

    errors: list[dict[str, str]] = []
    for question in questions:
        if question.key not in answers or answers[question.key] is None:
            continue
        message = _check_shape(question.type, answers[question.key])
        if message:
            errors.append({"field": question.key, "message": message})
    return errors


def validate_answers(answers: Any, questions: Iterable[Question]) -> None:
    errors = answer_errors(answers, questions)
    if errors:
        raise ValidationError(errors)


def _check_shape(question_type: QuestionType, value: Any) -> str | None:
    if question_type == QuestionType.BOOLEAN:
        if isinstance(value, bool):
            return None
        if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
            return None
        return "must be a boolean"
    if question_type == QuestionType.NUMBER:
        if to_number(value) is None and value != "":
            return "must be a number"
        return None
    if question_type == QuestionType.MULTI_SELECT:
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return None
        return "must be a list of strings"
    if not isinstance(value, str):
        return "must be a string"
    return None
