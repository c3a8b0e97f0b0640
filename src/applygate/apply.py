"""One-click apply orchestration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Union

import pendulum
import structlog

from .core import AnswerMergeResolver, FailureDetail, answer_errors, validate_answers
from .errors import DuplicateApplication, JobExpired, NotFound
from .schemas import ApplicationSubmission, CandidateProfile, Job, Question
from .sessions import SessionStateMachine
from .store import RecordStore

GATE_REJECTION_MESSAGE = "You do not meet the minimum requirements for this position."


@dataclass(slots=True)
class Applied:
    application_id: str

    def to_dict(self) -> dict[str, Any]:
        return {"success": True, "application_id": self.application_id}


@dataclass(slots=True)
class GateAnswersRequired:
    """Gate questions the candidate still has to answer."""

    questions: list[Question]
    prefill_answers: dict[str, Any] = field(default_factory=dict)
    missing: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "requires_gate_answers": True,
            "questions": [
                {
                    "key": question.key,
                    "label": question.display_label,
                    "type": question.type.value,
                    # gate questions are always required
                    "required": True,
                    "options": question.options,
                    "order_index": question.order_index,
                }
                for question in self.questions
            ],
            "prefill_answers": self.prefill_answers,
        }


@dataclass(slots=True)
class GateRejected:
    failed_rules: list[FailureDetail]

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": GATE_REJECTION_MESSAGE,
            "failed_rules": [detail.to_dict() for detail in self.failed_rules],
        }


OneClickOutcome = Union[Applied, GateAnswersRequired, GateRejected]


class OneClickApplyOrchestrator:
    """Apply with saved answers, asking only for what is missing.

    A returning candidate whose saved answers cover every gate question is
    evaluated and applied without seeing a form. Provided answers are saved
    for future applications before evaluation.
    """

    def __init__(
        self,
        *,
        store: RecordStore,
        machine: SessionStateMachine,
        resolver: AnswerMergeResolver | None = None,
        now_provider: Callable[[], pendulum.DateTime] | None = None,
    ) -> None:
        self._store = store
        self._machine = machine
        self._resolver = resolver or AnswerMergeResolver()
        self._now = now_provider or (lambda: pendulum.now("UTC"))
        self._logger = structlog.get_logger(__name__)

    def apply(
        self,
        job_id: str,
        candidate_email: str,
        profile: CandidateProfile,
        provided_answers: Mapping[str, Any] | None = None,
    ) -> OneClickOutcome:
        job = self._store.get_job(job_id)
        if job is None:
            raise NotFound("Job", job_id)
        now = self._now()
        if not job.is_live(now):
            raise JobExpired(job_id)
        if self._store.find_application(job_id, candidate_email) is not None:
            raise DuplicateApplication(job_id, candidate_email)

        if not job.gate_rules:
            return self._submit(job, candidate_email, profile, {})

        saved = self._store.get_gate_answers(candidate_email)
        provided = dict(provided_answers or {})
        if provided:
            validate_answers(provided, job.questions)

        # saved answers that no longer fit their question are asked again
        malformed = {error["field"] for error in answer_errors(saved, job.questions)}
        usable = {key: value for key, value in saved.items() if key not in malformed}
        resolution = self._resolver.resolve(
            job.questionnaire.gate_question_keys(), usable, provided
        )

        if provided:
            for key, value in provided.items():
                self._store.upsert_gate_answer(candidate_email, key, value, now)
            self._logger.info(
                "one_click.answers_saved",
                job_id=job_id,
                keys=sorted(provided),
            )
        elif not resolution.complete:
            missing = set(resolution.missing)
            questions = [question for question in job.questions if question.key in missing]
            self._logger.info(
                "one_click.requires_answers",
                job_id=job_id,
                missing=resolution.missing,
                malformed=sorted(malformed & missing),
            )
            return GateAnswersRequired(
                questions=questions,
                prefill_answers=self._resolver.prefill(
                    [question.key for question in questions], saved
                ),
                missing=resolution.missing,
            )

        return self._submit(job, candidate_email, profile, resolution.merged)

    def _submit(
        self,
        job: Job,
        candidate_email: str,
        profile: CandidateProfile,
        answers: dict[str, Any],
    ) -> OneClickOutcome:
        session = self._machine.start(job.job_id)
        evaluation = self._machine.evaluate(session, answers)
        if not evaluation.passed:
            self._logger.info(
                "one_click.rejected",
                job_id=job.job_id,
                failed_rules=[detail.question_key for detail in evaluation.failed_rules],
            )
            return GateRejected(failed_rules=evaluation.failed_rules)

        submission = ApplicationSubmission(email=candidate_email, **profile.model_dump())
        linked = self._machine.submit(self._machine.get(session.session_token), submission)
        self._logger.info(
            "one_click.applied",
            job_id=job.job_id,
            application_id=linked.application_id,
        )
        return Applied(application_id=linked.application_id)
