"""Request-level operations exposed to the surrounding web layer."""

from __future__ import annotations

from typing import Any, Callable, Mapping

import pendulum
import structlog

from .apply import OneClickApplyOrchestrator
from .errors import ValidationError
from .schemas import ApplicationSubmission, CandidateProfile
from .sessions import SessionStateMachine
from .store import RecordStore
from .sweeper import AbandonmentSweeper


class ApplyService:
    """Plain-dict entry points over the gate engine.

    Business outcomes (gate failures, missing answers) come back as payloads;
    caller errors are raised as ``ApplyGateError`` subclasses whose
    ``status_code`` a web layer can map directly.
    """

    def __init__(
        self,
        *,
        store: RecordStore,
        machine: SessionStateMachine,
        orchestrator: OneClickApplyOrchestrator,
        sweeper: AbandonmentSweeper,
        now_provider: Callable[[], pendulum.DateTime] | None = None,
    ) -> None:
        self._store = store
        self._machine = machine
        self._orchestrator = orchestrator
        self._sweeper = sweeper
        self._now = now_provider or (lambda: pendulum.now("UTC"))
        self._logger = structlog.get_logger(__name__)

    def start(self, job_id: str) -> dict[str, Any]:
        session = self._machine.start(job_id)
        job = self._store.get_job(job_id)
        return {
            "session_token": session.session_token,
            "questions": [question.model_dump(mode="json") for question in job.questions],
        }

    def evaluate(self, session_token: str, answers: Any) -> dict[str, Any]:
        if not isinstance(answers, Mapping):
            raise ValidationError([{"field": "answers", "message": "answers is required"}])
        session = self._machine.get(session_token)
        return self._machine.evaluate(session, answers).to_dict()

    def session_status(self, session_token: str) -> dict[str, Any]:
        return {"status": self._machine.status(session_token).value}

    def submit(self, session_token: str, submission: ApplicationSubmission) -> dict[str, Any]:
        session = self._machine.get(session_token)
        linked = self._machine.submit(session, submission)
        return {"success": True, "application_id": linked.application_id}

    def one_click_apply(
        self,
        job_id: str,
        candidate_email: str,
        candidate_profile: CandidateProfile,
        provided_answers: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        outcome = self._orchestrator.apply(
            job_id,
            candidate_email,
            candidate_profile,
            provided_answers,
        )
        return outcome.to_dict()

    def save_gate_answers(self, candidate_email: str, answers: Any) -> dict[str, Any]:
        """Save answers from the candidate dashboard for later one-click use."""
        if not isinstance(answers, Mapping):
            raise ValidationError([{"field": "answers", "message": "answers must be an object"}])
        now = self._now()
        for key, value in answers.items():
            self._store.upsert_gate_answer(candidate_email, key, value, now)
        self._logger.info("gate_answers.saved", keys=sorted(answers))
        return {"success": True}

    def sweep_abandoned_sessions(self) -> dict[str, Any]:
        return self._sweeper.sweep().to_dict()

    def expire_jobs(self) -> dict[str, Any]:
        return {"expired": self._sweeper.expire_jobs()}
