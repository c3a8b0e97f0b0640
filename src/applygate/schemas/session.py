"""Job, application session and application records."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .questionnaire import GateRule, Question, Questionnaire


class JobStatus(str, Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    ARCHIVED = "ARCHIVED"


class SessionStatus(str, Enum):
    """Lifecycle states of an application session."""

    IN_PROGRESS = "IN_PROGRESS"
    PASSED = "PASSED"
    FAILED = "FAILED"
    ABANDONED = "ABANDONED"


class Job(BaseModel):
    """Job posting as seen by the gate engine."""

    job_id: str
    title: str = ""
    status: JobStatus = JobStatus.ACTIVE
    expires_at: datetime
    questionnaire: Questionnaire | None = None

    model_config = ConfigDict(extra="forbid")

    def is_live(self, now: datetime) -> bool:
        return self.status == JobStatus.ACTIVE and self.expires_at > now

    @property
    def gate_rules(self) -> list[GateRule]:
        return self.questionnaire.ordered_rules() if self.questionnaire else []

    @property
    def questions(self) -> list[Question]:
        return self.questionnaire.ordered_questions() if self.questionnaire else []

    @property
    def questionnaire_version(self) -> int:
        return self.questionnaire.version if self.questionnaire else 0


class ApplicationSession(BaseModel):
    """One candidate's attempt at one job's questionnaire.

    Possession of ``session_token`` is the only authorization the session
    carries. ``answers`` is written once by evaluation and never again.
    """

    session_token: str
    job_id: str
    status: SessionStatus = SessionStatus.IN_PROGRESS
    answers: dict[str, Any] | None = None
    questionnaire_version: int = 0
    created_at: datetime
    completed_at: datetime | None = None
    application_id: str | None = None

    model_config = ConfigDict(extra="forbid")


class CandidateProfile(BaseModel):
    """Caller-supplied identity and resume reference."""

    name: str
    phone: str | None = None
    linkedin: str | None = None
    resume_file_id: str

    model_config = ConfigDict(extra="forbid")


class ApplicationSubmission(CandidateProfile):
    """Profile plus the authenticated email a submission is filed under."""

    email: str


class Application(BaseModel):
    """Terminal artifact of a successful session, unique per job and email."""

    application_id: str
    job_id: str
    candidate_email: str
    candidate_name: str
    candidate_phone: str | None = None
    candidate_linkedin: str | None = None
    resume_file_id: str | None = None
    answers: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    model_config = ConfigDict(extra="forbid")


class CandidateGateAnswer(BaseModel):
    """Most recent answer a candidate gave to a question key."""

    candidate_email: str
    question_key: str
    answer: Any = None
    updated_at: datetime

    model_config = ConfigDict(extra="forbid")
