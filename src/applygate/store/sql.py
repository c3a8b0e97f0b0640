"""SQLAlchemy-backed record store."""

from __future__ import annotations

import json
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator

import pendulum
import structlog
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    func,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker

from .base import DuplicateKeyError
from ..schemas import (
    Application,
    ApplicationSession,
    Job,
    JobStatus,
    Question,
    Questionnaire,
    SessionStatus,
    decode_gate_rule,
    encode_gate_rule_value,
)

Base = declarative_base()

logger = structlog.get_logger(__name__)


class JobRow(Base):
    __tablename__ = "jobs"

    id = Column(String(64), primary_key=True)
    title = Column(String(255), nullable=False, default="")
    status = Column(String(20), nullable=False, default=JobStatus.ACTIVE.value)
    expires_at = Column(DateTime, nullable=False)

    questionnaire = relationship(
        "QuestionnaireRow",
        back_populates="job",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<JobRow(id={self.id}, status={self.status})>"


class QuestionnaireRow(Base):
    __tablename__ = "questionnaires"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(String(64), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, unique=True)
    version = Column(Integer, nullable=False, default=1)

    job = relationship("JobRow", back_populates="questionnaire")
    questions = relationship(
        "QuestionRow",
        cascade="all, delete-orphan",
        order_by="QuestionRow.order_index",
    )
    gate_rules = relationship(
        "GateRuleRow",
        cascade="all, delete-orphan",
        order_by="GateRuleRow.order_index",
    )


class QuestionRow(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    questionnaire_id = Column(Integer, ForeignKey("questionnaires.id", ondelete="CASCADE"), nullable=False)
    key = Column(String(100), nullable=False)
    label = Column(String(500), nullable=False, default="")
    type = Column(String(20), nullable=False)
    required = Column(Boolean, nullable=False, default=True)
    options_json = Column(Text, nullable=True)
    order_index = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("questionnaire_id", "key", name="uq_questions_questionnaire_key"),
    )


class GateRuleRow(Base):
    __tablename__ = "gate_rules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    questionnaire_id = Column(Integer, ForeignKey("questionnaires.id", ondelete="CASCADE"), nullable=False)
    # soft reference to questions.key, deliberately not a foreign key
    question_key = Column(String(100), nullable=False)
    operator = Column(String(20), nullable=False)
    value_json = Column(Text, nullable=False)
    order_index = Column(Integer, nullable=False, default=0)


class SessionRow(Base):
    __tablename__ = "application_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_token = Column(String(128), nullable=False, unique=True)
    job_id = Column(String(64), ForeignKey("jobs.id"), nullable=False)
    status = Column(String(20), nullable=False, default=SessionStatus.IN_PROGRESS.value)
    answers_json = Column(Text, nullable=True)
    questionnaire_version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    application_id = Column(String(64), ForeignKey("applications.id"), nullable=True)

    __table_args__ = (
        Index("ix_application_sessions_status_created", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<SessionRow(token={self.session_token[:8]}..., status={self.status})>"


class ApplicationRow(Base):
    __tablename__ = "applications"

    id = Column(String(64), primary_key=True)
    job_id = Column(String(64), ForeignKey("jobs.id"), nullable=False)
    candidate_email = Column(String(255), nullable=False)
    candidate_name = Column(String(255), nullable=False)
    candidate_phone = Column(String(50), nullable=True)
    candidate_linkedin = Column(String(500), nullable=True)
    resume_file_id = Column(String(255), nullable=True)
    answers_json = Column(Text, nullable=False, default="{}")
    created_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("job_id", "candidate_email", name="uq_applications_job_email"),
    )

    def __repr__(self) -> str:
        return f"<ApplicationRow(id={self.id}, job_id={self.job_id}, email={self.candidate_email})>"


class CandidateGateAnswerRow(Base):
    __tablename__ = "candidate_gate_answers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    candidate_email = Column(String(255), nullable=False)
    question_key = Column(String(100), nullable=False)
    answer_json = Column(Text, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("candidate_email", "question_key", name="uq_gate_answers_email_key"),
    )


class SqlAlchemyStore:
    """Record store over any SQLAlchemy engine.

    Timestamps are stored as naive UTC and returned as aware UTC values.
    Calls made inside ``transaction()`` share one ORM session on the calling
    thread; calls made outside it each run in their own short transaction.
    """

    def __init__(self, engine: Engine | str, *, upsert_attempts: int = 3) -> None:
        if isinstance(engine, str):
            engine = build_engine(engine)
        self._engine = engine
        self._session_factory = sessionmaker(
            bind=engine,
            autoflush=False,
            expire_on_commit=False,
        )
        self._local = threading.local()
        self._upsert_attempts = upsert_attempts

    @property
    def engine(self) -> Engine:
        return self._engine

    def create_all(self) -> None:
        Base.metadata.create_all(bind=self._engine)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._current() is not None:
            yield
            return
        with self._session_factory.begin() as db:
            self._local.session = db
            try:
                yield
            finally:
                self._local.session = None

    # jobs

    def add_job(self, job: Job) -> None:
        with self._scope() as db:
            existing = db.get(JobRow, job.job_id)
            if existing is not None:
                db.delete(existing)
                db.flush()
            db.add(_job_to_row(job))

    def get_job(self, job_id: str) -> Job | None:
        with self._scope() as db:
            row = db.get(JobRow, job_id)
            return _row_to_job(row) if row else None

    def expire_jobs(self, now: datetime) -> int:
        with self._scope() as db:
            result = db.execute(
                update(JobRow)
                .where(
                    JobRow.status == JobStatus.ACTIVE.value,
                    JobRow.expires_at <= _to_db(now),
                )
                .values(status=JobStatus.EXPIRED.value)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

    # sessions

    def add_session(self, session: ApplicationSession) -> None:
        with self._scope() as db:
            db.add(
                SessionRow(
                    session_token=session.session_token,
                    job_id=session.job_id,
                    status=session.status.value,
                    answers_json=_dumps(session.answers) if session.answers is not None else None,
                    questionnaire_version=session.questionnaire_version,
                    created_at=_to_db(session.created_at),
                    completed_at=_to_db(session.completed_at),
                    application_id=session.application_id,
                )
            )
            try:
                db.flush()
            except IntegrityError as exc:
                raise DuplicateKeyError("application_sessions", (session.session_token,)) from exc

    def get_session(self, session_token: str) -> ApplicationSession | None:
        with self._scope() as db:
            row = db.execute(
                select(SessionRow).where(SessionRow.session_token == session_token)
            ).scalar_one_or_none()
            return _row_to_session(row) if row else None

    def transition_session(
        self,
        session_token: str,
        *,
        expected_status: SessionStatus,
        status: SessionStatus,
        answers: dict[str, Any],
        completed_at: datetime,
    ) -> bool:
        with self._scope() as db:
            result = db.execute(
                update(SessionRow)
                .where(
                    SessionRow.session_token == session_token,
                    SessionRow.status == expected_status.value,
                )
                .values(
                    status=status.value,
                    answers_json=_dumps(answers),
                    completed_at=_to_db(completed_at),
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    def link_application(self, session_token: str, application_id: str) -> bool:
        with self._scope() as db:
            result = db.execute(
                update(SessionRow)
                .where(
                    SessionRow.session_token == session_token,
                    SessionRow.status == SessionStatus.PASSED.value,
                    SessionRow.application_id.is_(None),
                )
                .values(application_id=application_id)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    def sweep_sessions(
        self,
        *,
        status: SessionStatus,
        created_before: datetime,
        new_status: SessionStatus,
        completed_at: datetime,
        unlinked_only: bool = False,
    ) -> int:
        conditions = [
            SessionRow.status == status.value,
            SessionRow.created_at < _to_db(created_before),
        ]
        if unlinked_only:
            conditions.append(SessionRow.application_id.is_(None))
        with self._scope() as db:
            result = db.execute(
                update(SessionRow)
                .where(*conditions)
                .values(status=new_status.value, completed_at=_to_db(completed_at))
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

    def session_status_counts(self) -> dict[str, int]:
        with self._scope() as db:
            rows = db.execute(
                select(SessionRow.status, func.count()).group_by(SessionRow.status)
            ).all()
            return {status: count for status, count in rows}

    # applications

    def add_application(self, application: Application) -> None:
        with self._scope() as db:
            db.add(
                ApplicationRow(
                    id=application.application_id,
                    job_id=application.job_id,
                    candidate_email=application.candidate_email,
                    candidate_name=application.candidate_name,
                    candidate_phone=application.candidate_phone,
                    candidate_linkedin=application.candidate_linkedin,
                    resume_file_id=application.resume_file_id,
                    answers_json=_dumps(application.answers),
                    created_at=_to_db(application.created_at),
                )
            )
            try:
                db.flush()
            except IntegrityError as exc:
                raise DuplicateKeyError(
                    "applications", (application.job_id, application.candidate_email)
                ) from exc

    def get_application(self, application_id: str) -> Application | None:
        with self._scope() as db:
            row = db.get(ApplicationRow, application_id)
            return _row_to_application(row) if row else None

    def find_application(self, job_id: str, candidate_email: str) -> Application | None:
        with self._scope() as db:
            row = db.execute(
                select(ApplicationRow).where(
                    ApplicationRow.job_id == job_id,
                    ApplicationRow.candidate_email == candidate_email,
                )
            ).scalar_one_or_none()
            return _row_to_application(row) if row else None

    # gate answers

    def get_gate_answers(self, candidate_email: str) -> dict[str, Any]:
        with self._scope() as db:
            rows = db.execute(
                select(CandidateGateAnswerRow).where(
                    CandidateGateAnswerRow.candidate_email == candidate_email
                )
            ).scalars()
            return {row.question_key: json.loads(row.answer_json) for row in rows}

    def upsert_gate_answer(
        self,
        candidate_email: str,
        question_key: str,
        answer: Any,
        updated_at: datetime,
    ) -> None:
        for attempt in range(self._upsert_attempts):
            try:
                with self._scope() as db:
                    row = db.execute(
                        select(CandidateGateAnswerRow).where(
                            CandidateGateAnswerRow.candidate_email == candidate_email,
                            CandidateGateAnswerRow.question_key == question_key,
                        )
                    ).scalar_one_or_none()
                    if row is None:
                        db.add(
                            CandidateGateAnswerRow(
                                candidate_email=candidate_email,
                                question_key=question_key,
                                answer_json=_dumps(answer),
                                updated_at=_to_db(updated_at),
                            )
                        )
                    else:
                        row.answer_json = _dumps(answer)
                        row.updated_at = _to_db(updated_at)
                    db.flush()
                return
            except IntegrityError as exc:
                if self._current() is not None:
                    raise DuplicateKeyError(
                        "candidate_gate_answers", (candidate_email, question_key)
                    ) from exc
                # concurrent insert won; the next attempt updates its row
                logger.warning(
                    "gate_answer.insert_conflict",
                    question_key=question_key,
                    attempt=attempt + 1,
                )
        raise DuplicateKeyError("candidate_gate_answers", (candidate_email, question_key))

    def _current(self) -> Session | None:
        return getattr(self._local, "session", None)

    @contextmanager
    def _scope(self) -> Iterator[Session]:
        current = self._current()
        if current is not None:
            yield current
            return
        with self._session_factory.begin() as db:
            yield db


def build_engine(database_url: str, *, echo: bool = False) -> Engine:
    """Create an engine; SQLite transactions begin IMMEDIATE."""
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 30},
        )

        @event.listens_for(engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection, connection_record):  # noqa: ANN001
            dbapi_connection.isolation_level = None

        # write lock is taken at BEGIN; concurrent writers queue on the busy timeout
        @event.listens_for(engine, "begin")
        def _emit_begin(conn):  # noqa: ANN001
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        return engine

    return create_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        pool_recycle=3600,
    )


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _to_db(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return pendulum.instance(value).in_timezone("UTC").naive()


def _from_db(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return pendulum.instance(value, tz="UTC")


def _job_to_row(job: Job) -> JobRow:
    row = JobRow(
        id=job.job_id,
        title=job.title,
        status=job.status.value,
        expires_at=_to_db(job.expires_at),
    )
    if job.questionnaire is not None:
        questionnaire = job.questionnaire
        row.questionnaire = QuestionnaireRow(
            version=questionnaire.version,
            questions=[
                QuestionRow(
                    key=question.key,
                    label=question.label,
                    type=question.type.value,
                    required=question.required,
                    options_json=_dumps(question.options) if question.options is not None else None,
                    order_index=question.order_index,
                )
                for question in questionnaire.questions
            ],
            gate_rules=[
                GateRuleRow(
                    question_key=rule.question_key,
                    operator=rule.operator,
                    value_json=encode_gate_rule_value(rule),
                    order_index=rule.order_index,
                )
                for rule in questionnaire.gate_rules
            ],
        )
    return row


def _row_to_job(row: JobRow) -> Job:
    questionnaire = None
    if row.questionnaire is not None:
        questionnaire = Questionnaire(
            version=row.questionnaire.version,
            questions=[
                Question(
                    key=question.key,
                    label=question.label,
                    type=question.type,
                    required=question.required,
                    options=json.loads(question.options_json) if question.options_json else None,
                    order_index=question.order_index,
                )
                for question in row.questionnaire.questions
            ],
            gate_rules=[
                decode_gate_rule(
                    rule.question_key,
                    rule.operator,
                    rule.value_json,
                    rule.order_index,
                )
                for rule in row.questionnaire.gate_rules
            ],
        )
    return Job(
        job_id=row.id,
        title=row.title,
        status=row.status,
        expires_at=_from_db(row.expires_at),
        questionnaire=questionnaire,
    )


def _row_to_session(row: SessionRow) -> ApplicationSession:
    return ApplicationSession(
        session_token=row.session_token,
        job_id=row.job_id,
        status=row.status,
        answers=json.loads(row.answers_json) if row.answers_json else None,
        questionnaire_version=row.questionnaire_version,
        created_at=_from_db(row.created_at),
        completed_at=_from_db(row.completed_at),
        application_id=row.application_id,
    )


def _row_to_application(row: ApplicationRow) -> Application:
    return Application(
        application_id=row.id,
        job_id=row.job_id,
        candidate_email=row.candidate_email,
        candidate_name=row.candidate_name,
        candidate_phone=row.candidate_phone,
        candidate_linkedin=row.candidate_linkedin,
        resume_file_id=row.resume_file_id,
        answers=json.loads(row.answers_json) if row.answers_json else {},
        created_at=_from_db(row.created_at),
    )
