from __future__ import annotations

from typing import Any

import pendulum
import pytest

from applygate.schemas import Application, ApplicationSession, Job, SessionStatus
from applygate.store import DuplicateKeyError, InMemoryStore, RecordStore

NOW = pendulum.datetime(2026, 3, 2, 12, 0, tz="UTC")


def build_session(token: str = "tok-1", **kwargs: Any) -> ApplicationSession:
    defaults: dict[str, Any] = {"session_token": token, "job_id": "JOB-1", "created_at": NOW}
    defaults.update(kwargs)
    return ApplicationSession(**defaults)


def build_application(application_id: str = "APP-1", **kwargs: Any) -> Application:
    defaults: dict[str, Any] = {
        "application_id": application_id,
        "job_id": "JOB-1",
        "candidate_email": "ana@example.com",
        "candidate_name": "Ana",
        "created_at": NOW,
    }
    defaults.update(kwargs)
    return Application(**defaults)


def test_memory_store_satisfies_protocol():
    assert isinstance(InMemoryStore(), RecordStore)


def test_reads_return_copies():
    store = InMemoryStore()
    store.add_session(build_session(answers={"languages": ["English"]}))

    fetched = store.get_session("tok-1")
    fetched.answers["languages"].append("German")

    assert store.get_session("tok-1").answers == {"languages": ["English"]}


def test_duplicate_session_token_rejected():
    store = InMemoryStore()
    store.add_session(build_session())

    with pytest.raises(DuplicateKeyError):
        store.add_session(build_session())


def test_transition_only_from_expected_status():
    store = InMemoryStore()
    store.add_session(build_session())

    assert store.transition_session(
        "tok-1",
        expected_status=SessionStatus.IN_PROGRESS,
        status=SessionStatus.PASSED,
        answers={"a": 1},
        completed_at=NOW,
    )
    assert not store.transition_session(
        "tok-1",
        expected_status=SessionStatus.IN_PROGRESS,
        status=SessionStatus.FAILED,
        answers={"a": 0},
        completed_at=NOW,
    )
    assert not store.transition_session(
        "missing",
        expected_status=SessionStatus.IN_PROGRESS,
        status=SessionStatus.FAILED,
        answers={},
        completed_at=NOW,
    )
    assert store.get_session("tok-1").status == SessionStatus.PASSED
    assert store.get_session("tok-1").answers == {"a": 1}


def test_application_unique_per_job_and_email():
    store = InMemoryStore()
    store.add_application(build_application("APP-1"))
    store.add_application(build_application("APP-2", job_id="JOB-2"))

    with pytest.raises(DuplicateKeyError) as exc:
        store.add_application(build_application("APP-3"))

    assert exc.value.table == "applications"
    assert store.get_application("APP-3") is None
    assert store.find_application("JOB-2", "ana@example.com").application_id == "APP-2"


def test_transaction_restores_state_on_error():
    store = InMemoryStore()
    store.add_session(build_session(status=SessionStatus.PASSED))

    with pytest.raises(RuntimeError):
        with store.transaction():
            store.add_application(build_application())
            assert store.link_application("tok-1", "APP-1")
            raise RuntimeError("boom")

    assert store.get_application("APP-1") is None
    assert store.find_application("JOB-1", "ana@example.com") is None
    assert store.get_session("tok-1").application_id is None


def test_link_requires_passed_and_unlinked_session():
    store = InMemoryStore()
    store.add_session(build_session("failed", status=SessionStatus.FAILED))
    store.add_session(build_session("passed", status=SessionStatus.PASSED))

    assert store.link_application("failed", "APP-1") is False
    assert store.link_application("passed", "APP-1") is True
    assert store.link_application("passed", "APP-2") is False


def test_sweep_respects_unlinked_only():
    store = InMemoryStore()
    old = NOW.subtract(hours=49)
    store.add_session(build_session("orphan", status=SessionStatus.PASSED, created_at=old))
    store.add_session(
        build_session("linked", status=SessionStatus.PASSED, created_at=old, application_id="APP-1")
    )

    swept = store.sweep_sessions(
        status=SessionStatus.PASSED,
        created_before=NOW.subtract(hours=48),
        new_status=SessionStatus.ABANDONED,
        completed_at=NOW,
        unlinked_only=True,
    )

    assert swept == 1
    assert store.get_session("orphan").status == SessionStatus.ABANDONED
    assert store.get_session("linked").status == SessionStatus.PASSED


def test_gate_answers_are_scoped_by_email():
    store = InMemoryStore()
    store.upsert_gate_answer("ana@example.com", "years", 3, NOW)
    store.upsert_gate_answer("ana@example.com", "years", 6, NOW.add(hours=1))
    store.upsert_gate_answer("bo@example.com", "years", 1, NOW)

    assert store.get_gate_answers("ana@example.com") == {"years": 6}
    assert store.get_gate_answers("nobody@example.com") == {}


def test_expire_jobs():
    store = InMemoryStore()
    store.add_job(Job(job_id="JOB-OLD", expires_at=NOW.subtract(minutes=1)))
    store.add_job(Job(job_id="JOB-NEW", expires_at=NOW.add(days=1)))

    assert store.expire_jobs(NOW) == 1
    assert store.get_job("JOB-OLD").status.value == "EXPIRED"
    assert store.get_job("JOB-NEW").is_live(NOW)
