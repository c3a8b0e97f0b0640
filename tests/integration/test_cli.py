from __future__ import annotations

import json
from pathlib import Path

import pendulum
import pytest
from typer.testing import CliRunner

from applygate.cli import app
from applygate.schemas import ApplicationSession, Job, JobStatus, SessionStatus
from applygate.store import SqlAlchemyStore


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def write_json(path: Path, payload: object) -> None:
    path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")


def read_json(path: Path) -> object:
    return json.loads(path.read_text(encoding="utf-8"))


def test_init_db_then_sweep_abandons_stale_sessions(tmp_path: Path, runner: CliRunner) -> None:
    database_url = f"sqlite:///{tmp_path / 'gate.db'}"
    output_path = tmp_path / "sweep.json"

    result = runner.invoke(app, ["init-db", "--database-url", database_url])
    assert result.exit_code == 0, result.output

    now = pendulum.now("UTC")
    store = SqlAlchemyStore(database_url)
    store.add_job(Job(job_id="JOB-1", expires_at=now.add(days=5)))
    store.add_session(
        ApplicationSession(session_token="stale", job_id="JOB-1", created_at=now.subtract(hours=30))
    )
    store.add_session(
        ApplicationSession(session_token="fresh", job_id="JOB-1", created_at=now.subtract(hours=2))
    )

    result = runner.invoke(
        app,
        [
            "sweep",
            "--database-url",
            database_url,
            "--output",
            str(output_path),
            "--log-level",
            "WARNING",
        ],
    )

    assert result.exit_code == 0, result.output
    report = read_json(output_path)
    assert report["in_progress_swept"] == 1
    assert report["orphaned_passed_swept"] == 0
    assert report["stats"] == {"ABANDONED": 1, "IN_PROGRESS": 1}
    assert store.get_session("stale").status == SessionStatus.ABANDONED


def test_expire_jobs_reads_yaml_config(tmp_path: Path, runner: CliRunner) -> None:
    database_url = f"sqlite:///{tmp_path / 'gate.db'}"
    config_path = tmp_path / "config.yaml"
    output_path = tmp_path / "expired.json"
    config_path.write_text(
        f"store:\n  backend: sql\n  database_url: \"{database_url}\"\nlogging:\n  level: WARNING\n",
        encoding="utf-8",
    )

    store = SqlAlchemyStore(database_url)
    store.create_all()
    now = pendulum.now("UTC")
    store.add_job(Job(job_id="JOB-OLD", expires_at=now.subtract(days=1)))
    store.add_job(Job(job_id="JOB-NEW", expires_at=now.add(days=1)))

    result = runner.invoke(
        app,
        ["expire-jobs", "--config", str(config_path), "--output", str(output_path)],
    )

    assert result.exit_code == 0, result.output
    assert read_json(output_path) == {"expired": 1}
    assert store.get_job("JOB-OLD").status == JobStatus.EXPIRED


def test_init_db_rejects_memory_backend(tmp_path: Path, runner: CliRunner) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("store:\n  backend: memory\n", encoding="utf-8")

    result = runner.invoke(app, ["init-db", "--config", str(config_path)])

    assert result.exit_code != 0


def test_evaluate_reports_failures_and_exit_code(tmp_path: Path, runner: CliRunner) -> None:
    rules_path = tmp_path / "rules.json"
    answers_path = tmp_path / "answers.json"
    questions_path = tmp_path / "questions.json"
    output_path = tmp_path / "evaluation.json"

    write_json(
        rules_path,
        [
            {"question_key": "years_endur", "operator": "GTE", "value": 5, "order_index": 0},
            {"question_key": "eu_work_permit", "operator": "EQ", "value": True, "order_index": 1},
        ],
    )
    write_json(answers_path, {"years_endur": "3", "eu_work_permit": "true"})
    write_json(
        questions_path,
        [
            {"key": "years_endur", "label": "Years of Endur", "type": "NUMBER"},
            {"key": "eu_work_permit", "label": "EU work permit", "type": "BOOLEAN"},
        ],
    )

    result = runner.invoke(
        app,
        [
            "evaluate",
            "--rules",
            str(rules_path),
            "--answers",
            str(answers_path),
            "--questions",
            str(questions_path),
            "--output",
            str(output_path),
        ],
    )

    assert result.exit_code == 1
    assert read_json(output_path) == {
        "passed": False,
        "failed_rules": [
            {
                "question_key": "years_endur",
                "label": "Years of Endur",
                "operator": "GTE",
                "expected": 5,
                "actual": "3",
            }
        ],
    }


def test_evaluate_passes_with_exit_code_zero(tmp_path: Path, runner: CliRunner) -> None:
    rules_path = tmp_path / "rules.json"
    answers_path = tmp_path / "answers.json"
    write_json(rules_path, [{"question_key": "country", "operator": "IN", "value": "NL"}])
    write_json(answers_path, {"country": "NL"})

    result = runner.invoke(
        app, ["evaluate", "--rules", str(rules_path), "--answers", str(answers_path)]
    )

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == {"passed": True, "failed_rules": []}


def test_evaluate_rejects_non_list_rules(tmp_path: Path, runner: CliRunner) -> None:
    rules_path = tmp_path / "rules.json"
    answers_path = tmp_path / "answers.json"
    write_json(rules_path, {"question_key": "country"})
    write_json(answers_path, {})

    result = runner.invoke(
        app, ["evaluate", "--rules", str(rules_path), "--answers", str(answers_path)]
    )

    assert result.exit_code == 2
