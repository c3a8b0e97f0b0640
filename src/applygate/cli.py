"""Typer CLI entrypoint for batch jobs and offline rule checks."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import typer
import yaml

from .container import create_container
from .core import GateEvaluator
from .logging import configure_logging
from .schemas import Question, parse_gate_rules
from .schemas.config import AppConfig, load_config
from .store import SqlAlchemyStore

app = typer.Typer(help="Screening gate engine CLI.")


def _load_app_config(config: Optional[Path], database_url: Optional[str]) -> AppConfig:
    raw: Any = None
    if config:
        with config.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle)
        if raw is not None and not isinstance(raw, dict):
            raise typer.BadParameter("Config file must be a YAML object", param_hint="config")
    app_config = load_config(raw)
    if database_url:
        app_config.store.backend = "sql"
        app_config.store.database_url = database_url
    return app_config


def _emit(payload: Any, output: Optional[Path]) -> None:
    rendered = json.dumps(payload, ensure_ascii=False, indent=2)
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(rendered, encoding="utf-8")
    typer.echo(rendered)


@app.command()
def sweep(
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path."),
    database_url: Optional[str] = typer.Option(None, help="Database URL, overrides the config file."),
    output: Optional[Path] = typer.Option(None, dir_okay=False, help="Write the sweep report to this JSON path."),
    log_level: Optional[str] = typer.Option(None, help="Log level for structured logging."),
) -> None:
    """Mark stale IN_PROGRESS and orphaned PASSED sessions as ABANDONED."""
    app_config = _load_app_config(config, database_url)
    configure_logging(log_level or app_config.logging.level)

    container = create_container(settings=app_config.to_settings())
    report = container.service().sweep_abandoned_sessions()
    _emit(report, output)


@app.command("expire-jobs")
def expire_jobs(
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path."),
    database_url: Optional[str] = typer.Option(None, help="Database URL, overrides the config file."),
    output: Optional[Path] = typer.Option(None, dir_okay=False, help="Write the result to this JSON path."),
    log_level: Optional[str] = typer.Option(None, help="Log level for structured logging."),
) -> None:
    """Mark ACTIVE jobs whose expiry has passed as EXPIRED."""
    app_config = _load_app_config(config, database_url)
    configure_logging(log_level or app_config.logging.level)

    container = create_container(settings=app_config.to_settings())
    _emit(container.service().expire_jobs(), output)


@app.command("init-db")
def init_db(
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path."),
    database_url: Optional[str] = typer.Option(None, help="Database URL, overrides the config file."),
) -> None:
    """Create the database tables."""
    app_config = _load_app_config(config, database_url)
    if app_config.store.backend != "sql":
        raise typer.BadParameter("init-db requires the sql store backend", param_hint="config")
    SqlAlchemyStore(app_config.store.database_url).create_all()
    typer.echo(f"Tables created at {app_config.store.database_url}.")


@app.command()
def evaluate(
    rules: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="Gate rules JSON path."),
    answers: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="Answers JSON path."),
    questions: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="Questions JSON path."),
    output: Optional[Path] = typer.Option(None, dir_okay=False, help="Write the evaluation to this JSON path."),
) -> None:
    """Evaluate gate rules against an answer set without touching storage."""
    rule_models = parse_gate_rules(_read_json(rules, expected=list, name="rules"))
    answer_set = _read_json(answers, expected=dict, name="answers")
    question_models = [
        Question.model_validate(item)
        for item in (_read_json(questions, expected=list, name="questions") if questions else [])
    ]

    result = GateEvaluator().evaluate(rule_models, answer_set, question_models)
    _emit(result.to_dict(), output)
    if not result.passed:
        raise typer.Exit(code=1)


def _read_json(path: Path, *, expected: type, name: str) -> Any:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"Invalid JSON: {exc}", param_hint=name) from exc
    if not isinstance(data, expected):
        raise typer.BadParameter(f"Expected a JSON {expected.__name__}", param_hint=name)
    return data


def main() -> None:
    app()


if __name__ == "__main__":
    main()
