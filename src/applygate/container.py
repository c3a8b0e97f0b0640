"""Dependency injection container for the gate engine."""

from __future__ import annotations

from typing import Any

from dependency_injector import containers, providers

from .apply import OneClickApplyOrchestrator
from .core import AnswerMergeResolver, GateEvaluator
from .service import ApplyService
from .sessions import SessionStateMachine
from .store import InMemoryStore, SqlAlchemyStore
from .store.sql import build_engine
from .sweeper import AbandonmentSweeper, SweeperConfig


class ApplyGateContainer(containers.DeclarativeContainer):
    """Dependency-injector container definition."""

    store = providers.Singleton(InMemoryStore)

    evaluator = providers.Singleton(GateEvaluator)
    resolver = providers.Singleton(AnswerMergeResolver)

    sweeper_config = providers.Singleton(SweeperConfig)

    session_machine = providers.Singleton(
        SessionStateMachine,
        store=store,
        evaluator=evaluator,
    )

    orchestrator = providers.Singleton(
        OneClickApplyOrchestrator,
        store=store,
        machine=session_machine,
        resolver=resolver,
    )

    sweeper = providers.Singleton(
        AbandonmentSweeper,
        store=store,
        config=sweeper_config,
    )

    service = providers.Factory(
        ApplyService,
        store=store,
        machine=session_machine,
        orchestrator=orchestrator,
        sweeper=sweeper,
    )


def create_container(*, settings: dict[str, Any] | None = None) -> ApplyGateContainer:
    """Instantiate container with optional overrides."""

    container = ApplyGateContainer()

    if not settings:
        return container

    store_settings = settings.get("store", {}) if isinstance(settings, dict) else {}
    if store_settings.get("backend", "memory") == "sql":
        engine = providers.Singleton(
            build_engine,
            store_settings.get("database_url", "sqlite:///applygate.db"),
            echo=bool(store_settings.get("echo", False)),
        )
        container.store.override(providers.Singleton(SqlAlchemyStore, engine))

    sweeper_settings = settings.get("sweeper", {}) if isinstance(settings, dict) else {}
    if sweeper_settings:
        container.sweeper_config.override(
            providers.Singleton(SweeperConfig, **sweeper_settings)
        )

    return container
