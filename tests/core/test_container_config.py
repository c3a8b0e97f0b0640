from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from applygate.container import create_container
from applygate.schemas.config import AppConfig, load_config
from applygate.store import InMemoryStore, SqlAlchemyStore


def test_create_container_defaults_to_memory_store():
    container = create_container()

    assert isinstance(container.store(), InMemoryStore)
    assert container.session_machine() is container.session_machine()
    assert container.sweeper()._config.in_progress_hours == 24.0


def test_create_container_with_overrides(tmp_path: Path):
    container = create_container(
        settings={
            "store": {"backend": "sql", "database_url": f"sqlite:///{tmp_path / 'gate.db'}"},
            "sweeper": {"in_progress_hours": 12, "orphaned_passed_hours": 36},
        }
    )

    store = container.store()
    sweeper = container.sweeper()

    assert isinstance(store, SqlAlchemyStore)
    assert str(store.engine.url).endswith("gate.db")
    assert sweeper._config.in_progress_hours == 12
    assert sweeper._config.orphaned_passed_hours == 36
    assert container.service()._store is store


def test_load_config_validation():
    data = {
        "store": {"backend": "memory"},
        "sweeper": {"in_progress_hours": 6},
        "logging": {"level": "DEBUG"},
    }
    app_config = load_config(data)
    assert isinstance(app_config, AppConfig)
    settings = app_config.to_settings()
    assert settings["store"]["backend"] == "memory"
    assert settings["sweeper"] == {"in_progress_hours": 6, "orphaned_passed_hours": 48.0}
    assert app_config.logging.level == "DEBUG"


def test_load_config_defaults_and_rejections():
    assert load_config(None).store.backend == "sql"

    with pytest.raises(ValidationError):
        load_config(["not", "a", "mapping"])
    with pytest.raises(ValidationError):
        load_config({"sweeper": {"in_progress_hours": 0}})
    with pytest.raises(ValidationError):
        load_config({"store": {"backend": "redis"}})
