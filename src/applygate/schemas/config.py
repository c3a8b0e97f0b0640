"""Pydantic configuration schema for CLI YAML input."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class StoreConfig(BaseModel):
    backend: Literal["memory", "sql"] = "sql"
    database_url: str = "sqlite:///applygate.db"
    echo: bool = False

    model_config = ConfigDict(extra="forbid")


class SweeperSettings(BaseModel):
    in_progress_hours: float = Field(default=24.0, gt=0)
    orphaned_passed_hours: float = Field(default=48.0, gt=0)

    model_config = ConfigDict(extra="forbid")


class LoggingConfig(BaseModel):
    level: str = "INFO"

    model_config = ConfigDict(extra="forbid")


class AppConfig(BaseModel):
    store: StoreConfig = Field(default_factory=StoreConfig)
    sweeper: SweeperSettings = Field(default_factory=SweeperSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(extra="forbid")

    def to_settings(self) -> dict[str, Any]:
        return {
            "store": self.store.model_dump(),
            "sweeper": self.sweeper.model_dump(),
        }


def load_config(raw: Any) -> AppConfig:
    if raw is None:
        return AppConfig()
    if not isinstance(raw, dict):
        raise ValidationError.from_exception_data(
            "AppConfig",
            [{"type": "dict_type", "loc": ("config",), "input": raw}],
        )
    return AppConfig.model_validate(raw)
