import logging
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from cadence.domain.constants import DEFAULT_COMMIT_TIMEOUT, DEFAULT_REQUEUE_OFFSET
from cadence.domain.errors import InvalidConfiguration
from cadence.domain.ports import SettingsProvider
from cadence.domain.settings import SchedulerSettings, SessionLimits

logger = logging.getLogger(__name__)

CONFIG_FILES = [
    Path(".config/cadence/config.toml"),
    Path(".cadence.toml"),
]


class AppConfig(BaseSettings):
    """
    Configuration model for cadence.
    Supports loading from:
    1. Config file (~/.config/cadence/config.toml or ~/.cadence.toml)
    2. Environment variables (CADENCE_*, nested with __)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="CADENCE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Paths
    deck_file: Path | None = None
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".config/cadence/logs")

    # Scheduling
    learning_mode: Literal["fast", "normal", "deep"] = "normal"
    scheduler: dict[str, Any] = Field(default_factory=dict)
    users: dict[str, dict[str, Any]] = Field(default_factory=dict)

    # Session
    limits: SessionLimits = Field(default_factory=SessionLimits)
    requeue_offset: int = Field(default=DEFAULT_REQUEUE_OFFSET, ge=1)
    commit_timeout: float | None = Field(default=DEFAULT_COMMIT_TIMEOUT, gt=0)

    verbose: int = 1

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # Find the first existing file
        toml_file = None
        for f in CONFIG_FILES:
            candidate = Path.home() / f
            if candidate.exists():
                toml_file = candidate
                break

        # Earlier sources win: CLI > env > file
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (
            init_settings,
            env_settings,
        )

    @field_validator("deck_file", "log_dir", mode="before")
    @classmethod
    def resolve_paths(cls, v: Any) -> Path | None:
        if v is None:
            return None
        return Path(v).expanduser().resolve()


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/cadence/config.toml (if exists)
    3. Environment variables (CADENCE_*)
    4. cli_overrides (passed from Typer)

    Raises:
        InvalidConfiguration: Any layer holds a malformed value.
    """
    # Typer passes None for options the user did not set
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    try:
        return AppConfig(**overrides)
    except ValidationError as e:
        raise InvalidConfiguration(f"Invalid configuration: {e}") from e


class ConfigSettingsProvider(SettingsProvider):
    """
    Configuration collaborator backed by AppConfig.

    Layers: learning-mode preset -> [scheduler] overrides -> [users.<id>] overrides.
    """

    def __init__(self, config: AppConfig):
        self._config = config

    def load_settings(self, user_id: str | None = None) -> SchedulerSettings:
        overrides = dict(self._config.scheduler)
        if user_id is not None:
            overrides.update(self._config.users.get(user_id, {}))

        mode = overrides.pop("learning_mode", self._config.learning_mode)
        settings = SchedulerSettings.from_preset(mode, **overrides)
        logger.debug(f"Loaded scheduler settings for user={user_id!r} (mode={mode})")
        return settings


class StaticSettingsProvider(SettingsProvider):
    """Hands out the same settings to every user."""

    def __init__(self, settings: SchedulerSettings | None = None):
        self._settings = settings or SchedulerSettings()

    def load_settings(self, user_id: str | None = None) -> SchedulerSettings:
        return self._settings
