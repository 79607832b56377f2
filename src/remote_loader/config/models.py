from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FileRotationSettings(BaseModel):
    """
    Date-based rotation settings (daily).

    This maps cleanly to Python's standard library TimedRotatingFileHandler behavior.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    backup_count: int = 7


class FileLoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = ""
    rotation: FileRotationSettings = FileRotationSettings()


class LoggingSettings(BaseModel):
    """
    Root level plus optional per-logger overrides.

    `loggers` maps logger names to level names; the default caps the aiohttp loggers
    at WARNING.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    level: str = "INFO"
    file: FileLoggingSettings = FileLoggingSettings()
    loggers: dict[str, str] = Field(default_factory=lambda: {"aiohttp": "WARNING"})


class LoaderSettings(BaseModel):
    """
    In-process options record for one remote loader pipeline.

    Durations are in seconds. `repo` is the `owner/name` path segment used by both
    the version API and the content host.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    repo: str
    reference: str = "main"
    script_path: str

    api_base_url: str = "https://api.github.com/repos"
    content_base_url: str = "https://raw.githubusercontent.com"
    fallback_url: Optional[str] = None

    # Retry policy
    max_retries: int = Field(default=3, ge=1)
    retry_delay_seconds: float = Field(default=2.0, ge=0)

    # Timeouts
    timeout_seconds: float = Field(default=10.0, gt=0)
    resolve_timeout_seconds: float = Field(default=5.0, gt=0)
    run_timeout_seconds: Optional[float] = Field(default=None, gt=0)

    cache_busting_enabled: bool = True

    # Local cache
    enable_local_cache: bool = False
    cache_expiration_seconds: float = Field(default=3600.0, gt=0)

    health_check_enabled: bool = True

    # Name under which an activated payload publishes its control surface
    surface_name: str = "REMOTE_SCRIPT"

    @field_validator("repo", "script_path")
    @classmethod
    def _strip_slashes(cls, value: str) -> str:
        stripped = value.strip().strip("/")
        if not stripped:
            raise ValueError("must not be empty")
        return stripped

    @field_validator("api_base_url", "content_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")


class StateSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = "data/state/loader-state.json"


class AppConfig(BaseModel):
    """Effective runtime configuration after applying all precedence rules."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    logging: LoggingSettings = LoggingSettings()
    loader: LoaderSettings
    state: StateSettings = StateSettings()


@dataclass(frozen=True, slots=True)
class ConfigLoadRequest:
    """
    Optional inputs for a configuration loader.

    Implementations may use these to control where configuration is read from.
    """

    yaml_path: str = "data/config/config.yaml"
    env_prefix: str = "LOADER__"
    dotenv_path: Optional[str] = "data/.env"
