"""Configuration loader for QuestSync.

YAML settings are read from `.questsync.yaml` (searched upwards from the
working directory), `${VAR}` references are expanded from the environment,
and the result is validated into `QuestSyncConfig`. Every field has a
default, so running without a file is supported.

Example:
    config = load_config()
    if config.updater.enabled:
        print(f"Install root: {config.updater.install_root}")
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from questsync.constants import (
    CONFIG_FILE_NAME,
    DEFAULT_API_BASE_URL,
    DEFAULT_CDN_BASE_URL,
    DEFAULT_ENROLL_REFRESH_DELAY_SECONDS,
    DEFAULT_GIT_EXECUTABLE,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_SCRIPT_LANGUAGE,
    DEFAULT_SCRIPT_REFRESH_DELAY_SECONDS,
    DEFAULT_SCRIPT_URL,
    DEFAULT_UPDATE_NOTIFY_DELAY_SECONDS,
    QUEST_ENROLL_LOCATION,
)
from questsync.exceptions import ConfigError


class PollerConfig(BaseModel):
    """Quest poller configuration."""

    interval_seconds: float = Field(
        default=DEFAULT_POLL_INTERVAL_SECONDS,
        gt=0,
        description="Seconds between registry polls",
    )
    enroll_refresh_delay_seconds: float = Field(
        default=DEFAULT_ENROLL_REFRESH_DELAY_SECONDS,
        ge=0,
        description="Delay before re-polling after a successful enroll",
    )
    script_refresh_delay_seconds: float = Field(
        default=DEFAULT_SCRIPT_REFRESH_DELAY_SECONDS,
        ge=0,
        description="Delay before re-polling after running the remote script",
    )


class UpdaterConfig(BaseModel):
    """Self-update configuration."""

    enabled: bool = Field(default=True, description="Whether to check for updates on start")
    install_root: str = Field(default=".", description="Git working copy of the install")
    git_executable: str = Field(default=DEFAULT_GIT_EXECUTABLE, description="git binary")
    sandbox: Literal["auto", "always", "never"] = Field(
        default="auto",
        description="Route commands through flatpak-spawn (auto-detected by default)",
    )
    build_command: list[str] = Field(
        default_factory=list,
        description="Command run after pulling; empty means nothing to rebuild",
    )
    notify_delay_seconds: float = Field(
        default=DEFAULT_UPDATE_NOTIFY_DELAY_SECONDS,
        ge=0,
        description="Delay before prompting about an available update",
    )

    @property
    def install_path(self) -> Path:
        return Path(self.install_root).expanduser().resolve()

    @property
    def sandboxed(self) -> bool | None:
        """Explicit sandbox flag, or None to auto-detect."""
        return {"auto": None, "always": True, "never": False}[self.sandbox]


class ApiConfig(BaseModel):
    """Request API configuration."""

    base_url: str = Field(default=DEFAULT_API_BASE_URL, description="Request API base URL")
    token: str = Field(default="", description="Authorization token (from env)")
    timeout_seconds: float = Field(default=DEFAULT_HTTP_TIMEOUT_SECONDS, gt=0)
    enroll_location: int = Field(default=QUEST_ENROLL_LOCATION, description="Enroll location code")


class ScriptConfig(BaseModel):
    """Remote script configuration."""

    enabled: bool = Field(default=False, description="Allow handing the script to an executor")
    url: str = Field(default=DEFAULT_SCRIPT_URL, description="Markdown document URL")
    language: str = Field(default=DEFAULT_SCRIPT_LANGUAGE, description="Code fence language tag")


class QuestsConfig(BaseModel):
    """Quest normalization configuration."""

    cdn_base_url: str = Field(default=DEFAULT_CDN_BASE_URL, description="Reward asset CDN base")


class QuestSyncConfig(BaseModel):
    """Root configuration for QuestSync."""

    poller: PollerConfig = Field(default_factory=PollerConfig)
    updater: UpdaterConfig = Field(default_factory=UpdaterConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    script: ScriptConfig = Field(default_factory=ScriptConfig)
    quests: QuestsConfig = Field(default_factory=QuestsConfig)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Root log level",
    )


# ${NAME} or $NAME
ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


def _substitute(text: str) -> str:
    def lookup(match: re.Match[str]) -> str:
        name = match.group(1) or match.group(2)
        return os.environ.get(name, match.group(0))

    return ENV_VAR_PATTERN.sub(lookup, text)


def expand_env_vars(value: Any) -> Any:
    """Expand environment references in every string of a parsed YAML tree.

    Unset variables are left as written.
    """
    if isinstance(value, str):
        return _substitute(value)
    if isinstance(value, dict):
        return {key: expand_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    return value


def find_config_file(start: Path | None = None) -> Path | None:
    """Search for .questsync.yaml in a directory and its parents.

    Args:
        start: Directory to start from. Defaults to the working directory.

    Returns:
        Path to the config file if found, None otherwise.
    """
    current = start or Path.cwd()

    for directory in [current, *current.parents]:
        config_file = directory / CONFIG_FILE_NAME
        if config_file.exists():
            return config_file

    return None


def load_config(config_path: Path | None = None) -> QuestSyncConfig:
    """Read, expand and validate the QuestSync configuration.

    A missing file yields the defaults.

    Args:
        config_path: Explicit file. When None, .questsync.yaml is looked up
            from the working directory upwards.

    Returns:
        The validated configuration; defaults when no file exists.

    Raises:
        ConfigError: If the file is not valid YAML or fails validation.
    """
    if config_path is None:
        config_path = find_config_file()

    if config_path is None or not config_path.exists():
        return QuestSyncConfig()

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError("Invalid YAML in config file", {"path": str(config_path)}) from e

    if not isinstance(data, dict):
        raise ConfigError("Config file must contain a mapping", {"path": str(config_path)})

    data = expand_env_vars(data)

    try:
        return QuestSyncConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            "Invalid configuration",
            {"path": str(config_path), "errors": e.error_count()},
        ) from e
