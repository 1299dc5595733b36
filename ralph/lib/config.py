"""
Configuration loaders for ralph.

User settings live in a YAML file under the user config directory and are
resolved, together with CLI flags, into an immutable RunConfig once per run.
"""

import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

import yaml

from ralph.lib import validate
from ralph.lib.constants import (
    ARCHIVE_DIRNAME,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MAX_STORY_ATTEMPTS,
    LAST_BRANCH_FILENAME,
    LOGS_DIRNAME,
    PROGRESS_FILENAME,
)

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Settings file unreadable or a value failed to parse."""
    pass


# key -> description, in display order
SETTING_KEYS = {
    "default_tool": "Default AI tool (amp, claude, codebuddy)",
    "max_iterations": "Default maximum iterations for task execution",
    "auto_archive": "Auto archive history on branch switch",
    "max_story_attempts": "Failed iterations on one story before it is marked failed",
}


@dataclass
class Settings:
    """Persistent user settings from config.yaml"""
    default_tool: Optional[str] = None
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    auto_archive: bool = True
    max_story_attempts: int = DEFAULT_MAX_STORY_ATTEMPTS


def get_config_dir() -> Path:
    """Directory holding config.yaml.

    RALPH_CONFIG_DIR wins, then $XDG_CONFIG_HOME/ralph, then ~/.config/ralph.
    """
    override = os.environ.get("RALPH_CONFIG_DIR")
    if override:
        return Path(override)
    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / "ralph"


def get_config_file() -> Path:
    return get_config_dir() / "config.yaml"


def load_settings(path: Path | None = None) -> Settings:
    """Load settings, falling back to defaults for a missing file or missing keys.

    Raises:
        ConfigError: file is not valid YAML or doesn't match the schema
    """
    path = path or get_config_file()
    if not path.exists():
        return Settings()

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse {path}: {e}") from None

    if not isinstance(data, dict):
        raise ConfigError(f"Failed to parse {path}: expected a mapping")

    try:
        validate.validate(data, "config")
    except validate.ValidationError as e:
        raise ConfigError(f"Invalid settings in {path}: {e}") from None

    settings = Settings()
    for key, value in data.items():
        setattr(settings, key, value)
    return settings


def save_settings(settings: Settings, path: Path | None = None) -> Path:
    """Write settings to config.yaml, omitting unset values. Returns the path."""
    path = path or get_config_file()
    data = {k: v for k, v in asdict(settings).items() if v is not None}
    validate.validate_before_write(data, "config", path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data, sort_keys=False))
    return path


def get_setting(settings: Settings, key: str) -> Optional[str]:
    """Get a setting as display text, or None if unset."""
    if key not in SETTING_KEYS:
        raise ConfigError(f"Unknown config key: {key}")
    value = getattr(settings, key)
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def set_setting(settings: Settings, key: str, value: str) -> None:
    """Parse a string value and set it on settings.

    Raises:
        ConfigError: unknown key or unparseable value
    """
    if key == "default_tool":
        settings.default_tool = value.strip() or None
    elif key in ("max_iterations", "max_story_attempts"):
        try:
            parsed = int(value)
        except ValueError:
            raise ConfigError(f"{key} must be a positive integer") from None
        if parsed < 1:
            raise ConfigError(f"{key} must be a positive integer")
        setattr(settings, key, parsed)
    elif key == "auto_archive":
        lowered = value.strip().lower()
        if lowered not in ("true", "false"):
            raise ConfigError("auto_archive must be true or false")
        settings.auto_archive = lowered == "true"
    else:
        raise ConfigError(f"Unknown config key: {key}")


@dataclass(frozen=True)
class RunConfig:
    """Everything a run needs, resolved once at startup and never changed.

    Passed explicitly into the engine so nothing reads process-wide state
    mid-run.
    """
    tool: str                                  # Tool name (e.g., "claude")
    tool_command: str                          # Command template for the tool
    backlog_path: Path
    working_directory: Path
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    max_story_attempts: int = DEFAULT_MAX_STORY_ATTEMPTS
    auto_archive: bool = True
    keep_logs: bool = True

    @property
    def ralph_dir(self) -> Path:
        return self.backlog_path.parent

    @property
    def progress_path(self) -> Path:
        return self.ralph_dir / PROGRESS_FILENAME

    @property
    def archive_root(self) -> Path:
        return self.ralph_dir / ARCHIVE_DIRNAME

    @property
    def last_branch_path(self) -> Path:
        return self.ralph_dir / LAST_BRANCH_FILENAME

    @property
    def log_dir(self) -> Optional[Path]:
        return self.ralph_dir / LOGS_DIRNAME if self.keep_logs else None


def resolve_run_config(
    settings: Settings,
    tool: str,
    tool_command: str,
    backlog_path: Path,
    working_directory: Path,
    max_iterations: Optional[int] = None,
    auto_archive: Optional[bool] = None,
    keep_logs: bool = True,
) -> RunConfig:
    """Merge CLI overrides onto settings. Explicit arguments win."""
    if max_iterations is not None and max_iterations < 1:
        raise ConfigError("max_iterations must be a positive integer")
    return RunConfig(
        tool=tool,
        tool_command=tool_command,
        backlog_path=Path(backlog_path).resolve(),
        working_directory=Path(working_directory).resolve(),
        max_iterations=max_iterations if max_iterations is not None else settings.max_iterations,
        max_story_attempts=settings.max_story_attempts,
        auto_archive=settings.auto_archive if auto_archive is None else auto_archive,
        keep_logs=keep_logs,
    )
