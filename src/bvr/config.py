"""Unified configuration for bvr.

Configuration is stored at ~/.bvr/config.toml and organized into sections.

Configuration loading priority:
1. Environment variables (highest)
2. Config file (~/.bvr/config.toml, or the path in BVR_CONFIG)
3. Defaults (lowest)

Sections:
    [retry]      - Attempt budget and rollback threshold
    [agent]      - Agent CLI command and timeout
    [testing]    - Test command and timeout
    [workspace]  - Workspace path and state directory
    [ui]         - Logging and display settings

Example:
    from bvr.config import get_config

    config = get_config()
    print(config.retry.max_attempts)
"""

from __future__ import annotations

import logging
import os
import shlex
import tomllib
from dataclasses import dataclass, field, fields
from datetime import datetime
from pathlib import Path
from typing import Any

import tomli_w

logger = logging.getLogger(__name__)

# Default config location
DEFAULT_CONFIG_DIR = Path.home() / ".bvr"
DEFAULT_CONFIG_FILE = "config.toml"

LOG_LEVELS = ("debug", "info", "warning", "error")

# Singleton instance
_config: BVRConfig | None = None


# =============================================================================
# Configuration Sections
# =============================================================================


@dataclass
class RetrySettings:
    """Retry budget.

    Attributes:
        max_attempts: Attempts allowed per run.
        rollback_threshold: Failures tolerated before rollback is considered.
    """

    max_attempts: int = 3
    rollback_threshold: int = 2

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RetrySettings:
        return cls(
            max_attempts=int(data.get("max_attempts", 3)),
            rollback_threshold=int(data.get("rollback_threshold", 2)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_attempts": self.max_attempts,
            "rollback_threshold": self.rollback_threshold,
        }


@dataclass
class AgentSettings:
    """Agent CLI settings.

    Attributes:
        command: Executable and leading arguments; the prompt is appended.
        timeout: Seconds before an agent run is killed.
    """

    command: list[str] = field(default_factory=lambda: ["claude", "--print"])
    timeout: int = 900

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AgentSettings:
        command = data.get("command", ["claude", "--print"])
        if isinstance(command, str):
            command = shlex.split(command)
        return cls(
            command=list(command),
            timeout=int(data.get("timeout", 900)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "command": list(self.command),
            "timeout": self.timeout,
        }


@dataclass
class TestingSettings:
    """Test command settings.

    Attributes:
        command: Shell command running the test suite; empty means no tests.
        timeout: Seconds before a test run is killed.
        enabled: Validate each attempt with tests.
    """

    __test__ = False

    command: str = ""
    timeout: int = 300
    enabled: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TestingSettings:
        return cls(
            command=data.get("command", ""),
            timeout=int(data.get("timeout", 300)),
            enabled=data.get("enabled", True),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "command": self.command,
            "timeout": self.timeout,
            "enabled": self.enabled,
        }


@dataclass
class WorkspaceSettings:
    """Workspace settings.

    Attributes:
        path: Git working tree the agent edits.
        state_dir: Run state directory, relative to the workspace path.
    """

    path: str = "."
    state_dir: str = ".bvr"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkspaceSettings:
        return cls(
            path=data.get("path", "."),
            state_dir=data.get("state_dir", ".bvr"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "state_dir": self.state_dir,
        }


@dataclass
class UISettings:
    log_level: str = "info"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UISettings:
        return cls(log_level=str(data.get("log_level", "info")).lower())

    def to_dict(self) -> dict[str, Any]:
        return {"log_level": self.log_level}


# =============================================================================
# Main Configuration Class
# =============================================================================


@dataclass
class BVRConfig:
    """Unified bvr configuration."""

    retry: RetrySettings = field(default_factory=RetrySettings)
    agent: AgentSettings = field(default_factory=AgentSettings)
    testing: TestingSettings = field(default_factory=TestingSettings)
    workspace: WorkspaceSettings = field(default_factory=WorkspaceSettings)
    ui: UISettings = field(default_factory=UISettings)

    # Metadata
    config_path: Path | None = None
    last_modified: datetime | None = None

    SECTIONS = ("retry", "agent", "testing", "workspace", "ui")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BVRConfig:
        return cls(
            retry=RetrySettings.from_dict(data.get("retry", {})),
            agent=AgentSettings.from_dict(data.get("agent", {})),
            testing=TestingSettings.from_dict(data.get("testing", {})),
            workspace=WorkspaceSettings.from_dict(data.get("workspace", {})),
            ui=UISettings.from_dict(data.get("ui", {})),
        )

    def to_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name).to_dict() for name in self.SECTIONS}

    def apply_env_overrides(self) -> None:
        """Apply environment variable overrides to configuration."""
        if value := os.environ.get("BVR_MAX_ATTEMPTS"):
            try:
                self.retry.max_attempts = int(value)
            except ValueError:
                logger.warning(f"Ignoring non-integer BVR_MAX_ATTEMPTS={value!r}")
        if value := os.environ.get("BVR_AGENT_COMMAND"):
            self.agent.command = shlex.split(value)
        if value := os.environ.get("BVR_TEST_COMMAND"):
            self.testing.command = value
        if value := os.environ.get("BVR_LOG_LEVEL"):
            self.ui.log_level = value.lower()

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dotted key path.

        Example:
            config.get('retry.max_attempts')  # Returns 3
        """
        section_name, _, field_name = key.partition(".")
        if section_name not in self.SECTIONS or not field_name:
            return default
        return getattr(getattr(self, section_name), field_name, default)

    def set(self, key: str, value: Any) -> bool:
        """Set a configuration value by dotted key path.

        String values are converted to the type of the current value, so
        CLI input like "5" or "false" lands as int or bool.

        Returns:
            True if set successfully, False for unknown keys.

        Raises:
            ValueError: If the value cannot be converted.
        """
        section_name, _, field_name = key.partition(".")
        if section_name not in self.SECTIONS or not field_name:
            return False

        section = getattr(self, section_name)
        if field_name not in {f.name for f in fields(section)}:
            return False

        current = getattr(section, field_name)
        if isinstance(value, str):
            value = _coerce(value, current)
        setattr(section, field_name, value)
        return True


def _coerce(value: str, current: Any) -> Any:
    """Convert a string to the type of ``current``."""
    if isinstance(current, bool):
        lowered = value.lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
        raise ValueError(f"Expected a boolean, got '{value}'")
    if isinstance(current, int):
        return int(value)
    if isinstance(current, list):
        return shlex.split(value)
    return value


# =============================================================================
# Configuration Loading/Saving
# =============================================================================


def get_config_path() -> Path:
    """Get the path to the configuration file."""
    if custom_path := os.environ.get("BVR_CONFIG"):
        return Path(custom_path)
    return DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILE


def load_config(config_path: Path | None = None) -> BVRConfig:
    """Load configuration from TOML file.

    Args:
        config_path: Path to config file. Uses default if not specified.

    Returns:
        BVRConfig with settings from file and environment. An unreadable
        file is logged and replaced by defaults.
    """
    path = config_path or get_config_path()

    config = BVRConfig()
    config.config_path = path

    if path.exists():
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)

            config = BVRConfig.from_dict(data)
            config.config_path = path
            config.last_modified = datetime.fromtimestamp(path.stat().st_mtime)

        except (OSError, tomllib.TOMLDecodeError, ValueError, TypeError) as e:
            logger.error(f"Failed to load config from {path}: {e}")
            config = BVRConfig()
            config.config_path = path

    config.apply_env_overrides()
    return config


def save_config(config: BVRConfig, config_path: Path | None = None) -> bool:
    """Save configuration to TOML file.

    Returns:
        True if saved successfully, False otherwise.
    """
    path = config_path or config.config_path or get_config_path()

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            tomli_w.dump(config.to_dict(), f)
    except OSError as e:
        logger.error(f"Failed to save config: {e}")
        return False

    config.config_path = path
    config.last_modified = datetime.now()
    logger.info(f"Saved config to {path}")
    return True


def get_config() -> BVRConfig:
    """Get the singleton configuration instance.

    Loads from file on first call, returns cached instance after.
    Use reload_config() to force reload.
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> BVRConfig:
    """Force reload configuration from file."""
    global _config
    _config = load_config()
    return _config


def reset_config() -> None:
    """Reset singleton to force reload on next access."""
    global _config
    _config = None


# =============================================================================
# CLI Helpers
# =============================================================================


def format_config_for_display(config: BVRConfig) -> str:
    """Format configuration for CLI display."""
    lines = ["bvr Configuration", "=" * 50, ""]

    if config.config_path:
        lines.append(f"Config file: {config.config_path}")
        if config.last_modified:
            lines.append(f"Last modified: {config.last_modified.strftime('%Y-%m-%d %H:%M:%S')}")
        lines.append("")

    for section_name, values in config.to_dict().items():
        lines.append(f"[{section_name}]")
        for key, value in values.items():
            if isinstance(value, list):
                value = " ".join(value)
            elif value == "":
                value = "(not set)"
            lines.append(f"  {key} = {value}")
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def list_config_keys() -> list[str]:
    """List all available configuration keys as dotted paths."""
    defaults = BVRConfig()
    return [
        f"{section_name}.{key}"
        for section_name in BVRConfig.SECTIONS
        for key in getattr(defaults, section_name).to_dict()
    ]
