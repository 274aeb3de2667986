"""
Configuration management for randompic.

Process-wide settings come from environment variables with sensible
defaults; the command -> gallery mapping comes from a JSON file.
Invalid values are reported at CRITICAL and terminate startup.
"""

import os
import sys
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


def _validate_int(env_var: str, default: int, min_val: Optional[int] = None,
                  max_val: Optional[int] = None) -> int:
    """
    Validate and return integer from environment variable or default.

    Raises:
        SystemExit: If value is not a valid integer or outside bounds
    """
    value_str = os.environ.get(env_var, str(default))

    try:
        value = int(value_str)
    except ValueError:
        logger.critical(
            f"Configuration error: {env_var}={value_str} is not a valid integer"
        )
        sys.exit(1)

    if min_val is not None and value < min_val:
        logger.critical(
            f"Configuration error: {env_var}={value} is below minimum {min_val}"
        )
        sys.exit(1)

    if max_val is not None and value > max_val:
        logger.critical(
            f"Configuration error: {env_var}={value} exceeds maximum {max_val}"
        )
        sys.exit(1)

    return value


def _validate_bool(env_var: str, default: bool) -> bool:
    """
    Validate and return boolean from environment variable or default.

    Accepts: "1", "true", "yes", "on" (case-insensitive) for True
    Accepts: "0", "false", "no", "off" (case-insensitive) for False
    """
    value_str = os.environ.get(env_var)
    if value_str is None:
        return default

    value_lower = value_str.lower().strip()
    if value_lower in ("1", "true", "yes", "on"):
        return True
    elif value_lower in ("0", "false", "no", "off"):
        return False
    else:
        logger.critical(
            f"Configuration error: {env_var}={value_str} is not a valid boolean "
            f"(use: 1/0, true/false, yes/no, or on/off)"
        )
        sys.exit(1)


def _resolve_against(base: Path, value: str) -> Path:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base / path
    return path.resolve()


@dataclass(frozen=True)
class CommandConfig:
    """One chat command and the galleries it draws from."""

    name: str
    paths: List[str]
    limit: Optional[int] = None
    recursive: bool = True
    description: str = ""


def parse_commands(data: Any) -> Dict[str, CommandConfig]:
    """
    Build `CommandConfig` values from the decoded commands JSON.

    Expected shape::

        {"cats": {"paths": ["cats"], "limit": 3, "recursive": true,
                  "description": "Cat pictures"}}
    """
    if not isinstance(data, dict):
        raise ValueError("commands must be a JSON object mapping names to settings")

    commands: Dict[str, CommandConfig] = {}
    for name, raw in data.items():
        if not isinstance(raw, dict):
            raise ValueError(f"command '{name}': settings must be an object")

        paths = raw.get("paths")
        if not isinstance(paths, list) or not paths:
            raise ValueError(f"command '{name}': 'paths' must be a non-empty list")
        if not all(isinstance(p, str) and p for p in paths):
            raise ValueError(f"command '{name}': every path must be a non-empty string")

        limit = raw.get("limit")
        if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or limit < 0):
            raise ValueError(f"command '{name}': 'limit' must be a non-negative integer")

        recursive = raw.get("recursive", True)
        if not isinstance(recursive, bool):
            raise ValueError(f"command '{name}': 'recursive' must be true or false")

        description = raw.get("description") or ""

        commands[name] = CommandConfig(
            name=name,
            paths=list(paths),
            limit=limit,
            recursive=recursive,
            description=str(description),
        )
    return commands


def load_commands(path: Path) -> Dict[str, CommandConfig]:
    if not path.exists():
        logger.warning(f"Commands file {path} not found; no gallery commands configured")
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return parse_commands(json.load(f))


@dataclass
class Config:
    """Application configuration."""

    # Gallery root; relative gallery paths resolve against it
    root: str = "galleries"

    # Counts
    default_count: int = 1
    max_count: int = 5

    # Delivery: queued send instead of immediate send
    use_queue: bool = False

    commands: Dict[str, CommandConfig] = field(default_factory=dict)

    # Watching
    debounce_ms: int = 200
    rescan_seconds: int = 0

    # Logging
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    @property
    def quiet_period(self) -> float:
        return self.debounce_ms / 1000.0

    def limit_for(self, command: CommandConfig) -> int:
        return command.limit if command.limit is not None else self.max_count

    @classmethod
    def from_env(cls) -> "Config":
        """
        Load and validate configuration from environment variables.

        Exits with error code 1 if any validation fails.
        """
        logger.info("Loading configuration from environment variables...")

        base_dir = Path(os.environ.get("RANDOMPIC_BASE_DIR") or os.getcwd()).expanduser().resolve()
        root = _resolve_against(base_dir, os.environ.get("RANDOMPIC_ROOT", "galleries"))
        commands_file = _resolve_against(
            base_dir, os.environ.get("RANDOMPIC_COMMANDS_FILE", "commands.json")
        )

        logger.info(f"  BASE_DIR: {base_dir}")
        logger.info(f"  ROOT: {root}")
        logger.info(f"  COMMANDS_FILE: {commands_file}")

        log_level = os.environ.get("RANDOMPIC_LOG_LEVEL", "INFO").upper()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if log_level not in valid_levels:
            logger.warning(
                f"Invalid log level: {log_level}, using INFO"
            )
            log_level = "INFO"

        try:
            commands = load_commands(commands_file)
        except (OSError, ValueError) as exc:
            logger.critical(f"Failed to load {commands_file}: {exc}")
            sys.exit(1)

        config = cls(
            root=str(root),
            default_count=_validate_int("RANDOMPIC_DEFAULT_COUNT", 1, min_val=0),
            max_count=_validate_int("RANDOMPIC_MAX_COUNT", 5, min_val=0),
            use_queue=_validate_bool("RANDOMPIC_USE_QUEUE", False),
            commands=commands,
            debounce_ms=_validate_int("RANDOMPIC_DEBOUNCE_MS", 200, min_val=0, max_val=60000),
            rescan_seconds=_validate_int("RANDOMPIC_RESCAN_SECONDS", 0, min_val=0, max_val=86400),
            log_level=log_level,
            log_dir=os.environ.get("RANDOMPIC_LOG_DIR") or None,
        )

        logger.info(f"Configuration loaded: {len(commands)} gallery command(s)")
        return config
