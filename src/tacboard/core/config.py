"""
Configuration Management for tacboard

Provides configuration loading from multiple sources:
- Default values
- Configuration files (YAML, JSON)
- Environment variables

Configuration precedence (highest to lowest):
1. Environment variables (TACBOARD_*)
2. Configuration file
3. Default values

The roster table lives here too: it is external data that the Team/Side
resolver consults, supplied by whoever runs the engine.
"""

import json
import logging
import logging.handlers
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

from tacboard.core.constants import (
    CS2_TICK_RATE,
    FREEZE_RECOVERY_SECONDS,
    RECENT_DEATHS_HISTORY,
    ROUND_RESTART_DELAY_SECONDS,
    TRADE_WINDOW_SECONDS,
    WPA_SCALING,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Configuration Dataclasses
# ============================================================================


@dataclass
class RosterEntry:
    """One member of "our" roster."""

    id: str
    name: str = ""


@dataclass
class RosterConfig:
    """Roster and alias tables used to decide which identities are "ours"."""

    players: list[RosterEntry] = field(default_factory=list)
    # Raw in-game name -> roster id
    aliases: dict[str, str] = field(default_factory=dict)

    @property
    def ids(self) -> set[str]:
        return {p.id for p in self.players}


@dataclass
class EngineConfig:
    """Tunables for the analytics engine."""

    tick_rate: int = CS2_TICK_RATE
    trade_window_seconds: float = TRADE_WINDOW_SECONDS
    recent_deaths_history: int = RECENT_DEATHS_HISTORY
    freeze_recovery_seconds: float = FREEZE_RECOVERY_SECONDS
    round_restart_delay_seconds: float = ROUND_RESTART_DELAY_SECONDS

    # Match rating = mean round rating * calibration
    rating_calibration: float = 1.30
    wpa_scaling: float = WPA_SCALING

    @property
    def trade_window_ticks(self) -> int:
        return int(self.trade_window_seconds * self.tick_rate)


@dataclass
class BatchConfig:
    """Configuration for batch imports."""

    workers: int = 4
    use_processes: bool = False


@dataclass
class ExportConfig:
    """Configuration for data export."""

    default_format: str = "json"
    json_indent: int = 2
    csv_delimiter: str = ","


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: str | None = None
    file_max_bytes: int = 10 * 1024 * 1024  # 10MB
    file_backup_count: int = 5


@dataclass
class TacboardConfig:
    """Main configuration container."""

    engine: EngineConfig = field(default_factory=EngineConfig)
    roster: RosterConfig = field(default_factory=RosterConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Version of the config format
    config_version: str = "1.0"


# ============================================================================
# Configuration Loading
# ============================================================================


def get_default_config_paths() -> list[Path]:
    """Get the default paths to search for configuration files."""
    paths = []

    # Current directory
    paths.append(Path.cwd() / "tacboard.yaml")
    paths.append(Path.cwd() / "tacboard.json")
    paths.append(Path.cwd() / ".tacboard.yaml")

    # User home directory
    home = Path.home()
    paths.append(home / ".config" / "tacboard" / "config.yaml")
    paths.append(home / ".tacboard.yaml")

    # XDG config directory
    xdg_config = os.environ.get("XDG_CONFIG_HOME", str(home / ".config"))
    paths.append(Path(xdg_config) / "tacboard" / "config.yaml")

    return paths


def load_yaml_config(path: Path) -> dict[str, Any]:
    """Load configuration from a YAML file."""
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_json_config(path: Path) -> dict[str, Any]:
    """Load configuration from a JSON file."""
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def load_config_file(path: Path) -> dict[str, Any]:
    """Load configuration from a file, detecting format from extension."""
    if not path.exists():
        return {}

    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return load_yaml_config(path)
    elif suffix == ".json":
        return load_json_config(path)
    else:
        logger.warning(f"Unknown config file format: {suffix}")
        return {}


def load_env_config() -> dict[str, Any]:
    """Load configuration from environment variables."""
    config: dict[str, Any] = {}

    env_mappings = {
        "TACBOARD_LOG_LEVEL": ("logging", "level"),
        "TACBOARD_LOG_FILE": ("logging", "file"),
        "TACBOARD_EXPORT_FORMAT": ("export", "default_format"),
        "TACBOARD_TICK_RATE": ("engine", "tick_rate"),
        "TACBOARD_TRADE_WINDOW_SECONDS": ("engine", "trade_window_seconds"),
        "TACBOARD_RATING_CALIBRATION": ("engine", "rating_calibration"),
        "TACBOARD_BATCH_WORKERS": ("batch", "workers"),
        "TACBOARD_BATCH_USE_PROCESSES": ("batch", "use_processes"),
    }

    for env_var, (section, key) in env_mappings.items():
        value = os.environ.get(env_var)
        if value is not None:
            if section not in config:
                config[section] = {}

            # Type conversion
            if value.lower() in ("true", "false"):
                value = value.lower() == "true"
            elif value.isdigit():
                value = int(value)
            else:
                try:
                    value = float(value)
                except ValueError:
                    pass

            config[section][key] = value

    return config


def merge_configs(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge two configuration dictionaries."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value

    return result


def roster_from_dict(data: dict[str, Any]) -> RosterConfig:
    """
    Build a RosterConfig from a plain mapping.

    Accepts players either as ``[{"id": ..., "name": ...}]`` or as bare id strings.
    """
    players = []
    for entry in data.get("players") or []:
        if isinstance(entry, str):
            players.append(RosterEntry(id=entry, name=entry))
        elif isinstance(entry, dict) and entry.get("id"):
            players.append(RosterEntry(id=str(entry["id"]), name=str(entry.get("name") or "")))
        else:
            logger.warning(f"Ignoring malformed roster entry: {entry!r}")

    aliases = {str(k): str(v) for k, v in (data.get("aliases") or {}).items()}
    return RosterConfig(players=players, aliases=aliases)


def load_roster_file(path: Path) -> RosterConfig:
    """Load a standalone roster file (YAML or JSON)."""
    return roster_from_dict(load_config_file(path))


def dict_to_config(data: dict[str, Any]) -> TacboardConfig:
    """Convert a dictionary to TacboardConfig."""
    config = TacboardConfig()

    for section in ("engine", "batch", "export", "logging"):
        if section in data:
            target = getattr(config, section)
            for key, value in data[section].items():
                if hasattr(target, key):
                    setattr(target, key, value)

    if "roster" in data:
        config.roster = roster_from_dict(data["roster"])

    return config


def load_config(config_file: Path | None = None, include_env: bool = True) -> TacboardConfig:
    """
    Load configuration from all sources.

    Args:
        config_file: Explicit path to a config file (optional)
        include_env: Whether to include environment variables

    Returns:
        Merged TacboardConfig
    """
    config_data: dict[str, Any] = {}

    # Try to find and load a config file
    if config_file:
        config_data = load_config_file(config_file)
        logger.info(f"Loaded config from: {config_file}")
    else:
        for path in get_default_config_paths():
            if path.exists():
                config_data = load_config_file(path)
                logger.info(f"Loaded config from: {path}")
                break

    # Merge environment variables
    if include_env:
        env_config = load_env_config()
        config_data = merge_configs(config_data, env_config)

    return dict_to_config(config_data)


def configure_logging(config: LoggingConfig) -> None:
    """Apply a LoggingConfig to the root logger."""
    root = logging.getLogger()
    root.setLevel(config.level.upper())

    formatter = logging.Formatter(config.format)
    if not root.handlers:
        stream = logging.StreamHandler()
        stream.setFormatter(formatter)
        root.addHandler(stream)

    if config.file:
        file_handler = logging.handlers.RotatingFileHandler(
            config.file,
            maxBytes=config.file_max_bytes,
            backupCount=config.file_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)


# ============================================================================
# Configuration Saving
# ============================================================================


def save_config(config: TacboardConfig, path: Path) -> None:
    """
    Save configuration to a file.

    Args:
        config: Configuration to save
        path: Path to save to (format detected from extension)
    """
    data = config_to_dict(config)
    suffix = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)

    elif suffix == ".json":
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    else:
        raise ValueError(f"Unknown config format: {suffix}")

    logger.info(f"Saved config to: {path}")


def config_to_dict(config: TacboardConfig) -> dict[str, Any]:
    """Convert TacboardConfig to a dictionary."""
    return asdict(config)
