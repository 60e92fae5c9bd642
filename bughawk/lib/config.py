"""
Configuration loader for the BugHawk CLI.

Reads ~/.bughawk/config.yaml (or $BUGHAWK_CONFIG). A missing file means
defaults. Environment variables override file values:

  BUGHAWK_DATA_DIR   data_dir
  BUGHAWK_USER       current_user
  BUGHAWK_PROJECT    default_project
  BUGHAWK_LOG_LEVEL  log_level
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from bughawk.lib import validate

logger = logging.getLogger(__name__)


DEFAULT_DATA_DIR = Path.home() / ".bughawk" / "data"
DEFAULT_CONFIG_PATH = Path.home() / ".bughawk" / "config.yaml"

ENV_OVERRIDES = {
    "BUGHAWK_DATA_DIR": "data_dir",
    "BUGHAWK_USER": "current_user",
    "BUGHAWK_PROJECT": "default_project",
    "BUGHAWK_LOG_LEVEL": "log_level",
}

CONFIG_KEYS = ("data_dir", "current_user", "default_project", "log_level", "event_log")


@dataclass
class Config:
    """CLI configuration from config.yaml."""
    data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)
    current_user: Optional[str] = None
    default_project: Optional[str] = None
    log_level: str = "WARNING"
    event_log: bool = True  # Append every domain event to <data_dir>/events.jsonl

    def to_dict(self) -> dict:
        return {
            "data_dir": str(self.data_dir),
            "current_user": self.current_user,
            "default_project": self.default_project,
            "log_level": self.log_level,
            "event_log": self.event_log,
        }


def get_config_path() -> Path:
    return Path(os.environ.get("BUGHAWK_CONFIG", DEFAULT_CONFIG_PATH))


def _read_file(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise validate.ValidationError("config", f"Failed to parse {path}: {e}") from None
    if not isinstance(data, dict):
        raise validate.ValidationError("config", f"{path} must contain a mapping")
    return data


def load_config(path: Path | None = None, use_env: bool = True) -> Config:
    """Load config.yaml and apply environment overrides.

    Raises:
        ValidationError: If the file is unparseable or fails the config schema
    """
    path = path or get_config_path()
    data = _read_file(path)

    if use_env:
        for env_key, key in ENV_OVERRIDES.items():
            if os.environ.get(env_key):
                data[key] = os.environ[env_key]

    if "log_level" in data and isinstance(data["log_level"], str):
        data["log_level"] = data["log_level"].upper()

    validate.validate(data, "config")

    config = Config()
    if "data_dir" in data:
        config.data_dir = Path(data["data_dir"]).expanduser()
    config.current_user = data.get("current_user")
    config.default_project = data.get("default_project")
    config.log_level = data.get("log_level", config.log_level)
    config.event_log = data.get("event_log", config.event_log)
    return config


def save_config(config: Config, path: Path | None = None) -> Path:
    """Write config to config.yaml. Returns the path written."""
    path = path or get_config_path()
    data = config.to_dict()
    validate.validate_before_write(data, "config", path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data, sort_keys=False))
    return path


def set_config_value(key: str, value: str, path: Path | None = None) -> Config:
    """Set one key in the config file, leaving environment overrides out of it.

    Raises:
        ValueError: If key is not a known config key
        ValidationError: If the resulting config is invalid
    """
    if key not in CONFIG_KEYS:
        raise ValueError(f"Unknown config key '{key}'. Known keys: {', '.join(CONFIG_KEYS)}")

    config = load_config(path, use_env=False)
    if key == "data_dir":
        config.data_dir = Path(value).expanduser()
    elif key == "event_log":
        config.event_log = value.lower() in ("1", "true", "yes", "on")
    elif key == "log_level":
        config.log_level = value.upper()
    else:
        setattr(config, key, value or None)

    save_config(config, path)
    return config


def reset_config(path: Path | None = None) -> None:
    """Delete the config file so defaults apply again."""
    path = path or get_config_path()
    if path.exists():
        path.unlink()
        logger.info(f"Removed {path}")
