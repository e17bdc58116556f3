"""Configuration management for taskpad."""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from .task import Area, Priority


logger = logging.getLogger(__name__)


def _default_projects() -> List[str]:
    return ["Inbox", "Work", "Personal", "School"]


def _default_points_weights() -> Dict[str, int]:
    return {"Low": 5, "Medium": 10, "High": 20}


@dataclass
class ConfigModel:
    """Global configuration model for taskpad."""

    # Default settings
    default_user: str = "me"
    default_project: str = "Inbox"
    default_priority: Priority = Priority.MEDIUM
    default_area: Area = Area.PERSONAL
    default_due_time: str = "17:00"  # time of day for tasks captured without one
    default_reminder: int = 30  # minutes before due

    # Calendar preferences
    week_starts_on: int = 0  # 0=Monday, 6=Sunday
    date_format: str = "%a, %b %d"
    time_format: str = "%H:%M"

    # Organization
    projects: List[str] = field(default_factory=_default_projects)
    points_weights: Dict[str, int] = field(default_factory=_default_points_weights)

    # File paths
    data_dir: str = "~/.taskpad"

    log_level: str = "WARNING"

    def __post_init__(self):
        """Post-initialization setup."""
        self.data_dir = os.path.expanduser(self.data_dir)
        if not isinstance(self.default_priority, Priority):
            self.default_priority = Priority.parse(self.default_priority) or Priority.MEDIUM
        if not isinstance(self.default_area, Area):
            self.default_area = Area.parse(self.default_area) or Area.PERSONAL

    def to_yaml(self) -> str:
        """Serialize config to YAML."""
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            data[f.name] = value.value if isinstance(value, (Priority, Area)) else value
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "ConfigModel":
        """Deserialize config from YAML, ignoring unknown keys."""
        data = yaml.safe_load(yaml_str) or {}
        if not isinstance(data, dict):
            raise ValueError("Configuration root must be a mapping")

        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {', '.join(sorted(unknown))}")
        return cls(**{key: value for key, value in data.items() if key in known})

    def get_config_path(self) -> Path:
        """Get the config file path."""
        return Path(self.data_dir) / "config.yaml"

    def get_user_path(self, user_id: str) -> Path:
        """Get the task file for a user."""
        return Path(self.data_dir) / "users" / f"{user_id}.yaml"


class Config:
    """Configuration manager for taskpad."""

    _instance: Optional[ConfigModel] = None

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> ConfigModel:
        """Load configuration from file or fall back to defaults."""
        if cls._instance is not None and config_path is None:
            return cls._instance

        config = ConfigModel()

        if config_path is None:
            config_path = config.get_config_path()
        config_path = Path(config_path)

        if config_path.exists():
            try:
                config = ConfigModel.from_yaml(config_path.read_text())
                logger.debug(f"Loaded configuration from {config_path}")
            except (OSError, ValueError, TypeError, yaml.YAMLError) as e:
                logger.warning(f"Failed to load config from {config_path}: {e}. Using defaults.")
                config = ConfigModel()
        else:
            logger.debug(f"No configuration at {config_path}, using defaults")

        cls._instance = config
        return config

    @classmethod
    def save(cls, config: ConfigModel, config_path: Optional[Path] = None) -> None:
        """Save configuration to file."""
        if config_path is None:
            config_path = config.get_config_path()
        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(config.to_yaml())
        logger.info(f"Configuration saved to {config_path}")

    @classmethod
    def get(cls) -> ConfigModel:
        """Get the current configuration instance."""
        if cls._instance is None:
            cls._instance = cls.load()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Forget the cached configuration."""
        cls._instance = None


def get_config() -> ConfigModel:
    """Get the current configuration."""
    return Config.get()


def load_config(config_path: Optional[Path] = None) -> ConfigModel:
    """Load configuration from file."""
    return Config.load(config_path)


def save_config(config: ConfigModel, config_path: Optional[Path] = None) -> None:
    """Save configuration to file."""
    Config.save(config, config_path)
