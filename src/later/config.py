"""
Configuration management for Later
"""

import copy
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

from .exceptions import PersistenceFailed

logger = logging.getLogger(__name__)


class Config:
    """Configuration manager for the application"""

    def __init__(self, config_dir: Path | None = None):
        self.config_dir = Path(config_dir) if config_dir else Path.home() / ".later"
        self.config_file = self.config_dir / "config.yaml"
        self.data_file = self.config_dir / "session.db"

        # Ensure config directory exists
        self.config_dir.mkdir(parents=True, exist_ok=True)

        # Default configuration
        self.defaults = {
            "log_level": "INFO",
            "settings": {
                "ignore_system_apps": True,
                "custom_ignored_bundle_ids": [],
                "quit_apps_instead_of_hiding": False,
                "wait_before_restore": False,
                "selected_timer_option": None,
                "launch_at_login": False,
            },
            "hotkeys": {
                "save_session": "Ctrl+Shift+S",
                "restore_session": "Ctrl+Shift+R",
            },
            "session": {
                "max_workers": 8,
                "open_timeout": 10,
            },
        }

        self.config = self.load_config()

    def load_config(self) -> dict[str, Any]:
        """Load configuration from file or create default"""
        if self.config_file.exists():
            try:
                with open(self.config_file, encoding="utf-8") as f:
                    config = yaml.safe_load(f)
                # Merge with defaults to ensure all keys exist
                if not isinstance(config, dict):
                    config = {}
                return self._merge_config(self.defaults, config)
            except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
                logger.warning("Error loading config %s: %s", self.config_file, e)
                return copy.deepcopy(self.defaults)
        else:
            config = copy.deepcopy(self.defaults)
            try:
                self.save_config(config)
            except PersistenceFailed:
                # Logged by save_config; run with defaults in memory.
                pass
            return config

    def save_config(self, config: dict[str, Any] | None = None) -> None:
        """Write the configuration durably.

        The file is replaced atomically after an fsync, so a crash right after
        this returns never leaves a partial or stale config behind.
        """
        if config is None:
            config = self.config

        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=self.config_dir, prefix=".config-", suffix=".yaml"
            )
            with os.fdopen(fd, "w") as f:
                yaml.safe_dump(config, f, default_flow_style=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.config_file)
            tmp_name = None
        except (OSError, yaml.YAMLError) as e:
            logger.error("Error saving config %s: %s", self.config_file, e)
            raise PersistenceFailed(f"could not write {self.config_file}: {e}") from e
        finally:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation"""
        keys = key.split(".")
        value = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """Set configuration value using dot notation and write it through"""
        keys = key.split(".")
        config = self.config

        # Navigate to the parent of the target key
        for k in keys[:-1]:
            if not isinstance(config.get(k), dict):
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value

        self.save_config()

    def _merge_config(
        self, defaults: dict[str, Any], user_config: dict[str, Any]
    ) -> dict[str, Any]:
        """Recursively merge user config with defaults"""
        result = copy.deepcopy(defaults)

        for key, value in user_config.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value

        return result

    @property
    def database_path(self) -> Path:
        """Get the path to the SQLite session database"""
        return self.data_file
