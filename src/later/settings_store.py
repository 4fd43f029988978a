"""
Typed, persistent user preferences
"""

import logging
from dataclasses import dataclass, field

from .config import Config

logger = logging.getLogger(__name__)

SECTION = "settings"


@dataclass(frozen=True)
class Settings:
    """Immutable snapshot of the user preferences"""

    ignore_system_apps: bool = True
    custom_ignored_bundle_ids: frozenset[str] = field(default_factory=frozenset)
    quit_apps_instead_of_hiding: bool = False
    wait_before_restore: bool = False
    selected_timer_option: str | None = None
    launch_at_login: bool = False


DEFAULTS = Settings()


class SettingsStore:
    """Typed accessors over the ``settings`` section of the config file.

    Reads fall back to the documented default whenever a key is missing or
    holds a value of the wrong type (older config files). Every setter writes
    the whole config through before returning; if that write fails the new
    value is still kept in memory and ``PersistenceFailed`` is raised.
    """

    def __init__(self, config: Config):
        self.config = config

    def _key(self, name: str) -> str:
        return f"{SECTION}.{name}"

    def _get_bool(self, name: str) -> bool:
        value = self.config.get(self._key(name))
        if isinstance(value, bool):
            return value
        return getattr(DEFAULTS, name)

    def _set(self, name: str, value) -> None:
        logger.debug("Setting %s = %r", name, value)
        self.config.set(self._key(name), value)

    @property
    def ignore_system_apps(self) -> bool:
        return self._get_bool("ignore_system_apps")

    @ignore_system_apps.setter
    def ignore_system_apps(self, value: bool) -> None:
        self._set("ignore_system_apps", bool(value))

    @property
    def custom_ignored_bundle_ids(self) -> frozenset[str]:
        value = self.config.get(self._key("custom_ignored_bundle_ids"))
        if not isinstance(value, (list, tuple, set, frozenset)):
            return DEFAULTS.custom_ignored_bundle_ids
        return frozenset(v.strip() for v in value if isinstance(v, str) and v.strip())

    @custom_ignored_bundle_ids.setter
    def custom_ignored_bundle_ids(self, value) -> None:
        cleaned = sorted({v.strip() for v in value if isinstance(v, str) and v.strip()})
        self._set("custom_ignored_bundle_ids", cleaned)

    @property
    def quit_apps_instead_of_hiding(self) -> bool:
        return self._get_bool("quit_apps_instead_of_hiding")

    @quit_apps_instead_of_hiding.setter
    def quit_apps_instead_of_hiding(self, value: bool) -> None:
        self._set("quit_apps_instead_of_hiding", bool(value))

    @property
    def wait_before_restore(self) -> bool:
        return self._get_bool("wait_before_restore")

    @wait_before_restore.setter
    def wait_before_restore(self, value: bool) -> None:
        self._set("wait_before_restore", bool(value))

    @property
    def selected_timer_option(self) -> str | None:
        value = self.config.get(self._key("selected_timer_option"))
        if isinstance(value, str):
            return value
        return DEFAULTS.selected_timer_option

    @selected_timer_option.setter
    def selected_timer_option(self, value: str | None) -> None:
        self._set("selected_timer_option", value if value is None else str(value))

    @property
    def launch_at_login(self) -> bool:
        return self._get_bool("launch_at_login")

    @launch_at_login.setter
    def launch_at_login(self, value: bool) -> None:
        self._set("launch_at_login", bool(value))

    def add_custom_ignored(self, bundle_id: str) -> None:
        self.custom_ignored_bundle_ids = self.custom_ignored_bundle_ids | {bundle_id}

    def remove_custom_ignored(self, bundle_id: str) -> None:
        self.custom_ignored_bundle_ids = self.custom_ignored_bundle_ids - {bundle_id}

    def snapshot(self) -> Settings:
        """Return a consistent, immutable copy of every setting"""
        return Settings(
            ignore_system_apps=self.ignore_system_apps,
            custom_ignored_bundle_ids=self.custom_ignored_bundle_ids,
            quit_apps_instead_of_hiding=self.quit_apps_instead_of_hiding,
            wait_before_restore=self.wait_before_restore,
            selected_timer_option=self.selected_timer_option,
            launch_at_login=self.launch_at_login,
        )
