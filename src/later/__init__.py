"""
Later - save the running apps now, bring them back later
"""

__version__ = "0.1.0"
__author__ = "Later Team"
__description__ = "Save the running macOS apps and restore them later"

from .config import Config
from .settings_store import Settings, SettingsStore
from .app_filter import SYSTEM_BUNDLE_IDS, SaveAction, action_for_saved_app, should_include
from .process_actions import ProcessActionAdapter, RunningAppDescriptor
from .session_store import SessionStore
from .session_service import SessionService, SessionSnapshot, RestoreResult
from .reopen_timer import ReopenTimerService, reopen_delay_seconds
from .app_state import AppState, AppStateView

__all__ = [
    "Config",
    "Settings",
    "SettingsStore",
    "SYSTEM_BUNDLE_IDS",
    "SaveAction",
    "action_for_saved_app",
    "should_include",
    "ProcessActionAdapter",
    "RunningAppDescriptor",
    "SessionStore",
    "SessionService",
    "SessionSnapshot",
    "RestoreResult",
    "ReopenTimerService",
    "reopen_delay_seconds",
    "AppState",
    "AppStateView",
]
