"""
Rules deciding which running applications take part in a session
"""

from enum import Enum
from typing import Iterable

from .process_actions import RunningAppDescriptor
from .settings_store import Settings

# Matched by bundle identifier so the check does not depend on the UI language.
SYSTEM_BUNDLE_IDS: frozenset[str] = frozenset(
    {
        "com.apple.finder",
        "com.apple.ActivityMonitor",
        "com.apple.systempreferences",
        "com.apple.SystemSettings",
        "com.apple.AppStore",
    }
)


class SaveAction(Enum):
    HIDE = "hide"
    TERMINATE = "terminate"


def action_for_saved_app(quit_apps_instead_of_hiding: bool) -> SaveAction:
    return SaveAction.TERMINATE if quit_apps_instead_of_hiding else SaveAction.HIDE


def should_ignore_app(
    bundle_id: str | None,
    ignore_system_apps: bool,
    custom_ignored_bundle_ids: Iterable[str],
) -> bool:
    """Identifier level rule; an app without a bundle id is never ignored"""
    if not bundle_id:
        return False
    if ignore_system_apps and bundle_id in SYSTEM_BUNDLE_IDS:
        return True
    return bundle_id in custom_ignored_bundle_ids


def exclusion_reasons(app: RunningAppDescriptor, settings: Settings) -> list[str]:
    """Every reason ``app`` is excluded, empty when it is included"""
    bundle_id = app.bundle_identifier
    if not bundle_id:
        return []
    reasons = []
    if settings.ignore_system_apps and bundle_id in SYSTEM_BUNDLE_IDS:
        reasons.append("system")
    if bundle_id in settings.custom_ignored_bundle_ids:
        reasons.append("custom")
    return reasons


def should_include(app: RunningAppDescriptor, settings: Settings) -> bool:
    return not should_ignore_app(
        app.bundle_identifier,
        settings.ignore_system_apps,
        settings.custom_ignored_bundle_ids,
    )
