"""Global hotkeys bound to the save and restore intents."""

import logging
from typing import Callable

logger = logging.getLogger(__name__)

_MODIFIERS = {
    "ctrl": "<ctrl>",
    "control": "<ctrl>",
    "alt": "<alt>",
    "option": "<alt>",
    "shift": "<shift>",
    "cmd": "<cmd>",
    "command": "<cmd>",
    "meta": "<cmd>",
}


def to_pynput_hotkey(hotkey: str) -> str:
    """Convert ``Ctrl+Shift+S`` style combinations into pynput's ``<ctrl>+<shift>+s``."""
    parts = [p.strip().lower() for p in hotkey.split("+") if p.strip()]
    if not parts:
        raise ValueError("empty hotkey")
    converted = []
    for part in parts:
        if part in _MODIFIERS:
            converted.append(_MODIFIERS[part])
        elif len(part) == 1:
            converted.append(part)
        else:
            converted.append(f"<{part}>")
    return "+".join(converted)


class HotkeyBindings:
    """Registers the save/restore shortcuts; they work while the UI is hidden."""

    def __init__(self, save_hotkey: str, restore_hotkey: str,
                 on_save: Callable[[], object], on_restore: Callable[[], object]):
        self.bindings = {
            to_pynput_hotkey(save_hotkey): on_save,
            to_pynput_hotkey(restore_hotkey): on_restore,
        }
        self.listener = None

    def start(self) -> bool:
        """Start listening in pynput's background thread.

        Returns False when the listener cannot be created, e.g. without
        Accessibility permission on macOS.
        """
        if self.listener:
            return True
        try:
            from pynput import keyboard

            self.listener = keyboard.GlobalHotKeys(self.bindings)
            self.listener.start()
        except Exception as e:
            logger.warning(
                "Failed to register global hotkeys %s: %s. On macOS, grant "
                "Accessibility permission in System Settings > Privacy & Security.",
                ", ".join(self.bindings), e,
            )
            self.listener = None
            return False
        logger.info("Global hotkeys registered: %s", ", ".join(self.bindings))
        return True

    def stop(self):
        if self.listener:
            self.listener.stop()
            self.listener = None
