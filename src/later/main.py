"""
Later - save the running apps now, bring them back later
"""

import logging
import platform
import sys
from PyQt6.QtWidgets import QApplication

from .app_state import AppState
from .config import Config
from .hotkeys import HotkeyBindings
from .login_item import LoginItem
from .process_actions import ProcessActionAdapter
from .reopen_timer import ReopenTimerService
from .session_service import SessionService
from .session_store import SessionStore
from .settings_store import SettingsStore
from .system_tray import SystemTrayIcon

logger = logging.getLogger(__name__)


def main():
    """Main application entry point"""
    config = Config()
    logging.basicConfig(
        level=str(config.get("log_level", "INFO")).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if platform.system() != "Darwin":
        logger.error("Later only runs on macOS")
        return 1

    app = QApplication(sys.argv)
    # Lives in the menu bar; closing a dialog must not quit.
    app.setQuitOnLastWindowClosed(False)

    app.setApplicationName("Later")
    app.setApplicationVersion("0.1.0")
    app.setOrganizationName("Later")

    settings_store = SettingsStore(config)
    session_service = SessionService(
        ProcessActionAdapter(open_timeout=float(config.get("session.open_timeout", 10))),
        SessionStore(config.database_path),
        max_workers=int(config.get("session.max_workers", 8)),
    )
    timer = ReopenTimerService(session_service)
    app_state = AppState(settings_store, session_service, timer, login_item=LoginItem())
    app_state.sync_login_item()

    tray = SystemTrayIcon(app_state, config)

    hotkeys = HotkeyBindings(
        config.get("hotkeys.save_session", "Ctrl+Shift+S"),
        config.get("hotkeys.restore_session", "Ctrl+Shift+R"),
        on_save=app_state.save,
        on_restore=app_state.restore,
    )
    hotkeys.start()

    def shutdown():
        hotkeys.stop()
        app_state.shutdown()

    app.aboutToQuit.connect(shutdown)

    logger.info("Later started")
    exit_code = app.exec()
    tray.hide()
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
