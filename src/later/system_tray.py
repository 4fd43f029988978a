"""
System tray icon for Later
"""

import os
import sys
from PyQt6.QtWidgets import QSystemTrayIcon, QMenu, QApplication, QStyle
from PyQt6.QtGui import QIcon, QAction, QActionGroup

from .app_state import AppState, AppStateView
from .reopen_timer import DEFAULT_OPTION_LABEL, TIMER_OPTIONS
from .settings_dialog import SettingsDialog


class SystemTrayIcon(QSystemTrayIcon):
    """Tray menu exposing the session intents and quick settings"""

    def __init__(self, app_state: AppState, config, parent=None):
        super().__init__(parent)
        self.app_state = app_state
        self.config = config

        self.set_icon()
        self.create_context_menu()

        self.app_state.state_changed.connect(self.render)
        self.app_state.warning.connect(self.show_warning)
        self.app_state.error.connect(self.show_error)

        self.render(self.app_state.state)
        self.show()

    def set_icon(self):
        path = self._resource_path("assets/later-icon.png")
        icon = QIcon(path)
        if icon.isNull():
            icon = QApplication.style().standardIcon(QStyle.StandardPixmap.SP_DialogSaveButton)
        self.setIcon(icon)
        self.setToolTip("Later - Save your session for later")

    def _resource_path(self, relative):
        base = getattr(sys, "_MEIPASS", None)
        if base:
            p = os.path.join(base, relative)
            if os.path.exists(p):
                return p
        here = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
        p = os.path.join(here, relative)
        if os.path.exists(p):
            return p
        return relative

    def create_context_menu(self):
        """Create the context menu for the tray icon"""
        menu = QMenu()

        self.session_info_action = QAction("No saved session", self)
        self.session_info_action.setEnabled(False)
        menu.addAction(self.session_info_action)

        self.timer_action = QAction("", self)
        self.timer_action.setEnabled(False)
        menu.addAction(self.timer_action)

        menu.addSeparator()

        self.save_action = QAction("Save Session", self)
        self.save_action.triggered.connect(lambda: self.app_state.save())
        menu.addAction(self.save_action)

        self.restore_action = QAction("Restore Session", self)
        self.restore_action.triggered.connect(lambda: self.app_state.restore())
        menu.addAction(self.restore_action)

        self.cancel_timer_action = QAction("Cancel Timer", self)
        self.cancel_timer_action.triggered.connect(lambda: self.app_state.cancel_timer())
        menu.addAction(self.cancel_timer_action)

        self.clear_action = QAction("Clear Session", self)
        self.clear_action.triggered.connect(lambda: self.app_state.clear_session())
        menu.addAction(self.clear_action)

        menu.addSeparator()

        self.quit_apps_action = self._toggle(
            menu, "Quit Apps Instead of Hiding", self.app_state.set_quit_apps_instead_of_hiding
        )
        self.ignore_system_action = self._toggle(
            menu, "Ignore System Apps", self.app_state.set_ignore_system_apps
        )
        self.wait_action = self._toggle(
            menu, "Wait Before Restoring", self.app_state.set_wait_before_restore
        )

        timer_menu = menu.addMenu("Restore After")
        self.timer_group = QActionGroup(self)
        self.timer_group.setExclusive(True)
        self.timer_option_actions = {}
        # None stands for the default delay.
        for option in (None, *TIMER_OPTIONS):
            action = QAction(option or DEFAULT_OPTION_LABEL, self)
            action.setCheckable(True)
            action.triggered.connect(
                lambda checked, o=option: self.app_state.set_selected_timer_option(o)
            )
            self.timer_group.addAction(action)
            timer_menu.addAction(action)
            self.timer_option_actions[option] = action

        self.login_action = self._toggle(
            menu, "Launch at Login", self.app_state.set_launch_at_login
        )

        menu.addSeparator()

        settings_action = QAction("Settings...", self)
        settings_action.triggered.connect(self.show_settings)
        menu.addAction(settings_action)

        exit_action = QAction("Quit Later", self)
        exit_action.triggered.connect(self.exit_application)
        menu.addAction(exit_action)

        self.setContextMenu(menu)

    def _toggle(self, menu, title, setter):
        action = QAction(title, self)
        action.setCheckable(True)
        action.toggled.connect(setter)
        menu.addAction(action)
        return action

    def _set_checked(self, action, checked):
        action.blockSignals(True)
        action.setChecked(checked)
        action.blockSignals(False)

    def render(self, state: AppStateView):
        """Re-render the menu from the published state"""
        if state.has_session:
            self.session_info_action.setText(f"{state.session_label} ({state.session_date})")
        else:
            self.session_info_action.setText(state.session_label)
        self.timer_action.setText(state.timer_label)
        self.timer_action.setVisible(state.is_timer_visible)
        self.cancel_timer_action.setVisible(state.is_timer_visible)

        self.save_action.setEnabled(state.is_save_enabled)
        self.restore_action.setEnabled(state.has_session and not state.is_busy)
        self.clear_action.setEnabled(state.has_session and not state.is_busy)

        settings = state.settings
        self._set_checked(self.quit_apps_action, settings.quit_apps_instead_of_hiding)
        self._set_checked(self.ignore_system_action, settings.ignore_system_apps)
        self._set_checked(self.wait_action, settings.wait_before_restore)
        self._set_checked(self.login_action, settings.launch_at_login)
        selected = settings.selected_timer_option
        if selected not in TIMER_OPTIONS:
            selected = None
        for option, action in self.timer_option_actions.items():
            self._set_checked(action, option == selected)

        tooltip = "Later"
        if state.is_timer_visible:
            tooltip = f"Later - {state.timer_label}"
        elif state.has_session:
            tooltip = f"Later - {state.session_label}"
        self.setToolTip(tooltip)

    def show_warning(self, message):
        self.showMessage("Later", message, QSystemTrayIcon.MessageIcon.Warning, 4000)

    def show_error(self, message):
        self.showMessage("Later", message, QSystemTrayIcon.MessageIcon.Critical, 5000)

    def show_settings(self):
        """Show settings dialog"""
        dialog = SettingsDialog(self.app_state, self.config)
        dialog.exec()

    def exit_application(self):
        """Exit the application"""
        QApplication.quit()
