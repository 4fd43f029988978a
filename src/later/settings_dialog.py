from PyQt6.QtWidgets import (
    QDialog,
    QVBoxLayout,
    QTabWidget,
    QWidget,
    QFormLayout,
    QHBoxLayout,
    QCheckBox,
    QComboBox,
    QLineEdit,
    QListWidget,
    QPushButton,
    QDialogButtonBox,
    QLabel,
    QMessageBox,
)
from PyQt6.QtCore import Qt

from .exceptions import PersistenceFailed
from .reopen_timer import DEFAULT_OPTION_LABEL, TIMER_OPTIONS


def _known_option(settings):
    option = settings.selected_timer_option
    return option if option in TIMER_OPTIONS else None


class SettingsDialog(QDialog):
    def __init__(self, app_state, config, parent=None):
        super().__init__(parent)
        self.app_state = app_state
        self.config = config
        self.setWindowTitle("Later Settings")
        self.resize(520, 400)
        root = QVBoxLayout(self)
        self.tabs = QTabWidget()
        root.addWidget(self.tabs)
        self.general_tab = QWidget()
        self.ignored_tab = QWidget()
        self.hotkeys_tab = QWidget()
        self.tabs.addTab(self.general_tab, "General")
        self.tabs.addTab(self.ignored_tab, "Ignored Apps")
        self.tabs.addTab(self.hotkeys_tab, "Hotkeys")
        settings = self.app_state.state.settings
        self._build_general(settings)
        self._build_ignored(settings)
        self._build_hotkeys()
        buttons = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Ok
            | QDialogButtonBox.StandardButton.Apply
            | QDialogButtonBox.StandardButton.Cancel,
            Qt.Orientation.Horizontal,
            self,
        )
        buttons.accepted.connect(self._apply_and_accept)
        buttons.rejected.connect(self.reject)
        buttons.button(QDialogButtonBox.StandardButton.Apply).clicked.connect(self._apply)
        root.addWidget(buttons)
        self._apply_stylesheet()

    def _build_general(self, settings):
        layout = QFormLayout(self.general_tab)
        self.ignore_system_chk = QCheckBox("Ignore system apps (Finder, System Settings, ...)")
        self.ignore_system_chk.setChecked(settings.ignore_system_apps)
        layout.addRow(self.ignore_system_chk)
        self.quit_apps_chk = QCheckBox("Quit apps instead of hiding them")
        self.quit_apps_chk.setChecked(settings.quit_apps_instead_of_hiding)
        layout.addRow(self.quit_apps_chk)
        self.wait_chk = QCheckBox("Wait before restoring")
        self.wait_chk.setChecked(settings.wait_before_restore)
        layout.addRow(self.wait_chk)
        self.timer_combo = QComboBox()
        # Index 0 stores no option and keeps the default delay.
        self.timer_combo.addItems([DEFAULT_OPTION_LABEL, *TIMER_OPTIONS])
        option = _known_option(settings)
        self.timer_combo.setCurrentIndex(TIMER_OPTIONS.index(option) + 1 if option else 0)
        layout.addRow(QLabel("Restore after"), self.timer_combo)
        self.login_chk = QCheckBox("Launch at login")
        self.login_chk.setChecked(settings.launch_at_login)
        layout.addRow(self.login_chk)

    def _build_ignored(self, settings):
        layout = QVBoxLayout(self.ignored_tab)
        layout.addWidget(QLabel("Apps with these bundle identifiers are never hidden or quit:"))
        self.ignored_list = QListWidget()
        self.ignored_list.addItems(sorted(settings.custom_ignored_bundle_ids))
        layout.addWidget(self.ignored_list)
        row = QHBoxLayout()
        self.bundle_id_edit = QLineEdit()
        self.bundle_id_edit.setPlaceholderText("com.example.App")
        add_btn = QPushButton("Add")
        add_btn.clicked.connect(self._add_bundle_id)
        remove_btn = QPushButton("Remove")
        remove_btn.clicked.connect(self._remove_selected)
        row.addWidget(self.bundle_id_edit)
        row.addWidget(add_btn)
        row.addWidget(remove_btn)
        layout.addLayout(row)

    def _build_hotkeys(self):
        layout = QFormLayout(self.hotkeys_tab)
        self.hk_save_edit = QLineEdit(self.config.get("hotkeys.save_session", "Ctrl+Shift+S"))
        self.hk_restore_edit = QLineEdit(self.config.get("hotkeys.restore_session", "Ctrl+Shift+R"))
        layout.addRow(QLabel("Save session"), self.hk_save_edit)
        layout.addRow(QLabel("Restore session"), self.hk_restore_edit)
        layout.addRow(QLabel("Hotkey changes apply after restarting Later."))

    def _add_bundle_id(self):
        bundle_id = self.bundle_id_edit.text().strip()
        if bundle_id and not self.ignored_list.findItems(bundle_id, Qt.MatchFlag.MatchExactly):
            self.ignored_list.addItem(bundle_id)
        self.bundle_id_edit.clear()

    def _remove_selected(self):
        for item in self.ignored_list.selectedItems():
            self.ignored_list.takeItem(self.ignored_list.row(item))

    def _selected_option(self):
        index = self.timer_combo.currentIndex()
        return TIMER_OPTIONS[index - 1] if index > 0 else None

    def _ignored_ids(self):
        return [self.ignored_list.item(i).text() for i in range(self.ignored_list.count())]

    def _apply(self):
        settings = self.app_state.state.settings
        if self.ignore_system_chk.isChecked() != settings.ignore_system_apps:
            self.app_state.set_ignore_system_apps(self.ignore_system_chk.isChecked())
        if self.quit_apps_chk.isChecked() != settings.quit_apps_instead_of_hiding:
            self.app_state.set_quit_apps_instead_of_hiding(self.quit_apps_chk.isChecked())
        if self.wait_chk.isChecked() != settings.wait_before_restore:
            self.app_state.set_wait_before_restore(self.wait_chk.isChecked())
        if self._selected_option() != _known_option(settings):
            self.app_state.set_selected_timer_option(self._selected_option())
        if self.login_chk.isChecked() != settings.launch_at_login:
            self.app_state.set_launch_at_login(self.login_chk.isChecked())
        if frozenset(self._ignored_ids()) != settings.custom_ignored_bundle_ids:
            self.app_state.set_custom_ignored_bundle_ids(self._ignored_ids())
        try:
            self.config.set("hotkeys.save_session", self.hk_save_edit.text().strip())
            self.config.set("hotkeys.restore_session", self.hk_restore_edit.text().strip())
        except PersistenceFailed as e:
            QMessageBox.warning(self, "Later", f"Hotkeys not saved: {e}")

    def _apply_and_accept(self):
        self._apply()
        self.accept()

    def _apply_stylesheet(self):
        accent = "#3A7BD5"
        fg = "#2D2D2D"
        border = "#D0D0D0"
        css = f"""
        QDialog {{ background-color: #FFFFFF; font-size: 14px; }}
        QTabWidget::pane {{
            border: 1px solid {border};
            border-radius: 8px;
            padding: 6px;
        }}
        QTabBar::tab {{
            background: #F5F5F5;
            color: {fg};
            border: 1px solid {border};
            padding: 6px 14px;
            margin: 2px;
            border-top-left-radius: 6px;
            border-top-right-radius: 6px;
        }}
        QTabBar::tab:selected {{ background: {accent}; color: white; }}
        QLabel, QCheckBox {{ color: {fg}; }}
        QLineEdit, QComboBox, QListWidget {{
            border: 1px solid {border};
            border-radius: 6px;
            padding: 4px 6px;
        }}
        QDialogButtonBox QPushButton {{
            background: {accent};
            color: white;
            border: none;
            padding: 8px 16px;
            border-radius: 6px;
        }}
        """
        self.setStyleSheet(css)
