"""
OS boundary: list, hide, terminate and reopen running applications
"""

import logging
import subprocess
import threading
from dataclasses import dataclass
from typing import Protocol

from .exceptions import EnumerationFailed, PerAppActionFailed

logger = logging.getLogger(__name__)

# NSApplicationActivationPolicyRegular
REGULAR_ACTIVATION_POLICY = 0


@dataclass(frozen=True)
class RunningAppDescriptor:
    """A running user application, identified by value rather than by handle"""

    bundle_identifier: str | None
    bundle_url: str
    display_name: str
    is_frontmost: bool = False

    @property
    def identity(self) -> str:
        return self.bundle_identifier or self.bundle_url

    @property
    def launch_target(self) -> str:
        """What the OS launcher is asked to open: bundle id, else bundle path"""
        return self.bundle_identifier or self.bundle_url

    def to_dict(self) -> dict:
        return {
            "bundle_identifier": self.bundle_identifier,
            "bundle_url": self.bundle_url,
            "display_name": self.display_name,
            "is_frontmost": self.is_frontmost,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RunningAppDescriptor":
        return cls(
            bundle_identifier=data.get("bundle_identifier") or None,
            bundle_url=data.get("bundle_url") or "",
            display_name=data.get("display_name") or "",
            is_frontmost=bool(data.get("is_frontmost", False)),
        )


def is_executable_path(path: str) -> bool:
    """True for a binary inside a bundle rather than the bundle itself"""
    return "/Contents/MacOS/" in path or path.rstrip("/").endswith("/Contents/MacOS")


class ProcessActions(Protocol):
    """What the session engine needs from the operating system"""

    def list_running_applications(self) -> list[RunningAppDescriptor]: ...

    def hide(self, app: RunningAppDescriptor) -> None: ...

    def terminate(self, app: RunningAppDescriptor) -> None: ...

    def open(self, target: str) -> None: ...


class ProcessActionAdapter:
    """NSWorkspace backed implementation of ``ProcessActions``"""

    def __init__(self, open_timeout: float = 10.0):
        # AppKit is only importable on macOS; keep the rest of the engine usable elsewhere.
        import AppKit

        self._appkit = AppKit
        self.workspace = AppKit.NSWorkspace.sharedWorkspace()
        self.open_timeout = open_timeout

    # ------------------------------
    # Enumeration
    # ------------------------------
    def _describe(self, app_ref, frontmost_pid: int | None) -> RunningAppDescriptor | None:
        url = app_ref.bundleURL()
        if url is None:
            return None
        return RunningAppDescriptor(
            bundle_identifier=app_ref.bundleIdentifier() or None,
            bundle_url=str(url.path()),
            display_name=str(app_ref.localizedName() or ""),
            is_frontmost=frontmost_pid is not None
            and app_ref.processIdentifier() == frontmost_pid,
        )

    def list_running_applications(self) -> list[RunningAppDescriptor]:
        """Regular apps in workspace order, excluding Later itself"""
        try:
            running = self.workspace.runningApplications()
            frontmost = self.workspace.frontmostApplication()
            own_pid = self._appkit.NSRunningApplication.currentApplication().processIdentifier()
        except Exception as e:
            raise EnumerationFailed(f"cannot query running applications: {e}") from e
        if running is None:
            raise EnumerationFailed("workspace returned no application list")

        frontmost_pid = frontmost.processIdentifier() if frontmost is not None else None
        apps: list[RunningAppDescriptor] = []
        for app_ref in running:
            try:
                if app_ref.activationPolicy() != REGULAR_ACTIVATION_POLICY:
                    continue
                if app_ref.processIdentifier() == own_pid:
                    continue
                descriptor = self._describe(app_ref, frontmost_pid)
            except Exception as e:
                logger.warning("Skipping unreadable application entry: %s", e)
                continue
            if descriptor is None:
                logger.debug("Skipping application without bundle: %s", app_ref)
                continue
            apps.append(descriptor)

        # The frontmost app is reported separately by the workspace and may be missing above.
        if frontmost is not None and frontmost_pid != own_pid:
            if not any(a.is_frontmost for a in apps):
                descriptor = self._describe(frontmost, frontmost_pid)
                if descriptor is not None:
                    apps.append(descriptor)
        return apps

    # ------------------------------
    # Save actions
    # ------------------------------
    def _running_refs(self, app: RunningAppDescriptor) -> list:
        if app.bundle_identifier:
            refs = self._appkit.NSRunningApplication.runningApplicationsWithBundleIdentifier_(
                app.bundle_identifier
            )
            return list(refs or [])
        return [
            ref
            for ref in self.workspace.runningApplications()
            if ref.bundleURL() is not None and str(ref.bundleURL().path()) == app.bundle_url
        ]

    def hide(self, app: RunningAppDescriptor) -> None:
        refs = self._running_refs(app)
        if not refs:
            raise PerAppActionFailed(app.display_name, "not running")
        for ref in refs:
            if ref.isHidden():
                continue
            if not ref.hide():
                raise PerAppActionFailed(app.display_name, "hide request refused")

    def terminate(self, app: RunningAppDescriptor) -> None:
        refs = self._running_refs(app)
        if not refs:
            raise PerAppActionFailed(app.display_name, "not running")
        for ref in refs:
            if not ref.terminate():
                raise PerAppActionFailed(app.display_name, "terminate request refused")

    # ------------------------------
    # Restore
    # ------------------------------
    def _application_url(self, target: str):
        if target.startswith("/"):
            return self._appkit.NSURL.fileURLWithPath_(target)
        url = self.workspace.URLForApplicationWithBundleIdentifier_(target)
        if url is None:
            raise PerAppActionFailed(target, "no application registered for bundle id")
        return url

    def open(self, target: str) -> None:
        """Open an application bundle through Launch Services"""
        if not target:
            raise PerAppActionFailed(target, "empty launch target")
        if is_executable_path(target):
            raise PerAppActionFailed(target, "refusing to launch a raw executable")

        url = self._application_url(target)
        done = threading.Event()
        errors: list[str] = []

        def completion(app_ref, error):
            if error is not None:
                errors.append(str(error.localizedDescription()))
            done.set()

        try:
            configuration = self._appkit.NSWorkspaceOpenConfiguration.configuration()
            self.workspace.openApplicationAtURL_configuration_completionHandler_(
                url, configuration, completion
            )
        except Exception as e:
            logger.warning("NSWorkspace open failed for %s (%s), trying open(1)", target, e)
            self._open_with_command(target)
            return

        if not done.wait(self.open_timeout):
            raise PerAppActionFailed(target, "timed out waiting for launch")
        if errors:
            raise PerAppActionFailed(target, errors[0])

    def _open_with_command(self, target: str) -> None:
        args = ["open", target] if target.startswith("/") else ["open", "-b", target]
        try:
            subprocess.run(args, check=True, capture_output=True, timeout=self.open_timeout)
        except (subprocess.SubprocessError, OSError) as e:
            raise PerAppActionFailed(target, f"open(1) failed: {e}") from e
