"""
Launch-at-login registration through a per-user LaunchAgent
"""

import logging
import plistlib
import sys
from pathlib import Path

from .exceptions import PersistenceFailed

logger = logging.getLogger(__name__)

LABEL = "com.later.session"


class LoginItem:
    """Writes or removes ``~/Library/LaunchAgents/<label>.plist``"""

    def __init__(
        self,
        agents_dir: Path | None = None,
        label: str = LABEL,
        program_arguments: list[str] | None = None,
    ):
        self.agents_dir = Path(agents_dir) if agents_dir else Path.home() / "Library" / "LaunchAgents"
        self.label = label
        self.program_arguments = program_arguments or [sys.executable, "-m", "later"]

    @property
    def plist_path(self) -> Path:
        return self.agents_dir / f"{self.label}.plist"

    def is_enabled(self) -> bool:
        return self.plist_path.exists()

    def set_enabled(self, enabled: bool) -> None:
        try:
            if enabled:
                self.agents_dir.mkdir(parents=True, exist_ok=True)
                with open(self.plist_path, "wb") as f:
                    plistlib.dump(
                        {
                            "Label": self.label,
                            "ProgramArguments": self.program_arguments,
                            "RunAtLoad": True,
                            "ProcessType": "Interactive",
                        },
                        f,
                    )
                logger.info("Launch at login enabled (%s)", self.plist_path)
            elif self.plist_path.exists():
                self.plist_path.unlink()
                logger.info("Launch at login disabled")
        except OSError as e:
            raise PersistenceFailed(f"could not update {self.plist_path}: {e}") from e
