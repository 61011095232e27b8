"""Desktop notifications, best-effort.

Backends are tried in order until one succeeds; the last resort is a log
record. Nothing here raises.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from typing import List, Optional, Sequence


logger = logging.getLogger("epicflow.notify")

# Seconds a notification command may run before it is abandoned
NOTIFY_TIMEOUT = 5


def _run_quiet(*cmd: str) -> bool:
    """Run a command silently; return whether it exited cleanly."""
    try:
        subprocess.run(
            cmd,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=True,
            timeout=NOTIFY_TIMEOUT,
        )
    except (FileNotFoundError, OSError, subprocess.SubprocessError):
        return False
    return True


def _applescript_string(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


class NotificationBackend:
    """One way of showing a popup."""

    name = "base"
    executable: Optional[str] = None

    def available(self) -> bool:
        return self.executable is None or shutil.which(self.executable) is not None

    def send(self, title: str, message: str) -> bool:
        raise NotImplementedError


class OsaScriptBackend(NotificationBackend):
    """macOS notification center via ``osascript``."""

    name = "osascript"
    executable = "osascript"

    def send(self, title: str, message: str) -> bool:
        script = f"display notification {_applescript_string(message)} with title {_applescript_string(title)}"
        return _run_quiet("osascript", "-e", script)


class NotifySendBackend(NotificationBackend):
    """freedesktop notifications via ``notify-send``."""

    name = "notify-send"
    executable = "notify-send"

    def send(self, title: str, message: str) -> bool:
        return _run_quiet("notify-send", title, message)


DEFAULT_BACKENDS = (OsaScriptBackend, NotifySendBackend)


class Notifier:
    """Deliver a notification through the first backend that works.

    Falls back to an info log record ``[<title>] <message>``.
    """

    def __init__(self, backends: Optional[Sequence[NotificationBackend]] = None, *, enabled: bool = True):
        self.backends: List[NotificationBackend] = (
            list(backends) if backends is not None else [cls() for cls in DEFAULT_BACKENDS]
        )
        self.enabled = enabled

    def notify(self, title: str, message: str) -> Optional[str]:
        """Show a notification; return the name of the backend used, or ``None`` for the log fallback."""
        if self.enabled:
            for backend in self.backends:
                try:
                    if backend.available() and backend.send(title, message):
                        return backend.name
                except Exception as e:
                    logger.debug(f"Notification backend {backend.name} failed: {e}")
        logger.info(f"[{title}] {message}")
        return None
