"""Runtime settings for Epicflow, read from environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


PROJECT_ROOT_ENV = "EPICFLOW_PROJECT_ROOT"
LOG_LEVEL_ENV = "EPICFLOW_LOG_LEVEL"
LOG_FILE_ENV = "EPICFLOW_LOG_FILE"
NOTIFICATIONS_ENV = "EPICFLOW_NOTIFICATIONS"

_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(slots=True)
class Settings:
    """Environment-derived configuration shared by the server and the controller."""

    project_root: Optional[Path] = None
    log_level: int = logging.INFO
    log_file: Optional[Path] = None
    notifications: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the current process environment."""
        root = os.getenv(PROJECT_ROOT_ENV)
        log_file = os.getenv(LOG_FILE_ENV)
        level_name = os.getenv(LOG_LEVEL_ENV, "INFO").strip().upper()
        level = logging.getLevelName(level_name)
        if not isinstance(level, int):
            level = logging.INFO
        notifications = os.getenv(NOTIFICATIONS_ENV, "1").strip().lower() not in _FALSE_VALUES
        return cls(
            project_root=Path(root).expanduser() if root else None,
            log_level=level,
            log_file=Path(log_file).expanduser() if log_file else None,
            notifications=notifications,
        )
