"""Filesystem access for epic artifacts.

Layout under a project directory::

    .epics/<epic>/spec.md
    .epics/<epic>/research.md
    .epics/<epic>/plan.md
    .epics/<epic>/tasks/<NN>-<slug>.md
    .epics/<epic>/.state

The store never writes artifact content; only ``StateStore`` writes ``.state``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

from .models import TaskInfo
from .parsing import parse_task_status, task_id_from_filename, task_number


logger = logging.getLogger("epicflow.artifacts")

EPICS_DIR_NAME = ".epics"
STATE_FILE_NAME = ".state"
TASKS_DIR_NAME = "tasks"

ARTIFACT_FILES = {
    "spec": "spec.md",
    "research": "research.md",
    "plan": "plan.md",
}


class EpicStore:
    """Read access to the ``.epics`` tree of one project directory."""

    def __init__(self, base_dir: Path | str):
        self.base_dir = Path(base_dir)
        self.epics_dir = self.base_dir / EPICS_DIR_NAME

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def epic_dir(self, epic_name: str) -> Path:
        return self.epics_dir / epic_name

    def tasks_dir(self, epic_name: str) -> Path:
        return self.epic_dir(epic_name) / TASKS_DIR_NAME

    def state_path(self, epic_name: str) -> Path:
        return self.epic_dir(epic_name) / STATE_FILE_NAME

    def artifact_path(self, epic_name: str, artifact: str) -> Path:
        """Get the path of the ``spec``, ``research`` or ``plan`` artifact."""
        try:
            filename = ARTIFACT_FILES[artifact]
        except KeyError:
            raise ValueError(f"Unknown artifact '{artifact}'") from None
        return self.epic_dir(epic_name) / filename

    # ------------------------------------------------------------------
    # Existence checks
    # ------------------------------------------------------------------

    def has_epics(self) -> bool:
        return self.epics_dir.is_dir()

    def epic_exists(self, epic_name: str) -> bool:
        return self.epic_dir(epic_name).is_dir()

    def has_tasks_dir(self, epic_name: str) -> bool:
        return self.tasks_dir(epic_name).is_dir()

    def has_content(self, epic_name: str, artifact: str) -> bool:
        """True when the artifact exists and is not empty, without reading it."""
        path = self.artifact_path(epic_name, artifact)
        try:
            return path.is_file() and path.stat().st_size > 0
        except OSError:
            return False

    def artifact_flags(self, epic_name: str) -> Dict[str, bool]:
        """Report which artifacts exist for an epic."""
        return {
            "spec": self.artifact_path(epic_name, "spec").exists(),
            "research": self.artifact_path(epic_name, "research").exists(),
            "plan": self.artifact_path(epic_name, "plan").exists(),
            "tasks": self.tasks_dir(epic_name).exists(),
            "state": self.state_path(epic_name).exists(),
        }

    def infer_phase(self, epic_name: str) -> str:
        """Derive a phase from the artifacts present, latest phase first."""
        flags = self.artifact_flags(epic_name)
        if flags["tasks"]:
            return "execute"
        if flags["plan"]:
            return "plan"
        if flags["research"]:
            return "research"
        if flags["spec"]:
            return "spec"
        return "new"

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list_epic_names(self) -> List[str]:
        """Return epic directory names in sorted order.

        Raises ``OSError`` if the directory cannot be listed.
        """
        if not self.has_epics():
            return []
        return sorted(entry.name for entry in self.epics_dir.iterdir() if entry.is_dir())

    def task_files(self, epic_name: str) -> List[str]:
        """Return the epic's ``.md`` task file names ordered by numeric prefix."""
        tasks_dir = self.tasks_dir(epic_name)
        if not tasks_dir.is_dir():
            return []
        try:
            names = [entry.name for entry in tasks_dir.iterdir() if entry.name.endswith(".md")]
        except OSError as e:
            logger.warning(f"Could not list tasks for epic '{epic_name}': {e}")
            return []
        return sorted(names, key=lambda name: (task_number(name), name))

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def read_artifact(self, epic_name: str, artifact: str) -> str:
        """Read an artifact, returning ``""`` when it is absent or unreadable."""
        return read_text_if_exists(self.artifact_path(epic_name, artifact))

    def read_task(self, epic_name: str, filename: str) -> str:
        """Read a task file. Raises ``OSError`` on failure."""
        return (self.tasks_dir(epic_name) / filename).read_text(encoding="utf-8")

    def load_tasks(self, epic_name: str) -> List[TaskInfo]:
        """Load every task of an epic with its parsed status, in id order."""
        tasks: List[TaskInfo] = []
        for filename in self.task_files(epic_name):
            content = self.read_task(epic_name, filename)
            tasks.append(
                TaskInfo(
                    task_id=task_id_from_filename(filename),
                    file=filename,
                    path=self.tasks_dir(epic_name) / filename,
                    status=parse_task_status(content),
                    number=task_number(filename),
                )
            )
        return tasks

    def read_state_text(self, epic_name: str) -> Optional[str]:
        """Return the raw ``.state`` contents, or ``None`` if absent or unreadable."""
        path = self.state_path(epic_name)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read state for epic '{epic_name}': {e}")
            return None


def read_text_if_exists(path: Path) -> str:
    """Read a file if it exists, return an empty string otherwise."""
    if not path.exists():
        return ""
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Could not read {path}: {e}")
        return ""
