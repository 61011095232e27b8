"""Shared fixtures for building ``.epics`` trees on disk."""

import json
from pathlib import Path
from typing import Dict, Optional

import pytest

from epicflow.notify import Notifier


def task_text(title: str, status: Optional[str] = "pending", body: str = "Do the thing.") -> str:
    """Render a task file the way planning writes them."""
    lines = [f"# {title}", ""]
    if status is not None:
        lines += [f"## Status: {status}", ""]
    lines += ["## Steps", "", body, "", "## Done When", "", "- It works", ""]
    return "\n".join(lines)


class EpicBuilder:
    """Write epic artifacts under a project directory."""

    def __init__(self, root: Path):
        self.root = root

    def epic(
        self,
        name: str,
        *,
        spec: Optional[str] = "# Spec\n\nBuild it.\n",
        research: Optional[str] = None,
        plan: Optional[str] = None,
        tasks: Optional[Dict[str, str]] = None,
        state: Optional[dict] = None,
        raw_state: Optional[str] = None,
    ) -> Path:
        epic_dir = self.root / ".epics" / name
        epic_dir.mkdir(parents=True, exist_ok=True)
        if spec is not None:
            (epic_dir / "spec.md").write_text(spec, encoding="utf-8")
        if research is not None:
            (epic_dir / "research.md").write_text(research, encoding="utf-8")
        if plan is not None:
            (epic_dir / "plan.md").write_text(plan, encoding="utf-8")
        if tasks is not None:
            tasks_dir = epic_dir / "tasks"
            tasks_dir.mkdir(exist_ok=True)
            for filename, content in tasks.items():
                (tasks_dir / filename).write_text(content, encoding="utf-8")
        if state is not None:
            (epic_dir / ".state").write_text(json.dumps(state, indent=2), encoding="utf-8")
        if raw_state is not None:
            (epic_dir / ".state").write_text(raw_state, encoding="utf-8")
        return epic_dir

    def read_state(self, name: str) -> dict:
        return json.loads((self.root / ".epics" / name / ".state").read_text(encoding="utf-8"))

    def set_status(self, name: str, filename: str, old: str, new: str) -> None:
        path = self.root / ".epics" / name / "tasks" / filename
        text = path.read_text(encoding="utf-8")
        path.write_text(text.replace(f"## Status: {old}", f"## Status: {new}"), encoding="utf-8")


def yolo_state(name: str, *, active: bool = True, iteration: int = 0, max_iterations: int = 0) -> dict:
    return {
        "name": name,
        "currentPhase": "execute",
        "specComplete": True,
        "researchComplete": True,
        "planComplete": True,
        "executeComplete": False,
        "lastUpdated": "2026-01-01T00:00:00.000Z",
        "yolo": {
            "active": active,
            "iteration": iteration,
            "maxIterations": max_iterations,
            "startedAt": "2026-01-01T00:00:00.000Z",
        },
    }


@pytest.fixture
def epics(tmp_path):
    """Builder for epics rooted at a temporary project directory."""
    return EpicBuilder(tmp_path)


@pytest.fixture
def quiet_notifier():
    """Notifier that only logs, so tests never spawn desktop popups."""
    return Notifier(backends=[], enabled=False)
