"""Text grammar for task files and plan dependency declarations.

Task status is read from a ``## Status: <state>`` line anywhere in a task
file. Dependencies live in the plan under a ``## Dependencies`` heading, one
``- <id>: [<id>, <id>]`` line per task. Both readers are pure functions so
the grammar can change without touching resolution logic.
"""

from __future__ import annotations

import re
from typing import Dict, List

from .models import STATUS_BLOCKED, STATUS_DONE, STATUS_IN_PROGRESS, STATUS_PENDING


STATUS_MARKER = "## Status: "

# Checked in order; the first marker present wins.
STATUS_PRIORITY = (STATUS_DONE, STATUS_IN_PROGRESS, STATUS_BLOCKED)

_DEPENDENCIES_SECTION = re.compile(r"## Dependencies\n(.*?)(?=\n##|\Z)", re.DOTALL)
_DEPENDENCY_LINE = re.compile(r"^-\s*(\d+):\s*\[(.*)\]")
_TASK_ID_PREFIX = re.compile(r"^(\d+)")


def status_marker(status: str) -> str:
    """Return the literal line that marks ``status`` in a task file."""
    return f"{STATUS_MARKER}{status}"


def parse_task_status(content: str) -> str:
    """Return the status of a task from its raw text.

    Markers are matched byte-for-byte; ``done`` beats ``in-progress`` beats
    ``blocked`` when several are present, and no marker means ``pending``.
    """
    for status in STATUS_PRIORITY:
        if status_marker(status) in content:
            return status
    return STATUS_PENDING


def parse_dependencies(plan_text: str) -> Dict[str, List[str]]:
    """Build the task dependency graph from the plan's Dependencies section.

    Lines that do not match the declaration pattern are skipped, and empty
    lists normalize to no prerequisites. No section means an empty graph.
    """
    graph: Dict[str, List[str]] = {}
    if not plan_text:
        return graph

    section = _DEPENDENCIES_SECTION.search(plan_text)
    if not section:
        return graph

    for line in section.group(1).strip().split("\n"):
        match = _DEPENDENCY_LINE.match(line)
        if not match:
            continue
        deps = [dep.strip() for dep in match.group(2).split(",")]
        graph[match.group(1)] = [dep for dep in deps if dep]
    return graph


def task_id_from_filename(filename: str) -> str:
    """Return the numeric prefix of a task file name, or ``""`` if it has none."""
    match = _TASK_ID_PREFIX.match(filename)
    return match.group(1) if match else ""


def task_number(filename: str) -> int:
    """Numeric sort key of a task file; files without a prefix sort as 0."""
    task_id = task_id_from_filename(filename)
    return int(task_id) if task_id else 0
