"""Task availability resolution.

Combines parsed task statuses with the plan's dependency graph. The graph
is rebuilt on every call; there is no cycle detection, so a cycle simply
leaves its tasks blocked forever.
"""

from __future__ import annotations

from typing import Dict, Iterable, List

from .artifacts import EpicStore
from .models import (
    STATUS_BLOCKED,
    STATUS_DONE,
    STATUS_IN_PROGRESS,
    STATUS_PENDING,
    AvailabilityReport,
    BlockedTask,
    TaskInfo,
    TaskStats,
)
from .parsing import parse_dependencies


_OPEN_STATUSES = (STATUS_PENDING, STATUS_IN_PROGRESS)


def resolve_availability(tasks: List[TaskInfo], graph: Dict[str, List[str]]) -> AvailabilityReport:
    """Partition open tasks into available and dependency-blocked.

    Tasks that are ``done`` or marked ``blocked`` in their own file appear in
    neither list. Input order (ascending id) is preserved.
    """
    statuses = {task.task_id: task.status for task in tasks}
    report = AvailabilityReport(remaining=count_remaining(tasks))

    for task in tasks:
        if task.status not in _OPEN_STATUSES:
            continue
        unmet = [dep for dep in graph.get(task.task_id, []) if statuses.get(dep) != STATUS_DONE]
        if unmet:
            report.blocked.append(BlockedTask(task_id=task.task_id, file=task.file, blocked_by=unmet))
        else:
            report.available.append(task)
    return report


def count_remaining(tasks: Iterable[TaskInfo]) -> int:
    """Count tasks that are neither done nor blocked, whatever their dependencies."""
    return sum(1 for task in tasks if task.status not in (STATUS_DONE, STATUS_BLOCKED))


def task_stats(tasks: Iterable[TaskInfo]) -> TaskStats:
    stats = TaskStats()
    for task in tasks:
        stats.total += 1
        if task.status == STATUS_DONE:
            stats.done += 1
        elif task.status == STATUS_IN_PROGRESS:
            stats.in_progress += 1
        elif task.status == STATUS_BLOCKED:
            stats.blocked += 1
        else:
            stats.pending += 1
    return stats


def epic_availability(store: EpicStore, epic_name: str) -> AvailabilityReport:
    """Load an epic's tasks and plan from disk and resolve availability."""
    tasks = store.load_tasks(epic_name)
    graph = parse_dependencies(store.read_artifact(epic_name, "plan"))
    return resolve_availability(tasks, graph)


def epic_remaining(store: EpicStore, epic_name: str) -> int:
    """Remaining-task count for an epic. Raises ``OSError`` if a task cannot be read."""
    return count_remaining(store.load_tasks(epic_name))
