"""Data models for Epicflow.

This module contains the core data structures used throughout Epicflow,
representing epic state records, autonomous-continuation sessions, tasks,
availability reports and controller decisions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


STATUS_DONE = "done"
STATUS_IN_PROGRESS = "in-progress"
STATUS_BLOCKED = "blocked"
STATUS_PENDING = "pending"

TASK_STATUSES = (STATUS_DONE, STATUS_IN_PROGRESS, STATUS_BLOCKED, STATUS_PENDING)

PHASES = ("new", "spec", "research", "plan", "execute", "unknown")

_STATE_FIELDS = (
    "name",
    "currentPhase",
    "specComplete",
    "researchComplete",
    "planComplete",
    "executeComplete",
    "lastUpdated",
    "yolo",
)


_YOLO_FIELDS = ("active", "iteration", "maxIterations", "startedAt")


def utc_timestamp() -> str:
    """Return the current UTC time as an ISO-8601 string with a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(slots=True)
class YoloState:
    """Autonomous-continuation sub-record of an epic.

    Like ``EpicState``, unknown keys are carried in ``extra``.
    """

    active: bool = False
    iteration: int = 0
    max_iterations: int = 0
    started_at: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the on-disk representation."""
        data: Dict[str, Any] = dict(self.extra)
        data.update(
            {
                "active": self.active,
                "iteration": self.iteration,
                "maxIterations": self.max_iterations,
            }
        )
        if self.started_at is not None:
            data["startedAt"] = self.started_at
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "YoloState":
        """Create from the on-disk representation."""
        return cls(
            active=bool(data.get("active", False)),
            iteration=int(data.get("iteration") or 0),
            max_iterations=int(data.get("maxIterations") or 0),
            started_at=data.get("startedAt"),
            extra={k: v for k, v in data.items() if k not in _YOLO_FIELDS},
        )

    @property
    def bounded(self) -> bool:
        """True when an iteration cap is configured (0 means unbounded)."""
        return self.max_iterations > 0

    def limit_reached(self) -> bool:
        return self.bounded and self.iteration >= self.max_iterations

    def iteration_label(self, iteration: Optional[int] = None) -> str:
        """Render ``i/max`` for bounded sessions and ``i`` otherwise."""
        current = self.iteration if iteration is None else iteration
        if self.bounded:
            return f"{current}/{self.max_iterations}"
        return str(current)


@dataclass(slots=True)
class EpicState:
    """Parsed contents of an epic's ``.state`` file.

    Keys the model does not know about are kept in ``extra`` so that a
    read-modify-write cycle never drops them.
    """

    name: str
    current_phase: str = "unknown"
    spec_complete: bool = False
    research_complete: bool = False
    plan_complete: bool = False
    execute_complete: bool = False
    last_updated: Optional[str] = None
    yolo: Optional[YoloState] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the on-disk representation."""
        data: Dict[str, Any] = dict(self.extra)
        data.update(
            {
                "name": self.name,
                "currentPhase": self.current_phase,
                "specComplete": self.spec_complete,
                "researchComplete": self.research_complete,
                "planComplete": self.plan_complete,
                "executeComplete": self.execute_complete,
                "lastUpdated": self.last_updated,
            }
        )
        if self.yolo is not None:
            data["yolo"] = self.yolo.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, default_name: str = "") -> "EpicState":
        """Create from the on-disk representation."""
        yolo_data = data.get("yolo")
        return cls(
            name=data.get("name") or default_name,
            current_phase=data.get("currentPhase") or "unknown",
            spec_complete=bool(data.get("specComplete", False)),
            research_complete=bool(data.get("researchComplete", False)),
            plan_complete=bool(data.get("planComplete", False)),
            execute_complete=bool(data.get("executeComplete", False)),
            last_updated=data.get("lastUpdated"),
            yolo=YoloState.from_dict(yolo_data) if isinstance(yolo_data, dict) else None,
            extra={k: v for k, v in data.items() if k not in _STATE_FIELDS},
        )

    @property
    def yolo_active(self) -> bool:
        return bool(self.yolo and self.yolo.active)

    def merged(self, updates: Dict[str, Any], *, timestamp: Optional[str] = None) -> "EpicState":
        """Return a new state with ``updates`` applied.

        Top-level keys are replaced. ``yolo`` is the only nested record and
        is merged key by key, so an update carrying just ``iteration`` keeps
        ``active`` and ``maxIterations``. ``lastUpdated`` is always refreshed.
        """
        data = self.to_dict()
        for key, value in updates.items():
            if key == "yolo" and isinstance(value, dict) and isinstance(data.get("yolo"), dict):
                data["yolo"] = {**data["yolo"], **value}
            else:
                data[key] = value
        data["lastUpdated"] = timestamp or utc_timestamp()
        return EpicState.from_dict(data, default_name=self.name)


@dataclass(slots=True)
class TaskInfo:
    """One task file of an epic, with its parsed status."""

    task_id: str
    file: str
    path: Path
    status: str = STATUS_PENDING
    number: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"taskId": self.task_id, "file": self.file, "status": self.status}


@dataclass(slots=True)
class BlockedTask:
    """A pending or in-progress task waiting on unfinished prerequisites."""

    task_id: str
    file: str
    blocked_by: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {"taskId": self.task_id, "file": self.file, "blockedBy": list(self.blocked_by)}


@dataclass(slots=True)
class AvailabilityReport:
    """Partition of an epic's tasks into available and dependency-blocked."""

    available: List[TaskInfo] = field(default_factory=list)
    blocked: List[BlockedTask] = field(default_factory=list)
    remaining: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "available": [task.to_dict() for task in self.available],
            "blocked": [task.to_dict() for task in self.blocked],
        }


@dataclass(slots=True)
class TaskStats:
    """Per-status task counts for an epic."""

    total: int = 0
    done: int = 0
    in_progress: int = 0
    pending: int = 0
    blocked: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "done": self.done,
            "inProgress": self.in_progress,
            "pending": self.pending,
            "blocked": self.blocked,
        }


@dataclass(slots=True)
class ContinuationDecision:
    """Outcome of one idle-signal cycle of the continuation controller.

    ``action`` is one of ``idle`` (no active epic), ``complete``, ``stopped``,
    ``continue`` or ``error``.
    """

    action: str
    epic_name: Optional[str] = None
    remaining: Optional[int] = None
    iteration: Optional[int] = None
    max_iterations: Optional[int] = None
    message: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "action": self.action,
            "epic": self.epic_name,
            "remaining": self.remaining,
            "iteration": self.iteration,
            "maxIterations": self.max_iterations,
            "message": self.message,
        }
        if self.error:
            data["error"] = self.error
        return data
