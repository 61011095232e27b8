"""Workflow operations for Epicflow.

This module provides the tool-facing operations over a project's epics.
Every method returns a JSON-serializable dict; failures are reported in
``error`` / ``success: False`` fields and never raised to the caller.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .artifacts import EpicStore
from .context import ContextAssembler
from .controller import ContinuationController, SendMessage
from .epic_logging import log_error_with_context, log_operation
from .errors import EpicWorkflowError
from .models import EpicState, TaskStats
from .notify import Notifier
from .resolver import epic_availability, task_stats
from .state import StateStore


logger = logging.getLogger("epicflow.workflow")


def next_action(epic_name: str, artifacts: Dict[str, bool], stats: TaskStats) -> str:
    """Suggest the next step for an epic from its artifacts and task counts."""
    if not artifacts["spec"]:
        return f"Create spec with `/epic {epic_name} spec`"
    if not artifacts["research"]:
        return f"Run `/epic {epic_name}` to start research"
    if not artifacts["plan"]:
        return f"Run `/epic {epic_name}` to create plan"
    if stats.pending > 0 or stats.in_progress > 0:
        return f"Run `/epic {epic_name}` to continue execution or `/epic {epic_name} yolo` for auto mode"
    if stats.blocked > 0:
        return f"{stats.blocked} task(s) blocked - review and unblock"
    return "Epic complete!"


class EpicWorkflow:
    """Epic queries, task context packaging and idle handling for one project directory."""

    def __init__(
        self,
        base_dir: Path | str,
        *,
        notifier: Optional[Notifier] = None,
        send_message: Optional[SendMessage] = None,
    ):
        self.store = EpicStore(base_dir)
        self.states = StateStore(self.store)
        self.assembler = ContextAssembler(self.store)
        self.controller = ContinuationController(
            self.store,
            notifier=notifier,
            send_message=send_message,
        )

    # ------------------------------------------------------------------
    # Epic listing and status
    # ------------------------------------------------------------------

    def list_epics(self) -> Dict[str, Any]:
        """List every epic with its phase, task progress and yolo flag."""
        if not self.store.has_epics():
            return {
                "epics": [],
                "message": "No epics found. Start one with `/epic <name>`",
            }

        try:
            with log_operation("list_epics", base_dir=str(self.store.base_dir)):
                epics: List[Dict[str, Any]] = []
                for epic_name in self.store.list_epic_names():
                    epics.append(self._epic_summary(epic_name))
            return {"epics": epics}
        except Exception as e:
            log_error_with_context(e, {"operation": "list_epics", "base_dir": str(self.store.base_dir)})
            return {"epics": [], "error": str(e)}

    def _epic_summary(self, epic_name: str) -> Dict[str, Any]:
        yolo_active = False
        if self.store.state_path(epic_name).exists():
            state = self.states.read(epic_name)
            phase = state.current_phase if state else "unknown"
            yolo_active = bool(state and state.yolo_active)
        else:
            phase = self.store.infer_phase(epic_name)

        tasks = None
        if phase == "execute":
            stats = self._task_stats(epic_name)
            tasks = {"done": stats.done, "total": stats.total}

        return {"name": epic_name, "phase": phase, "tasks": tasks, "yoloActive": yolo_active}

    def get_epic_status(self, epic_name: str) -> Dict[str, Any]:
        """Detailed status of one epic, including the suggested next action."""
        if not epic_name or not epic_name.strip():
            return {"found": False, "error": "Epic name cannot be empty"}
        if not self.store.epic_exists(epic_name):
            return {
                "found": False,
                "error": f'Epic "{epic_name}" not found. Start it with `/epic {epic_name}`',
            }

        try:
            artifacts = self.store.artifact_flags(epic_name)
            state: Optional[EpicState] = self.states.read(epic_name) if artifacts["state"] else None
            stats = self._task_stats(epic_name)

            current_phase = state.current_phase if state else "unknown"
            if current_phase == "unknown":
                current_phase = self.store.infer_phase(epic_name)

            return {
                "found": True,
                "name": epic_name,
                "currentPhase": current_phase,
                "artifacts": artifacts,
                "tasks": stats.to_dict(),
                "yolo": state.yolo.to_dict() if state and state.yolo else None,
                "lastUpdated": state.last_updated if state else None,
                "nextAction": next_action(epic_name, artifacts, stats),
            }
        except Exception as e:
            log_error_with_context(e, {"operation": "get_epic_status", "epic_name": epic_name})
            return {"found": False, "error": f"Failed to read epic status: {e}"}

    def _task_stats(self, epic_name: str) -> TaskStats:
        try:
            return task_stats(self.store.load_tasks(epic_name))
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read tasks for epic '{epic_name}': {e}")
            return TaskStats()

    # ------------------------------------------------------------------
    # Task availability and execution context
    # ------------------------------------------------------------------

    def get_available_tasks(self, epic_name: str) -> Dict[str, Any]:
        """Tasks whose dependencies are all done, plus the ones still waiting."""
        if not self.store.has_tasks_dir(epic_name):
            return {"available": [], "blocked": [], "message": "No tasks directory found"}
        if not self.store.task_files(epic_name):
            return {"available": [], "blocked": [], "message": "No task files found"}

        try:
            with log_operation("get_available_tasks", epic_name=epic_name):
                report = epic_availability(self.store, epic_name)
            return report.to_dict()
        except Exception as e:
            log_error_with_context(e, {"operation": "get_available_tasks", "epic_name": epic_name})
            return {"available": [], "blocked": [], "error": f"Failed to resolve tasks: {e}"}

    def build_task_context(self, epic_name: str, task_id: str) -> Dict[str, Any]:
        """Package the full execution prompt for one task."""
        if not epic_name or not epic_name.strip():
            return {"success": False, "error": "Epic name cannot be empty"}
        if not task_id or not task_id.strip():
            return {"success": False, "error": "Task ID cannot be empty"}

        try:
            context = self.assembler.build(epic_name, task_id)
        except EpicWorkflowError as e:
            return {"success": False, "error": str(e)}
        except Exception as e:
            log_error_with_context(e, {
                "operation": "build_task_context",
                "epic_name": epic_name,
                "task_id": task_id,
            })
            return {"success": False, "error": f"Failed to build task context: {e}"}

        if context.already_done:
            return {
                "success": True,
                "alreadyDone": True,
                "message": f"Task {task_id} is already complete",
            }

        return {
            "success": True,
            "taskFile": context.task_file,
            "taskPath": str(context.task_path),
            "prompt": context.prompt,
            "message": (
                f"Context built for task {task_id}. "
                "Pass the 'prompt' field to the Task tool to execute with a sub-agent."
            ),
        }

    # ------------------------------------------------------------------
    # Autonomous continuation
    # ------------------------------------------------------------------

    def session_idle(self, session_id: Optional[str] = None) -> Dict[str, Any]:
        """Run one continuation cycle for an idle host session."""
        return self.controller.on_idle(session_id).to_dict()
