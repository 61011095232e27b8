"""Execution prompt assembly for a single epic task.

The prompt layout is consumed by the executing agent, so section order and
the fixed framing text must stay stable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from string import Template
from typing import List, Optional

from .artifacts import EpicStore
from .epic_logging import log_context_built, log_performance
from .errors import EpicNotFoundError, MissingSpecError, TaskNotFoundError
from .models import STATUS_DONE
from .parsing import parse_task_status, task_number


logger = logging.getLogger("epicflow.context")

NO_RESEARCH = "(No research conducted yet)"
NO_PLAN = "(No plan created yet)"
NO_PREVIOUS_TASKS = "(This is the first task)"
TASK_SEPARATOR = "\n\n---\n\n"

_PROMPT_TEMPLATE = Template("""# Execute Epic Task

You are executing task ${task_id} of epic "${epic_name}".

## Your Mission

Execute the task described below. When complete:
1. Update the task file's status from "pending" or "in-progress" to "done"
2. Add a "## Report" section at the end of the task file with:
   - **What Was Done**: List the changes you made
   - **Decisions Made**: Any choices you made and why
   - **Issues / Notes for Next Task**: Anything the next task should know
   - **Files Changed**: List of files created/modified

If you discover the task approach is wrong or future tasks need changes, you may update them.
The plan is a living document.

---

## Epic Spec

${spec}

---

## Research

${research}

---

## Plan

${plan}

---

## Previous Completed Tasks

${previous}

---

## Current Task to Execute

**File: .epics/${epic_name}/tasks/${task_file}**

${task_content}

---

## Instructions

1. Read and understand the task
2. Execute the steps described
3. Verify the "Done When" criteria are met
4. Update the task file:
   - Change `## Status: pending` or `## Status: in-progress` to `## Status: done`
   - Add a `## Report` section at the end
5. If you need to modify future tasks or the plan, do so
6. When complete, confirm what was done
""")


@dataclass(slots=True)
class TaskContext:
    """Result of assembling a task prompt.

    When ``already_done`` is set the task needs no execution and ``prompt``
    is ``None``.
    """

    epic_name: str
    task_id: str
    task_file: str
    task_path: Path
    prompt: Optional[str] = None
    previous_tasks: int = 0
    already_done: bool = False


def render_prompt(
    *,
    epic_name: str,
    task_id: str,
    task_file: str,
    task_content: str,
    spec: str,
    research: str = "",
    plan: str = "",
    previous_blocks: Optional[List[str]] = None,
) -> str:
    """Compose the execution prompt from already-loaded artifact text."""
    return _PROMPT_TEMPLATE.substitute(
        epic_name=epic_name,
        task_id=task_id,
        task_file=task_file,
        task_content=task_content,
        spec=spec,
        research=research or NO_RESEARCH,
        plan=plan or NO_PLAN,
        previous=TASK_SEPARATOR.join(previous_blocks) if previous_blocks else NO_PREVIOUS_TASKS,
    )


class ContextAssembler:
    """Build the self-contained instruction document for one task."""

    def __init__(self, store: EpicStore):
        self.store = store

    @log_performance("build_task_context")
    def build(self, epic_name: str, task_id: str) -> TaskContext:
        """Assemble the prompt for ``task_id`` of ``epic_name``.

        Raises ``EpicNotFoundError``, ``MissingSpecError`` or
        ``TaskNotFoundError``, checked in that order. A task already marked
        done short-circuits before any of spec, research or plan is read.
        """
        store = self.store
        epic_dir = store.epic_dir(epic_name)
        if not store.epic_exists(epic_name):
            raise EpicNotFoundError(epic_name, str(epic_dir))
        if not store.has_content(epic_name, "spec"):
            raise MissingSpecError(epic_name)

        task_files = store.task_files(epic_name)
        task_file = next((name for name in task_files if name.startswith(task_id)), None)
        if task_file is None:
            raise TaskNotFoundError(task_id, str(store.tasks_dir(epic_name)))

        task_path = store.tasks_dir(epic_name) / task_file
        task_content = store.read_task(epic_name, task_file)
        if parse_task_status(task_content) == STATUS_DONE:
            return TaskContext(
                epic_name=epic_name,
                task_id=task_id,
                task_file=task_file,
                task_path=task_path,
                already_done=True,
            )

        spec = store.read_artifact(epic_name, "spec")
        if not spec:
            raise MissingSpecError(epic_name)
        research = store.read_artifact(epic_name, "research")
        plan = store.read_artifact(epic_name, "plan")

        # Every lower-numbered task is included, whatever its status
        target_number = task_number(task_file)
        previous_blocks = [
            f"### {name}\n\n{store.read_task(epic_name, name)}"
            for name in task_files
            if task_number(name) < target_number
        ]

        prompt = render_prompt(
            epic_name=epic_name,
            task_id=task_id,
            task_file=task_file,
            task_content=task_content,
            spec=spec,
            research=research,
            plan=plan,
            previous_blocks=previous_blocks,
        )

        logger.info(
            f'Built context for task {task_id} of epic "{epic_name}" '
            f"({len(previous_blocks)} previous tasks)"
        )
        log_context_built(epic_name, task_id, len(previous_blocks), task_file=task_file)

        return TaskContext(
            epic_name=epic_name,
            task_id=task_id,
            task_file=task_file,
            task_path=task_path,
            prompt=prompt,
            previous_tasks=len(previous_blocks),
        )
