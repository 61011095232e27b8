"""Exceptions raised inside Epicflow.

These never cross the tool boundary: ``EpicWorkflow`` turns them into
structured ``error`` fields.
"""

from __future__ import annotations


class EpicWorkflowError(Exception):
    """Base class for Epicflow failures reported back to callers."""


class EpicNotFoundError(EpicWorkflowError):
    """The epic directory does not exist."""

    def __init__(self, epic_name: str, location: str):
        self.epic_name = epic_name
        super().__init__(f'Epic "{epic_name}" not found at {location}')


class MissingSpecError(EpicWorkflowError):
    """The epic has no spec.md, or it is empty."""

    def __init__(self, epic_name: str):
        self.epic_name = epic_name
        super().__init__(f'No spec.md found for epic "{epic_name}"')


class TaskNotFoundError(EpicWorkflowError):
    """No task file name starts with the requested id."""

    def __init__(self, task_id: str, location: str):
        self.task_id = task_id
        super().__init__(f'Task "{task_id}" not found in {location}')
