"""Autonomous continuation ("yolo mode") for epics.

On every idle signal from the agent host the controller picks the first
epic with an active yolo session and takes exactly one transition:

* complete - no remaining tasks: mark the epic executed, end the session
* stopped  - iteration cap reached: end the session, leave executeComplete
* continue - bump the iteration and hand the host a continuation message

Failures never reach the host; the cycle degrades to an ``error`` decision
and the next idle signal re-derives the same choice from disk.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional

from .artifacts import EpicStore
from .epic_logging import log_yolo_event
from .models import ContinuationDecision
from .notify import Notifier
from .resolver import epic_remaining
from .state import StateStore


logger = logging.getLogger("epicflow.controller")

IDLE_EVENT_TYPE = "session.idle"

SendMessage = Callable[[str, str], Any]


def continuation_message(epic_name: str, remaining: int, iteration_label: str) -> str:
    return (
        f'Continue executing epic "{epic_name}". {remaining} task(s) remaining. '
        f"[Iteration {iteration_label}]"
    )


class ContinuationController:
    """Drive one active yolo epic per idle signal."""

    def __init__(
        self,
        store: EpicStore,
        *,
        notifier: Optional[Notifier] = None,
        send_message: Optional[SendMessage] = None,
    ):
        self.store = store
        self.states = StateStore(store)
        self.notifier = notifier or Notifier()
        self.send_message = send_message

    def on_event(self, event: Mapping[str, Any]) -> Optional[ContinuationDecision]:
        """Handle a raw host event; anything but ``session.idle`` is ignored."""
        if event.get("type") != IDLE_EVENT_TYPE:
            return None
        properties = event.get("properties") or {}
        return self.on_idle(properties.get("sessionID"))

    def on_idle(self, session_id: Optional[str] = None) -> ContinuationDecision:
        """Run one decision cycle."""
        try:
            return self._cycle(session_id)
        except Exception as e:
            logger.warning(f"Yolo check failed, skipping this cycle: {e}")
            log_yolo_event("error", None, error=str(e))
            return ContinuationDecision(action="error", error=str(e))

    def _cycle(self, session_id: Optional[str]) -> ContinuationDecision:
        found = self.states.find_active_yolo()
        if found is None:
            return ContinuationDecision(action="idle")

        epic_name, state = found
        yolo = state.yolo
        remaining = epic_remaining(self.store, epic_name)

        logger.info(
            f'Epic "{epic_name}" yolo check: {remaining} tasks remaining, '
            f"iteration {yolo.iteration}/{yolo.max_iterations or 'unlimited'}"
        )

        if remaining == 0:
            self.states.write(epic_name, {"executeComplete": True, "yolo": {"active": False}})
            self.notifier.notify("Epic Complete", f'Epic "{epic_name}" finished successfully!')
            logger.info(f'Epic "{epic_name}" completed! All tasks done.')
            log_yolo_event("complete", epic_name, iteration=yolo.iteration)
            return ContinuationDecision(
                action="complete",
                epic_name=epic_name,
                remaining=0,
                iteration=yolo.iteration,
                max_iterations=yolo.max_iterations,
            )

        if yolo.limit_reached():
            self.states.write(epic_name, {"yolo": {"active": False}})
            self.notifier.notify(
                "Epic Stopped",
                f'Epic "{epic_name}" hit max iterations ({yolo.max_iterations})',
            )
            logger.warning(
                f'Epic "{epic_name}" stopped: max iterations ({yolo.max_iterations}) '
                f"reached with {remaining} tasks remaining"
            )
            log_yolo_event("stopped", epic_name, remaining=remaining, iteration=yolo.iteration)
            return ContinuationDecision(
                action="stopped",
                epic_name=epic_name,
                remaining=remaining,
                iteration=yolo.iteration,
                max_iterations=yolo.max_iterations,
            )

        next_iteration = yolo.iteration + 1
        self.states.write(epic_name, {"yolo": {"iteration": next_iteration}})

        message = None
        if session_id:
            message = continuation_message(epic_name, remaining, yolo.iteration_label(next_iteration))
            self._send(session_id, message)
            logger.info(
                f'Epic "{epic_name}" continuing: iteration {next_iteration}, {remaining} tasks remaining'
            )
        log_yolo_event("continue", epic_name, remaining=remaining, iteration=next_iteration)

        return ContinuationDecision(
            action="continue",
            epic_name=epic_name,
            remaining=remaining,
            iteration=next_iteration,
            max_iterations=yolo.max_iterations,
            message=message,
        )

    def _send(self, session_id: str, message: str) -> None:
        if self.send_message is None:
            return
        try:
            self.send_message(session_id, message)
        except Exception as e:
            logger.warning(f"Could not send continuation to session {session_id}: {e}")
