"""Unit tests for the yolo-mode continuation controller."""

import logging
from unittest.mock import MagicMock, patch

import pytest

from epicflow.artifacts import EpicStore
from epicflow.controller import ContinuationController, continuation_message
from epicflow.epic_logging import observability_hooks

from conftest import task_text, yolo_state


def three_open_tasks():
    return {
        "01-a.md": task_text("A", "done"),
        "02-b.md": task_text("B", "pending"),
        "03-c.md": task_text("C", "in-progress"),
        "04-d.md": task_text("D", "pending"),
    }


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def sender():
    return MagicMock()


@pytest.fixture
def controller(tmp_path, notifier, sender):
    return ContinuationController(EpicStore(tmp_path), notifier=notifier, send_message=sender)


class TestNoActiveEpic:
    def test_nothing_to_do(self, controller, notifier, sender):
        decision = controller.on_idle("sess-1")

        assert decision.action == "idle"
        notifier.notify.assert_not_called()
        sender.assert_not_called()

    def test_inactive_epics_are_ignored(self, epics, controller, sender):
        epics.epic("shop", tasks=three_open_tasks(), state=yolo_state("shop", active=False))

        assert controller.on_idle("sess-1").action == "idle"
        sender.assert_not_called()


class TestCompletion:
    """Test cases for the complete transition."""

    @pytest.mark.parametrize("iteration,max_iterations", [(0, 0), (3, 4), (9, 4)])
    def test_no_remaining_tasks_completes(self, epics, controller, notifier, sender, iteration, max_iterations):
        epics.epic(
            "shop",
            tasks={"01-a.md": task_text("A", "done"), "02-b.md": task_text("B", "blocked")},
            state=yolo_state("shop", iteration=iteration, max_iterations=max_iterations),
        )

        decision = controller.on_idle("sess-1")

        assert decision.action == "complete"
        data = epics.read_state("shop")
        assert data["yolo"]["active"] is False
        assert data["executeComplete"] is True
        assert data["yolo"]["iteration"] == iteration
        notifier.notify.assert_called_once_with("Epic Complete", 'Epic "shop" finished successfully!')
        sender.assert_not_called()

    def test_empty_tasks_dir_completes(self, epics, controller):
        epics.epic("shop", state=yolo_state("shop"))

        assert controller.on_idle(None).action == "complete"


class TestIterationBound:
    """Test cases for the stopped transition."""

    def test_bound_reached_stops(self, epics, controller, notifier, sender, caplog):
        epics.epic("shop", tasks=three_open_tasks(), state=yolo_state("shop", iteration=4, max_iterations=4))

        with caplog.at_level(logging.WARNING, logger="epicflow.controller"):
            decision = controller.on_idle("sess-1")

        assert decision.action == "stopped"
        assert decision.remaining == 3
        data = epics.read_state("shop")
        assert data["yolo"]["active"] is False
        assert data["yolo"]["iteration"] == 4
        assert data["executeComplete"] is False
        notifier.notify.assert_called_once_with("Epic Stopped", 'Epic "shop" hit max iterations (4)')
        sender.assert_not_called()
        assert "max iterations (4) reached with 3 tasks remaining" in caplog.text


class TestContinue:
    """Test cases for the continue transition."""

    def test_bounded_continue(self, epics, controller, notifier, sender):
        epics.epic("shop", tasks=three_open_tasks(), state=yolo_state("shop", iteration=2, max_iterations=4))

        decision = controller.on_idle("sess-1")

        assert decision.action == "continue"
        assert decision.iteration == 3
        assert epics.read_state("shop")["yolo"]["iteration"] == 3
        assert epics.read_state("shop")["yolo"]["active"] is True
        expected = 'Continue executing epic "shop". 3 task(s) remaining. [Iteration 3/4]'
        assert decision.message == expected
        sender.assert_called_once_with("sess-1", expected)
        notifier.notify.assert_not_called()

    def test_unbounded_continue(self, epics, controller, sender):
        epics.epic("shop", tasks=three_open_tasks(), state=yolo_state("shop", iteration=2, max_iterations=0))

        decision = controller.on_idle("sess-1")

        assert decision.iteration == 3
        assert decision.message == 'Continue executing epic "shop". 3 task(s) remaining. [Iteration 3]'

    def test_without_session_state_still_advances(self, epics, controller, sender):
        epics.epic("shop", tasks=three_open_tasks(), state=yolo_state("shop", iteration=2, max_iterations=4))

        decision = controller.on_idle(None)

        assert decision.action == "continue"
        assert decision.message is None
        assert epics.read_state("shop")["yolo"]["iteration"] == 3
        sender.assert_not_called()

    def test_dependency_blocked_tasks_count_as_remaining(self, epics, controller):
        epics.epic(
            "shop",
            plan="## Dependencies\n- 02: [01]\n",
            tasks={"01-a.md": task_text("A", "blocked"), "02-b.md": task_text("B", "pending")},
            state=yolo_state("shop"),
        )

        decision = controller.on_idle("sess-1")

        assert decision.action == "continue"
        assert decision.remaining == 1

    def test_sender_failure_is_tolerated(self, epics, tmp_path):
        epics.epic("shop", tasks=three_open_tasks(), state=yolo_state("shop"))
        sender = MagicMock(side_effect=RuntimeError("host gone"))
        controller = ContinuationController(EpicStore(tmp_path), notifier=MagicMock(), send_message=sender)

        decision = controller.on_idle("sess-1")

        assert decision.action == "continue"
        assert epics.read_state("shop")["yolo"]["iteration"] == 1

    def test_only_first_active_epic_is_driven(self, epics, controller):
        epics.epic("alpha", tasks=three_open_tasks(), state=yolo_state("alpha"))
        epics.epic("beta", tasks=three_open_tasks(), state=yolo_state("beta"))

        decision = controller.on_idle("sess-1")

        assert decision.epic_name == "alpha"
        assert epics.read_state("alpha")["yolo"]["iteration"] == 1
        assert epics.read_state("beta")["yolo"]["iteration"] == 0

    def test_undecodable_state_does_not_stall_later_epics(self, epics, controller, sender):
        broken = epics.epic("a-broken", tasks=three_open_tasks())
        (broken / ".state").write_bytes(b'{"name": "\xff\xfe"}')
        epics.epic("b-live", tasks={"01-a.md": task_text("A")}, state=yolo_state("b-live"))

        decision = controller.on_idle("s1")

        assert decision.action == "continue"
        assert decision.epic_name == "b-live"
        assert epics.read_state("b-live")["yolo"]["iteration"] == 1
        sender.assert_called_once()

    def test_repeated_cycles_reach_bound(self, epics, controller, notifier):
        epics.epic("shop", tasks=three_open_tasks(), state=yolo_state("shop", iteration=0, max_iterations=2))

        actions = [controller.on_idle("sess-1").action for _ in range(4)]

        assert actions == ["continue", "continue", "stopped", "idle"]
        notifier.notify.assert_called_once()


class TestFailures:
    """Test cases for cycles that hit errors."""

    def test_unreadable_task_degrades_to_noop(self, epics, controller, sender):
        epics.epic("shop", tasks=three_open_tasks(), state=yolo_state("shop", iteration=1))

        with patch.object(EpicStore, "load_tasks", side_effect=OSError("permission denied")):
            decision = controller.on_idle("sess-1")

        assert decision.action == "error"
        assert "permission denied" in decision.error
        data = epics.read_state("shop")
        assert data["yolo"]["iteration"] == 1
        assert data["yolo"]["active"] is True
        sender.assert_not_called()

    def test_error_hook_fires(self, epics, controller):
        epics.epic("shop", tasks=three_open_tasks(), state=yolo_state("shop"))
        seen = []

        def hook(**data):
            seen.append(data)

        observability_hooks.register_hook("yolo_error", hook)
        try:
            with patch.object(EpicStore, "load_tasks", side_effect=OSError("nope")):
                controller.on_idle("sess-1")
        finally:
            observability_hooks.unregister_hook("yolo_error", hook)

        assert seen and seen[0]["error"] == "nope"

    def test_failed_state_write_still_decides(self, epics, controller, sender):
        epics.epic("shop", tasks=three_open_tasks(), state=yolo_state("shop", iteration=0))

        with patch("pathlib.Path.write_text", side_effect=OSError("read-only")):
            decision = controller.on_idle("sess-1")

        assert decision.action == "continue"
        assert epics.read_state("shop")["yolo"]["iteration"] == 0
        sender.assert_called_once()


class TestHostEvents:
    def test_idle_event_uses_session_id(self, epics, controller, sender):
        epics.epic("shop", tasks=three_open_tasks(), state=yolo_state("shop"))

        decision = controller.on_event({"type": "session.idle", "properties": {"sessionID": "abc"}})

        assert decision.action == "continue"
        sender.assert_called_once()
        assert sender.call_args[0][0] == "abc"

    def test_other_events_are_ignored(self, epics, controller):
        epics.epic("shop", tasks=three_open_tasks(), state=yolo_state("shop"))

        assert controller.on_event({"type": "message.updated"}) is None
        assert epics.read_state("shop")["yolo"]["iteration"] == 0


def test_continuation_message_format():
    assert continuation_message("shop", 2, "5/9") == 'Continue executing epic "shop". 2 task(s) remaining. [Iteration 5/9]'
