"""Unit tests for task prompt assembly."""

import logging
from unittest.mock import patch

import pytest

from epicflow.artifacts import EpicStore
from epicflow.context import NO_PLAN, NO_PREVIOUS_TASKS, NO_RESEARCH, ContextAssembler
from epicflow.errors import EpicNotFoundError, MissingSpecError, TaskNotFoundError

from conftest import task_text


@pytest.fixture
def assembler(tmp_path):
    return ContextAssembler(EpicStore(tmp_path))


class TestFailures:
    """Test cases for the structured failure paths."""

    def test_missing_epic(self, assembler):
        with pytest.raises(EpicNotFoundError, match='Epic "ghost" not found'):
            assembler.build("ghost", "01")

    def test_missing_spec(self, epics, assembler):
        epics.epic("shop", spec=None, tasks={"01-a.md": task_text("A")})

        with pytest.raises(MissingSpecError, match='No spec.md found for epic "shop"'):
            assembler.build("shop", "01")

    def test_empty_spec_counts_as_missing(self, epics, assembler):
        epics.epic("shop", spec="", tasks={"01-a.md": task_text("A")})

        with pytest.raises(MissingSpecError):
            assembler.build("shop", "01")

    def test_missing_spec_reported_before_missing_task(self, epics, assembler):
        epics.epic("shop", spec=None, tasks={"01-a.md": task_text("A")})

        with pytest.raises(MissingSpecError):
            assembler.build("shop", "07")

    def test_missing_spec_reported_for_done_task(self, epics, assembler):
        epics.epic("shop", spec=None, tasks={"01-a.md": task_text("A", "done")})

        with pytest.raises(MissingSpecError):
            assembler.build("shop", "01")

    def test_missing_task(self, epics, assembler):
        epics.epic("shop", tasks={"01-a.md": task_text("A")})

        with pytest.raises(TaskNotFoundError, match='Task "07" not found'):
            assembler.build("shop", "07")

    def test_missing_tasks_dir(self, epics, assembler):
        epics.epic("shop")

        with pytest.raises(TaskNotFoundError):
            assembler.build("shop", "01")


class TestAlreadyDone:
    """Test cases for tasks that need no execution."""

    def test_done_task_short_circuits(self, epics, assembler):
        epics.epic("shop", tasks={"01-a.md": task_text("A", "done")})

        context = assembler.build("shop", "01")

        assert context.already_done is True
        assert context.prompt is None

    def test_done_task_does_not_read_artifacts(self, epics, assembler):
        epics.epic("shop", tasks={"01-a.md": task_text("A", "done")})

        with patch.object(EpicStore, "read_artifact") as read_artifact:
            assembler.build("shop", "01")

        read_artifact.assert_not_called()


class TestPrompt:
    """Test cases for the assembled prompt."""

    def test_placeholders_for_optional_artifacts(self, epics, assembler):
        epics.epic("shop", tasks={"01-a.md": task_text("A")})

        prompt = assembler.build("shop", "01").prompt

        assert NO_RESEARCH in prompt
        assert NO_PLAN in prompt
        assert NO_PREVIOUS_TASKS in prompt

    def test_embeds_all_artifacts(self, epics, assembler):
        epics.epic(
            "shop",
            spec="SPEC-BODY",
            research="RESEARCH-BODY",
            plan="PLAN-BODY",
            tasks={"01-a.md": task_text("A", body="TASK-BODY")},
        )

        prompt = assembler.build("shop", "01").prompt

        for text in ("SPEC-BODY", "RESEARCH-BODY", "PLAN-BODY", "TASK-BODY"):
            assert text in prompt
        assert "**File: .epics/shop/tasks/01-a.md**" in prompt
        assert 'You are executing task 01 of epic "shop".' in prompt

    def test_previous_tasks_by_id_order_regardless_of_status(self, epics, assembler):
        epics.epic(
            "shop",
            tasks={
                "01-a.md": task_text("A", "done", body="FIRST"),
                "02-b.md": task_text("B", "pending", body="SECOND"),
                "03-c.md": task_text("C", "pending", body="THIRD"),
                "04-d.md": task_text("D", "pending", body="FOURTH"),
            },
        )

        context = assembler.build("shop", "03")

        assert context.previous_tasks == 2
        prompt = context.prompt
        assert "### 01-a.md" in prompt
        assert "### 02-b.md" in prompt
        assert "### 03-c.md" not in prompt
        assert "FOURTH" not in prompt
        assert prompt.index("FIRST") < prompt.index("SECOND") < prompt.index("THIRD")

    def test_previous_tasks_use_numeric_order(self, epics, assembler):
        epics.epic(
            "shop",
            tasks={
                "9-nine.md": task_text("Nine"),
                "10-ten.md": task_text("Ten"),
                "11-eleven.md": task_text("Eleven"),
            },
        )

        context = assembler.build("shop", "11")

        assert context.previous_tasks == 2
        assert context.prompt.index("### 9-nine.md") < context.prompt.index("### 10-ten.md")

    def test_braces_and_dollars_pass_through(self, epics, assembler):
        epics.epic("shop", spec="Use ${HOME} and {braces} and $money", tasks={"01-a.md": task_text("A")})

        prompt = assembler.build("shop", "01").prompt

        assert "Use ${HOME} and {braces} and $money" in prompt

    def test_logs_completion(self, epics, assembler, caplog):
        epics.epic("shop", tasks={"01-a.md": task_text("A"), "02-b.md": task_text("B")})

        with caplog.at_level(logging.INFO, logger="epicflow.context"):
            assembler.build("shop", "02")

        assert 'Built context for task 02 of epic "shop" (1 previous tasks)' in caplog.text

    def test_task_path_points_at_file(self, epics, assembler, tmp_path):
        epics.epic("shop", tasks={"01-a.md": task_text("A")})

        context = assembler.build("shop", "01")

        assert context.task_file == "01-a.md"
        assert context.task_path == tmp_path / ".epics" / "shop" / "tasks" / "01-a.md"
