"""MCP server exposing epic workflow tools and yolo-mode continuation."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from epicflow.artifacts import EPICS_DIR_NAME
from epicflow.config import PROJECT_ROOT_ENV, Settings
from epicflow.epic_logging import setup_logging
from epicflow.notify import Notifier
from epicflow.workflow import EpicWorkflow

mcp = FastMCP("epicflow")


def _candidate_bases() -> List[Path]:
    cwd = Path.cwd().resolve()
    return [cwd, *cwd.parents]


def _locate_project_root() -> Optional[Path]:
    for base in _candidate_bases():
        if (base / EPICS_DIR_NAME).is_dir():
            return base
    return None


def _resolve_root(root: Optional[str]) -> Path:
    if root:
        resolved = Path(root).expanduser().resolve()
        if not resolved.exists():
            raise ValueError(f"Provided root '{root}' does not exist.")
        return resolved

    settings = Settings.from_env()
    if settings.project_root:
        env_path = settings.project_root.resolve()
        if not env_path.exists():
            raise ValueError(
                f"Environment variable {PROJECT_ROOT_ENV} points to '{settings.project_root}', which does not exist."
            )
        return env_path

    return _locate_project_root() or Path.cwd().resolve()


def _workflow(root: Optional[str], base_path: Optional[str] = None) -> EpicWorkflow:
    base_dir = _resolve_root(root)
    if base_path:
        base_dir = base_dir / base_path
    settings = Settings.from_env()
    return EpicWorkflow(base_dir, notifier=Notifier(enabled=settings.notifications))


@mcp.tool()
def list_epics(base_path: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """List all epics and their current status.

    Returns a list of all epics in .epics/ with their phase and task progress.
    Use base_path when epics live in a subdirectory (e.g. 'weather-app')."""

    try:
        workflow = _workflow(root, base_path)
    except ValueError as e:
        return {"epics": [], "error": str(e)}
    return workflow.list_epics()


@mcp.tool()
def get_epic_status(epic_name: str, base_path: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Get detailed status for a specific epic.

    Returns phase, artifacts, task breakdown, yolo session and the suggested next action."""

    try:
        workflow = _workflow(root, base_path)
    except ValueError as e:
        return {"found": False, "error": str(e)}
    return workflow.get_epic_status(epic_name)


@mcp.tool()
def get_available_tasks(epic_name: str, base_path: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Get tasks that are available to execute (dependencies satisfied).

    Returns pending/in-progress tasks whose dependencies are all done, and the
    blocked ones with the task ids they are waiting on."""

    try:
        workflow = _workflow(root, base_path)
    except ValueError as e:
        return {"available": [], "blocked": [], "error": str(e)}
    return workflow.get_available_tasks(epic_name)


@mcp.tool()
def build_task_context(
    epic_name: str,
    task_id: str,
    base_path: Optional[str] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Build the full context for executing an epic task.

    Reads the epic's spec, research, plan and all previous tasks, then returns
    a complete prompt to hand to a fresh sub-agent. task_id is the number
    prefix of the task file, like '01' or '02'."""

    try:
        workflow = _workflow(root, base_path)
    except ValueError as e:
        return {"success": False, "error": str(e)}
    return workflow.build_task_context(epic_name, task_id)


@mcp.tool()
def session_idle(session_id: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Yolo mode: call when the agent session goes idle.

    Finds the epic with an active yolo session and decides whether it is
    complete, stopped at its iteration cap, or should continue. When it
    continues and a session_id is given, 'message' holds the instruction to
    send back into that session."""

    try:
        workflow = _workflow(root)
    except ValueError as e:
        return {"action": "error", "error": str(e)}
    return workflow.session_idle(session_id)


@mcp.resource("epics://list")
def resource_epics() -> str:
    """Resource view exposing epic phases and progress for discovery."""

    try:
        workflow = _workflow(None)
    except ValueError as e:
        return str(e)

    result = workflow.list_epics()
    epics = result.get("epics") or []
    if not epics:
        return result.get("message") or result.get("error") or "No epics found."

    lines = ["Epics"]
    for epic in epics:
        lines.append("")
        lines.append(f"- {epic['name']}: {epic['phase']}")
        if epic["tasks"]:
            lines.append(f"  Tasks: {epic['tasks']['done']}/{epic['tasks']['total']} done")
        if epic["yoloActive"]:
            lines.append("  Yolo: active")

    return "\n".join(lines)


def main() -> None:
    settings = Settings.from_env()
    setup_logging(settings.log_level, settings.log_file)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
