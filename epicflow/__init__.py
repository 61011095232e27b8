"""Epicflow MCP Server - epic workflow tracking and autonomous continuation."""

# No imports at package level; import modules directly where needed

__version__ = "0.1.0"

__all__ = [
    "EpicWorkflow",
    "EpicStore",
    "EpicState",
    "YoloState",
    "StateStore",
    "ContinuationController",
]
