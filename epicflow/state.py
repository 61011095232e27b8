"""Per-epic ``.state`` persistence.

Reads never raise: a missing, unreadable or malformed file is reported as
``None``. Writes are read-modify-write with a nested merge for ``yolo`` and
are best-effort; there is no locking, so concurrent writers race and the
last write wins.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterator, Optional, Tuple

from .artifacts import EpicStore
from .models import EpicState, utc_timestamp


logger = logging.getLogger("epicflow.state")


class StateStore:
    """Read and update epic state records under an ``EpicStore``."""

    def __init__(self, store: EpicStore):
        self.store = store

    def read(self, epic_name: str) -> Optional[EpicState]:
        """Return the parsed state of an epic, or ``None`` if absent or corrupt."""
        text = self.store.read_state_text(epic_name)
        if text is None:
            return None
        try:
            data = json.loads(text)
            if not isinstance(data, dict):
                raise ValueError("state is not a JSON object")
            return EpicState.from_dict(data, default_name=epic_name)
        except (ValueError, TypeError) as e:
            logger.debug(f"Ignoring malformed state for epic '{epic_name}': {e}")
            return None

    def write(self, epic_name: str, updates: Dict[str, Any]) -> bool:
        """Merge ``updates`` into the stored state and persist it.

        ``updates`` uses the on-disk key names. A missing state file is
        created from ``updates``; a corrupt one is left untouched. Returns
        ``False`` instead of raising when the write does not happen.
        """
        path = self.store.state_path(epic_name)
        if not self.store.epic_exists(epic_name):
            logger.warning(f"Cannot write state: epic '{epic_name}' does not exist")
            return False

        if path.exists():
            current = self.read(epic_name)
            if current is None:
                logger.warning(f"Not overwriting unreadable state file {path}")
                return False
        else:
            current = EpicState(name=epic_name)

        new_state = current.merged(updates, timestamp=utc_timestamp())
        try:
            path.write_text(json.dumps(new_state.to_dict(), indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed to write state for epic '{epic_name}': {e}")
            return False
        return True

    def iter_states(self) -> Iterator[Tuple[str, EpicState]]:
        """Yield ``(epic_name, state)`` for every epic with a readable state, in name order."""
        for epic_name in self.store.list_epic_names():
            state = self.read(epic_name)
            if state is not None:
                yield epic_name, state

    def find_active_yolo(self) -> Optional[Tuple[str, EpicState]]:
        """Return the first epic, by name, whose yolo session is active.

        Only one epic is driven per idle signal; any later active epics
        wait until the first one finishes.
        """
        for epic_name, state in self.iter_states():
            if state.yolo_active:
                return epic_name, state
        return None
