"""
History Manager - Linear undo/redo over document snapshots.

The history system works via snapshots:
- Every committed mutation pushes a full snapshot onto `past`
- The top of `past` is always the live state
- Undo moves the top of `past` onto `future`, redo moves it back
"""

import logging
from typing import Optional

from .models import Document

logger = logging.getLogger(__name__)


class HistoryManager:
    """
    Snapshot-based undo/redo.

    `past` is never empty once reset() has been called: its first entry is
    the document the session started from and is never trimmed away.
    Committing a new state clears `future`. History is unbounded unless
    `max_history` is given.
    """

    def __init__(self, max_history: Optional[int] = None):
        self._past: list[Document] = []    # Committed states, oldest first
        self._future: list[Document] = []  # Undone states, most recent last
        self._max_history = max_history

    # --- Properties ---

    @property
    def past(self) -> list[Document]:
        return list(self._past)

    @property
    def future(self) -> list[Document]:
        return list(self._future)

    @property
    def can_undo(self) -> bool:
        """Check if undo is available."""
        return len(self._past) > 1

    @property
    def can_redo(self) -> bool:
        """Check if redo is available."""
        return len(self._future) > 0

    @property
    def current(self) -> Optional[Document]:
        """The snapshot matching the live document."""
        return self._past[-1].model_copy(deep=True) if self._past else None

    # --- Transitions ---

    def reset(self, initial: Document):
        """Start a fresh history whose only entry is `initial`."""
        self._past = [initial.model_copy(deep=True)]
        self._future.clear()

    def commit(self, document: Document):
        """Record a committed mutation and invalidate the redo stack."""
        self._future.clear()
        self._past.append(document.model_copy(deep=True))

        # Trim history if too long, keeping the initial and the live entry
        if self._max_history and len(self._past) > max(self._max_history, 2):
            excess = len(self._past) - max(self._max_history, 2)
            del self._past[1:1 + excess]

    def amend(self, document: Document):
        """
        Overwrite the live entry without creating a new undo step.

        Used for view-state edits (selection) so the top of `past` keeps
        matching the live document.
        """
        if self._past:
            self._past[-1] = document.model_copy(deep=True)

    def undo(self) -> Optional[Document]:
        """Step back one entry. Returns the state to apply, or None."""
        if not self.can_undo:
            return None

        self._future.append(self._past.pop())
        logger.debug("Undo: %d past, %d future", len(self._past), len(self._future))
        return self._past[-1].model_copy(deep=True)

    def redo(self) -> Optional[Document]:
        """Re-apply the most recently undone entry. Returns it, or None."""
        if not self.can_redo:
            return None

        snapshot = self._future.pop()
        self._past.append(snapshot)
        logger.debug("Redo: %d past, %d future", len(self._past), len(self._future))
        return snapshot.model_copy(deep=True)

    def to_dict(self) -> dict:
        return {
            "can_undo": self.can_undo,
            "can_redo": self.can_redo,
            "past": len(self._past),
            "future": len(self._future),
        }
