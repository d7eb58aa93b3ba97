"""Per-session id allocation for nodes and edges."""

import itertools
import re
from typing import Iterable

_NUMERIC = re.compile(r"^e?(\d+)$")


class IdAllocator:
    """
    Issues monotonically increasing ids for one editing session.

    Node ids are plain decimal strings ("4"), edge ids carry an "e" prefix
    ("e7"). Ids already present in a loaded document are observed so they
    are never issued again.
    """

    def __init__(self, start: int = 1):
        self._nodes = itertools.count(start)
        self._edges = itertools.count(start)
        self._next_node = next(self._nodes)
        self._next_edge = next(self._edges)

    @property
    def upcoming_node_number(self) -> int:
        """The number the next node id will carry."""
        return self._next_node

    def next_node_id(self, taken: Iterable[str] = ()) -> str:
        taken = set(taken)
        while True:
            candidate = str(self._next_node)
            self._next_node = next(self._nodes)
            if candidate not in taken:
                return candidate

    def next_edge_id(self, taken: Iterable[str] = ()) -> str:
        taken = set(taken)
        while True:
            candidate = f"e{self._next_edge}"
            self._next_edge = next(self._edges)
            if candidate not in taken:
                return candidate

    def observe(self, node_ids: Iterable[str], edge_ids: Iterable[str] = ()):
        """Move both sequences past any numeric id already in use."""
        highest_node = _highest(node_ids)
        if self._next_node <= highest_node:
            self._nodes = itertools.count(highest_node + 1)
            self._next_node = next(self._nodes)
        highest_edge = _highest(edge_ids)
        if self._next_edge <= highest_edge:
            self._edges = itertools.count(highest_edge + 1)
            self._next_edge = next(self._edges)


def _highest(ids: Iterable[str]) -> int:
    highest = 0
    for item_id in ids:
        match = _NUMERIC.match(item_id)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest
