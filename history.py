"""Bounded undo/redo history of graph snapshots."""

import time
from dataclasses import dataclass, field
from typing import Optional

from graph_model import Edge, Node

DEFAULT_MAX_HISTORY = 25


@dataclass(frozen=True)
class GraphSnapshot:
    """Immutable copy of the graph at one point in time"""
    nodes: tuple[Node, ...]
    edges: tuple[Edge, ...]
    timestamp: float = field(default_factory=time.time)


class History:
    """Linear undo/redo buffer.

    The current state is always the snapshot at the cursor. Pushing after an
    undo discards the redo tail; the oldest snapshot is dropped once more than
    max_size are held.
    """

    def __init__(self, max_size: int = DEFAULT_MAX_HISTORY):
        """Create an empty history.

        Raises:
            ValueError: if max_size < 1
        """
        if max_size < 1:
            raise ValueError(f"History size must be at least 1, got {max_size}")
        self.max_size = max_size
        self._snapshots: list[GraphSnapshot] = []
        self._index = -1

    @property
    def size(self) -> int:
        return len(self._snapshots)

    @property
    def index(self) -> int:
        return self._index

    def push(self, nodes, edges) -> GraphSnapshot:
        """Record a new current state.

        Postcondition:
            snapshots after the cursor are discarded
            the new snapshot becomes the cursor
            size never exceeds max_size
        """
        snapshot = GraphSnapshot(nodes=tuple(nodes), edges=tuple(edges))
        del self._snapshots[self._index + 1:]
        self._snapshots.append(snapshot)
        if len(self._snapshots) > self.max_size:
            self._snapshots.pop(0)
        self._index = len(self._snapshots) - 1
        return snapshot

    def can_undo(self) -> bool:
        return self._index > 0

    def can_redo(self) -> bool:
        return self._index < len(self._snapshots) - 1

    def undo(self) -> Optional[GraphSnapshot]:
        """Step back one snapshot; returns None if there is nothing to undo."""
        if not self.can_undo():
            return None
        self._index -= 1
        return self._snapshots[self._index]

    def redo(self) -> Optional[GraphSnapshot]:
        """Step forward one snapshot; returns None if there is nothing to redo."""
        if not self.can_redo():
            return None
        self._index += 1
        return self._snapshots[self._index]

    def current(self) -> Optional[GraphSnapshot]:
        if self._index < 0:
            return None
        return self._snapshots[self._index]

    def clear(self):
        self._snapshots.clear()
        self._index = -1
