"""Buffer store -- FIFO of pending items keyed by id.

``_order`` is a deque of ids (append at the right, pop from the left) and
``_items`` maps each id to its item.  Between public calls every id in
the deque has exactly one map entry and vice versa.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterator

from cnc_buffer.buffer.item import BufferItem

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class QueueError(Exception):
    """Base exception for buffer errors."""

    pass


class DuplicateIdError(QueueError):
    """An item with the same id is already buffered."""

    pass


class BufferInvariantError(QueueError):
    """Order and id map disagree, or the executor and buffer desynced."""

    pass


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class BufferStore:
    """Ordered store of pending buffer items (oldest first)."""

    def __init__(self) -> None:
        self._order: deque[str] = deque()
        self._items: dict[str, BufferItem] = {}

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __iter__(self) -> Iterator[BufferItem]:
        return iter(self.peek_all())

    def enqueue(self, item: BufferItem) -> None:
        """Append *item* at the new end.

        Raises
        ------
        DuplicateIdError
            If ``item.id`` is already present.
        """
        if item.id in self._items:
            raise DuplicateIdError(f"Item {item.id} is already buffered")
        self._order.append(item.id)
        self._items[item.id] = item

    def dequeue_oldest(self) -> BufferItem | None:
        """Remove and return the oldest item, or ``None`` when empty.

        Raises
        ------
        BufferInvariantError
            If the order and the id map are out of step.
        """
        if len(self._order) != len(self._items):
            raise BufferInvariantError(
                f"Buffer order holds {len(self._order)} ids but the id map "
                f"holds {len(self._items)} items"
            )
        if not self._order:
            return None

        item_id = self._order[0]
        if item_id not in self._items:
            raise BufferInvariantError(
                f"Item {item_id} is queued but missing from the id map"
            )
        self._order.popleft()
        return self._items.pop(item_id)

    def peek_oldest(self) -> BufferItem | None:
        """Oldest item without removing it."""
        if not self._order:
            return None
        return self._items.get(self._order[0])

    def peek_all(self) -> list[BufferItem]:
        """All items, oldest first.  Does not mutate the store."""
        return [self._items[item_id] for item_id in self._order if item_id in self._items]

    def get(self, item_id: str) -> BufferItem | None:
        return self._items.get(item_id)

    def clear(self) -> None:
        """Drop every item."""
        self._order = deque()
        self._items = {}

    def check_invariants(self) -> None:
        """Verify the one-to-one relation between order and id map.

        Raises
        ------
        BufferInvariantError
            On any mismatch.
        """
        ids = set(self._order)
        if len(ids) != len(self._order):
            raise BufferInvariantError("Duplicate ids in buffer order")
        if ids != set(self._items):
            raise BufferInvariantError(
                f"Buffer order and id map differ: "
                f"{len(ids - set(self._items))} unmapped, "
                f"{len(set(self._items) - ids)} unordered"
            )
