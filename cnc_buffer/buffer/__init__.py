"""
Buffer module.

FIFO store of pending items and the controller that owns it.
"""

from cnc_buffer.buffer.controller import (
    BufferController,
    DequeueResult,
    DequeueStatus,
    create_controller,
)
from cnc_buffer.buffer.item import BufferItem, clamp_duration, compute_item_id
from cnc_buffer.buffer.store import (
    BufferInvariantError,
    BufferStore,
    DuplicateIdError,
    QueueError,
)

__all__ = [
    "BufferController",
    "BufferInvariantError",
    "BufferItem",
    "BufferStore",
    "DequeueResult",
    "DequeueStatus",
    "DuplicateIdError",
    "QueueError",
    "clamp_duration",
    "compute_item_id",
    "create_controller",
]
