"""Executor bridge interface -- outbound buffer notifications.

The executor is a separate process that owns the serial link.  The
buffer only *tells* it things; nothing here returns a value or waits for
an acknowledgement:

    add(item_id, commands, duration)
    pause()
    resume()
    clear()

The single inbound signal ("oldest item finished") is delivered by
calling ``BufferController.dequeue()``; see ``bridge.ipc`` for a socket
implementation that does both directions.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger(__name__)


class ExecutorBridge(ABC):
    """One-way notification sink towards the executor process."""

    @abstractmethod
    def add(self, item_id: str, commands: list[str], duration: int) -> None:
        """Queue rendered *commands* for item *item_id*."""

    @abstractmethod
    def pause(self) -> None:
        """Ask the executor to stop consuming at the next item boundary."""

    @abstractmethod
    def resume(self) -> None:
        """Ask the executor to continue consuming."""

    @abstractmethod
    def clear(self) -> None:
        """Ask the executor to drop everything not yet run."""


class NullExecutorBridge(ExecutorBridge):
    """Bridge that only logs.  Used when no executor is attached."""

    def add(self, item_id: str, commands: list[str], duration: int) -> None:
        logger.debug("add %s (%d ms): %s", item_id[:12], duration, commands)

    def pause(self) -> None:
        logger.debug("pause")

    def resume(self) -> None:
        logger.debug("resume")

    def clear(self) -> None:
        logger.debug("clear")


class RecordingExecutorBridge(ExecutorBridge):
    """Bridge that keeps every notification in order.

    ``messages`` holds ``(name, payload)`` tuples, e.g.
    ``("add", {"hash": ..., "commands": [...], "duration": 12})``.
    """

    def __init__(self) -> None:
        self.messages: list[tuple[str, dict[str, Any]]] = []

    def add(self, item_id: str, commands: list[str], duration: int) -> None:
        self.messages.append((
            "add",
            {"hash": item_id, "commands": list(commands), "duration": duration},
        ))

    def pause(self) -> None:
        self.messages.append(("pause", {}))

    def resume(self) -> None:
        self.messages.append(("resume", {}))

    def clear(self) -> None:
        self.messages.append(("clear", {}))

    @property
    def pending_ids(self) -> list[str]:
        """Ids added since the last ``clear``, in order."""
        ids: list[str] = []
        for name, payload in self.messages:
            if name == "add":
                ids.append(payload["hash"])
            elif name == "clear":
                ids.clear()
        return ids
