"""Buffer observers -- side-channel event sinks.

Observers receive buffer events for UIs and telemetry.  They never feed
back into the queue, and a failing observer must not disturb the
buffer: :class:`ObserverHub` logs and swallows observer exceptions, the
same way progress callbacks are isolated in the executor.

Events:
    item_added(item)          item_removed(item)
    pen_changed(pen)          message(text)
    callback_name(name)       reset()
    run_state_changed(state)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from cnc_buffer.state.pen import PenSnapshot
from cnc_buffer.state.run import RunState

if TYPE_CHECKING:
    from cnc_buffer.buffer.item import BufferItem

logger = logging.getLogger(__name__)


class BufferObserver:
    """Base observer; every event is a no-op.  Override what you need."""

    def item_added(self, item: BufferItem) -> None:
        pass

    def item_removed(self, item: BufferItem) -> None:
        pass

    def pen_changed(self, pen: PenSnapshot) -> None:
        pass

    def message(self, text: str) -> None:
        pass

    def callback_name(self, name: str) -> None:
        pass

    def reset(self) -> None:
        pass

    def run_state_changed(self, state: RunState) -> None:
        pass


class LoggingObserver(BufferObserver):
    """Write every event to the log."""

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    def item_added(self, item: BufferItem) -> None:
        logger.log(self.level, "Buffer add %s: %s", item.id[:12], item.command.kind)

    def item_removed(self, item: BufferItem) -> None:
        logger.log(self.level, "Buffer remove %s: %s", item.id[:12], item.command.kind)

    def pen_changed(self, pen: PenSnapshot) -> None:
        logger.log(
            self.level,
            "Pen at (%g, %g) z=%g state=%s",
            pen.x, pen.y, pen.z, pen.state,
        )

    def message(self, text: str) -> None:
        logger.log(self.level, "Message: %s", text)

    def callback_name(self, name: str) -> None:
        logger.log(self.level, "Callback: %s", name)

    def reset(self) -> None:
        logger.log(self.level, "Buffer cleared")

    def run_state_changed(self, state: RunState) -> None:
        logger.log(
            self.level,
            "Run state: running=%s paused=%s pause_pending=%s",
            state.running, state.paused, state.pause_pending,
        )


class RecordingObserver(BufferObserver):
    """Keep every event as ``(name, payload)`` in ``events``."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def item_added(self, item: BufferItem) -> None:
        self.events.append(("item_added", item))

    def item_removed(self, item: BufferItem) -> None:
        self.events.append(("item_removed", item))

    def pen_changed(self, pen: PenSnapshot) -> None:
        self.events.append(("pen_changed", pen))

    def message(self, text: str) -> None:
        self.events.append(("message", text))

    def callback_name(self, name: str) -> None:
        self.events.append(("callback_name", name))

    def reset(self) -> None:
        self.events.append(("reset", None))

    def run_state_changed(self, state: RunState) -> None:
        self.events.append(("run_state_changed", state.copy()))


class ObserverHub(BufferObserver):
    """Fan events out to registered observers, isolating failures."""

    def __init__(self, observers: list[BufferObserver] | None = None) -> None:
        self._observers: list[BufferObserver] = list(observers or [])

    def __len__(self) -> int:
        return len(self._observers)

    def add(self, observer: BufferObserver) -> None:
        self._observers.append(observer)

    def remove(self, observer: BufferObserver) -> None:
        self._observers.remove(observer)

    def _emit(self, event: str, *args: Any) -> None:
        for obs in list(self._observers):
            try:
                getattr(obs, event)(*args)
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "Observer %s failed on %s: %s",
                    type(obs).__name__, event, exc,
                )

    def item_added(self, item: BufferItem) -> None:
        self._emit("item_added", item)

    def item_removed(self, item: BufferItem) -> None:
        self._emit("item_removed", item)

    def pen_changed(self, pen: PenSnapshot) -> None:
        self._emit("pen_changed", pen)

    def message(self, text: str) -> None:
        self._emit("message", text)

    def callback_name(self, name: str) -> None:
        self._emit("callback_name", name)

    def reset(self) -> None:
        self._emit("reset")

    def run_state_changed(self, state: RunState) -> None:
        self._emit("run_state_changed", state)
