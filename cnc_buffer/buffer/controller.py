"""Buffer controller -- enqueue/dequeue orchestration and pause control.

The controller is the single owner of the buffer state (store, pen
tracker, run flags).  Every entry point takes the same re-entrant lock,
so producers on any number of threads and the bridge's reader thread are
serialized.

Enqueue
    clamp duration -> advance intended pen -> snapshot -> render ->
    id -> store -> bridge ``add`` -> observers ``item_added``.

Dequeue (executor finished the oldest item)
    pop oldest -> confirmed := item snapshot -> ``pen_changed`` ->
    side effect (callback / message / callback name) -> ``item_removed``.

Pause is advisory: the bridge tells the executor to stop at the next
item boundary.  With items in flight the pause stays *pending* until the
executor reports the boundary (``pause_reached``) or the next item
completes.

Errors never escape ``enqueue`` / ``dequeue``: enqueue returns ``False``
and dequeue returns a :class:`DequeueResult`.  A desync between the
executor and the buffer is logged at CRITICAL and left for the process
supervisor; it is not repaired here.
"""

from __future__ import annotations

import dataclasses
import itertools
import logging
import threading
import uuid
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Iterable

from cnc_buffer.bridge.executor import ExecutorBridge, NullExecutorBridge
from cnc_buffer.buffer.item import (
    BufferItem,
    clamp_duration,
    compute_item_id,
)
from cnc_buffer.buffer.store import (
    BufferInvariantError,
    BufferStore,
    DuplicateIdError,
)
from cnc_buffer.commands.operations import (
    Callback,
    CallbackName,
    Command,
    Height,
    Message,
    Move,
    UnknownCommandError,
    Wait,
    command_from_data,
)
from cnc_buffer.configs.loader import BufferConfig, load_config
from cnc_buffer.observers.notifier import BufferObserver, ObserverHub
from cnc_buffer.render.renderer import CommandRenderer
from cnc_buffer.state.pen import PenSnapshot, PenTracker
from cnc_buffer.state.run import RunState

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class DequeueStatus(Enum):
    """Outcome of a dequeue request."""

    OK = auto()
    EMPTY = auto()
    DESYNC = auto()


@dataclass(frozen=True)
class DequeueResult:
    """Dequeue outcome; ``item`` is set only for ``OK``."""

    status: DequeueStatus
    item: BufferItem | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status is DequeueStatus.OK


def _resolved(value: Any) -> Future:
    future: Future = Future()
    future.set_result(value)
    return future


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------


class BufferController:
    """Owner of the command buffer.

    Parameters
    ----------
    config : BufferConfig
        Device profile and buffer settings.
    bridge : ExecutorBridge | None
        Outbound executor notifications.  Defaults to a logging no-op.
    observers : Iterable[BufferObserver]
        Event sinks.
    initial_pen : PenSnapshot | None
        Starting pen state for both intended and confirmed.
    """

    def __init__(
        self,
        config: BufferConfig,
        bridge: ExecutorBridge | None = None,
        observers: Iterable[BufferObserver] = (),
        initial_pen: PenSnapshot | None = None,
    ) -> None:
        self._cfg = config
        self._renderer = CommandRenderer(config)
        self._store = BufferStore()
        self._pen = PenTracker(initial_pen)
        self._bridge: ExecutorBridge = bridge or NullExecutorBridge()
        self._observers = ObserverHub(list(observers))

        self._lock = threading.RLock()
        self._sequence = itertools.count()
        self._run_state = RunState()
        self._published = self._run_state.copy()
        self._completions: dict[str, Future] = {}
        self._pause_waiter: Future | None = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def config(self) -> BufferConfig:
        return self._cfg

    @property
    def renderer(self) -> CommandRenderer:
        return self._renderer

    @property
    def observers(self) -> ObserverHub:
        return self._observers

    @property
    def intended(self) -> PenSnapshot:
        with self._lock:
            return self._pen.intended.snapshot()

    @property
    def confirmed(self) -> PenSnapshot:
        with self._lock:
            return self._pen.confirmed.snapshot()

    @property
    def run_state(self) -> RunState:
        with self._lock:
            return self._run_state.copy()

    def items(self) -> list[BufferItem]:
        """Buffered items, oldest first."""
        with self._lock:
            return self._store.peek_all()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    # ------------------------------------------------------------------
    # Enqueue
    # ------------------------------------------------------------------

    def enqueue(self, command: Command, duration: Any = None) -> bool:
        """Add *command* to the end of the buffer.

        Parameters
        ----------
        command : Command
            Command to queue.  ``Move`` / ``Height`` without a source are
            made relative to the current intended state.
        duration : Any
            Expected run time in ms; clamped to an integer >= 1.

        Returns
        -------
        bool
            ``True`` if queued.  ``False`` (nothing changed) for a value
            that is not a command, a ``Wait`` on a device without a
            ``wait`` template, or a rejected duplicate id.
        """
        if not isinstance(command, Command):
            logger.warning(
                "Rejected enqueue of non-command %s", type(command).__name__,
            )
            return False

        with self._lock:
            if isinstance(command, Wait) and not self._renderer.has_command("wait"):
                logger.warning(
                    "Device '%s' cannot wait: no 'wait' template",
                    self._cfg.device.name,
                )
                return False

            duration = clamp_duration(duration)
            before = self._pen.intended.snapshot()
            command = self._bind_source(command, before)
            try:
                self._advance_intended(command)
                snapshot = self._pen.intended.snapshot()
                rendered = self._renderer.render(command, duration)
                item = BufferItem(
                    id=compute_item_id(command, duration, snapshot, next(self._sequence)),
                    command=command,
                    duration=duration,
                    pen=snapshot,
                    commands=tuple(rendered),
                )
            except Exception as exc:  # noqa: BLE001
                self._pen.intended.restore(before)
                logger.error("Enqueue of %s failed: %s", command.kind, exc)
                return False

            try:
                self._store.enqueue(item)
            except DuplicateIdError as exc:
                self._pen.intended.restore(before)
                logger.error("Enqueue rejected: %s", exc)
                return False

            self._send("add", item.id, list(item.commands), item.duration)
            self._observers.item_added(item)
            self._publish_run_state()
            return True

    def run(self, kind: str, data: Any = None, duration: Any = None) -> bool:
        """String-keyed enqueue for producers and job files.

        Parameters
        ----------
        kind : str
            ``move``, ``height``, ``wait``, ``message``, ``callbackname``,
            ``custom`` or ``callback`` (with a callable as *data*).
        data : Any
            Kind-specific payload (see ``command_from_data``).
        duration : Any
            Expected run time in ms.

        Returns
        -------
        bool
            ``False`` for an unknown kind or malformed data.
        """
        if kind == "callback":
            if not callable(data):
                logger.warning("callback command needs a callable, got %r", data)
                return False
            future = self.enqueue_callback(data, duration)
            return not future.cancelled()

        try:
            command = command_from_data(kind, data)
        except UnknownCommandError as exc:
            logger.warning("%s", exc)
            return False
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.warning("Malformed %s command data %r: %s", kind, data, exc)
            return False
        return self.enqueue(command, duration)

    def enqueue_callback(
        self,
        fn: Callable[[bool], Any] | None = None,
        duration: Any = None,
    ) -> Future:
        """Queue a completion hook.

        Returns a future that resolves to ``True`` once every item queued
        before it has executed and it reaches the front of the buffer.
        ``clear()`` cancels it.  *fn*, when given, is called with ``True``
        on completion, on the thread that dequeues the item and after the
        controller lock is released, so it may enqueue or wait on other
        threads that do.
        """
        future: Future = Future()
        if fn is not None:
            future.add_done_callback(_completion_adapter(fn))

        token = uuid.uuid4().hex
        with self._lock:
            self._completions[token] = future
            if not self.enqueue(Callback(token=token), duration):
                self._completions.pop(token, None)
                future.cancel()
        return future

    def _bind_source(self, command: Command, source: PenSnapshot) -> Command:
        if isinstance(command, (Move, Height)) and command.source is None:
            return dataclasses.replace(command, source=source)
        return command

    def _advance_intended(self, command: Command) -> None:
        if isinstance(command, Move):
            self._pen.move_to(command.x, command.y)
        elif isinstance(command, Height):
            self._pen.set_height(command.z, command.state)

    # ------------------------------------------------------------------
    # Dequeue
    # ------------------------------------------------------------------

    def dequeue(self, expected_id: str | None = None) -> DequeueResult:
        """Remove the oldest item after the executor finished it.

        Parameters
        ----------
        expected_id : str | None
            Id the executor says it finished.  A mismatch with the oldest
            item is reported as ``DESYNC`` and nothing is removed.

        Returns
        -------
        DequeueResult
        """
        with self._lock:
            if expected_id is not None:
                oldest = self._store.peek_oldest()
                if oldest is not None and oldest.id != expected_id:
                    msg = (
                        f"Executor finished {expected_id[:12]} but the oldest "
                        f"buffered item is {oldest.id[:12]}"
                    )
                    logger.critical("Buffer desync: %s", msg)
                    return DequeueResult(DequeueStatus.DESYNC, message=msg)

            try:
                item = self._store.dequeue_oldest()
            except BufferInvariantError as exc:
                logger.critical("Buffer desync: %s", exc)
                return DequeueResult(DequeueStatus.DESYNC, message=str(exc))

            if item is None:
                logger.warning("Dequeue requested on an empty buffer; ignoring")
                return DequeueResult(DequeueStatus.EMPTY, message="buffer empty")

            logger.debug("Removing item %s (%s)", item.id[:12], item.command.kind)

            self._pen.confirm(item.pen)
            self._observers.pen_changed(item.pen)
            _, completion = self._side_effect(item)
            self._observers.item_removed(item)

            pause_waiter = None
            if self._run_state.pause_pending:
                pause_waiter = self._complete_pause()
            self._publish_run_state()

        # Done-callbacks run on this thread; resolve with the lock released.
        _settle(completion, pause_waiter)
        return DequeueResult(DequeueStatus.OK, item=item)

    def trigger(self, item: BufferItem) -> bool:
        """Run the side effect of a non-serial item.

        Returns ``True`` if *item* had one.
        """
        handled, completion = self._side_effect(item)
        _settle(completion)
        return handled

    def _side_effect(self, item: BufferItem) -> tuple[bool, Future | None]:
        """Fire observer side effects; hand back a callback future unresolved."""
        cmd = item.command
        if isinstance(cmd, Callback):
            with self._lock:
                future = self._completions.pop(cmd.token, None)
            if future is None:
                logger.warning("No completion registered for callback %s", cmd.token)
            return True, future
        if isinstance(cmd, Message):
            self._observers.message(cmd.text)
            return True, None
        if isinstance(cmd, CallbackName):
            self._observers.callback_name(cmd.name)
            return True, None
        return False, None

    # ------------------------------------------------------------------
    # Pause / resume / clear
    # ------------------------------------------------------------------

    def pause(self) -> Future:
        """Pause execution (idempotent).

        Returns a future resolving to ``True`` once the executor has
        actually stopped.  That is immediate when nothing is buffered.
        """
        with self._lock:
            if self._run_state.paused:
                return self._pause_waiter or _resolved(True)

            self._run_state.paused = True
            if len(self._store):
                self._run_state.pause_pending = True
                self._pause_waiter = Future()
                waiter = self._pause_waiter
            else:
                waiter = _resolved(True)

            logger.info("Buffer paused (%d items buffered)", len(self._store))
            self._send("pause")
            self._publish_run_state(force=True)
            return waiter

    def resume(self) -> None:
        """Resume execution (idempotent)."""
        with self._lock:
            if not self._run_state.paused:
                return

            self._run_state.paused = False
            self._run_state.pause_pending = False
            waiter, self._pause_waiter = self._pause_waiter, None

            logger.info("Buffer resumed (%d items buffered)", len(self._store))
            self._send("resume")
            self._publish_run_state(force=True)

        if waiter is not None:
            waiter.cancel()

    def toggle(self, paused: bool) -> None:
        """Pause or resume only if the state differs from *paused*."""
        with self._lock:
            if paused and not self._run_state.paused:
                self.pause()
            elif not paused and self._run_state.paused:
                self.resume()

    def pause_reached(self) -> None:
        """Executor reports it stopped at an item boundary."""
        with self._lock:
            if not self._run_state.pause_pending:
                return
            waiter = self._complete_pause()
            self._publish_run_state()
        _settle(waiter)

    def clear(self) -> None:
        """Drop every buffered item and reset intended to confirmed.

        Pending callback futures are cancelled: their items will never
        run.
        """
        with self._lock:
            dropped = len(self._store)
            self._store.clear()
            self._pen.reset_intended()

            completions = list(self._completions.values())
            self._completions.clear()

            waiter = None
            if self._run_state.pause_pending:
                waiter = self._complete_pause()

            logger.info("Buffer cleared (%d items dropped)", dropped)
            self._send("clear")
            self._observers.reset()
            self._publish_run_state()

        for future in completions:
            future.cancel()
        _settle(waiter)

    def _complete_pause(self) -> Future | None:
        """Leave the pending state; the caller resolves the returned waiter."""
        self._run_state.pause_pending = False
        waiter, self._pause_waiter = self._pause_waiter, None
        return waiter

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _send(self, method: str, *args: Any) -> None:
        """Fire one bridge notification; bridge failures are logged."""
        try:
            getattr(self._bridge, method)(*args)
        except Exception as exc:  # noqa: BLE001
            logger.error("Executor bridge %s failed: %s", method, exc)

    def _publish_run_state(self, force: bool = False) -> None:
        self._run_state.running = bool(len(self._store)) and not self._run_state.paused
        if force or self._run_state != self._published:
            self._published = self._run_state.copy()
            self._observers.run_state_changed(self._run_state.copy())


def _settle(*futures: Future | None) -> None:
    for future in futures:
        if future is not None and not future.done():
            future.set_result(True)


def _completion_adapter(fn: Callable[[bool], Any]) -> Callable[[Future], None]:
    def _done(future: Future) -> None:
        if future.cancelled():
            return
        try:
            fn(future.result())
        except Exception as exc:  # noqa: BLE001
            logger.error("Completion callback error: %s", exc)

    return _done


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_controller(
    config: BufferConfig | None = None,
    bridge: ExecutorBridge | None = None,
    observers: Iterable[BufferObserver] = (),
) -> BufferController:
    """Build the process's buffer controller.

    ``config`` defaults to the shipped ``device.yaml``.
    """
    if config is None:
        config = load_config()
    return BufferController(config, bridge=bridge, observers=observers)
