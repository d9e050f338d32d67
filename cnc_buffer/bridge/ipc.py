"""Executor bridge over a Unix Domain Socket.

Handles:
    - Socket connection with JSON + 0x03 (ETX) framing
    - Non-blocking outbound notifications (background sender thread)
    - Inbound runner events (background reader thread)
    - **Auto-reconnect** when the runner restarts

Wire messages are ``{"command": <name>, "data": {...}}``.

Outbound (buffer -> runner):
    ``buffer.add``     ``{"hash", "commands", "duration"}``
    ``buffer.pause`` / ``buffer.resume`` / ``buffer.clear``

Inbound (runner -> buffer):
    ``buffer.item.done``  ``{"hash"?}``  oldest item finished
    ``buffer.paused``                    runner stopped at an item boundary
    ``runner.ready``                     runner connected to the device

All timeouts and retry counts come from ``BufferConfig.connection``.
"""

from __future__ import annotations

import json
import logging
import queue
import socket
import threading
import time
from typing import TYPE_CHECKING, Any, Callable

from cnc_buffer.bridge.executor import ExecutorBridge
from cnc_buffer.configs.loader import ConnectionConfig

if TYPE_CHECKING:
    from cnc_buffer.buffer.controller import BufferController

logger = logging.getLogger(__name__)

# ETX byte terminates each JSON message
ETX = b"\x03"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class BridgeError(Exception):
    """Base exception for executor bridge errors."""

    pass


class BridgeConnectionError(BridgeError):
    """Socket-level connection failure."""

    pass


# ---------------------------------------------------------------------------
# Framing
# ---------------------------------------------------------------------------


def encode_message(command: str, data: dict[str, Any] | None = None) -> bytes:
    """Frame one message for the wire."""
    payload = {"command": command, "data": data or {}}
    return json.dumps(payload).encode("utf-8") + ETX


def split_messages(buffer: bytes) -> tuple[list[dict[str, Any]], bytes]:
    """Extract every complete message from *buffer*.

    Returns the decoded messages and the unconsumed remainder.  Frames
    that are not valid JSON objects are logged and skipped.
    """
    messages: list[dict[str, Any]] = []
    while ETX in buffer:
        idx = buffer.index(ETX)
        raw = buffer[:idx]
        buffer = buffer[idx + 1:]
        try:
            msg = json.loads(raw.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.warning("Invalid JSON from runner: %s", exc)
            continue
        if isinstance(msg, dict):
            messages.append(msg)
        else:
            logger.warning("Ignoring non-object message from runner: %r", msg)
    return messages, buffer


# ---------------------------------------------------------------------------
# Bridge
# ---------------------------------------------------------------------------


class IpcExecutorBridge(ExecutorBridge):
    """UDS bridge to the executor runner with auto-reconnect.

    Parameters
    ----------
    socket_path : str
        Path of the runner's Unix Domain Socket.
    timeout : float
        Socket timeout in seconds.
    reconnect_attempts : int
        Max connection tries per (re)connect.
    reconnect_interval : float
        Seconds to wait between attempts.
    auto_reconnect : bool
        Reconnect automatically when a send fails or the runner closes
        the connection.

    Examples
    --------
    >>> bridge = IpcExecutorBridge("/tmp/cnc_runner.sock")
    >>> controller = create_controller(bridge=bridge)
    >>> bridge.attach(controller)
    >>> with bridge:
    ...     controller.run("move", {"x": 100, "y": 0})
    """

    def __init__(
        self,
        socket_path: str,
        timeout: float = 5.0,
        reconnect_attempts: int = 5,
        reconnect_interval: float = 2.0,
        auto_reconnect: bool = True,
    ) -> None:
        self.socket_path = socket_path
        self.timeout = timeout
        self.reconnect_attempts = reconnect_attempts
        self.reconnect_interval = reconnect_interval
        self.auto_reconnect = auto_reconnect

        self._sock: socket.socket | None = None
        self._sock_lock = threading.Lock()
        self._connect_lock = threading.Lock()
        self._outbox: queue.Queue[bytes] = queue.Queue()
        self._stop = threading.Event()
        self._sender: threading.Thread | None = None
        self._reader: threading.Thread | None = None

        self._on_item_done: Callable[[str | None], Any] | None = None
        self._on_paused: Callable[[], Any] | None = None

    @classmethod
    def from_config(cls, cfg: ConnectionConfig) -> IpcExecutorBridge:
        return cls(
            socket_path=cfg.socket_path,
            timeout=cfg.timeout_s,
            reconnect_attempts=cfg.reconnect_attempts,
            reconnect_interval=cfg.reconnect_interval_s,
            auto_reconnect=cfg.auto_reconnect,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        """``True`` when the socket is open."""
        return self._sock is not None

    # ------------------------------------------------------------------
    # Inbound wiring
    # ------------------------------------------------------------------

    def bind(
        self,
        on_item_done: Callable[[str | None], Any],
        on_paused: Callable[[], Any] | None = None,
    ) -> None:
        """Register handlers for inbound runner events."""
        self._on_item_done = on_item_done
        self._on_paused = on_paused

    def attach(self, controller: BufferController) -> None:
        """Route inbound events to *controller*."""
        self.bind(
            on_item_done=lambda item_id: controller.dequeue(expected_id=item_id),
            on_paused=controller.pause_reached,
        )

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """Open the socket and start the sender/reader threads.

        Raises
        ------
        BridgeConnectionError
            If the socket cannot be opened after retries.
        """
        self._stop.clear()
        self._open_socket()
        self._sender = threading.Thread(
            target=self._send_loop, name="bridge-sender", daemon=True,
        )
        self._reader = threading.Thread(
            target=self._recv_loop, name="bridge-reader", daemon=True,
        )
        self._sender.start()
        self._reader.start()

    def disconnect(self) -> None:
        """Stop the threads and close the connection.

        Notifications still in the outbox are flushed first, up to the
        socket timeout.
        """
        deadline = time.monotonic() + self.timeout
        while not self._outbox.empty() and time.monotonic() < deadline:
            if self._sender is None or not self._sender.is_alive():
                break
            time.sleep(0.01)

        self._stop.set()
        for thread in (self._sender, self._reader):
            if thread is not None and thread.is_alive():
                thread.join(timeout=2.0)
        self._sender = None
        self._reader = None
        self._close_socket()
        logger.info("Disconnected from runner")

    def _open_socket(self) -> None:
        attempts = max(1, self.reconnect_attempts)
        for attempt in range(1, attempts + 1):
            try:
                logger.info(
                    "Connecting to runner at %s (attempt %d/%d)",
                    self.socket_path,
                    attempt,
                    attempts,
                )
                sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
                sock.settimeout(self.timeout)
                sock.connect(self.socket_path)
                with self._sock_lock:
                    self._sock = sock
                logger.info("Connected to runner")
                return
            except OSError as exc:
                logger.warning("Connection attempt %d failed: %s", attempt, exc)
                if attempt < attempts and self._stop.wait(self.reconnect_interval):
                    break

        raise BridgeConnectionError(
            f"Failed to connect to runner at {self.socket_path} "
            f"after {attempts} attempts"
        )

    def _close_socket(self, sock: socket.socket | None = None) -> None:
        """Close the current socket, or only *sock* if it is still current."""
        with self._sock_lock:
            if self._sock is None or (sock is not None and self._sock is not sock):
                return
            try:
                self._sock.close()
            except OSError:
                pass
            self._sock = None

    def _reconnect(self) -> bool:
        """Reopen the socket unless another thread already has."""
        with self._connect_lock:
            if self._sock is not None:
                return True
            if self._stop.is_set():
                return False
            try:
                self._open_socket()
            except BridgeConnectionError as exc:
                logger.error("%s", exc)
                return False
            return True

    # ------------------------------------------------------------------
    # Outbound notifications (never block the caller)
    # ------------------------------------------------------------------

    def add(self, item_id: str, commands: list[str], duration: int) -> None:
        self._post("buffer.add", {
            "hash": item_id,
            "commands": list(commands),
            "duration": duration,
        })

    def pause(self) -> None:
        self._post("buffer.pause")

    def resume(self) -> None:
        self._post("buffer.resume")

    def clear(self) -> None:
        self._post("buffer.clear")

    def _post(self, command: str, data: dict[str, Any] | None = None) -> None:
        self._outbox.put(encode_message(command, data))

    def _send_loop(self) -> None:
        """Background thread draining the outbox onto the socket.

        A notification that cannot be delivered is dropped along with the
        backlog queued behind it.  The thread keeps running, so the next
        notification tries the connection again.
        """
        while not self._stop.is_set():
            try:
                frame = self._outbox.get(timeout=0.1)
            except queue.Empty:
                continue
            if not self._deliver(frame):
                dropped = 1 + self._drain_outbox()
                logger.error("Runner unreachable; dropped %d notification(s)", dropped)

    def _deliver(self, frame: bytes) -> bool:
        if self._try_send(frame):
            return True
        if not self.auto_reconnect or not self._reconnect():
            return False
        return self._try_send(frame)

    def _try_send(self, frame: bytes) -> bool:
        sock = self._sock
        if sock is None:
            return False
        try:
            sock.sendall(frame)
        except OSError as exc:
            logger.warning("Send to runner failed: %s", exc)
            self._close_socket(sock)
            return False
        return True

    def _drain_outbox(self) -> int:
        dropped = 0
        while True:
            try:
                self._outbox.get_nowait()
            except queue.Empty:
                return dropped
            dropped += 1

    # ------------------------------------------------------------------
    # Inbound events
    # ------------------------------------------------------------------

    def _recv_loop(self) -> None:
        """Background thread reading runner events."""
        buffer = b""
        while not self._stop.is_set():
            sock = self._sock
            if sock is None:
                buffer = b""
                time.sleep(0.1)
                continue
            try:
                sock.settimeout(0.1)
                chunk = sock.recv(4096)
            except socket.timeout:
                continue
            except OSError as exc:
                if not self._stop.is_set():
                    logger.warning("Receive from runner failed: %s", exc)
                time.sleep(0.1)
                continue

            if not chunk:
                logger.warning("Runner closed the connection")
                self._close_socket(sock)
                buffer = b""
                if self.auto_reconnect and not self._stop.is_set():
                    self._reconnect()
                continue

            messages, buffer = split_messages(buffer + chunk)
            for msg in messages:
                self.handle_message(msg)

    def handle_message(self, msg: dict[str, Any]) -> None:
        """Dispatch one decoded runner message."""
        command = msg.get("command")
        data = msg.get("data") or {}

        try:
            if command == "buffer.item.done":
                if self._on_item_done is None:
                    logger.warning("Item completion received but no handler is bound")
                    return
                self._on_item_done(data.get("hash"))
            elif command == "buffer.paused":
                if self._on_paused is not None:
                    self._on_paused()
            elif command == "runner.ready":
                logger.info("Runner ready: %s", data)
            else:
                logger.debug("Unhandled runner message: %s", command)
        except Exception as exc:  # noqa: BLE001
            logger.error("Runner event handler error (%s): %s", command, exc)

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> IpcExecutorBridge:
        self.connect()
        return self

    def __exit__(self, *args: Any) -> None:
        self.disconnect()
