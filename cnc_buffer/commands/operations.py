"""Buffer commands -- the closed vocabulary of queued device work.

Every command is an immutable, slotted dataclass.  The set is closed:
``Move | Height | Wait | Message | CallbackName | Callback | Raw``.
Consumers dispatch with ``isinstance`` chains and log anything else as
unsupported.

Serial vs. non-serial
---------------------
``Move``, ``Height``, ``Wait`` and ``Raw`` render to device protocol
strings and are executed by the machine.  ``Message``, ``CallbackName``
and ``Callback`` render to nothing; they only take effect when their
item is dequeued (see ``BufferController``).

Callbacks
---------
A function reference cannot cross the process boundary to the executor,
so ``Callback`` carries only an opaque ``token``.  The controller keeps
the matching completion future out-of-band and resolves it on dequeue.
"""

from __future__ import annotations

import math
from abc import ABC
from dataclasses import dataclass
from typing import Any, ClassVar

from cnc_buffer.state.pen import PenSnapshot


class UnknownCommandError(ValueError):
    """Raised when a command kind string is not part of the vocabulary."""

    pass


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Command(ABC):
    """Base class for all buffer commands."""

    kind: ClassVar[str] = ""
    serial: ClassVar[bool] = True

    def to_dict(self) -> dict[str, Any]:
        """Plain-data form used for hashing and observer payloads."""
        return {"type": self.kind}


# ---------------------------------------------------------------------------
# Serial commands
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Move(Command):
    """Absolute XY move.

    Parameters
    ----------
    x, y : float
        Target position in device steps.
    source : PenSnapshot | None
        State the move is relative to.  ``None`` means "intended state
        at enqueue time"; the controller fills it in.
    """

    kind: ClassVar[str] = "move"

    x: float
    y: float
    source: PenSnapshot | None = None

    def __post_init__(self) -> None:
        if not (math.isfinite(self.x) and math.isfinite(self.y)):
            raise ValueError(f"move target must be finite, got ({self.x!r}, {self.y!r})")

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "x": self.x,
            "y": self.y,
            "source": self.source.to_dict() if self.source else None,
        }


@dataclass(frozen=True, slots=True)
class Height(Command):
    """Absolute tool height change.

    Parameters
    ----------
    z : float
        Target device height value.
    source : PenSnapshot | None
        State the change is relative to (``None``: intended at enqueue).
    state : str | None
        New pen mode flag (``"up"``, ``"draw"`` ...).  ``None`` keeps the
        current one.
    """

    kind: ClassVar[str] = "height"

    z: float
    source: PenSnapshot | None = None
    state: str | None = None

    def __post_init__(self) -> None:
        if not math.isfinite(self.z):
            raise ValueError(f"height must be finite, got {self.z!r}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "z": self.z,
            "state": self.state,
            "source": self.source.to_dict() if self.source else None,
        }


@dataclass(frozen=True, slots=True)
class Wait(Command):
    """Blocking dwell for the item's duration."""

    kind: ClassVar[str] = "wait"


@dataclass(frozen=True, slots=True)
class Raw(Command):
    """Pre-rendered protocol string, sent unchanged."""

    kind: ClassVar[str] = "custom"

    command: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "command": self.command}


# ---------------------------------------------------------------------------
# Non-serial commands
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Message(Command):
    """Text forwarded to observers when the item completes."""

    kind: ClassVar[str] = "message"
    serial: ClassVar[bool] = False

    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "message": self.text}


@dataclass(frozen=True, slots=True)
class CallbackName(Command):
    """Named callback, recreated by observers in another process."""

    kind: ClassVar[str] = "callbackname"
    serial: ClassVar[bool] = False

    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "name": self.name}


@dataclass(frozen=True, slots=True)
class Callback(Command):
    """In-process completion hook, referenced by token only."""

    kind: ClassVar[str] = "callback"
    serial: ClassVar[bool] = False

    token: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "token": self.token}


# ---------------------------------------------------------------------------
# String-keyed construction (job files, producer API)
# ---------------------------------------------------------------------------


def _source(data: dict[str, Any]) -> PenSnapshot | None:
    raw = data.get("source")
    if raw is None:
        return None
    if isinstance(raw, PenSnapshot):
        return raw
    return PenSnapshot.from_dict(raw)


def command_from_data(kind: str, data: Any = None) -> Command:
    """Build a command from a kind string and its data payload.

    Parameters
    ----------
    kind : str
        One of ``move``, ``height``, ``wait``, ``message``,
        ``callbackname``, ``custom``.  ``callback`` is not accepted here
        because it needs a live function; see
        ``BufferController.enqueue_callback``.
    data : Any
        ``{"x", "y", "source"?}`` for move, ``{"z", "source"?,
        "state"?}`` for height, a string for message / callbackname /
        custom, ignored for wait.

    Returns
    -------
    Command

    Raises
    ------
    UnknownCommandError
        If *kind* is not a known command kind.
    KeyError, TypeError, ValueError
        If *data* does not fit the kind.
    """
    if kind == "move":
        return Move(x=float(data["x"]), y=float(data["y"]), source=_source(data))
    if kind == "height":
        state = data.get("state")
        return Height(
            z=float(data["z"]),
            source=_source(data),
            state=str(state) if state is not None else None,
        )
    if kind == "wait":
        return Wait()
    if kind == "message":
        return Message(text=str(data))
    if kind == "callbackname":
        return CallbackName(name=str(data))
    if kind == "custom":
        if not isinstance(data, str):
            raise TypeError(f"custom command must be a string, got {type(data).__name__}")
        return Raw(command=data)
    raise UnknownCommandError(f"Unknown command kind {kind!r}")
