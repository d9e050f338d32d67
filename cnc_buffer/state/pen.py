"""Pen state tracking -- intended vs. confirmed.

Two live :class:`PenState` records exist for the life of a controller:

intended
    Target state implied by the last *enqueued* command.  Advanced
    optimistically on every enqueue, possibly many items ahead of the
    machine.

confirmed
    State the machine is known to have reached.  Advanced only when the
    executor reports an item finished, and always from that item's
    stored :class:`PenSnapshot`, never from ``intended``.

Positions are in device steps; ``z`` is the raw device height value
(e.g. a servo position) and ``state`` is the operational mode flag
(``"up"``, ``"draw"``, ``"wash"`` ...).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

DEFAULT_PEN_STATE = "up"


@dataclass(frozen=True, slots=True)
class PenSnapshot:
    """Immutable copy of a pen state, stored with each buffer item."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    state: str = DEFAULT_PEN_STATE

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PenSnapshot:
        """Build from a partial mapping; missing keys take defaults."""
        return cls(
            x=float(data.get("x", 0.0)),
            y=float(data.get("y", 0.0)),
            z=float(data.get("z", 0.0)),
            state=str(data.get("state", DEFAULT_PEN_STATE)),
        )


@dataclass
class PenState:
    """Mutable pen state record, updated in place."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    state: str = DEFAULT_PEN_STATE

    def snapshot(self) -> PenSnapshot:
        return PenSnapshot(x=self.x, y=self.y, z=self.z, state=self.state)

    def restore(self, snap: PenSnapshot) -> None:
        """Overwrite every field from *snap*."""
        self.x = snap.x
        self.y = snap.y
        self.z = snap.z
        self.state = snap.state


class PenTracker:
    """Owns the ``intended`` and ``confirmed`` pen states.

    Parameters
    ----------
    initial : PenSnapshot | None
        Starting state for both records.  Defaults to the origin with
        the pen up.
    """

    def __init__(self, initial: PenSnapshot | None = None) -> None:
        start = initial or PenSnapshot()
        self.intended = PenState()
        self.confirmed = PenState()
        self.intended.restore(start)
        self.confirmed.restore(start)

    def move_to(self, x: float, y: float) -> None:
        """Advance intended XY."""
        self.intended.x = x
        self.intended.y = y

    def set_height(self, z: float, state: str | None = None) -> None:
        """Advance intended height, and the mode flag when given."""
        self.intended.z = z
        if state is not None:
            self.intended.state = state

    def confirm(self, snap: PenSnapshot) -> None:
        """Set confirmed from a completed item's snapshot."""
        self.confirmed.restore(snap)

    def reset_intended(self) -> None:
        """Drop in-flight intent: intended becomes a copy of confirmed."""
        self.intended.restore(self.confirmed.snapshot())
