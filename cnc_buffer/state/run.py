"""Buffer run state: running / paused / pause pending."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass
class RunState:
    """Process-wide execution flags.

    Attributes
    ----------
    running : bool
        Items are buffered and execution is not paused.
    paused : bool
        Pause has been requested (advisory to the executor).
    pause_pending : bool
        Pause requested while an item was in flight; cleared once the
        executor reaches the next item boundary.
    """

    running: bool = False
    paused: bool = False
    pause_pending: bool = False

    def copy(self) -> RunState:
        return RunState(
            running=self.running,
            paused=self.paused,
            pause_pending=self.pause_pending,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
