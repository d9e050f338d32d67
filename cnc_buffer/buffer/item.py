"""Buffer items and their content-derived ids."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from cnc_buffer.commands.operations import Command
from cnc_buffer.state.pen import PenSnapshot
from src.utils.hashing import hash_dict

logger = logging.getLogger(__name__)

MIN_DURATION_MS = 1


@dataclass(frozen=True, slots=True)
class BufferItem:
    """One pending unit of work.

    Parameters
    ----------
    id : str
        Content-derived identifier; the only correlation key shared with
        the executor.
    command : Command
        Command payload.
    duration : int
        Expected run time in ms (>= 1).
    pen : PenSnapshot
        Intended pen state captured at enqueue time, after this item's
        own effect.  Copied to ``confirmed`` when the item completes.
    commands : tuple[str, ...]
        Rendered protocol strings (empty for non-serial commands).
    """

    id: str
    command: Command
    duration: int
    pen: PenSnapshot
    commands: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "command": self.command.to_dict(),
            "duration": self.duration,
            "pen": self.pen.to_dict(),
            "commands": list(self.commands),
        }


def clamp_duration(duration: Any) -> int:
    """Coerce *duration* to an integer number of ms, at least 1.

    ``None``, zero, negative, non-numeric and non-finite values all
    become 1.  Fractions are truncated.
    """
    if duration is None:
        return MIN_DURATION_MS
    try:
        value = int(float(duration))
    except (TypeError, ValueError, OverflowError):
        logger.debug("Unusable duration %r clamped to %d ms", duration, MIN_DURATION_MS)
        return MIN_DURATION_MS
    return max(MIN_DURATION_MS, value)


def compute_item_id(
    command: Command,
    duration: int,
    pen: PenSnapshot,
    sequence: int,
) -> str:
    """Hash the item content together with its enqueue sequence number.

    The sequence number keeps back-to-back identical commands distinct.
    """
    return hash_dict({
        "command": command.to_dict(),
        "duration": duration,
        "pen": pen.to_dict(),
        "seq": sequence,
    })
