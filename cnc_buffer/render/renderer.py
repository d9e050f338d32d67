"""Command renderer -- buffer commands to device protocol strings.

Every device-specific string comes from the ``device.commands`` templates
in the config.  A template is plain text with ``%key`` placeholders::

    movexy: "SM,%d,%x,%y"   ->   "SM,1768,5000,-2500"

Rendering rules:
    - ``Move``: one ``movexy`` command with the step delta from the
      move's source state.
    - ``Height``: ``movez``, then ``togglez`` when the device declares
      it, then a ``wait`` long enough for the tool to settle.
    - ``Wait``: one ``wait`` command for the item duration.
    - ``Raw``: passed through unchanged.
    - ``Message`` / ``CallbackName`` / ``Callback``: nothing.  They are
      handled on dequeue, not by the executor.

A missing template is a configuration gap: the command renders as an
empty string and a warning is logged.  Rendering never raises for it.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any

from cnc_buffer.commands.operations import (
    Callback,
    CallbackName,
    Command,
    Height,
    Message,
    Move,
    Raw,
    Wait,
)
from cnc_buffer.configs.loader import BufferConfig
from cnc_buffer.state.pen import PenSnapshot

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"%([A-Za-z_]\w*)")

MIN_DURATION_MS = 1


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _fmt(value: Any) -> str:
    """Coerce a template value to text; integral floats drop the ``.0``."""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def fill_template(template: str, values: dict[str, Any]) -> str:
    """Replace each ``%key`` in *template* whose key is in *values*.

    Placeholders without a value are left untouched.
    """

    def _sub(match: re.Match[str]) -> str:
        key = match.group(1)
        if key in values:
            return _fmt(values[key])
        return match.group(0)

    return _PLACEHOLDER.sub(_sub, template)


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------


class CommandRenderer:
    """Render buffer commands to protocol strings.

    Parameters
    ----------
    config : BufferConfig
        Validated buffer configuration (device templates and timing).
    """

    def __init__(self, config: BufferConfig) -> None:
        self._cfg = config

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def has_command(self, name: str) -> bool:
        """``True`` if the device declares template *name*."""
        return self._cfg.has_command(name)

    def cmdstr(self, name: str, values: dict[str, Any] | None = None) -> str:
        """Build one protocol string from template *name*.

        Returns ``""`` if the device does not declare the template.
        """
        template = self._cfg.get_template(name)
        if template is None:
            logger.warning(
                "Device '%s' has no '%s' command template; rendering empty",
                self._cfg.device.name,
                name,
            )
            return ""
        return fill_template(template, values or {})

    def render(self, command: Command, duration: int = MIN_DURATION_MS) -> list[str]:
        """Render *command* to the protocol strings the executor runs.

        Parameters
        ----------
        command : Command
            Command to render.
        duration : int
            Item duration in ms (used by ``Wait``).

        Returns
        -------
        list[str]
            Zero or more protocol strings, in execution order.
        """
        if isinstance(command, Move):
            return self._render_move(command)
        if isinstance(command, Height):
            return self._render_height(command)
        if isinstance(command, Wait):
            return [self.cmdstr("wait", {"d": duration})]
        if isinstance(command, Raw):
            return [command.command]
        if isinstance(command, (Message, CallbackName, Callback)):
            return []
        logger.warning("Unsupported command: %s", type(command).__name__)
        return []

    # ------------------------------------------------------------------
    # Change data
    # ------------------------------------------------------------------

    def position_change(
        self, source: PenSnapshot, x: float, y: float,
    ) -> dict[str, int]:
        """Step delta, distance and travel time from *source* to ``(x, y)``.

        Returns
        -------
        dict
            ``x``, ``y`` (step deltas), ``l`` (distance in steps),
            ``d`` (duration in ms, at least 1).
        """
        dx = int(round(x - source.x))
        dy = int(round(y - source.y))
        dist = math.hypot(dx, dy)
        speed = self._cfg.device.travel_speed_steps_s
        duration = max(MIN_DURATION_MS, int(round(dist / speed * 1000.0)))
        return {"x": dx, "y": dy, "l": int(round(dist)), "d": duration}

    def height_change(self, source_z: float, z: float) -> dict[str, int]:
        """Settle duration for a height move from *source_z* to *z*.

        Sweep time scales linearly with the fraction of the full height
        range covered, plus the fixed settle delay.
        """
        h = self._cfg.device.height
        frac = abs(z - source_z) / h.range
        duration = int(round(frac * h.full_travel_ms)) + h.settle_ms
        return {"d": max(MIN_DURATION_MS, duration)}

    # ------------------------------------------------------------------
    # Individual renderers
    # ------------------------------------------------------------------

    def _render_move(self, cmd: Move) -> list[str]:
        source = cmd.source or PenSnapshot()
        change = self.position_change(source, cmd.x, cmd.y)
        return [self.cmdstr("movexy", change)]

    def _render_height(self, cmd: Height) -> list[str]:
        source = cmd.source or PenSnapshot()
        change = self.height_change(source.z, cmd.z)

        out = [self.cmdstr("movez", {"z": cmd.z})]
        if self.has_command("togglez"):
            flip = 1 if self._cfg.buffer.flip_z_toggle_bit else 0
            out.append(self.cmdstr("togglez", {"t": flip}))
        out.append(self.cmdstr("wait", {"d": change["d"]}))
        return out
