"""
Buffer state module.

Holds the intended/confirmed pen state pair and the run/pause flags.
"""

from cnc_buffer.state.pen import PenSnapshot, PenState, PenTracker
from cnc_buffer.state.run import RunState

__all__ = ["PenSnapshot", "PenState", "PenTracker", "RunState"]
