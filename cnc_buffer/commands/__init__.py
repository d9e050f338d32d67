"""
Buffer command module.

Defines every queued command as an immutable dataclass.  This vocabulary
is the contract between producers (drawing/job logic) and the buffer.

All positions are in device steps; durations are integer milliseconds.
"""

from cnc_buffer.commands.operations import (
    Callback,
    CallbackName,
    Command,
    Height,
    Message,
    Move,
    Raw,
    UnknownCommandError,
    Wait,
    command_from_data,
)

__all__ = [
    "Callback",
    "CallbackName",
    "Command",
    "Height",
    "Message",
    "Move",
    "Raw",
    "UnknownCommandError",
    "Wait",
    "command_from_data",
]
