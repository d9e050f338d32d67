"""
Observer module.

Side-channel buffer events for UIs and telemetry.
"""

from cnc_buffer.observers.notifier import (
    BufferObserver,
    LoggingObserver,
    ObserverHub,
    RecordingObserver,
)

__all__ = [
    "BufferObserver",
    "LoggingObserver",
    "ObserverHub",
    "RecordingObserver",
]
