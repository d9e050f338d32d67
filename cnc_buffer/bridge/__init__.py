"""
Executor bridge module.

Outbound notifications to the executor process (add / pause / resume /
clear) and, for the socket bridge, inbound completion events.
"""

from cnc_buffer.bridge.executor import (
    ExecutorBridge,
    NullExecutorBridge,
    RecordingExecutorBridge,
)
from cnc_buffer.bridge.ipc import (
    BridgeConnectionError,
    BridgeError,
    IpcExecutorBridge,
)

__all__ = [
    "BridgeConnectionError",
    "BridgeError",
    "ExecutorBridge",
    "IpcExecutorBridge",
    "NullExecutorBridge",
    "RecordingExecutorBridge",
]
