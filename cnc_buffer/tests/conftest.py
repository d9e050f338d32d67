"""Shared fixtures for buffer tests."""

from __future__ import annotations

import copy
from typing import Any, Callable

import pytest

from cnc_buffer.bridge.executor import RecordingExecutorBridge
from cnc_buffer.buffer.controller import BufferController
from cnc_buffer.configs.loader import BufferConfig, parse_config
from cnc_buffer.observers.notifier import RecordingObserver

BASE_CONFIG: dict[str, Any] = {
    "device": {
        "name": "testbot",
        "commands": {
            "movexy": "SM,%d,%x,%y",
            "movez": "SC,5,%z",
            "togglez": "SP,%t",
            "wait": "SM,%d,0,0",
        },
        "travel_speed_steps_s": 1000,
        "height": {
            "min": 0,
            "max": 10000,
            "full_travel_ms": 1000,
            "settle_ms": 0,
        },
    },
    "buffer": {"flip_z_toggle_bit": False},
    "connection": {
        "socket_path": "/tmp/test_runner.sock",
        "timeout_s": 3.0,
        "reconnect_attempts": 3,
        "reconnect_interval_s": 0.1,
    },
    "logging": {"level": "INFO"},
}


@pytest.fixture()
def raw_config() -> dict[str, Any]:
    """Mutable copy of the base config dict."""
    return copy.deepcopy(BASE_CONFIG)


@pytest.fixture()
def config(raw_config: dict[str, Any]) -> BufferConfig:
    return parse_config(raw_config)


@pytest.fixture()
def make_config(raw_config: dict[str, Any]) -> Callable[..., BufferConfig]:
    """Build a config with per-test overrides of the command templates."""

    def _make(commands: dict[str, str] | None = None, **device: Any) -> BufferConfig:
        data = copy.deepcopy(raw_config)
        if commands is not None:
            data["device"]["commands"] = commands
        data["device"].update(device)
        return parse_config(data)

    return _make


@pytest.fixture()
def bridge() -> RecordingExecutorBridge:
    return RecordingExecutorBridge()


@pytest.fixture()
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture()
def controller(
    config: BufferConfig,
    bridge: RecordingExecutorBridge,
    observer: RecordingObserver,
) -> BufferController:
    return BufferController(config, bridge=bridge, observers=[observer])
