"""Device profile and buffer configuration loading and validation."""

from cnc_buffer.configs.loader import (
    BufferConfig,
    BufferSettings,
    ConfigError,
    ConnectionConfig,
    DeviceConfig,
    HeightConfig,
    LoggingConfig,
    load_config,
    parse_config,
)

__all__ = [
    "BufferConfig",
    "BufferSettings",
    "ConfigError",
    "ConnectionConfig",
    "DeviceConfig",
    "HeightConfig",
    "LoggingConfig",
    "load_config",
    "parse_config",
]
