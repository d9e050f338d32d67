"""Configuration loader for the command buffer.

Loads and validates ``device.yaml`` into typed, frozen dataclasses.
The device profile supplies the protocol command templates and the
timing constants used when rendering moves and height changes; nothing
device-specific is hardcoded in the renderer.

Positions are in device **steps**, durations in **milliseconds**.

Usage::

    from cnc_buffer.configs.loader import load_config
    cfg = load_config()                      # default path
    cfg = load_config("/custom/device.yaml") # explicit path
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from src.utils.fs import load_yaml

logger = logging.getLogger(__name__)

# Templates the renderer reaches for; absence only degrades rendering.
CORE_TEMPLATES = ("movexy", "movez", "wait")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


# ---------------------------------------------------------------------------
# Dataclasses -- mirror the YAML structure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HeightConfig:
    """Tool height range and settle timing.

    ``full_travel_ms`` is the time to sweep from ``min_z`` to ``max_z``;
    partial moves are scaled linearly, then ``settle_ms`` is added.
    """

    min_z: float
    max_z: float
    full_travel_ms: float
    settle_ms: int = 0

    @property
    def range(self) -> float:
        return self.max_z - self.min_z


@dataclass(frozen=True)
class DeviceConfig:
    """Per-device protocol profile.

    Parameters
    ----------
    name : str
        Human-readable device name.
    commands : dict[str, str]
        Template name -> template string with ``%key`` placeholders,
        e.g. ``{"movexy": "SM,%d,%x,%y"}``.
    travel_speed_steps_s : float
        XY speed used to derive move durations.
    height : HeightConfig
        Height range and settle timing.
    """

    name: str
    commands: dict[str, str]
    travel_speed_steps_s: float
    height: HeightConfig


@dataclass(frozen=True)
class BufferSettings:
    """Buffer behaviour switches."""

    flip_z_toggle_bit: bool = False


@dataclass(frozen=True)
class ConnectionConfig:
    """Executor runner IPC settings."""

    socket_path: str
    timeout_s: float
    reconnect_attempts: int
    reconnect_interval_s: float
    auto_reconnect: bool = True


@dataclass(frozen=True)
class LoggingConfig:
    """Arguments forwarded to ``setup_logging``."""

    level: str = "INFO"
    file: str | None = None
    json: bool = False


@dataclass(frozen=True)
class BufferConfig:
    """Complete configuration loaded from ``device.yaml``."""

    device: DeviceConfig
    buffer: BufferSettings
    connection: ConnectionConfig
    logging: LoggingConfig

    # -- Convenience helpers ------------------------------------------------

    def get_template(self, name: str) -> str | None:
        """Return the command template *name*, or ``None`` if undeclared."""
        return self.device.commands.get(name) or None

    def has_command(self, name: str) -> bool:
        return self.get_template(name) is not None


# ---------------------------------------------------------------------------
# Internal parsing helpers
# ---------------------------------------------------------------------------


def _parse_commands(data: Any) -> dict[str, str]:
    """Parse the ``device.commands`` mapping."""
    if not isinstance(data, dict):
        raise ConfigError(
            f"device.commands must be a mapping, got {type(data).__name__}"
        )
    commands: dict[str, str] = {}
    for name, template in data.items():
        if template is None:
            continue
        if not isinstance(template, str):
            raise ConfigError(
                f"Command template '{name}' must be a string, got {template!r}"
            )
        commands[str(name)] = template
    return commands


def _parse_height(data: dict[str, Any]) -> HeightConfig:
    """Parse the ``device.height`` section."""
    return HeightConfig(
        min_z=float(data["min"]),
        max_z=float(data["max"]),
        full_travel_ms=float(data["full_travel_ms"]),
        settle_ms=int(data.get("settle_ms", 0)),
    )


def _parse_device(data: dict[str, Any]) -> DeviceConfig:
    """Parse the ``device`` section."""
    return DeviceConfig(
        name=str(data.get("name", "unnamed")),
        commands=_parse_commands(data.get("commands", {})),
        travel_speed_steps_s=float(data["travel_speed_steps_s"]),
        height=_parse_height(data["height"]),
    )


def _parse_logging(data: dict[str, Any] | None) -> LoggingConfig:
    """Parse the optional ``logging`` section."""
    if not data:
        return LoggingConfig()
    file = data.get("file")
    return LoggingConfig(
        level=str(data.get("level", "INFO")).upper(),
        file=str(file) if file else None,
        json=bool(data.get("json", False)),
    )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _validate_config(cfg: BufferConfig) -> None:
    """Validate cross-field consistency.

    Raises
    ------
    ConfigError
        On any invalid combination.
    """
    d = cfg.device

    # -- Missing templates are a configuration gap, not an error ------------
    missing = [name for name in CORE_TEMPLATES if not cfg.has_command(name)]
    if missing:
        logger.warning(
            "Device '%s' declares no template for %s; those commands "
            "will render empty",
            d.name,
            ", ".join(missing),
        )

    if d.travel_speed_steps_s <= 0:
        raise ConfigError(
            f"travel_speed_steps_s must be > 0, got {d.travel_speed_steps_s}"
        )

    h = d.height
    if h.max_z <= h.min_z:
        raise ConfigError(
            f"height.max ({h.max_z}) must be greater than "
            f"height.min ({h.min_z})"
        )
    if h.full_travel_ms < 0:
        raise ConfigError(
            f"height.full_travel_ms must be >= 0, got {h.full_travel_ms}"
        )
    if h.settle_ms < 0:
        raise ConfigError(f"height.settle_ms must be >= 0, got {h.settle_ms}")

    c = cfg.connection
    if c.timeout_s <= 0:
        raise ConfigError(f"timeout_s must be > 0, got {c.timeout_s}")
    if c.reconnect_attempts < 0:
        raise ConfigError(
            f"reconnect_attempts must be >= 0, got {c.reconnect_attempts}"
        )
    if c.reconnect_interval_s < 0:
        raise ConfigError(
            f"reconnect_interval_s must be >= 0, got {c.reconnect_interval_s}"
        )

    if cfg.logging.level not in LOG_LEVELS:
        raise ConfigError(
            f"logging.level must be one of {LOG_LEVELS}, "
            f"got '{cfg.logging.level}'"
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_config(data: dict[str, Any]) -> BufferConfig:
    """Build and validate a :class:`BufferConfig` from raw YAML data.

    Raises
    ------
    ConfigError
        If any field is missing or fails validation.
    """
    try:
        device = _parse_device(data["device"])

        bd = data.get("buffer") or {}
        buffer = BufferSettings(
            flip_z_toggle_bit=bool(bd.get("flip_z_toggle_bit", False)),
        )

        cd = data["connection"]
        connection = ConnectionConfig(
            socket_path=str(cd["socket_path"]),
            timeout_s=float(cd["timeout_s"]),
            reconnect_attempts=int(cd["reconnect_attempts"]),
            reconnect_interval_s=float(cd["reconnect_interval_s"]),
            auto_reconnect=bool(cd.get("auto_reconnect", True)),
        )

        config = BufferConfig(
            device=device,
            buffer=buffer,
            connection=connection,
            logging=_parse_logging(data.get("logging")),
        )
    except KeyError as exc:
        raise ConfigError(
            f"Missing required configuration key: {exc}"
        ) from exc
    except (TypeError, ValueError) as exc:
        raise ConfigError(
            f"Invalid configuration value: {exc}"
        ) from exc

    _validate_config(config)
    return config


def load_config(path: str | Path | None = None) -> BufferConfig:
    """Load and validate buffer configuration from YAML.

    Parameters
    ----------
    path : str | Path | None
        Path to ``device.yaml``.  ``None`` loads the default shipped
        alongside this module.

    Returns
    -------
    BufferConfig
        Fully validated, frozen configuration object.

    Raises
    ------
    ConfigError
        If any field is missing or fails validation.
    FileNotFoundError
        If *path* does not exist.
    """
    if path is None:
        path = Path(__file__).parent / "device.yaml"
    else:
        path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    logger.info("Loading configuration from %s", path)

    data: dict[str, Any] = load_yaml(path)
    if data is None:
        raise ConfigError(f"Empty configuration file: {path}")

    config = parse_config(data)
    logger.info("Configuration loaded successfully (device: %s)", config.device.name)
    return config
