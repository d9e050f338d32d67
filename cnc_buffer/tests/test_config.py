"""Tests for configuration loading and validation."""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any

import pytest
import yaml

from cnc_buffer.configs.loader import (
    BufferConfig,
    ConfigError,
    load_config,
    parse_config,
)


class TestDefaultConfig:
    def test_shipped_profile_loads(self) -> None:
        cfg = load_config()
        assert isinstance(cfg, BufferConfig)
        assert cfg.device.name == "eggbot"
        assert cfg.get_template("movexy") == "SM,%d,%x,%y"
        assert cfg.has_command("togglez")

    def test_shipped_connection(self) -> None:
        cfg = load_config()
        assert cfg.connection.socket_path.endswith(".sock")
        assert cfg.connection.auto_reconnect is True

    def test_explicit_path(self, tmp_path: Path, raw_config: dict[str, Any]) -> None:
        path = tmp_path / "device.yaml"
        path.write_text(yaml.safe_dump(raw_config))
        cfg = load_config(path)
        assert cfg.device.name == "testbot"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "device.yaml"
        path.write_text("")
        with pytest.raises(ConfigError, match="Empty"):
            load_config(path)


class TestParseConfig:
    def test_frozen(self, config: BufferConfig) -> None:
        with pytest.raises(AttributeError):
            config.device = None  # type: ignore[misc]

    def test_height_range(self, config: BufferConfig) -> None:
        assert config.device.height.range == 10000.0

    def test_missing_template_lookup(self, config: BufferConfig) -> None:
        assert config.get_template("penup") is None
        assert not config.has_command("penup")

    def test_null_template_is_skipped(self, raw_config: dict[str, Any]) -> None:
        raw_config["device"]["commands"]["togglez"] = None
        cfg = parse_config(raw_config)
        assert not cfg.has_command("togglez")

    def test_logging_defaults(self, raw_config: dict[str, Any]) -> None:
        del raw_config["logging"]
        cfg = parse_config(raw_config)
        assert cfg.logging.level == "INFO"
        assert cfg.logging.file is None

    def test_missing_core_template_only_warns(
        self, raw_config: dict[str, Any], caplog: pytest.LogCaptureFixture,
    ) -> None:
        del raw_config["device"]["commands"]["wait"]
        with caplog.at_level(logging.WARNING):
            cfg = parse_config(raw_config)
        assert not cfg.has_command("wait")
        assert "wait" in caplog.text


class TestValidation:
    @pytest.mark.parametrize(
        ("path", "value", "match"),
        [
            (("device", "travel_speed_steps_s"), 0, "travel_speed_steps_s"),
            (("device", "height", "max"), -1, "height.max"),
            (("device", "height", "full_travel_ms"), -5, "full_travel_ms"),
            (("device", "height", "settle_ms"), -1, "settle_ms"),
            (("connection", "timeout_s"), 0, "timeout_s"),
            (("connection", "reconnect_attempts"), -1, "reconnect_attempts"),
            (("logging", "level"), "LOUD", "logging.level"),
        ],
    )
    def test_invalid_values(
        self,
        raw_config: dict[str, Any],
        path: tuple[str, ...],
        value: Any,
        match: str,
    ) -> None:
        data = copy.deepcopy(raw_config)
        node = data
        for key in path[:-1]:
            node = node[key]
        node[path[-1]] = value
        with pytest.raises(ConfigError, match=match):
            parse_config(data)

    def test_missing_section(self, raw_config: dict[str, Any]) -> None:
        del raw_config["connection"]
        with pytest.raises(ConfigError, match="Missing required"):
            parse_config(raw_config)

    def test_non_numeric_value(self, raw_config: dict[str, Any]) -> None:
        raw_config["device"]["travel_speed_steps_s"] = "fast"
        with pytest.raises(ConfigError, match="Invalid configuration value"):
            parse_config(raw_config)

    def test_commands_must_be_mapping(self, raw_config: dict[str, Any]) -> None:
        raw_config["device"]["commands"] = ["SM"]
        with pytest.raises(ConfigError, match="mapping"):
            parse_config(raw_config)
