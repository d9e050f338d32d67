"""Tests for buffer commands.

Validates dataclass creation, immutability, plain-data form and the
string-keyed constructor used by job files.
"""

from __future__ import annotations

from dataclasses import FrozenInstanceError

import pytest

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
from cnc_buffer.state.pen import PenSnapshot


# ---------------------------------------------------------------------------
# Dataclass creation and immutability
# ---------------------------------------------------------------------------


class TestCommandDataclasses:
    def test_move(self) -> None:
        cmd = Move(x=10.0, y=-5.0)
        assert isinstance(cmd, Command)
        assert cmd.source is None
        assert cmd.kind == "move"

    def test_height_keeps_state_optional(self) -> None:
        assert Height(z=100.0).state is None
        assert Height(z=100.0, state="draw").state == "draw"

    @pytest.mark.parametrize(
        ("x", "y"),
        [(float("inf"), 0.0), (0.0, float("-inf")), (float("nan"), 1.0)],
    )
    def test_move_rejects_non_finite(self, x: float, y: float) -> None:
        with pytest.raises(ValueError, match="finite"):
            Move(x=x, y=y)

    @pytest.mark.parametrize("z", [float("inf"), float("nan")])
    def test_height_rejects_non_finite(self, z: float) -> None:
        with pytest.raises(ValueError, match="finite"):
            Height(z=z)

    def test_frozen(self) -> None:
        cmd = Move(x=1.0, y=2.0)
        with pytest.raises(FrozenInstanceError):
            cmd.x = 3.0  # type: ignore[misc]

    def test_serial_flags(self) -> None:
        for cmd in (Move(x=0, y=0), Height(z=0), Wait(), Raw(command="X")):
            assert cmd.serial
        for cmd in (Message(text="hi"), CallbackName(name="n"), Callback(token="t")):
            assert not cmd.serial

    def test_equality_by_value(self) -> None:
        assert Move(x=1.0, y=2.0) == Move(x=1.0, y=2.0)
        assert Wait() == Wait()
        assert Message(text="a") != Message(text="b")


# ---------------------------------------------------------------------------
# Plain-data form
# ---------------------------------------------------------------------------


class TestToDict:
    def test_move_with_source(self) -> None:
        src = PenSnapshot(x=1.0, y=2.0, z=3.0, state="draw")
        d = Move(x=5.0, y=6.0, source=src).to_dict()
        assert d["type"] == "move"
        assert d["source"] == {"x": 1.0, "y": 2.0, "z": 3.0, "state": "draw"}

    def test_move_without_source(self) -> None:
        assert Move(x=5.0, y=6.0).to_dict()["source"] is None

    def test_raw_uses_custom_kind(self) -> None:
        assert Raw(command="EM,1,1").to_dict() == {"type": "custom", "command": "EM,1,1"}

    def test_wait(self) -> None:
        assert Wait().to_dict() == {"type": "wait"}


# ---------------------------------------------------------------------------
# command_from_data
# ---------------------------------------------------------------------------


class TestCommandFromData:
    def test_move(self) -> None:
        cmd = command_from_data("move", {"x": 100, "y": "50"})
        assert cmd == Move(x=100.0, y=50.0)

    def test_move_with_source_mapping(self) -> None:
        cmd = command_from_data("move", {"x": 1, "y": 1, "source": {"x": 4}})
        assert isinstance(cmd, Move)
        assert cmd.source == PenSnapshot(x=4.0)

    def test_height_with_state(self) -> None:
        cmd = command_from_data("height", {"z": 7500, "state": "draw"})
        assert cmd == Height(z=7500.0, state="draw")

    def test_wait_ignores_data(self) -> None:
        assert command_from_data("wait", {"anything": 1}) == Wait()

    def test_message_and_callbackname(self) -> None:
        assert command_from_data("message", "hello") == Message(text="hello")
        assert command_from_data("callbackname", "done") == CallbackName(name="done")

    def test_custom(self) -> None:
        assert command_from_data("custom", "SP,1") == Raw(command="SP,1")

    def test_custom_rejects_non_string(self) -> None:
        with pytest.raises(TypeError):
            command_from_data("custom", {"cmd": "SP,1"})

    def test_unknown_kind(self) -> None:
        with pytest.raises(UnknownCommandError, match="teleport"):
            command_from_data("teleport", {})

    def test_callback_kind_needs_controller(self) -> None:
        with pytest.raises(UnknownCommandError):
            command_from_data("callback", None)

    def test_move_missing_key(self) -> None:
        with pytest.raises(KeyError):
            command_from_data("move", {"x": 1})

    def test_move_bad_value(self) -> None:
        with pytest.raises(ValueError):
            command_from_data("move", {"x": "left", "y": 0})

    def test_non_finite_strings_rejected(self) -> None:
        with pytest.raises(ValueError):
            command_from_data("move", {"x": "nan", "y": 0})
        with pytest.raises(ValueError):
            command_from_data("height", {"z": "inf"})
