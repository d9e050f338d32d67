"""Tests for the FIFO buffer store and item ids."""

from __future__ import annotations

import pytest

from cnc_buffer.buffer.item import BufferItem, clamp_duration, compute_item_id
from cnc_buffer.buffer.store import (
    BufferInvariantError,
    BufferStore,
    DuplicateIdError,
)
from cnc_buffer.commands.operations import Move, Wait
from cnc_buffer.state.pen import PenSnapshot


def _item(item_id: str, x: float = 0.0) -> BufferItem:
    return BufferItem(
        id=item_id,
        command=Move(x=x, y=0.0),
        duration=1,
        pen=PenSnapshot(x=x),
    )


class TestClampDuration:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, 1),
            (0, 1),
            (-50, 1),
            ("abc", 1),
            (float("inf"), 1),
            (float("-inf"), 1),
            (float("nan"), 1),
            ("1e400", 1),
            (0.4, 1),
            (12.9, 12),
            ("250", 250),
            (1000, 1000),
        ],
    )
    def test_clamp(self, value, expected: int) -> None:
        assert clamp_duration(value) == expected


class TestComputeItemId:
    def test_deterministic(self) -> None:
        pen = PenSnapshot(x=1.0)
        assert compute_item_id(Wait(), 5, pen, 0) == compute_item_id(Wait(), 5, pen, 0)

    def test_sequence_distinguishes_identical_content(self) -> None:
        pen = PenSnapshot()
        assert compute_item_id(Wait(), 5, pen, 0) != compute_item_id(Wait(), 5, pen, 1)

    @pytest.mark.parametrize(
        "other",
        [
            (Move(x=1.0, y=0.0), 5, PenSnapshot()),
            (Wait(), 6, PenSnapshot()),
            (Wait(), 5, PenSnapshot(state="draw")),
        ],
    )
    def test_content_changes_id(self, other) -> None:
        base = compute_item_id(Wait(), 5, PenSnapshot(), 0)
        assert compute_item_id(*other, 0) != base

    def test_hex_sha256(self) -> None:
        item_id = compute_item_id(Wait(), 1, PenSnapshot(), 0)
        assert len(item_id) == 64
        int(item_id, 16)


class TestBufferStore:
    def test_empty(self) -> None:
        store = BufferStore()
        assert len(store) == 0
        assert store.dequeue_oldest() is None
        assert store.peek_oldest() is None
        assert store.peek_all() == []

    def test_fifo_order(self) -> None:
        store = BufferStore()
        for i in range(5):
            store.enqueue(_item(f"id{i}", x=float(i)))
        assert [item.id for item in store] == ["id0", "id1", "id2", "id3", "id4"]
        assert [store.dequeue_oldest().id for _ in range(5)] == [
            "id0", "id1", "id2", "id3", "id4",
        ]
        assert len(store) == 0

    def test_peek_does_not_mutate(self) -> None:
        store = BufferStore()
        store.enqueue(_item("a"))
        store.enqueue(_item("b"))
        assert store.peek_oldest().id == "a"
        store.peek_all()
        assert len(store) == 2

    def test_contains_and_get(self) -> None:
        store = BufferStore()
        store.enqueue(_item("a", x=3.0))
        assert "a" in store
        assert "b" not in store
        assert store.get("a").pen.x == 3.0
        assert store.get("b") is None

    def test_duplicate_rejected(self) -> None:
        store = BufferStore()
        store.enqueue(_item("a"))
        with pytest.raises(DuplicateIdError):
            store.enqueue(_item("a", x=9.0))
        assert len(store) == 1
        assert store.get("a").pen.x == 0.0

    def test_clear(self) -> None:
        store = BufferStore()
        store.enqueue(_item("a"))
        store.enqueue(_item("b"))
        store.clear()
        assert len(store) == 0
        assert "a" not in store
        store.check_invariants()

    def test_invariants_hold(self) -> None:
        store = BufferStore()
        for i in range(3):
            store.enqueue(_item(str(i)))
        store.dequeue_oldest()
        store.check_invariants()

    def test_missing_map_entry_detected(self) -> None:
        store = BufferStore()
        store.enqueue(_item("a"))
        del store._items["a"]
        with pytest.raises(BufferInvariantError):
            store.check_invariants()
        with pytest.raises(BufferInvariantError):
            store.dequeue_oldest()

    def test_failed_dequeue_leaves_order_intact(self) -> None:
        store = BufferStore()
        store.enqueue(_item("a"))
        store.enqueue(_item("b"))
        # Same lengths on both sides, but the oldest id has no entry.
        store._items["c"] = store._items.pop("a")
        for _ in range(2):
            with pytest.raises(BufferInvariantError, match="missing"):
                store.dequeue_oldest()
        assert list(store._order) == ["a", "b"]
        assert len(store._items) == 2
