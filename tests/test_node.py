"""Tests for the node arena."""

import pytest

from plasma_core.hashing import EMPTY_LABEL, internal_label, leaf_label
from plasma_core.node import NodeArena, NodeKind


KEY_A = b"\x01" * 32
KEY_B = b"\x02" * 32


@pytest.fixture
def arena():
    return NodeArena()


class TestAllocation:
    def test_leaf_fields(self, arena):
        idx = arena.new_leaf(KEY_A, b"hello")
        assert arena.kind(idx) == NodeKind.LEAF
        assert arena.key(idx) == KEY_A
        assert arena.value(idx) == b"hello"
        assert arena.height(idx) == 0
        assert len(arena) == 1

    def test_internal_height_and_balance(self, arena):
        a = arena.new_leaf(KEY_A, b"a")
        b = arena.new_leaf(KEY_B, b"b")
        inner = arena.new_internal(KEY_B, a, b)
        assert arena.height(inner) == 1
        assert arena.balance(inner) == 0
        top = arena.new_internal(KEY_B, inner, arena.new_leaf(b"\x03" * 32, b"c"))
        assert arena.height(top) == 2
        assert arena.balance(top) == -1

    def test_free_slot_is_reused(self, arena):
        a = arena.new_leaf(KEY_A, b"a")
        arena.free(a)
        assert len(arena) == 0
        assert not arena.is_live(a)
        b = arena.new_leaf(KEY_B, b"b")
        assert b == a
        assert arena.key(b) == KEY_B

    def test_double_free_rejected(self, arena):
        a = arena.new_leaf(KEY_A, b"a")
        arena.free(a)
        with pytest.raises(ValueError):
            arena.free(a)

    def test_kind_of_free_slot_rejected(self, arena):
        a = arena.new_leaf(KEY_A, b"a")
        arena.free(a)
        with pytest.raises(ValueError):
            arena.kind(a)

    def test_live_slots(self, arena):
        a = arena.new_leaf(KEY_A, b"a")
        b = arena.new_leaf(KEY_B, b"b")
        arena.free(a)
        assert list(arena.live_slots()) == [b]


class TestLabels:
    def test_leaf_label(self, arena):
        idx = arena.new_leaf(KEY_A, b"v")
        assert arena.label(idx) == leaf_label(KEY_A, b"v")

    def test_internal_label(self, arena):
        a = arena.new_leaf(KEY_A, b"a")
        b = arena.new_leaf(KEY_B, b"b")
        inner = arena.new_internal(KEY_B, a, b)
        expected = internal_label(1, 0, KEY_B, leaf_label(KEY_A, b"a"),
                                  leaf_label(KEY_B, b"b"))
        assert arena.label(inner) == expected

    def test_label_is_cached(self, arena):
        idx = arena.new_leaf(KEY_A, b"v")
        assert arena.cached_label(idx) is None
        lab = arena.label(idx)
        assert arena.cached_label(idx) == lab

    def test_stub_label_and_height(self, arena):
        stub = arena.new_stub(EMPTY_LABEL, 3)
        assert arena.kind(stub) == NodeKind.STUB
        assert arena.label(stub) == EMPTY_LABEL
        assert arena.height(stub) == 3

    def test_internal_over_stub(self, arena):
        stub = arena.new_stub(b"\x07" * 32, 1)
        leaf = arena.new_leaf(KEY_B, b"b")
        inner = arena.new_internal(KEY_B, stub, leaf)
        assert arena.height(inner) == 2
        assert arena.balance(inner) == -1
        expected = internal_label(2, -1, KEY_B, b"\x07" * 32, leaf_label(KEY_B, b"b"))
        assert arena.label(inner) == expected
