"""
AVL engine shared by the prover and the verifier.

The engine runs over a ``NodeArena`` and never mutates an existing slot:
every change allocates new internal nodes along the affected path
(path copying), and superseded slots are collected in ``retired`` for the
owner to release once the batch is committed.

Before reading the fields of a node (kind, key, children) the engine
*touches* it.  On the prover the touched slots of the prior tree become the
proof; on the verifier touching a stub means the proof does not cover the
operation.  Heights and labels of children are read without touching, since
a stub carries both.

Search rule: a key ``k`` goes left at an internal node iff ``k < separator``.
The separator of every internal node satisfies

    max(left keys) < separator <= min(right keys)

which insertion, removal and rotation all preserve.
"""

from __future__ import annotations

import logging
from typing import Optional

from plasma_core.errors import (
    KeyExistsError,
    KeyNotFoundError,
    ProofVerificationError,
)
from plasma_core.node import NodeArena, NodeKind
from plasma_core.operations import OpKind, Operation

logger = logging.getLogger("plasma_avl")


class AVLEngine:
    """Batch insert / update / remove / lookup with AVL rebalancing."""

    def __init__(self, arena: NodeArena):
        self.arena = arena
        self.touched: set[int] = set()
        self.created: list[int] = []
        self.retired: list[int] = []

    def reset(self) -> None:
        """Forget the bookkeeping of the previous batch."""
        self.touched = set()
        self.created = []
        self.retired = []

    # ── bookkeeping ──────────────────────────────────────────────

    def _touch(self, idx: int) -> NodeKind:
        kind = self.arena.kind(idx)
        if kind == NodeKind.STUB:
            raise ProofVerificationError(
                f"Proof does not cover the node at height {self.arena.height(idx)}"
            )
        self.touched.add(idx)
        return kind

    def _leaf(self, key: bytes, value: bytes) -> int:
        idx = self.arena.new_leaf(key, value)
        self.created.append(idx)
        return idx

    def _internal(self, separator: bytes, left: int, right: int) -> int:
        idx = self.arena.new_internal(separator, left, right)
        self.created.append(idx)
        return idx

    def _retire(self, idx: int) -> None:
        self.retired.append(idx)

    # ── batch entry point ────────────────────────────────────────

    def apply(self, root: Optional[int],
              operation: Operation) -> tuple[Optional[int], list[Optional[bytes]]]:
        """
        Run every entry of ``operation`` against the tree at ``root``.

        Entries are processed in ascending key order; the returned values
        follow the input order.  Raises on the first failing entry, leaving
        the slots of the tree at ``root`` untouched.
        """
        results: list[Optional[bytes]] = [None] * len(operation.entries)
        for i in operation.sorted_order():
            key, value = operation.entries[i]
            if operation.kind == OpKind.LOOKUP:
                results[i] = self.lookup(root, key)
            elif operation.kind == OpKind.INSERT:
                root = self.insert(root, key, value)  # type: ignore[arg-type]
            elif operation.kind == OpKind.UPDATE:
                root, results[i] = self.update(root, key, value)  # type: ignore[arg-type]
            elif operation.kind == OpKind.REMOVE:
                root, results[i] = self.remove(root, key)
            else:
                raise ValueError(f"Unknown operation kind {operation.kind!r}")
        return root, results

    # ── single-key operations ────────────────────────────────────

    def lookup(self, root: Optional[int], key: bytes) -> Optional[bytes]:
        if root is None:
            return None
        a = self.arena
        idx = root
        while self._touch(idx) == NodeKind.INTERNAL:
            idx = a.left(idx) if key < a.key(idx) else a.right(idx)
        return a.value(idx) if a.key(idx) == key else None

    def insert(self, root: Optional[int], key: bytes, value: bytes) -> int:
        if root is None:
            return self._leaf(key, value)
        return self._insert(root, key, value)

    def _insert(self, idx: int, key: bytes, value: bytes) -> int:
        a = self.arena
        if self._touch(idx) == NodeKind.LEAF:
            existing = a.key(idx)
            if existing == key:
                raise KeyExistsError("Key already exists", key=key)
            leaf = self._leaf(key, value)
            if key < existing:
                return self._internal(existing, leaf, idx)
            return self._internal(key, idx, leaf)
        sep = a.key(idx)
        if key < sep:
            return self._rebalance(idx, sep, self._insert(a.left(idx), key, value), a.right(idx))
        return self._rebalance(idx, sep, a.left(idx), self._insert(a.right(idx), key, value))

    def update(self, root: Optional[int], key: bytes,
               value: bytes) -> tuple[int, bytes]:
        if root is None:
            raise KeyNotFoundError("Key not found", key=key)
        return self._update(root, key, value)

    def _update(self, idx: int, key: bytes, value: bytes) -> tuple[int, bytes]:
        a = self.arena
        if self._touch(idx) == NodeKind.LEAF:
            if a.key(idx) != key:
                raise KeyNotFoundError("Key not found", key=key)
            old = a.value(idx)
            self._retire(idx)
            return self._leaf(key, value), old
        sep = a.key(idx)
        self._retire(idx)
        if key < sep:
            left, old = self._update(a.left(idx), key, value)
            return self._internal(sep, left, a.right(idx)), old
        right, old = self._update(a.right(idx), key, value)
        return self._internal(sep, a.left(idx), right), old

    def remove(self, root: Optional[int],
               key: bytes) -> tuple[Optional[int], bytes]:
        if root is None:
            raise KeyNotFoundError("Key not found", key=key)
        return self._remove(root, key)

    def _remove(self, idx: int, key: bytes) -> tuple[Optional[int], bytes]:
        a = self.arena
        if self._touch(idx) == NodeKind.LEAF:
            if a.key(idx) != key:
                raise KeyNotFoundError("Key not found", key=key)
            self._retire(idx)
            return None, a.value(idx)
        sep = a.key(idx)
        if key < sep:
            left, old = self._remove(a.left(idx), key)
            if left is None:
                # the parent collapses into its remaining child
                self._retire(idx)
                return a.right(idx), old
            return self._rebalance(idx, sep, left, a.right(idx)), old
        right, old = self._remove(a.right(idx), key)
        if right is None:
            self._retire(idx)
            return a.left(idx), old
        return self._rebalance(idx, sep, a.left(idx), right), old

    # ── rebalancing ──────────────────────────────────────────────

    def _rebalance(self, old: int, sep: bytes, left: int, right: int) -> int:
        """
        Replace ``old`` by a node over ``left`` and ``right``, rotating when
        their heights differ by two.
        """
        a = self.arena
        self._retire(old)
        diff = a.height(right) - a.height(left)
        if diff < -1:
            self._touch(left)
            l_sep, ll, lr = a.key(left), a.left(left), a.right(left)
            self._retire(left)
            if a.height(ll) >= a.height(lr):
                # LL: single right rotation
                return self._internal(l_sep, ll, self._internal(sep, lr, right))
            # LR: double rotation
            self._touch(lr)
            self._retire(lr)
            return self._internal(
                a.key(lr),
                self._internal(l_sep, ll, a.left(lr)),
                self._internal(sep, a.right(lr), right),
            )
        if diff > 1:
            self._touch(right)
            r_sep, rl, rr = a.key(right), a.left(right), a.right(right)
            self._retire(right)
            if a.height(rr) >= a.height(rl):
                # RR: single left rotation
                return self._internal(r_sep, self._internal(sep, left, rl), rr)
            # RL: double rotation
            self._touch(rl)
            self._retire(rl)
            return self._internal(
                a.key(rl),
                self._internal(sep, left, a.left(rl)),
                self._internal(r_sep, a.right(rl), rr),
            )
        return self._internal(sep, left, right)
