"""
Index-addressed node arena for the authenticated AVL tree.

Nodes live in parallel slot lists and refer to their children by slot
index.  Three kinds exist:

  - **LEAF**      key + value, height 0
  - **INTERNAL**  separator key, left/right child slots, height
  - **STUB**      label + height only; the opaque frontier of a proof
                  skeleton on the verifier side

Slot content never changes after allocation.  Restructuring allocates new
internal slots over existing children, so the prior tree stays intact until
the caller commits and releases the superseded slots.  This also means a
cached label is never stale.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Iterator, Optional

from plasma_core.hashing import internal_label, leaf_label


class NodeKind(IntEnum):
    LEAF = 0
    INTERNAL = 1
    STUB = 2


class NodeArena:
    """Slot storage for tree nodes, with a free list for reuse."""

    def __init__(self):
        self._kind: list[Optional[NodeKind]] = []
        self._key: list[Optional[bytes]] = []
        self._value: list[Optional[bytes]] = []
        self._left: list[int] = []
        self._right: list[int] = []
        self._height: list[int] = []
        self._label: list[Optional[bytes]] = []
        self._free: list[int] = []

    def __len__(self) -> int:
        """Number of live slots."""
        return len(self._kind) - len(self._free)

    # ── allocation ───────────────────────────────────────────────

    def _alloc(self, kind: NodeKind, key: bytes | None, value: bytes | None,
               left: int, right: int, height: int,
               label: bytes | None) -> int:
        if self._free:
            idx = self._free.pop()
            self._kind[idx] = kind
            self._key[idx] = key
            self._value[idx] = value
            self._left[idx] = left
            self._right[idx] = right
            self._height[idx] = height
            self._label[idx] = label
            return idx
        self._kind.append(kind)
        self._key.append(key)
        self._value.append(value)
        self._left.append(left)
        self._right.append(right)
        self._height.append(height)
        self._label.append(label)
        return len(self._kind) - 1

    def new_leaf(self, key: bytes, value: bytes) -> int:
        return self._alloc(NodeKind.LEAF, key, value, -1, -1, 0, None)

    def new_internal(self, separator: bytes, left: int, right: int) -> int:
        height = max(self._height[left], self._height[right]) + 1
        return self._alloc(NodeKind.INTERNAL, separator, None, left, right, height, None)

    def new_stub(self, label: bytes, height: int) -> int:
        return self._alloc(NodeKind.STUB, None, None, -1, -1, height, label)

    def free(self, idx: int) -> None:
        if self._kind[idx] is None:
            raise ValueError(f"Slot {idx} is already free")
        self._kind[idx] = None
        self._key[idx] = None
        self._value[idx] = None
        self._label[idx] = None
        self._free.append(idx)

    # ── accessors ────────────────────────────────────────────────

    def kind(self, idx: int) -> NodeKind:
        kind = self._kind[idx]
        if kind is None:
            raise ValueError(f"Slot {idx} is free")
        return kind

    def is_live(self, idx: int) -> bool:
        return 0 <= idx < len(self._kind) and self._kind[idx] is not None

    def key(self, idx: int) -> bytes:
        """Leaf key, or the separator of an internal node."""
        return self._key[idx]  # type: ignore[return-value]

    def value(self, idx: int) -> bytes:
        return self._value[idx]  # type: ignore[return-value]

    def left(self, idx: int) -> int:
        return self._left[idx]

    def right(self, idx: int) -> int:
        return self._right[idx]

    def height(self, idx: int) -> int:
        return self._height[idx]

    def balance(self, idx: int) -> int:
        """height(right) - height(left) of an internal node."""
        return self._height[self._right[idx]] - self._height[self._left[idx]]

    def label(self, idx: int) -> bytes:
        """Label of a node, computed on first use and cached."""
        cached = self._label[idx]
        if cached is not None:
            return cached
        kind = self._kind[idx]
        if kind == NodeKind.LEAF:
            lab = leaf_label(self._key[idx], self._value[idx])  # type: ignore[arg-type]
        elif kind == NodeKind.INTERNAL:
            lab = internal_label(
                self._height[idx],
                self.balance(idx),
                self._key[idx],  # type: ignore[arg-type]
                self.label(self._left[idx]),
                self.label(self._right[idx]),
            )
        else:
            raise ValueError(f"Slot {idx} has no label")
        self._label[idx] = lab
        return lab

    def cached_label(self, idx: int) -> bytes | None:
        return self._label[idx]

    def live_slots(self) -> Iterator[int]:
        for idx, kind in enumerate(self._kind):
            if kind is not None:
                yield idx
