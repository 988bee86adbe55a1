"""
Structural invariant checks for the authenticated AVL tree.

  - BST ordering: left keys < separator <= right keys
  - AVL balance: |height(right) - height(left)| <= 1
  - Stored heights match the children
  - Cached labels equal a fresh recomputation
  - No leaked slots: every live slot is reachable from the root
  - The digest height byte matches the root

``check_tree`` is used by the prover on candidate roots when invariant
checking is enabled.  ``InvariantChecker`` wraps it with a before/after
snapshot of a prover, for tests and audits.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from plasma_core.hashing import DIGEST_SIZE, internal_label, leaf_label
from plasma_core.node import NodeArena, NodeKind


@dataclass
class TreeSnapshot:
    """Digest and size of a prover before a batch."""
    digest: bytes = b""
    size: int = 0


def check_tree(arena: NodeArena, root: Optional[int],
               live_slots: int | None = None) -> tuple[bool, str]:
    """
    Check every invariant of the tree at ``root``.
    Returns (passed, error_message).
    """
    if root is None:
        if live_slots:
            return False, f"Empty tree but {live_slots} live slots"
        return True, ""

    errors: list[str] = []
    reachable = 0

    # post-order walk carrying the (low, high) key bounds of each subtree
    stack: list[tuple[int, Optional[bytes], Optional[bytes], bool]] = [
        (root, None, None, False)
    ]
    fresh: dict[int, bytes] = {}
    while stack:
        idx, low, high, expanded = stack.pop()
        kind = arena.kind(idx)
        if kind == NodeKind.STUB:
            errors.append(f"Stub node {idx} inside a full tree")
            continue
        key = arena.key(idx)

        if kind == NodeKind.LEAF:
            reachable += 1
            if (low is not None and key < low) or (high is not None and key >= high):
                errors.append(f"BST ordering broken at leaf {key.hex()[:16]}")
            if arena.height(idx) != 0:
                errors.append(f"Leaf {idx} has height {arena.height(idx)}")
            fresh[idx] = leaf_label(key, arena.value(idx))
            _compare_label(arena, idx, fresh[idx], errors)
            continue

        left, right = arena.left(idx), arena.right(idx)
        if not expanded:
            reachable += 1
            if (low is not None and key < low) or (high is not None and key > high):
                errors.append(f"Separator {key.hex()[:16]} outside its bounds")
            stack.append((idx, low, high, True))
            stack.append((right, key, high, False))
            stack.append((left, low, key, False))
            continue

        hl, hr = arena.height(left), arena.height(right)
        if abs(hr - hl) > 1:
            errors.append(f"AVL balance broken at node {idx}: {hr - hl}")
        if arena.height(idx) != max(hl, hr) + 1:
            errors.append(f"Stale height at node {idx}")
        if left in fresh and right in fresh:
            fresh[idx] = internal_label(
                arena.height(idx), hr - hl, key, fresh[left], fresh[right]
            )
            _compare_label(arena, idx, fresh[idx], errors)

    if live_slots is not None and reachable != live_slots:
        errors.append(
            f"Leaked slots: {live_slots} live but {reachable} reachable"
        )

    if errors:
        return False, "; ".join(errors[:5])
    return True, ""


def _compare_label(arena: NodeArena, idx: int, fresh: bytes,
                   errors: list[str]) -> None:
    cached = arena.cached_label(idx)
    if cached is not None and cached != fresh:
        errors.append(f"Stale label at node {idx}")


class InvariantChecker:
    """
    Captures a snapshot of a prover before a batch and validates the
    invariants after it.
    """

    def __init__(self):
        self._snapshot: TreeSnapshot | None = None

    def capture(self, prover) -> None:
        """Take a snapshot of the prover before a batch."""
        self._snapshot = TreeSnapshot(digest=prover.digest, size=prover.size)

    def verify(self, prover, changed: bool = True) -> tuple[bool, str]:
        """
        Verify the invariants of the prover's current tree.

        ``changed=False`` additionally asserts the digest and size equal the
        snapshot, as after a lookup or a failed batch.
        """
        errors: list[str] = []

        ok, msg = check_tree(prover.arena, prover.root, live_slots=len(prover.arena))
        if not ok:
            errors.append(msg)

        digest = prover.digest
        if len(digest) != DIGEST_SIZE or digest[-1] != prover.height:
            errors.append("Digest height byte does not match the root height")

        leaves = sum(1 for _ in prover.items())
        if leaves != prover.size:
            errors.append(f"Size counter {prover.size} but {leaves} leaves")

        if not changed and self._snapshot is not None:
            if digest != self._snapshot.digest:
                errors.append("Digest changed")
            if prover.size != self._snapshot.size:
                errors.append("Size changed")

        if errors:
            return False, "; ".join(errors)
        return True, ""
