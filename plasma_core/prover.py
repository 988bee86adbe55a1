"""
Prover side of the authenticated AVL dictionary.

``AVLProver`` owns the full tree.  Each batch runs through the shared
``AVLEngine`` against the current root; on success the touched part of the
*prior* tree is serialised as the proof, the new root is committed and
superseded slots are released.  On failure the slots created by the batch
are released and the prior root is kept, so the digest is unchanged.

Usage:
    prover = AVLProver(key_length=32)
    res = prover.insert([(key, b"hello")])
    res.proof, res.digest
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Iterable, Iterator, Optional

from plasma_core.avl import AVLEngine
from plasma_core.errors import InvariantViolationError, PlasmaError
from plasma_core.hashing import EMPTY_DIGEST, make_digest
from plasma_core.invariants import check_tree
from plasma_core.logging_config import batch_fields
from plasma_core.node import NodeArena, NodeKind
from plasma_core.operations import (
    ALL_ALLOWED,
    OpKind,
    Operation,
    TreeFlags,
    insert_op,
    lookup_op,
    remove_op,
    update_op,
)
from plasma_core.proof import ProofCodec, build_trace
from plasma_core.results import BatchResult

if TYPE_CHECKING:
    from plasma_core.config import TreeConfig

logger = logging.getLogger("plasma_prover")


class AVLProver:
    """
    Holds an authenticated AVL tree and produces a proof for every batch.

    All batches are serialised by one lock: mutations need exclusive access
    to the root, and lookups share the engine's touch tracker.
    """

    def __init__(self, key_length: int = 32, value_length: int | None = None,
                 flags: TreeFlags = ALL_ALLOWED, check_invariants: bool = False):
        if not 1 <= key_length <= 0xFFFF:
            raise ValueError("key_length must be between 1 and 65535")
        self.key_length = key_length
        self.value_length = value_length
        self.flags = flags
        self.check_invariants = check_invariants
        self.arena = NodeArena()
        self.root: Optional[int] = None
        self._engine = AVLEngine(self.arena)
        self._codec = ProofCodec(key_length)
        self._size = 0
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, cfg: TreeConfig) -> AVLProver:
        """Build a prover from a ``TreeConfig``."""
        return cls(
            key_length=cfg.key_length,
            value_length=cfg.value_length or None,
            flags=cfg.flags,
            check_invariants=cfg.check_invariants,
        )

    # ── state ────────────────────────────────────────────────────

    @property
    def digest(self) -> bytes:
        if self.root is None:
            return EMPTY_DIGEST
        return make_digest(self.arena.label(self.root), self.arena.height(self.root))

    @property
    def height(self) -> int:
        return 0 if self.root is None else self.arena.height(self.root)

    @property
    def size(self) -> int:
        return self._size

    def __len__(self) -> int:
        return self._size

    def get(self, key: bytes) -> Optional[bytes]:
        """Unauthenticated read: no proof is produced."""
        a = self.arena
        idx = self.root
        if idx is None:
            return None
        while a.kind(idx) == NodeKind.INTERNAL:
            idx = a.left(idx) if key < a.key(idx) else a.right(idx)
        return a.value(idx) if a.key(idx) == key else None

    def __contains__(self, key: bytes) -> bool:
        return self.get(key) is not None

    def items(self) -> Iterator[tuple[bytes, bytes]]:
        """All ``(key, value)`` pairs in ascending key order."""
        if self.root is None:
            return
        a = self.arena
        stack = [self.root]
        while stack:
            idx = stack.pop()
            if a.kind(idx) == NodeKind.LEAF:
                yield a.key(idx), a.value(idx)
            else:
                stack.append(a.right(idx))
                stack.append(a.left(idx))

    # ── batch operations ─────────────────────────────────────────

    def lookup(self, keys: Iterable[bytes]) -> BatchResult:
        return self.perform(lookup_op(keys))

    def insert(self, pairs: Iterable[tuple[bytes, bytes]]) -> BatchResult:
        return self.perform(insert_op(pairs))

    def update(self, pairs: Iterable[tuple[bytes, bytes]]) -> BatchResult:
        return self.perform(update_op(pairs))

    def remove(self, keys: Iterable[bytes]) -> BatchResult:
        return self.perform(remove_op(keys))

    def perform(self, operation: Operation) -> BatchResult:
        """
        Apply one batch atomically.

        Returns a ``BatchResult`` carrying the new digest, the per-entry
        values in input order and the proof; or, on failure, the error and
        the unchanged digest.
        """
        with self._lock:
            prior_digest = self.digest
            keys = operation.keys
            try:
                self.flags.check(operation.kind)
                operation.validate(self.key_length, self.value_length)
            except PlasmaError as exc:
                logger.info(f"{operation.kind.name} batch rejected: {exc}",
                            extra=batch_fields(operation, prior_digest, error=exc))
                return BatchResult.failure(prior_digest, exc, keys)

            engine = self._engine
            engine.reset()
            try:
                new_root, values = engine.apply(self.root, operation)
                if self.check_invariants and operation.kind != OpKind.LOOKUP:
                    self._check_candidate(new_root)
            except PlasmaError as exc:
                self._abort()
                logger.info(f"{operation.kind.name} batch failed: {exc}",
                            extra=batch_fields(operation, prior_digest, error=exc))
                return BatchResult.failure(prior_digest, exc, keys)

            trace = build_trace(self.arena, self.root, engine.touched)
            proof = self._codec.encode(trace)
            self._commit(new_root, operation)
            digest = self.digest
            logger.debug(
                f"{operation.kind.name} batch committed",
                extra=batch_fields(operation, prior_digest, digest, proof),
            )
            return BatchResult(ok=True, digest=digest, keys=keys,
                               values=values, proof=proof)

    # ── internal helpers ─────────────────────────────────────────

    def _commit(self, new_root: Optional[int], operation: Operation) -> None:
        for idx in self._engine.retired:
            self.arena.free(idx)
        self.root = new_root
        if operation.kind == OpKind.INSERT:
            self._size += len(operation)
        elif operation.kind == OpKind.REMOVE:
            self._size -= len(operation)
        self._engine.reset()

    def _abort(self) -> None:
        for idx in self._engine.created:
            self.arena.free(idx)
        self._engine.reset()

    def _check_candidate(self, new_root: Optional[int]) -> None:
        retired = set(self._engine.retired)
        live = len(self.arena) - len(retired)
        ok, msg = check_tree(self.arena, new_root, live_slots=live)
        if not ok:
            logger.error(f"Invariant violation, batch rejected: {msg}")
            raise InvariantViolationError(msg)
