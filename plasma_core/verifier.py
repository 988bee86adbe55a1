"""
Verifier side: replay a batch against a proof, holding only a digest.

``AVLVerifier.verify(prior_digest, operation, proof)``:

1. decodes the proof into a skeleton whose heights come from the digest,
2. checks that the skeleton's root label and height equal the digest,
3. replays the operation with the same ``AVLEngine`` the prover uses;
   reaching a stub means the proof does not cover the operation,
4. returns the new digest (unchanged for lookups) and per-entry values.

The verifier keeps no state between calls, so one instance may serve
unrelated verifications from several threads.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from plasma_core.avl import AVLEngine
from plasma_core.errors import (
    PlasmaError,
    ProofVerificationError,
    SerializationError,
)
from plasma_core.hashing import EMPTY_DIGEST, make_digest, split_digest
from plasma_core.logging_config import batch_fields
from plasma_core.operations import ALL_ALLOWED, Operation, TreeFlags
from plasma_core.proof import Proof, ProofCodec
from plasma_core.results import BatchResult

if TYPE_CHECKING:
    from plasma_core.config import TreeConfig

logger = logging.getLogger("plasma_verifier")


class AVLVerifier:
    """Stateless proof checker for one tree shape (key length, flags)."""

    def __init__(self, key_length: int = 32, value_length: int | None = None,
                 flags: TreeFlags = ALL_ALLOWED):
        self.key_length = key_length
        self.value_length = value_length
        self.flags = flags
        self._codec = ProofCodec(key_length)

    @classmethod
    def from_config(cls, cfg: TreeConfig) -> AVLVerifier:
        """Build a verifier from a ``TreeConfig``."""
        return cls(
            key_length=cfg.key_length,
            value_length=cfg.value_length or None,
            flags=cfg.flags,
        )

    def verify(self, prior_digest: bytes, operation: Operation,
               proof: Proof) -> BatchResult:
        keys = operation.keys
        try:
            _, root_height = split_digest(prior_digest)
            self.flags.check(operation.kind)
            operation.validate(self.key_length, self.value_length)
        except PlasmaError as exc:
            return BatchResult.failure(prior_digest, exc, keys)

        try:
            skeleton = self._codec.decode(proof, root_height)
        except SerializationError as exc:
            err = ProofVerificationError(f"Malformed proof: {exc}")
            err.__cause__ = exc
            return self._reject(prior_digest, operation, proof, err)
        except ProofVerificationError as exc:
            return self._reject(prior_digest, operation, proof, exc)

        arena, root = skeleton.arena, skeleton.root
        if root is None:
            reconstructed = EMPTY_DIGEST
        else:
            reconstructed = make_digest(arena.label(root), arena.height(root))
        if reconstructed != bytes(prior_digest):
            err = ProofVerificationError(
                f"Proof root {reconstructed.hex()[:16]} does not match the prior digest"
            )
            return self._reject(prior_digest, operation, proof, err)

        engine = AVLEngine(arena)
        try:
            new_root, values = engine.apply(root, operation)
            if new_root is None:
                digest = EMPTY_DIGEST
            else:
                digest = make_digest(arena.label(new_root), arena.height(new_root))
        except ProofVerificationError as exc:
            return self._reject(prior_digest, operation, proof, exc)
        except PlasmaError as exc:
            # an honest replay of a failing batch
            logger.info(f"{operation.kind.name} replay failed: {exc}",
                        extra=batch_fields(operation, prior_digest, error=exc))
            return BatchResult.failure(prior_digest, exc, keys)

        logger.debug(
            f"Verified {operation.kind.name} batch",
            extra=batch_fields(operation, prior_digest, digest, proof),
        )
        return BatchResult(ok=True, digest=digest, keys=keys, values=values)

    def _reject(self, prior_digest: bytes, operation: Operation, proof: Proof,
                err: ProofVerificationError) -> BatchResult:
        logger.warning(
            f"Proof rejected: {err}",
            extra=batch_fields(operation, prior_digest, proof=proof, error=err),
        )
        return BatchResult.failure(prior_digest, err, operation.keys)
