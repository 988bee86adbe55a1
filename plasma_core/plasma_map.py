"""
Typed, batched front end over ``AVLProver``.

Every call takes the ``KVConversion`` to use explicitly, converts domain
keys and values to bytes, runs one batch and converts the per-entry
results back.  Failures from the prover pass through unchanged.

Usage:
    conv = KVConversion(RawBytes(32), Utf8String())
    pm = PlasmaMap()
    res = pm.insert([(key, "hello")], conv)
    res.proof, res.digest, res.response[0].ok
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, Iterable, Optional, TypeVar

from plasma_core.conversion import KVConversion
from plasma_core.errors import PlasmaError
from plasma_core.operations import ALL_ALLOWED, TreeFlags
from plasma_core.proof import Proof
from plasma_core.prover import AVLProver
from plasma_core.results import BatchResult, OpResult

if TYPE_CHECKING:
    from plasma_core.config import ProofConfig, TreeConfig

logger = logging.getLogger("plasma_map")

K = TypeVar("K")
V = TypeVar("V")


@dataclass
class ProvenResult(Generic[V]):
    """Per-entry results of one batch together with its proof."""
    response: list[OpResult[V]] = field(default_factory=list)
    proof: Optional[Proof] = None
    digest: bytes = b""
    error: Optional[PlasmaError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error

    def shards(self, shard_size: int) -> list[Proof]:
        if self.proof is None:
            return []
        return self.proof.slice(shard_size)


class PlasmaMap:
    """Authenticated key/value map with batched, proven operations."""

    def __init__(self, key_length: int = 32, value_length: int | None = None,
                 flags: TreeFlags = ALL_ALLOWED, check_invariants: bool = False,
                 shard_size: int = 4096):
        self.prover = AVLProver(
            key_length=key_length,
            value_length=value_length,
            flags=flags,
            check_invariants=check_invariants,
        )
        self.shard_size = shard_size

    @classmethod
    def from_config(cls, cfg: TreeConfig,
                    proof_cfg: Optional[ProofConfig] = None) -> PlasmaMap:
        """Build a map from a ``TreeConfig`` and an optional ``ProofConfig``."""
        return cls(
            key_length=cfg.key_length,
            value_length=cfg.value_length or None,
            flags=cfg.flags,
            check_invariants=cfg.check_invariants,
            shard_size=proof_cfg.shard_size if proof_cfg is not None else 4096,
        )

    @property
    def digest(self) -> bytes:
        return self.prover.digest

    @property
    def size(self) -> int:
        return self.prover.size

    @property
    def flags(self) -> TreeFlags:
        return self.prover.flags

    # ── batches ──────────────────────────────────────────────────

    def insert(self, pairs: Iterable[tuple[K, V]],
               conv: KVConversion[K, V]) -> ProvenResult[V]:
        encoded = self._encode_pairs(pairs, conv)
        if isinstance(encoded, ProvenResult):
            return encoded
        return self._wrap(self.prover.insert(encoded), conv)

    def update(self, pairs: Iterable[tuple[K, V]],
               conv: KVConversion[K, V]) -> ProvenResult[V]:
        encoded = self._encode_pairs(pairs, conv)
        if isinstance(encoded, ProvenResult):
            return encoded
        return self._wrap(self.prover.update(encoded), conv)

    def remove(self, keys: Iterable[K],
               conv: KVConversion[K, V]) -> ProvenResult[V]:
        encoded = self._encode_keys(keys, conv)
        if isinstance(encoded, ProvenResult):
            return encoded
        return self._wrap(self.prover.remove(encoded), conv)

    def lookup(self, keys: Iterable[K],
               conv: KVConversion[K, V]) -> ProvenResult[V]:
        encoded = self._encode_keys(keys, conv)
        if isinstance(encoded, ProvenResult):
            return encoded
        return self._wrap(self.prover.lookup(encoded), conv)

    def get(self, key: K, conv: KVConversion[K, V]) -> Optional[V]:
        """Unauthenticated read of one key."""
        raw = self.prover.get(conv.key.checked_bytes(key))
        return None if raw is None else conv.value.from_bytes(raw)

    def shards(self, result: ProvenResult[V]) -> list[Proof]:
        """Slice a result's proof with the configured shard size."""
        return result.shards(self.shard_size)

    def to_dict(self, conv: KVConversion[K, V]) -> dict[K, V]:
        """Decode the whole map, in key order."""
        return {
            conv.key.from_bytes(k): conv.value.from_bytes(v)
            for k, v in self.prover.items()
        }

    # ── internal helpers ─────────────────────────────────────────

    def _encode_pairs(self, pairs, conv):
        try:
            return [
                (conv.key.checked_bytes(k), conv.value.checked_bytes(v))
                for k, v in pairs
            ]
        except PlasmaError as exc:
            return self._conversion_failure(exc)

    def _encode_keys(self, keys, conv):
        try:
            return [conv.key.checked_bytes(k) for k in keys]
        except PlasmaError as exc:
            return self._conversion_failure(exc)

    def _conversion_failure(self, exc: PlasmaError) -> ProvenResult:
        logger.info(f"Batch rejected during conversion: {exc}")
        return ProvenResult(digest=self.digest, error=exc)

    def _wrap(self, res: BatchResult, conv: KVConversion[K, V]) -> ProvenResult[V]:
        if not res.ok:
            return ProvenResult(
                response=res.op_results(),  # type: ignore[arg-type]
                digest=res.digest,
                error=res.error,
            )
        response: list[OpResult[V]] = [
            OpResult(ok=True, value=None if v is None else conv.value.from_bytes(v))
            for v in res.values
        ]
        return ProvenResult(response=response, proof=res.proof, digest=res.digest)
