"""
Explicit success/failure values returned by the public batch operations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from plasma_core.errors import PlasmaError
from plasma_core.proof import Proof

V = TypeVar("V")


@dataclass(frozen=True)
class OpResult(Generic[V]):
    """
    Outcome of one entry of a batch.

    ``value`` is the looked-up value for a lookup, the previous value for an
    update or remove, and ``None`` for an insert or an absent lookup key.
    """
    ok: bool = True
    value: V | None = None
    error: PlasmaError | None = None

    def get(self) -> V:
        """Return the value, raising if the entry failed or holds nothing."""
        if self.error is not None:
            raise self.error
        if self.value is None:
            raise LookupError("Operation produced no value")
        return self.value

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"ok": self.ok}
        if self.value is not None:
            d["value"] = self.value.hex() if isinstance(self.value, bytes) else self.value
        if self.error is not None:
            d["error"] = self.error.kind
            d["message"] = str(self.error)
        return d


@dataclass
class BatchResult:
    """
    Outcome of a whole batch on the prover or the verifier.

    On failure ``digest`` is the unchanged prior digest, ``values`` is empty
    and ``proof`` is ``None``.
    """
    ok: bool
    digest: bytes
    keys: list[bytes] = field(default_factory=list)
    values: list[bytes | None] = field(default_factory=list)
    proof: Proof | None = None
    error: PlasmaError | None = None

    @classmethod
    def failure(cls, digest: bytes, error: PlasmaError,
                keys: list[bytes] | None = None) -> BatchResult:
        return cls(ok=False, digest=digest, keys=list(keys or []), error=error)

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error

    def as_dict(self) -> dict[bytes, bytes | None]:
        """Map each key of the batch to its reported value."""
        return dict(zip(self.keys, self.values))

    def op_results(self) -> list[OpResult[bytes]]:
        if not self.ok:
            return [OpResult(ok=False, error=self.error) for _ in self.keys]
        return [OpResult(ok=True, value=v) for v in self.values]
