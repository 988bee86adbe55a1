"""
Operation descriptors shared by the prover and the verifier.

An ``Operation`` is a closed variant: one ``OpKind`` plus a list of
``(key, value)`` entries.  Lookups and removals carry ``None`` values.
The same descriptor is executed by the prover and replayed by the verifier.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterable, Optional

from plasma_core.errors import OperationNotAllowedError, SerializationError


class OpKind(IntEnum):
    LOOKUP = 0
    INSERT = 1
    UPDATE = 2
    REMOVE = 3


# Kinds whose entries carry a value
_VALUED = {OpKind.INSERT, OpKind.UPDATE}


@dataclass(frozen=True)
class TreeFlags:
    """Which mutating operations a tree accepts.  Lookups are always allowed."""
    insert_allowed: bool = True
    update_allowed: bool = True
    remove_allowed: bool = True

    def allows(self, kind: OpKind) -> bool:
        if kind == OpKind.INSERT:
            return self.insert_allowed
        if kind == OpKind.UPDATE:
            return self.update_allowed
        if kind == OpKind.REMOVE:
            return self.remove_allowed
        return True

    def check(self, kind: OpKind) -> None:
        if not self.allows(kind):
            raise OperationNotAllowedError(f"{kind.name} is disabled for this tree")

    def to_byte(self) -> int:
        return (
            (0x01 if self.insert_allowed else 0)
            | (0x02 if self.update_allowed else 0)
            | (0x04 if self.remove_allowed else 0)
        )

    @classmethod
    def from_byte(cls, b: int) -> TreeFlags:
        return cls(bool(b & 0x01), bool(b & 0x02), bool(b & 0x04))


ALL_ALLOWED = TreeFlags()


@dataclass(frozen=True)
class Operation:
    kind: OpKind
    entries: tuple[tuple[bytes, Optional[bytes]], ...] = field(default_factory=tuple)

    @property
    def keys(self) -> list[bytes]:
        return [k for k, _ in self.entries]

    def __len__(self) -> int:
        return len(self.entries)

    def validate(self, key_length: int, value_length: int | None = None) -> None:
        """Check every entry against the tree's key and value lengths."""
        for key, value in self.entries:
            if len(key) != key_length:
                raise SerializationError(
                    f"Key must be {key_length} bytes, got {len(key)}", key=key
                )
            if self.kind not in _VALUED:
                continue
            if value is None:
                raise SerializationError(f"{self.kind.name} requires a value", key=key)
            if value_length is not None and len(value) != value_length:
                raise SerializationError(
                    f"Value must be {value_length} bytes, got {len(value)}", key=key
                )

    def sorted_order(self) -> list[int]:
        """Entry positions in ascending key order (stable for equal keys)."""
        return sorted(range(len(self.entries)), key=lambda i: self.entries[i][0])


# ── Constructors ────────────────────────────────────────────────

def lookup_op(keys: Iterable[bytes]) -> Operation:
    return Operation(OpKind.LOOKUP, tuple((bytes(k), None) for k in keys))


def insert_op(pairs: Iterable[tuple[bytes, bytes]]) -> Operation:
    return Operation(OpKind.INSERT, tuple((bytes(k), bytes(v)) for k, v in pairs))


def update_op(pairs: Iterable[tuple[bytes, bytes]]) -> Operation:
    return Operation(OpKind.UPDATE, tuple((bytes(k), bytes(v)) for k, v in pairs))


def remove_op(keys: Iterable[bytes]) -> Operation:
    return Operation(OpKind.REMOVE, tuple((bytes(k), None) for k in keys))
