"""
Proofs: the serialised trace of the prior tree touched by one batch.

Trace
-----
A pre-order walk of the prior tree.  A node that the batch read is written
in full; a child that the batch never read is written as its label only.

Wire format
-----------
Each directive starts with a one-byte discriminator:

    0x00 EMPTY     the prior tree was empty (whole proof is this one byte)
    0x01 LEAF      key[key_length] || u32 value_length || value
    0x02 INTERNAL  i8 balance || separator[key_length], then the left
                   subtree, then the right subtree
    0x03 LABEL     label[32] of a subtree that was not read

Heights are not written: the decoder derives them top-down from the root
height carried in the digest and the balance of every internal node.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Optional

from plasma_core.errors import ProofVerificationError, SerializationError
from plasma_core.hashing import LABEL_SIZE
from plasma_core.node import NodeArena, NodeKind


class DirectiveKind(IntEnum):
    EMPTY = 0x00
    LEAF = 0x01
    INTERNAL = 0x02
    LABEL = 0x03


_KNOWN_TAGS = {k.value for k in DirectiveKind}


@dataclass(frozen=True)
class Directive:
    """One node of a trace."""
    kind: DirectiveKind
    key: bytes = b""        # leaf key or internal separator
    value: bytes = b""      # leaf value
    balance: int = 0        # internal balance factor
    label: bytes = b""      # label of an unread subtree


# ── Proof bytes ─────────────────────────────────────────────────

@dataclass(frozen=True)
class Proof:
    """Immutable proof bytes."""
    data: bytes

    def __len__(self) -> int:
        return len(self.data)

    def __str__(self) -> str:
        return self.hex()

    def hex(self) -> str:
        return self.data.hex()

    @classmethod
    def from_hex(cls, text: str) -> Proof:
        return cls(bytes.fromhex(text))

    def slice(self, shard_size: int) -> list[Proof]:
        """
        Cut the proof into consecutive shards of ``shard_size`` bytes; the
        last shard may be shorter.  Concatenating them restores the proof.
        """
        if shard_size <= 0:
            raise ValueError("shard_size must be positive")
        return [
            Proof(self.data[i:i + shard_size])
            for i in range(0, len(self.data), shard_size)
        ]

    @classmethod
    def join(cls, shards: Iterable[Proof]) -> Proof:
        return cls(b"".join(s.data for s in shards))


# ── Skeleton ────────────────────────────────────────────────────

@dataclass
class Skeleton:
    """Partial tree rebuilt from a proof; unread subtrees are stubs."""
    arena: NodeArena
    root: Optional[int]
    root_height: int


# ── Trace construction ──────────────────────────────────────────

def build_trace(arena: NodeArena, root: Optional[int],
                touched: set[int]) -> list[Directive]:
    """Walk the tree at ``root`` and emit directives for the touched nodes."""
    if root is None:
        return [Directive(DirectiveKind.EMPTY)]
    trace: list[Directive] = []
    stack = [root]
    while stack:
        idx = stack.pop()
        if idx not in touched:
            trace.append(Directive(DirectiveKind.LABEL, label=arena.label(idx)))
        elif arena.kind(idx) == NodeKind.LEAF:
            trace.append(Directive(DirectiveKind.LEAF, key=arena.key(idx),
                                   value=arena.value(idx)))
        else:
            trace.append(Directive(DirectiveKind.INTERNAL, key=arena.key(idx),
                                   balance=arena.balance(idx)))
            stack.append(arena.right(idx))
            stack.append(arena.left(idx))
    return trace


# ── Codec ───────────────────────────────────────────────────────

class ProofCodec:
    """Encode traces to proof bytes and decode proof bytes to skeletons."""

    def __init__(self, key_length: int = 32):
        self.key_length = key_length

    def encode(self, trace: list[Directive]) -> Proof:
        out = bytearray()
        for d in trace:
            out.append(d.kind)
            if d.kind == DirectiveKind.LEAF:
                self._check_key(d.key)
                out += d.key
                out += struct.pack(">I", len(d.value))
                out += d.value
            elif d.kind == DirectiveKind.INTERNAL:
                self._check_key(d.key)
                out += struct.pack(">b", d.balance)
                out += d.key
            elif d.kind == DirectiveKind.LABEL:
                if len(d.label) != LABEL_SIZE:
                    raise SerializationError(f"Label must be {LABEL_SIZE} bytes")
                out += d.label
        return Proof(bytes(out))

    def _check_key(self, key: bytes) -> None:
        if len(key) != self.key_length:
            raise SerializationError(
                f"Key must be {self.key_length} bytes, got {len(key)}", key=key
            )

    def decode(self, proof: Proof, root_height: int) -> Skeleton:
        """
        Rebuild the skeleton described by ``proof``.

        Raises ``SerializationError`` for malformed bytes and
        ``ProofVerificationError`` when a node cannot sit at the height the
        digest implies.
        """
        reader = _Reader(proof.data)
        arena = NodeArena()
        if len(proof.data) == 1 and proof.data[0] == DirectiveKind.EMPTY:
            return Skeleton(arena, None, root_height)
        root = self._decode_node(reader, arena, root_height)
        if not reader.exhausted:
            raise SerializationError(
                f"{reader.remaining} trailing bytes after the proof"
            )
        return Skeleton(arena, root, root_height)

    def _decode_node(self, reader: _Reader, arena: NodeArena, height: int) -> int:
        if height < 0:
            raise ProofVerificationError("Proof implies a negative subtree height")
        tag = reader.byte()
        if tag not in _KNOWN_TAGS:
            raise SerializationError(f"Unknown proof discriminator 0x{tag:02x}")
        if tag == DirectiveKind.LABEL:
            return arena.new_stub(reader.take(LABEL_SIZE), height)
        if tag == DirectiveKind.LEAF:
            if height != 0:
                raise ProofVerificationError(f"Leaf found at height {height}")
            key = reader.take(self.key_length)
            (size,) = struct.unpack(">I", reader.take(4))
            return arena.new_leaf(key, reader.take(size))
        if tag == DirectiveKind.INTERNAL:
            if height < 1:
                raise ProofVerificationError("Internal node found at height 0")
            (balance,) = struct.unpack(">b", reader.take(1))
            if balance not in (-1, 0, 1):
                raise SerializationError(f"Invalid balance factor {balance}")
            separator = reader.take(self.key_length)
            left = self._decode_node(reader, arena, height - (2 if balance > 0 else 1))
            right = self._decode_node(reader, arena, height - (2 if balance < 0 else 1))
            return arena.new_internal(separator, left, right)
        raise SerializationError("EMPTY directive inside a non-empty proof")


class _Reader:
    """Bounds-checked cursor over proof bytes."""

    def __init__(self, data: bytes):
        self._data = data
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    @property
    def exhausted(self) -> bool:
        return self._pos >= len(self._data)

    def take(self, n: int) -> bytes:
        if n > self.remaining:
            raise SerializationError(
                f"Proof truncated: need {n} bytes at offset {self._pos}, "
                f"{self.remaining} left"
            )
        chunk = self._data[self._pos:self._pos + n]
        self._pos += n
        return chunk

    def byte(self) -> int:
        return self.take(1)[0]
