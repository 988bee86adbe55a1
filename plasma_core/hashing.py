"""
Node labels and tree digests.

Every node of the authenticated tree carries a 32-byte BLAKE2b label:

    leaf     = H(0x00 || height || key || H(value))
    internal = H(0x01 || height || balance || separator || left || right)

The leading tag byte keeps leaf and internal preimages apart, and the
height byte stops a subtree from being passed off at another depth.

The digest of a tree is its root label followed by one byte holding the
root height, 33 bytes in total.
"""

from __future__ import annotations

import hashlib
import struct

from plasma_core.errors import SerializationError


LABEL_SIZE = 32
DIGEST_SIZE = LABEL_SIZE + 1
MAX_HEIGHT = 255

LEAF_TAG = 0x00
INTERNAL_TAG = 0x01

EMPTY_LABEL = b"\x00" * LABEL_SIZE
EMPTY_DIGEST = EMPTY_LABEL + b"\x00"


# ── Hash helpers ────────────────────────────────────────────────

def blake2b256(data: bytes) -> bytes:
    """BLAKE2b with a 256-bit output."""
    return hashlib.blake2b(data, digest_size=LABEL_SIZE).digest()


def leaf_label(key: bytes, value: bytes) -> bytes:
    return blake2b256(struct.pack(">BB", LEAF_TAG, 0) + key + blake2b256(value))


def internal_label(height: int, balance: int, separator: bytes,
                   left: bytes, right: bytes) -> bytes:
    buf = struct.pack(">BBb", INTERNAL_TAG, height, balance)
    return blake2b256(buf + separator + left + right)


# ── Digests ─────────────────────────────────────────────────────

def make_digest(label: bytes, height: int) -> bytes:
    """Concatenate a root label and the root height into a digest."""
    if len(label) != LABEL_SIZE:
        raise SerializationError(f"Label must be {LABEL_SIZE} bytes, got {len(label)}")
    if not 0 <= height <= MAX_HEIGHT:
        raise SerializationError(f"Tree height {height} does not fit in one byte")
    return label + bytes([height])


def split_digest(digest: bytes) -> tuple[bytes, int]:
    """Return ``(root_label, root_height)`` of a 33-byte digest."""
    if len(digest) != DIGEST_SIZE:
        raise SerializationError(
            f"Digest must be {DIGEST_SIZE} bytes, got {len(digest)}"
        )
    return bytes(digest[:LABEL_SIZE]), digest[LABEL_SIZE]
