"""
Tests for proof bytes, sharding and the proof codec.
"""

from __future__ import annotations

import hashlib
import struct

import pytest

from plasma_core.errors import ProofVerificationError, SerializationError
from plasma_core.hashing import split_digest
from plasma_core.node import NodeKind
from plasma_core.proof import (
    Directive,
    DirectiveKind,
    Proof,
    ProofCodec,
    build_trace,
)


def _key(i: int) -> bytes:
    return hashlib.blake2b(f"key-{i}".encode(), digest_size=32).digest()


@pytest.fixture
def codec():
    return ProofCodec(key_length=32)


# ═══════════════════════════════════════════════════════════════════
#  Proof bytes and sharding
# ═══════════════════════════════════════════════════════════════════

class TestProofBytes:
    def test_hex_roundtrip(self):
        p = Proof(b"\x01\x02\xab")
        assert p.hex() == "0102ab"
        assert str(p) == "0102ab"
        assert Proof.from_hex("0102AB") == p

    def test_slice_sizes(self):
        p = Proof(bytes(range(10)))
        shards = p.slice(4)
        assert [len(s) for s in shards] == [4, 4, 2]

    def test_slice_exact_multiple(self):
        shards = Proof(bytes(8)).slice(4)
        assert [len(s) for s in shards] == [4, 4]

    def test_join_restores_proof(self):
        p = Proof(bytes(range(100)))
        assert Proof.join(p.slice(7)) == p

    def test_slice_larger_than_proof(self):
        p = Proof(b"abc")
        assert p.slice(10) == [p]

    def test_slice_rejects_non_positive(self):
        with pytest.raises(ValueError):
            Proof(b"abc").slice(0)

    def test_real_proof_shards_rejoin(self, populated_prover, keys):
        proof = populated_prover.lookup(keys[:5]).proof
        assert Proof.join(proof.slice(33)) == proof


# ═══════════════════════════════════════════════════════════════════
#  Trace and encoding
# ═══════════════════════════════════════════════════════════════════

class TestEncoding:
    def test_empty_trace(self, codec):
        trace = [Directive(DirectiveKind.EMPTY)]
        assert codec.encode(trace).data == b"\x00"

    def test_leaf_encoding(self, codec):
        trace = [Directive(DirectiveKind.LEAF, key=_key(1), value=b"hello")]
        data = codec.encode(trace).data
        assert data[0] == DirectiveKind.LEAF
        assert data[1:33] == _key(1)
        assert struct.unpack(">I", data[33:37])[0] == 5
        assert data[37:] == b"hello"

    def test_label_encoding(self, codec):
        data = codec.encode([Directive(DirectiveKind.LABEL, label=b"\x05" * 32)]).data
        assert data == b"\x03" + b"\x05" * 32

    def test_encode_rejects_bad_key_length(self, codec):
        with pytest.raises(SerializationError):
            codec.encode([Directive(DirectiveKind.LEAF, key=b"short", value=b"")])

    def test_trace_of_lookup_is_preorder(self, populated_prover, keys):
        prover = populated_prover
        prover._engine.reset()
        prover._engine.lookup(prover.root, keys[0])
        trace = build_trace(prover.arena, prover.root, prover._engine.touched)
        prover._engine.reset()
        kinds = [d.kind for d in trace]
        # one path of internal nodes, each with one label sibling, then a leaf
        assert kinds[0] == DirectiveKind.INTERNAL
        assert kinds[-1] in (DirectiveKind.LEAF, DirectiveKind.LABEL)
        assert kinds.count(DirectiveKind.LEAF) == 1
        assert kinds.count(DirectiveKind.INTERNAL) == kinds.count(DirectiveKind.LABEL)
        assert kinds.count(DirectiveKind.INTERNAL) <= prover.height

    def test_untouched_root_is_single_label(self, populated_prover):
        prover = populated_prover
        trace = build_trace(prover.arena, prover.root, set())
        assert trace == [Directive(DirectiveKind.LABEL,
                                   label=prover.arena.label(prover.root))]


# ═══════════════════════════════════════════════════════════════════
#  Decoding
# ═══════════════════════════════════════════════════════════════════

class TestDecoding:
    def test_decode_empty(self, codec):
        sk = codec.decode(Proof(b"\x00"), 0)
        assert sk.root is None

    def test_decode_rebuilds_root_label(self, codec, populated_prover, keys):
        res = populated_prover.lookup(keys[:3])
        label, height = split_digest(res.digest)
        sk = codec.decode(res.proof, height)
        assert sk.arena.label(sk.root) == label
        assert sk.arena.height(sk.root) == height

    def test_decode_leaves_stubs_for_unread_subtrees(self, codec, populated_prover, keys):
        res = populated_prover.lookup([keys[0]])
        _, height = split_digest(res.digest)
        sk = codec.decode(res.proof, height)
        kinds = [sk.arena.kind(i) for i in sk.arena.live_slots()]
        assert kinds.count(NodeKind.LEAF) == 1
        assert kinds.count(NodeKind.STUB) == kinds.count(NodeKind.INTERNAL)
        assert 1 <= kinds.count(NodeKind.STUB) <= height

    def test_empty_bytes_truncated(self, codec):
        with pytest.raises(SerializationError):
            codec.decode(Proof(b""), 0)

    def test_truncated_leaf(self, codec):
        data = codec.encode([Directive(DirectiveKind.LEAF, key=_key(1), value=b"hello")]).data
        with pytest.raises(SerializationError):
            codec.decode(Proof(data[:-1]), 0)

    def test_trailing_bytes(self, codec):
        data = codec.encode([Directive(DirectiveKind.LEAF, key=_key(1), value=b"hello")]).data
        with pytest.raises(SerializationError):
            codec.decode(Proof(data + b"\x00"), 0)

    def test_unknown_discriminator(self, codec):
        with pytest.raises(SerializationError):
            codec.decode(Proof(b"\x7f" + bytes(40)), 0)

    def test_invalid_balance(self, codec):
        data = b"\x02" + struct.pack(">b", 2) + _key(1)
        with pytest.raises(SerializationError):
            codec.decode(Proof(data), 2)

    def test_leaf_at_wrong_height(self, codec):
        data = codec.encode([Directive(DirectiveKind.LEAF, key=_key(1), value=b"v")]).data
        with pytest.raises(ProofVerificationError):
            codec.decode(Proof(data), 1)

    def test_internal_at_height_zero(self, codec):
        trace = [
            Directive(DirectiveKind.INTERNAL, key=_key(2), balance=0),
            Directive(DirectiveKind.LABEL, label=bytes(32)),
            Directive(DirectiveKind.LABEL, label=bytes(32)),
        ]
        with pytest.raises(ProofVerificationError):
            codec.decode(codec.encode(trace), 0)

    def test_empty_marker_inside_proof(self, codec):
        data = b"\x02\x00" + _key(2) + b"\x00" + b"\x03" + bytes(32)
        with pytest.raises(SerializationError):
            codec.decode(Proof(data), 1)
