"""
Shared pytest fixtures for the Plasma test suite.
"""

import hashlib

import pytest

from plasma_core.prover import AVLProver
from plasma_core.verifier import AVLVerifier


def make_key(i: int) -> bytes:
    """Deterministic 32-byte key for index ``i``."""
    return hashlib.blake2b(f"key-{i}".encode(), digest_size=32).digest()


@pytest.fixture
def prover():
    """Fresh empty prover with 32-byte keys."""
    return AVLProver(key_length=32)


@pytest.fixture
def verifier():
    """Verifier matching the ``prover`` fixture."""
    return AVLVerifier(key_length=32)


@pytest.fixture
def populated_prover(prover):
    """Prover holding 64 keys, inserted in one batch."""
    res = prover.insert([(make_key(i), f"value-{i}".encode()) for i in range(64)])
    assert res.ok
    return prover


@pytest.fixture
def keys():
    """The 64 keys held by ``populated_prover``."""
    return [make_key(i) for i in range(64)]
