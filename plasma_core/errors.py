"""
Error kinds raised by the tree engine, the proof codec and the verifier.

Inside the engine these are ordinary exceptions.  The public batch entry
points (prover, verifier, map facade) catch them and hand them back inside
an explicit result value, so a failed batch never escapes as a raise.
"""

from __future__ import annotations


class PlasmaError(Exception):
    """Base class for every error reported by plasma_core."""

    kind = "PlasmaError"

    def __init__(self, message: str = "", key: bytes | None = None):
        super().__init__(message)
        self.key = key


class KeyExistsError(PlasmaError):
    """Insert of a key that is already present."""
    kind = "KeyExistsError"


class KeyNotFoundError(PlasmaError):
    """Update or remove of a key that is absent."""
    kind = "KeyNotFoundError"


class ProofVerificationError(PlasmaError):
    """The proof does not match the digest or does not cover the operation."""
    kind = "ProofVerificationError"


class SerializationError(PlasmaError):
    """Malformed proof bytes, or a key/value of the wrong length."""
    kind = "SerializationError"


class OperationNotAllowedError(PlasmaError):
    """The tree flags forbid this kind of operation."""
    kind = "OperationNotAllowedError"


class InvariantViolationError(PlasmaError):
    """A candidate tree broke a structural invariant and was rejected."""
    kind = "InvariantViolationError"
