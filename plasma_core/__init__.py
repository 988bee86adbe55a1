"""
Plasma - an authenticated AVL dictionary with batch proofs.

Key features:
- BLAKE2b-labelled AVL tree committed to by a 33-byte digest
- Batched insert / update / remove / lookup with atomic failure
- Compact proofs covering only the nodes a batch reads
- Stateless verifier that replays a batch from digest + proof
- Typed map facade with pluggable byte conversion
"""

__version__ = "1.0.0"
__all__ = [
    "hashing",
    "errors",
    "results",
    "node",
    "operations",
    "avl",
    "proof",
    "prover",
    "verifier",
    "conversion",
    "plasma_map",
    "invariants",
    "config",
    "logging_config",
]
