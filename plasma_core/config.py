"""
TOML-based configuration for Plasma trees.

Loads settings from a TOML file and/or environment variables.
Environment variables take precedence over file values.

Usage:
    from plasma_core.config import load_config
    cfg = load_config("plasma.toml")
    prover = AVLProver.from_config(cfg.tree)
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from plasma_core.operations import TreeFlags

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


@dataclass
class TreeConfig:
    """Shape of the authenticated tree and the operations it accepts."""
    key_length: int = 32
    value_length: int = 0          # 0 = variable-length values
    insert_allowed: bool = True
    update_allowed: bool = True
    remove_allowed: bool = True
    # Run the invariant checker on every candidate root (slow, O(n))
    check_invariants: bool = False

    @property
    def flags(self) -> TreeFlags:
        return TreeFlags(
            insert_allowed=self.insert_allowed,
            update_allowed=self.update_allowed,
            remove_allowed=self.remove_allowed,
        )


@dataclass
class ProofConfig:
    """Proof transport settings."""
    shard_size: int = 4096   # bytes per shard when a proof is sliced


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = "INFO"
    format: str = "human"   # "human" or "json"
    file: str | None = None


@dataclass
class PlasmaConfig:
    """Top-level configuration container."""
    tree: TreeConfig = field(default_factory=TreeConfig)
    proof: ProofConfig = field(default_factory=ProofConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _merge(dc: Any, raw: dict[str, Any]) -> None:
    """Merge a raw dict into a dataclass instance (in-place)."""
    for key, value in raw.items():
        key_under = key.replace("-", "_")
        if hasattr(dc, key_under):
            setattr(dc, key_under, value)


def _env_bool(v: str) -> bool:
    return v.strip().lower() in ("1", "true", "yes", "on")


def load_config(path: str | None = None) -> PlasmaConfig:
    """
    Load configuration from a TOML file, then overlay environment variables.

    Env-var mapping:
        PLASMA_KEY_LENGTH       -> tree.key_length
        PLASMA_VALUE_LENGTH     -> tree.value_length
        PLASMA_CHECK_INVARIANTS -> tree.check_invariants
        PLASMA_SHARD_SIZE       -> proof.shard_size
        PLASMA_LOG_LEVEL        -> logging.level
        PLASMA_LOG_FMT          -> logging.format
        PLASMA_LOG_FILE         -> logging.file
    """
    cfg = PlasmaConfig()

    # ── TOML file ────────────────────────────────────────────────
    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p, "rb") as f:
                data = tomllib.load(f)
            for section_name, section_dc in [
                ("tree", cfg.tree),
                ("proof", cfg.proof),
                ("logging", cfg.logging),
            ]:
                if section_name in data:
                    _merge(section_dc, data[section_name])

    # ── Environment variable overrides ───────────────────────────
    if v := os.environ.get("PLASMA_KEY_LENGTH"):
        cfg.tree.key_length = int(v)
    if v := os.environ.get("PLASMA_VALUE_LENGTH"):
        cfg.tree.value_length = int(v)
    if v := os.environ.get("PLASMA_CHECK_INVARIANTS"):
        cfg.tree.check_invariants = _env_bool(v)
    if v := os.environ.get("PLASMA_SHARD_SIZE"):
        cfg.proof.shard_size = int(v)
    if v := os.environ.get("PLASMA_LOG_LEVEL"):
        cfg.logging.level = v.upper()
    if v := os.environ.get("PLASMA_LOG_FMT"):
        cfg.logging.format = v
    if v := os.environ.get("PLASMA_LOG_FILE"):
        cfg.logging.file = v

    return cfg
