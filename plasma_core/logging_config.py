"""
Logging for Plasma batches.

The prover and the verifier emit one record per batch and attach the batch
fields to it through ``extra=batch_fields(...)``:

    op           operation kind: LOOKUP, INSERT, UPDATE or REMOVE
    batch        number of entries in the batch
    prior        digest before the batch (hex prefix)
    digest       digest after the batch; equals ``prior`` on failure
    proof_bytes  size of the proof emitted or checked, absent when there is none
    error        error kind, present on failure only

Output formats:
  - **human**: coloured single line, batch fields appended as ``key=value``
  - **json**: newline-delimited JSON, batch fields as top-level keys

Usage:
    from plasma_core.logging_config import setup_logging_from_config
    setup_logging_from_config(load_config("plasma.toml").logging)
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from plasma_core.config import LoggingConfig
    from plasma_core.errors import PlasmaError
    from plasma_core.operations import Operation
    from plasma_core.proof import Proof

BATCH_FIELDS = ("op", "batch", "prior", "digest", "proof_bytes", "error")

# Digests are logged as this many hex characters
DIGEST_PREFIX = 16


def batch_fields(operation: Operation, prior: bytes,
                 digest: Optional[bytes] = None,
                 proof: Optional[Proof] = None,
                 error: Optional[PlasmaError] = None) -> dict[str, Any]:
    """Build the ``extra`` mapping describing one batch."""
    after = prior if digest is None else digest
    fields: dict[str, Any] = {
        "op": operation.kind.name,
        "batch": len(operation),
        "prior": bytes(prior).hex()[:DIGEST_PREFIX],
        "digest": bytes(after).hex()[:DIGEST_PREFIX],
    }
    if proof is not None:
        fields["proof_bytes"] = len(proof)
    if error is not None:
        fields["error"] = error.kind
    return fields


def _record_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {name: getattr(record, name) for name in BATCH_FIELDS
            if hasattr(record, name)}


class _JSONFormatter(logging.Formatter):
    """One JSON object per record, batch fields at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        out: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        out.update(_record_fields(record))
        if record.exc_info and record.exc_info[1]:
            out["exception"] = self.formatException(record.exc_info)
        return json.dumps(out, default=str)


class _HumanFormatter(logging.Formatter):
    """Coloured level, message, then the batch fields."""

    COLOURS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[1;31m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        colour = self.COLOURS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = (
            f"{colour}{ts} [{record.levelname:<7}]{self.RESET} "
            f"{record.name}: {record.getMessage()}"
        )
        fields = _record_fields(record)
        if fields:
            line += " | " + " ".join(f"{k}={v}" for k, v in fields.items())
        if record.exc_info and record.exc_info[1]:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: str = "INFO",
    fmt: str = "human",
    log_file: Optional[str] = None,
) -> None:
    """
    Configure the root logger for Plasma.

    ``fmt`` selects the console format (``"human"`` or ``"json"``).  When
    ``log_file`` is given, records are also appended to it as JSON so batch
    fields stay machine-readable.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(_JSONFormatter() if fmt == "json" else _HumanFormatter())
    root.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(path))
        fh.setFormatter(_JSONFormatter())
        root.addHandler(fh)


def setup_logging_from_config(cfg: LoggingConfig) -> None:
    """Apply a ``LoggingConfig`` section."""
    setup_logging(level=cfg.level, fmt=cfg.format, log_file=cfg.file)
