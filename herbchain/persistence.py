"""
Snapshot persistence for the ledger.

The whole ledger state is saved as one JSON document:

    {
      "format": "herbchain.snapshot.v1",
      "chain": [...],
      "item_master": {...},
      "inventories": {...},
      "reputation_scores": {...},
      "scan_log": {...}
    }

Saves replace the file atomically; each save writes its own temp file so
concurrent saves never share one. Loads are schema-validated; a snapshot
that is unreadable, lacks a chain, or fails the genesis check raises
``CorruptStateError`` and must be reset. Missing ``reputation_scores`` and
``scan_log`` fall back to initial values.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union

from herbchain.chain import CorruptStateError, create_genesis
from herbchain.observability import LedgerLayer, get_logger
from herbchain.schema import validate_with_schema

SNAPSHOT_FORMAT = "herbchain.snapshot.v1"

Snapshot = Dict[str, Any]

logger = get_logger("snapshot_store", LedgerLayer.PERSISTENCE)

__all__ = [
    "SNAPSHOT_FORMAT",
    "CorruptStateError",
    "SnapshotStore",
    "validate_snapshot",
]


def validate_snapshot(data: Any) -> Snapshot:
    """
    Check a decoded snapshot and fill in optional sections.

    Returns a new dict; raises CorruptStateError when the document cannot
    be used to rebuild the ledger.
    """
    if not isinstance(data, dict):
        raise CorruptStateError("snapshot must be a JSON object")
    if not data.get("chain"):
        raise CorruptStateError("snapshot has no chain")

    errors = validate_with_schema(data, "snapshot")
    if errors:
        raise CorruptStateError(f"snapshot failed schema validation: {errors[0]}")

    genesis = create_genesis()
    first = data["chain"][0]
    if first.get("hash") != genesis.hash or first.get("previous_hash") != genesis.previous_hash:
        raise CorruptStateError("genesis block mismatch")

    out = dict(data)
    out["format"] = data.get("format", SNAPSHOT_FORMAT)
    out.setdefault("item_master", {})
    out.setdefault("inventories", {})
    out.setdefault("reputation_scores", {})
    out.setdefault("scan_log", {})
    return out


class SnapshotStore:
    """File-backed save/load of full ledger snapshots."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def save(self, snapshot: Snapshot) -> None:
        """Write the snapshot through a private temp file, then swap it in."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        handle = tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
            suffix=".tmp",
            delete=False,
        )
        tmp = Path(handle.name)
        try:
            with handle as f:
                json.dump(snapshot, f, ensure_ascii=False, indent=2)
                f.write("\n")
            os.replace(tmp, self.path)
        finally:
            if tmp.exists():
                tmp.unlink()
        logger.debug("Snapshot saved", path=str(self.path), blocks=len(snapshot.get("chain", [])))

    def load(self) -> Optional[Snapshot]:
        """Load and validate the snapshot; None when nothing has been saved."""
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise CorruptStateError(f"snapshot is not valid JSON: {e}") from e
        snapshot = validate_snapshot(data)
        logger.info("Snapshot loaded", path=str(self.path), blocks=len(snapshot["chain"]))
        return snapshot

    def clear(self) -> bool:
        """Remove the saved snapshot. Returns True if a file was removed."""
        if not self.path.exists():
            return False
        self.path.unlink()
        logger.info("Snapshot cleared", path=str(self.path))
        return True
