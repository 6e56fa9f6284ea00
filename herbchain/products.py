"""
Finished-product units and consumer tracing.

A production batch of final weight ``w`` yields ``floor(w)`` units with ids
``<batch_id>-001``, ``<batch_id>-002``, ... Each unit carries a small JSON
payload (rendered as a QR code by the caller):

    {"batch_id": "...", "unit_id": "...", "type": "medicine",
     "source_herbs": [...], "produced_on": "YYYY-MM-DD"}

``trace_unit`` takes a scanned payload, runs it through the scan log's
replay guard and walks the ledger back from the production record to every
source herb's history.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_FLOOR, Decimal
from typing import Any, Dict, List, Optional, Tuple

from herbchain.core import decimal_str
from herbchain.engine import ContractEngine
from herbchain.hardening import Validators
from herbchain.observability import LedgerLayer, get_logger
from herbchain.records import UsedBatch, UseHerb
from herbchain.scanlog import ScanResult

PRODUCT_TYPE = "medicine"

logger = get_logger("products", LedgerLayer.PRODUCTS)


class InvalidUnitPayload(ValueError):
    """Scanned text is not a product unit payload."""
    pass


@dataclass(frozen=True)
class ProductUnit:
    batch_id: str
    unit_id: str
    source_herbs: Tuple[UsedBatch, ...]
    produced_on: str

    def to_payload(self) -> Dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "unit_id": self.unit_id,
            "type": PRODUCT_TYPE,
            "source_herbs": [b.to_dict() for b in self.source_herbs],
            "produced_on": self.produced_on,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_payload(), sort_keys=True, separators=(",", ":"))


def unit_id_for(batch_id: str, n: int) -> str:
    return f"{batch_id}-{n:03d}"


def mint_units(use_record: UseHerb, produced_on: Optional[str] = None) -> List[ProductUnit]:
    """One unit per whole unit of final weight; the date defaults to the record's UTC day."""
    if produced_on is None:
        produced_on = datetime.fromtimestamp(use_record.timestamp / 1000, tz=timezone.utc).date().isoformat()
    count = int(use_record.final_weight.to_integral_value(rounding=ROUND_FLOOR))
    return [
        ProductUnit(
            batch_id=use_record.batch_id,
            unit_id=unit_id_for(use_record.batch_id, n),
            source_herbs=use_record.used_batches,
            produced_on=produced_on,
        )
        for n in range(1, count + 1)
    ]


def parse_unit_payload(text: str) -> ProductUnit:
    try:
        data = json.loads(text)
    except (TypeError, json.JSONDecodeError) as e:
        raise InvalidUnitPayload("Invalid QR Code Data. Not in the correct JSON format.") from e

    if not isinstance(data, dict) or data.get("type") != PRODUCT_TYPE or not data.get("batch_id"):
        raise InvalidUnitPayload("Invalid QR Code. Not a valid medicine QR code.")
    for key in ("batch_id", "unit_id"):
        checked = Validators.validate_identifier(data.get(key), key)
        if not checked.is_valid:
            raise InvalidUnitPayload(f"Invalid QR Code. {checked.message}")

    try:
        sources = tuple(UsedBatch.from_dict(b) for b in data.get("source_herbs") or [])
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidUnitPayload(f"Invalid QR Code. Unreadable source herbs: {e}") from e
    return ProductUnit(
        batch_id=data["batch_id"],
        unit_id=data["unit_id"],
        source_herbs=sources,
        produced_on=str(data.get("produced_on", "")),
    )


@dataclass(frozen=True)
class TraceEvent:
    action: str
    timestamp: int
    location: str
    block_index: int


@dataclass
class SourceTrace:
    item_id: str
    name: str
    units_used: Decimal
    unit_type: str
    events: List[TraceEvent] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "name": self.name,
            "units_used": decimal_str(self.units_used),
            "unit_type": self.unit_type,
            "events": [
                {"action": e.action, "timestamp": e.timestamp, "location": e.location}
                for e in self.events
            ],
        }


@dataclass
class TraceReport:
    unit: ProductUnit
    scan: ScanResult
    production_location: Optional[str] = None
    sources: List[SourceTrace] = field(default_factory=list)

    @property
    def found(self) -> bool:
        """Whether the ledger holds a production record for the batch."""
        return self.production_location is not None

    @property
    def counterfeit_suspected(self) -> bool:
        return self.scan.counterfeit_suspected


def trace_unit(engine: ContractEngine, payload_text: str) -> TraceReport:
    """
    Trace a scanned unit back to its source herbs.

    Raises InvalidUnitPayload for text that is not a unit payload. A repeat
    scan still produces a full report, flagged ``counterfeit_suspected``.
    """
    unit = parse_unit_payload(payload_text)
    scan = engine.record_scan(unit.unit_id)
    report = TraceReport(unit=unit, scan=scan)
    if scan.counterfeit_suspected:
        logger.warning("Possible copied unit code", unit_id=unit.unit_id, batch_id=unit.batch_id)

    block = engine.find_use_record(unit.batch_id)
    if block is None:
        logger.info("No production record for scanned batch", batch_id=unit.batch_id)
        return report

    use: UseHerb = block.record  # type: ignore[assignment]
    report.production_location = use.location
    for batch in use.used_batches:
        item = engine.get_item(batch.item_id)
        if item is None:
            continue
        events = [
            TraceEvent(
                action=b.record.type.value,
                timestamp=b.timestamp,
                location=getattr(b.record, "location", ""),
                block_index=b.index,
            )
            for b in engine.item_history(batch.item_id)
        ]
        report.sources.append(SourceTrace(
            item_id=batch.item_id,
            name=item.name,
            units_used=batch.units_used,
            unit_type=batch.unit_type,
            events=events,
        ))
    return report
