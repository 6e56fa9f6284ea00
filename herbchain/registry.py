"""Traceability registry: item master records and their lifecycle.

State Machine:

    PENDING_VERIFICATION ──(within tolerance)──▶ VERIFIED
             │
             └──────────(outside tolerance)────▶ DISPUTED

VERIFIED never changes again but the item stays transferable while stock
remains. DISPUTED is terminal: no transfer, no consumption.

Item history is a list of chain indices. Records live once, in the chain;
the registry only points at them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, FrozenSet, List, Optional

from herbchain.core import decimal_str, to_decimal
from herbchain.hardening import InvariantViolation
from herbchain.records import HerbStatus, QualitySnapshot


ALLOWED_TRANSITIONS: Dict[HerbStatus, FrozenSet[HerbStatus]] = {
    HerbStatus.PENDING_VERIFICATION: frozenset({HerbStatus.VERIFIED, HerbStatus.DISPUTED}),
    HerbStatus.VERIFIED: frozenset(),
    HerbStatus.DISPUTED: frozenset(),
}


@dataclass
class ItemMasterRecord:
    item_id: str
    name: str
    location: str
    quality: Optional[QualitySnapshot]
    registrant_id: str
    claimed_quantity: Decimal
    unit_type: str
    status: HerbStatus = HerbStatus.PENDING_VERIFICATION
    history: List[int] = field(default_factory=list)

    @property
    def is_transferable(self) -> bool:
        return self.status is HerbStatus.VERIFIED

    @property
    def registration_index(self) -> int:
        return self.history[0]

    def copy(self) -> "ItemMasterRecord":
        return ItemMasterRecord(
            item_id=self.item_id,
            name=self.name,
            location=self.location,
            quality=self.quality,
            registrant_id=self.registrant_id,
            claimed_quantity=self.claimed_quantity,
            unit_type=self.unit_type,
            status=self.status,
            history=list(self.history),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "location": self.location,
            "quality": self.quality.to_dict() if self.quality else None,
            "registrant_id": self.registrant_id,
            "claimed_quantity": decimal_str(self.claimed_quantity),
            "unit_type": self.unit_type,
            "status": self.status.value,
            "history": list(self.history),
        }

    @classmethod
    def from_dict(cls, item_id: str, data: Dict[str, Any]) -> "ItemMasterRecord":
        return cls(
            item_id=item_id,
            name=str(data["name"]),
            location=str(data["location"]),
            quality=QualitySnapshot.from_dict(data.get("quality")),
            registrant_id=str(data["registrant_id"]),
            claimed_quantity=to_decimal(data["claimed_quantity"], "claimed_quantity"),
            unit_type=str(data["unit_type"]),
            status=HerbStatus(data["status"]),
            history=[int(i) for i in data.get("history") or []],
        )


class TraceabilityRegistry:

    def __init__(self):
        self._items: Dict[str, ItemMasterRecord] = {}

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def get(self, item_id: str) -> Optional[ItemMasterRecord]:
        item = self._items.get(item_id)
        return item.copy() if item else None

    def _require(self, item_id: str) -> ItemMasterRecord:
        item = self._items.get(item_id)
        if item is None:
            raise InvariantViolation(f"unknown item {item_id}")
        return item

    def status_of(self, item_id: str) -> Optional[HerbStatus]:
        item = self._items.get(item_id)
        return item.status if item else None

    def create(
        self,
        *,
        item_id: str,
        name: str,
        location: str,
        quality: Optional[QualitySnapshot],
        registrant_id: str,
        claimed_quantity: Decimal,
        unit_type: str,
        registration_index: int,
    ) -> ItemMasterRecord:
        if item_id in self._items:
            raise InvariantViolation(f"item {item_id} already registered")
        item = ItemMasterRecord(
            item_id=item_id,
            name=name,
            location=location,
            quality=quality,
            registrant_id=registrant_id,
            claimed_quantity=claimed_quantity,
            unit_type=unit_type,
            history=[registration_index],
        )
        self._items[item_id] = item
        return item.copy()

    def transition(self, item_id: str, to_status: HerbStatus) -> HerbStatus:
        item = self._require(item_id)
        if to_status not in ALLOWED_TRANSITIONS[item.status]:
            raise InvariantViolation(
                f"transition not allowed for {item_id}: {item.status.value} -> {to_status.value}"
            )
        previous = item.status
        item.status = to_status
        return previous

    def append_history(self, item_id: str, block_index: int) -> None:
        item = self._require(item_id)
        if item.history and block_index <= item.history[-1]:
            raise InvariantViolation(f"history of {item_id} must be in chain order")
        item.history.append(block_index)

    def pending(self) -> List[ItemMasterRecord]:
        return [i.copy() for i in self._items.values() if i.status is HerbStatus.PENDING_VERIFICATION]

    def items(self) -> List[ItemMasterRecord]:
        return [i.copy() for i in self._items.values()]

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {item_id: item.to_dict() for item_id, item in self._items.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Dict[str, Any]]) -> "TraceabilityRegistry":
        registry = cls()
        for item_id, raw in data.items():
            registry._items[item_id] = ItemMasterRecord.from_dict(item_id, raw)
        return registry
