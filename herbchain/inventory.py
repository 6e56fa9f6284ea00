"""Per-actor inventory store.

Quantities only move through ``credit`` and ``debit``; both raise
``InvariantViolation`` rather than letting a quantity go negative or an
item change its unit type within an actor's inventory.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from herbchain.core import decimal_str, to_decimal
from herbchain.hardening import InvariantViolation


@dataclass
class InventoryEntry:
    item_id: str
    name: str
    unit_type: str
    quantity: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "unit_type": self.unit_type,
            "quantity": decimal_str(self.quantity),
        }

    @classmethod
    def from_dict(cls, item_id: str, data: Dict[str, Any]) -> "InventoryEntry":
        return cls(
            item_id=item_id,
            name=str(data["name"]),
            unit_type=str(data["unit_type"]),
            quantity=to_decimal(data["quantity"], "quantity"),
        )


class InventoryStore:
    """actor id -> item id -> InventoryEntry."""

    def __init__(self, actors: Iterable[str] = ()):
        self._entries: Dict[str, Dict[str, InventoryEntry]] = {a: {} for a in actors}

    def has_actor(self, actor_id: str) -> bool:
        return actor_id in self._entries

    def add_actor(self, actor_id: str) -> None:
        self._entries.setdefault(actor_id, {})

    def actors(self) -> List[str]:
        return list(self._entries)

    def get(self, actor_id: str, item_id: str) -> Optional[InventoryEntry]:
        entry = self._entries.get(actor_id, {}).get(item_id)
        return replace(entry) if entry else None

    def available(self, actor_id: str, item_id: str) -> Decimal:
        entry = self._entries.get(actor_id, {}).get(item_id)
        return entry.quantity if entry else Decimal(0)

    def credit(self, actor_id: str, item_id: str, name: str, unit_type: str, quantity: Decimal) -> InventoryEntry:
        if quantity < 0:
            raise InvariantViolation(f"cannot credit a negative quantity ({quantity}) of {item_id}")
        actor_items = self._entries.setdefault(actor_id, {})
        entry = actor_items.get(item_id)
        if entry is None:
            entry = InventoryEntry(item_id=item_id, name=name, unit_type=unit_type, quantity=Decimal(0))
            actor_items[item_id] = entry
        elif entry.unit_type != unit_type:
            raise InvariantViolation(
                f"{actor_id}/{item_id}: unit type {unit_type!r} conflicts with recorded {entry.unit_type!r}"
            )
        entry.quantity += quantity
        return replace(entry)

    def debit(self, actor_id: str, item_id: str, quantity: Decimal) -> InventoryEntry:
        entry = self._entries.get(actor_id, {}).get(item_id)
        if entry is None:
            raise InvariantViolation(f"{actor_id} holds no {item_id}")
        if quantity < 0:
            raise InvariantViolation(f"cannot debit a negative quantity ({quantity}) of {item_id}")
        if quantity > entry.quantity:
            raise InvariantViolation(
                f"{actor_id}/{item_id}: debit of {quantity} exceeds available {entry.quantity}"
            )
        entry.quantity -= quantity
        return replace(entry)

    def list_actor(self, actor_id: str) -> List[InventoryEntry]:
        return [replace(e) for e in self._entries.get(actor_id, {}).values()]

    def to_dict(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        return {
            actor: {item_id: e.to_dict() for item_id, e in items.items()}
            for actor, items in self._entries.items()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Dict[str, Dict[str, Any]]]) -> "InventoryStore":
        store = cls()
        for actor, items in data.items():
            store._entries[actor] = {
                item_id: InventoryEntry.from_dict(item_id, raw) for item_id, raw in items.items()
            }
            for entry in store._entries[actor].values():
                if entry.quantity < 0:
                    raise InvariantViolation(f"{actor}/{entry.item_id}: negative quantity in snapshot")
        return store
