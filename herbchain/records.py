"""Ledger record variants.

Every block on the chain carries exactly one record. Records are immutable
once built, with one exception: ``RegisterHerb.status`` follows the item's
lifecycle (pending_verification -> verified | disputed). That field is
excluded from the fingerprint payload so recomputing a block hash after a
status change still reproduces the stored value.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Dict, FrozenSet, List, Mapping, Optional, Tuple, Type, Union

from herbchain.core import decimal_str, to_decimal
from herbchain.hardening import InvariantViolation


class RecordType(Enum):
    REGISTER_HERB = "RegisterHerb"
    VERIFY_RECEIPT = "VerifyReceipt"
    FRAUD_ALERT = "FraudAlert"
    TRANSFER_HERB = "TransferHerb"
    USE_HERB = "UseHerb"


class HerbStatus(Enum):
    """Lifecycle state of a registered item."""
    PENDING_VERIFICATION = "pending_verification"
    VERIFIED = "verified"
    DISPUTED = "disputed"

    def is_terminal(self) -> bool:
        return self in {HerbStatus.VERIFIED, HerbStatus.DISPUTED}


@dataclass(frozen=True)
class QualitySnapshot:
    """Externally computed quality check result. Only ``score`` is interpreted."""
    score: int
    status: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "status": self.status}

    @classmethod
    def from_dict(cls, data: Union["QualitySnapshot", Mapping[str, Any], None]) -> Optional["QualitySnapshot"]:
        if data is None or isinstance(data, QualitySnapshot):
            return data
        return cls(score=data["score"], status=str(data.get("status", "")))


@dataclass(frozen=True)
class UsedBatch:
    """One raw-herb input consumed into a finished product batch."""
    item_id: str
    units_used: Decimal
    unit_type: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "units_used": decimal_str(self.units_used),
            "unit_type": self.unit_type,
        }

    @classmethod
    def from_dict(cls, data: Union["UsedBatch", Mapping[str, Any]]) -> "UsedBatch":
        if isinstance(data, UsedBatch):
            return data
        return cls(
            item_id=data["item_id"],
            units_used=to_decimal(data["units_used"], "units_used"),
            unit_type=data["unit_type"],
        )


def _dump(value: Any) -> Any:
    if isinstance(value, Decimal):
        return decimal_str(value)
    if isinstance(value, (QualitySnapshot, UsedBatch)):
        return value.to_dict()
    if isinstance(value, HerbStatus):
        return value.value
    if isinstance(value, tuple):
        return [_dump(v) for v in value]
    return value


class Record:
    """Base for all record variants.

    Subclasses are dataclasses whose first field is ``timestamp``.
    """

    record_type: ClassVar[RecordType]
    _decimal_fields: ClassVar[FrozenSet[str]] = frozenset()
    _mutable_fields: ClassVar[FrozenSet[str]] = frozenset()

    timestamp: int

    @property
    def type(self) -> RecordType:
        return self.record_type

    @property
    def item_ids(self) -> List[str]:
        """Item ids whose history this record belongs to."""
        return [getattr(self, "item_id")]

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.record_type.value}
        for f in fields(self):  # type: ignore[arg-type]
            out[f.name] = _dump(getattr(self, f.name))
        return out

    def hash_payload(self) -> Dict[str, Any]:
        """The fingerprinted view: everything except lifecycle fields."""
        d = self.to_dict()
        for name in self._mutable_fields:
            d.pop(name, None)
        return d

    @classmethod
    def _from_fields(cls, data: Mapping[str, Any]) -> "Record":
        kwargs: Dict[str, Any] = {}
        for f in fields(cls):  # type: ignore[arg-type]
            if f.name not in data:
                continue
            value = data[f.name]
            if f.name in cls._decimal_fields:
                value = to_decimal(value, f.name)
            elif f.name == "quality":
                value = QualitySnapshot.from_dict(value)
            kwargs[f.name] = value
        return cls(**kwargs)  # type: ignore[call-arg]


@dataclass
class RegisterHerb(Record):
    record_type: ClassVar[RecordType] = RecordType.REGISTER_HERB
    _decimal_fields: ClassVar[FrozenSet[str]] = frozenset({"quantity"})
    _mutable_fields: ClassVar[FrozenSet[str]] = frozenset({"status"})

    timestamp: int
    collector_id: str
    item_id: str
    name: str
    location: str
    quantity: Decimal
    unit_type: str
    quality: Optional[QualitySnapshot]
    status: HerbStatus = HerbStatus.PENDING_VERIFICATION

    def __setattr__(self, name: str, value: Any) -> None:
        if name in self.__dict__ and name not in self._mutable_fields:
            raise InvariantViolation(f"RegisterHerb.{name} is immutable")
        super().__setattr__(name, value)

    @classmethod
    def _from_fields(cls, data: Mapping[str, Any]) -> "Record":
        data = dict(data)
        if "status" in data:
            data["status"] = HerbStatus(data["status"])
        return super()._from_fields(data)


@dataclass(frozen=True)
class VerifyReceipt(Record):
    record_type: ClassVar[RecordType] = RecordType.VERIFY_RECEIPT
    _decimal_fields: ClassVar[FrozenSet[str]] = frozenset({"verified_quantity"})

    timestamp: int
    verifier_id: str
    item_id: str
    verified_quantity: Decimal


@dataclass(frozen=True)
class FraudAlert(Record):
    record_type: ClassVar[RecordType] = RecordType.FRAUD_ALERT
    _decimal_fields: ClassVar[FrozenSet[str]] = frozenset({"claimed_quantity", "measured_quantity"})

    timestamp: int
    verifier_id: str
    item_id: str
    claimed_quantity: Decimal
    measured_quantity: Decimal
    message: str


@dataclass(frozen=True)
class TransferHerb(Record):
    record_type: ClassVar[RecordType] = RecordType.TRANSFER_HERB
    _decimal_fields: ClassVar[FrozenSet[str]] = frozenset({"weight"})

    timestamp: int
    from_id: str
    to_id: str
    item_id: str
    weight: Decimal
    unit_type: str
    location: str
    quality: Optional[QualitySnapshot]


@dataclass(frozen=True)
class UseHerb(Record):
    record_type: ClassVar[RecordType] = RecordType.USE_HERB
    _decimal_fields: ClassVar[FrozenSet[str]] = frozenset({"final_weight"})

    timestamp: int
    manufacturer_id: str
    batch_id: str
    location: str
    used_batches: Tuple[UsedBatch, ...]
    final_weight: Decimal
    final_unit: str
    quality: Optional[QualitySnapshot]

    @property
    def item_ids(self) -> List[str]:
        seen: List[str] = []
        for batch in self.used_batches:
            if batch.item_id not in seen:
                seen.append(batch.item_id)
        return seen

    @classmethod
    def _from_fields(cls, data: Mapping[str, Any]) -> "Record":
        data = dict(data)
        data["used_batches"] = tuple(UsedBatch.from_dict(b) for b in data.get("used_batches") or [])
        return super()._from_fields(data)


RECORD_TYPES: Dict[str, Type[Record]] = {
    cls.record_type.value: cls
    for cls in (RegisterHerb, VerifyReceipt, FraudAlert, TransferHerb, UseHerb)
}


def record_from_dict(data: Mapping[str, Any]) -> Record:
    """Rebuild a record from its ``to_dict`` form."""
    tag = data.get("type")
    cls = RECORD_TYPES.get(str(tag))
    if cls is None:
        raise ValueError(f"unknown record type: {tag!r}")
    return cls._from_fields(data)
