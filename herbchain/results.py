"""Operation results returned by the contract engine.

Engine operations never raise for business-rule or caller-input violations;
they return an ``OperationResult`` whose ``error_kind`` says what went wrong
and whose ``message`` is fit to show the user verbatim.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(Enum):
    DUPLICATE_ITEM = "DuplicateItem"
    NOT_AWAITING_VERIFICATION = "NotAwaitingVerification"
    FRAUD_DETECTED = "FraudDetected"
    ITEM_NOT_FOUND = "ItemNotFound"
    ITEM_NOT_TRANSFERABLE = "ItemNotTransferable"
    UNIT_MISMATCH = "UnitMismatch"
    INSUFFICIENT_QUANTITY = "InsufficientQuantity"
    QUALITY_BELOW_THRESHOLD = "QualityBelowThreshold"
    MANUFACTURER_NOT_FOUND = "ManufacturerNotFound"
    INSUFFICIENT_OR_MISMATCHED_BATCHES = "InsufficientOrMismatchedBatches"
    DUPLICATE_BATCH = "DuplicateBatch"
    INVALID_INPUT = "InvalidInput"


@dataclass(frozen=True)
class OperationResult:
    success: bool
    message: str
    error_kind: Optional[ErrorKind] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, message: str, **details: Any) -> "OperationResult":
        return cls(success=True, message=message, details=details)

    @classmethod
    def fail(cls, error_kind: ErrorKind, message: str, **details: Any) -> "OperationResult":
        return cls(success=False, message=message, error_kind=error_kind, details=details)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.error_kind is not None:
            out["error_kind"] = self.error_kind.value
        if self.details:
            out["details"] = dict(self.details)
        return out
