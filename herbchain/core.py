"""Core primitives for HerbChain.

This module provides the foundational utilities used throughout the ledger:
- Content fingerprints (SHA-256 hex)
- Canonical JSON serialization (sorted keys, compact, UTF-8)
- Decimal coercion for quantities
- YAML/JSON loading with consistent encoding
- A logical millisecond clock

Design principles:
- Pure functions where possible
- Quantities are Decimals, never floats
- Explicit error handling
"""

from __future__ import annotations

import hashlib
import json
import pathlib
import threading
import time
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Optional

import yaml

# Package and repository roots, computed once at module load
PACKAGE_ROOT = pathlib.Path(__file__).resolve().parent
REPO_ROOT = PACKAGE_ROOT.parent


def sha256_bytes(data: bytes) -> str:
    """Compute SHA-256 hash of bytes, returning lowercase hex string."""
    return hashlib.sha256(data).hexdigest()


def load_yaml(path: pathlib.Path) -> Any:
    """Load YAML file with UTF-8 encoding."""
    return yaml.safe_load(pathlib.Path(path).read_text(encoding="utf-8"))


def load_json(path: pathlib.Path) -> Any:
    """Load JSON file with UTF-8 encoding."""
    return json.loads(pathlib.Path(path).read_text(encoding="utf-8"))


def decimal_str(value: Decimal) -> str:
    """Render a Decimal without exponent notation or trailing zeros.

    ``Decimal("10.0")`` and ``Decimal("10")`` both render as ``"10"`` so that
    equal quantities always fingerprint identically.
    """
    normalized = value.normalize()
    if normalized == normalized.to_integral_value():
        return str(normalized.quantize(Decimal(1)))
    return format(normalized, "f")


def to_decimal(value: Any, field_name: str = "value") -> Decimal:
    """Coerce an int, str or Decimal into a finite Decimal.

    Floats are converted through ``str`` so ``97.9`` becomes ``Decimal("97.9")``.
    Raises ValueError for anything that is not a finite number.
    """
    if isinstance(value, bool):
        raise ValueError(f"{field_name}: booleans are not quantities")
    try:
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, (int, float)):
            result = Decimal(str(value))
        elif isinstance(value, str):
            result = Decimal(value.strip())
        else:
            raise ValueError(f"{field_name}: cannot convert {type(value).__name__} to Decimal")
    except InvalidOperation as e:
        raise ValueError(f"{field_name}: invalid decimal value {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"{field_name}: must be a finite number")
    if result.is_zero():
        # "-0" and -0.0 are plain zero; a signed zero would not round-trip
        result = abs(result)
    return result


def jsonable(obj: Any) -> Any:
    """Convert Decimals and Enums into plain JSON values, recursively."""
    if isinstance(obj, Decimal):
        return decimal_str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, dict):
        return {str(k): jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [jsonable(v) for v in obj]
    return obj


def canonical_json_bytes(obj: Any) -> bytes:
    """Serialize object to canonical JSON bytes.

    Properties:
    - Keys sorted lexicographically
    - No whitespace
    - UTF-8 encoded
    - Decimals rendered via ``decimal_str``
    - Floats rejected (quantities must be Decimals)

    This ensures byte-for-byte reproducibility for block fingerprints.
    """
    def _reject_floats(o: Any, path: str = "") -> None:
        if isinstance(o, float):
            raise ValueError(f"Float not allowed in canonical JSON at {path}")
        if isinstance(o, dict):
            for k, v in o.items():
                _reject_floats(v, f"{path}.{k}")
        if isinstance(o, (list, tuple)):
            for i, v in enumerate(o):
                _reject_floats(v, f"{path}[{i}]")

    _reject_floats(obj)
    return json.dumps(
        jsonable(obj),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


class LogicalClock:
    """Millisecond clock that never runs backwards.

    Wraps a wall-clock source; if the source steps back (NTP adjustment,
    restored snapshot with later timestamps) the last issued value is
    repeated instead.
    """

    def __init__(self, time_source: Optional[Callable[[], float]] = None):
        self._time_source = time_source or time.time
        self._last = 0
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            current = int(self._time_source() * 1000)
            if current < self._last:
                current = self._last
            self._last = current
            return current

    def observe(self, timestamp: int) -> None:
        """Advance the floor to an externally recorded timestamp."""
        with self._lock:
            if timestamp > self._last:
                self._last = timestamp

    @property
    def last(self) -> int:
        return self._last
