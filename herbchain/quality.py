"""Deterministic quality check over raw snapshot pixels.

The score is a stand-in for real image inference: a 32-bit rolling hash of
the pixel bytes folded into the range 50-100. Identical pixels always give
the same score.
"""

from __future__ import annotations

from typing import Iterable, Optional, Union

from herbchain.config import HerbChainConfig, get_config
from herbchain.records import QualitySnapshot

STATUS_FAILED = "Check Failed! Score is too low."
STATUS_EXCELLENT = "Excellent"
STATUS_PASSED = "Passed"

MIN_PIXEL_SCORE = 50
SCORE_SPREAD = 51

Pixels = Union[bytes, bytearray, memoryview, Iterable[int]]


def _int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def pixel_score(pixels: Pixels) -> int:
    """Score pixel bytes: ``h = h*31 + byte`` with signed 32-bit wrap, then ``|h| % 51 + 50``."""
    h = 0
    for byte in pixels:
        h = _int32((h << 5) - h + (int(byte) & 0xFF))
    return abs(h) % SCORE_SPREAD + MIN_PIXEL_SCORE


def classify(score: int, threshold: int, excellent: int = 90) -> QualitySnapshot:
    if score < threshold:
        status = STATUS_FAILED
    elif score >= excellent:
        status = STATUS_EXCELLENT
    else:
        status = STATUS_PASSED
    return QualitySnapshot(score=score, status=status)


def assess(pixels: Pixels, threshold: int, config: Optional[HerbChainConfig] = None) -> QualitySnapshot:
    """Score and classify a snapshot against one role's threshold."""
    config = config if config is not None else get_config()
    return classify(pixel_score(pixels), threshold, config.quality.excellent_score.get())
