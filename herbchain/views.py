"""Ledger display rows, newest first, genesis excluded."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from herbchain.config import HerbChainConfig
from herbchain.core import decimal_str
from herbchain.engine import ContractEngine
from herbchain.records import FraudAlert, Record, TransferHerb, UseHerb

NOT_APPLICABLE = "N/A"
SHORT_HASH_LENGTH = 10


def short_hash(value: str) -> str:
    return value[:SHORT_HASH_LENGTH] + "..."


@dataclass(frozen=True)
class LedgerRow:
    index: int
    previous_hash: str
    hash: str
    record_type: str
    data: Dict[str, Any]
    fraud_alert: str
    quality_match: str


def fraud_column(record: Record) -> str:
    if isinstance(record, FraudAlert):
        return (
            f"DISPUTED! Claim: {decimal_str(record.claimed_quantity)}, "
            f"Measured: {decimal_str(record.measured_quantity)}"
        )
    return NOT_APPLICABLE


def quality_column(record: Record, config: HerbChainConfig) -> str:
    if isinstance(record, TransferHerb):
        threshold = config.quality.min_score_to_transfer.get()
    elif isinstance(record, UseHerb):
        threshold = config.quality.min_score_to_consume.get()
    else:
        return NOT_APPLICABLE
    if record.quality is None:
        return NOT_APPLICABLE
    if record.quality.score >= threshold:
        return f"Passed (>={threshold})"
    return f"Failed (<{threshold})"


def ledger_rows(engine: ContractEngine, config: Optional[HerbChainConfig] = None) -> List[LedgerRow]:
    config = config if config is not None else engine.config
    rows: List[LedgerRow] = []
    for block in engine.list_chain(newest_first=True):
        if block.is_genesis:
            continue
        record = block.record
        rows.append(LedgerRow(
            index=block.index,
            previous_hash=short_hash(block.previous_hash),
            hash=short_hash(block.hash),
            record_type=record.type.value,
            data=record.to_dict(),
            fraud_alert=fraud_column(record),
            quality_match=quality_column(record, config),
        ))
    return rows
