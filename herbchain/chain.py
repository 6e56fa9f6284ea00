"""Hash-linked block chain.

Each block wraps one record and links to its predecessor:

    hash_i = fingerprint(previous_hash_i, timestamp_i, canonical(record_i))
    previous_hash_i = hash_{i-1}

The fingerprint is an unkeyed content digest. It detects accidental or naive
edits to stored history; it is not a tamper-proof commitment, since anyone
holding the data can recompute every hash.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

from herbchain.core import canonical_json_bytes, sha256_bytes
from herbchain.records import Record, record_from_dict


GENESIS_TIMESTAMP = "2025-01-01"
GENESIS_DATA = "Genesis Block"
GENESIS_PREVIOUS_HASH = "0"

Timestamp = Union[int, str]


class CorruptStateError(Exception):
    """Persisted ledger state is unusable and must be reset."""
    pass


def fingerprint(previous_hash: str, timestamp: Timestamp, payload: bytes) -> str:
    """Digest of ``previous_hash + timestamp + payload``."""
    return sha256_bytes(previous_hash.encode("utf-8") + str(timestamp).encode("utf-8") + payload)


@dataclass(frozen=True)
class Block:
    index: int
    timestamp: Timestamp
    previous_hash: str
    hash: str
    record: Optional[Record] = None

    @property
    def is_genesis(self) -> bool:
        return self.record is None

    def payload_bytes(self) -> bytes:
        return block_payload(self.record)

    def recompute_hash(self) -> str:
        return fingerprint(self.previous_hash, self.timestamp, self.payload_bytes())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "timestamp": self.timestamp,
            "previous_hash": self.previous_hash,
            "hash": self.hash,
            "record": GENESIS_DATA if self.record is None else self.record.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Block":
        raw = data.get("record")
        record = None if raw == GENESIS_DATA else record_from_dict(raw)
        return cls(
            index=int(data["index"]),
            timestamp=data["timestamp"],
            previous_hash=str(data["previous_hash"]),
            hash=str(data["hash"]),
            record=record,
        )


def block_payload(record: Optional[Record]) -> bytes:
    if record is None:
        return canonical_json_bytes(GENESIS_DATA)
    return canonical_json_bytes(record.hash_payload())


def create_genesis() -> Block:
    """The fixed first block every chain starts from."""
    h = fingerprint(GENESIS_PREVIOUS_HASH, GENESIS_TIMESTAMP, block_payload(None))
    return Block(
        index=0,
        timestamp=GENESIS_TIMESTAMP,
        previous_hash=GENESIS_PREVIOUS_HASH,
        hash=h,
    )


class HashChain:
    """Append-only list of blocks rooted at the genesis sentinel.

    Not thread-safe on its own; the contract engine serializes access.
    """

    def __init__(self, blocks: Optional[Sequence[Block]] = None):
        self._blocks: List[Block] = list(blocks) if blocks else [create_genesis()]

    @property
    def tail(self) -> Block:
        return self._blocks[-1]

    def append(self, record: Record) -> Block:
        prev = self.tail
        block = Block(
            index=len(self._blocks),
            timestamp=record.timestamp,
            previous_hash=prev.hash,
            hash=fingerprint(prev.hash, record.timestamp, block_payload(record)),
            record=record,
        )
        self._blocks.append(block)
        return block

    def __len__(self) -> int:
        return len(self._blocks)

    def __iter__(self) -> Iterator[Block]:
        return iter(list(self._blocks))

    def __getitem__(self, index: int) -> Block:
        return self._blocks[index]

    def blocks(self, newest_first: bool = False) -> List[Block]:
        out = list(self._blocks)
        if newest_first:
            out.reverse()
        return out

    def verify(self) -> List[str]:
        """Check genesis, links and recomputed hashes. Returns a list of errors."""
        errors: List[str] = []
        if not self._blocks:
            return ["chain is empty"]

        genesis = create_genesis()
        first = self._blocks[0]
        if first.hash != genesis.hash or first.previous_hash != genesis.previous_hash or not first.is_genesis:
            errors.append("genesis block mismatch")

        for i in range(1, len(self._blocks)):
            block = self._blocks[i]
            prev = self._blocks[i - 1]
            if block.index != i:
                errors.append(f"block {i}: index field is {block.index}")
            if block.is_genesis:
                errors.append(f"block {i}: missing record")
                continue
            if block.previous_hash != prev.hash:
                errors.append(f"block {i}: previous_hash does not match block {i - 1}")
            if block.recompute_hash() != block.hash:
                errors.append(f"block {i}: hash does not match contents")
        return errors

    def to_list(self) -> List[Dict[str, Any]]:
        return [b.to_dict() for b in self._blocks]

    @classmethod
    def from_list(cls, data: Sequence[Dict[str, Any]]) -> "HashChain":
        """Rebuild a chain from persisted blocks, refusing corrupt input."""
        if not data:
            raise CorruptStateError("snapshot has no chain")
        try:
            blocks = [Block.from_dict(d) for d in data]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise CorruptStateError(f"unreadable block: {e}") from e
        chain = cls(blocks)
        errors = chain.verify()
        if errors:
            raise CorruptStateError(f"chain integrity check failed: {errors[0]}")
        return chain
