"""
HerbChain Contract Engine

The single writer of all ledger stores. Four operations move an item from
field to finished product:

    register ──▶ verify_receipt ──▶ transfer ──▶ consume_into_product
    (collector)   (supplier)         (supplier)    (manufacturer)

Each operation validates its inputs, checks its preconditions against the
inventory store, traceability registry and reputation ledger, and on
success appends one record to the hash chain and mutates the stores, all
inside one critical section. Business-rule and caller-input violations come
back as ``OperationResult`` failures; only broken store invariants raise.

After every operation that changed state (including the fraud dispute and
the production quality penalty) a snapshot is taken inside the lock and
handed to ``on_commit`` once the lock is released. Snapshots carry a
sequence number so a slow save can never overwrite a newer one.
"""

from __future__ import annotations

import threading
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from herbchain.chain import Block, CorruptStateError, HashChain
from herbchain.config import HerbChainConfig, get_config
from herbchain.core import LogicalClock, decimal_str
from herbchain.hardening import (
    InvariantViolation,
    ValidationError,
    ValidationResult,
    Validators,
    collect,
)
from herbchain.inventory import InventoryEntry, InventoryStore
from herbchain.observability import LedgerLayer, get_logger, timed_operation
from herbchain.persistence import SNAPSHOT_FORMAT, Snapshot, SnapshotStore, validate_snapshot
from herbchain.records import (
    FraudAlert,
    HerbStatus,
    QualitySnapshot,
    RegisterHerb,
    TransferHerb,
    UsedBatch,
    UseHerb,
    VerifyReceipt,
)
from herbchain.registry import ItemMasterRecord, TraceabilityRegistry
from herbchain.reputation import ReputationLedger
from herbchain.results import ErrorKind, OperationResult
from herbchain.scanlog import ScanLog, ScanResult

COLLECTOR_ID = "COLLECTOR-001"
SUPPLIER_ID = "SUPPLIER-001"
MANUFACTURER_ID = "MANU-001"

KNOWN_ACTORS = (COLLECTOR_ID, SUPPLIER_ID, MANUFACTURER_ID)
INVENTORY_ACTORS = (SUPPLIER_ID, MANUFACTURER_ID)

QualityInput = Union[QualitySnapshot, Mapping[str, Any], None]
BatchInput = Union[UsedBatch, Mapping[str, Any]]

logger = get_logger("contract_engine", LedgerLayer.ENGINE)


def _two_places(value: Decimal) -> str:
    return str(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _validate_quality(quality: QualityInput, field_name: str = "quality") -> ValidationResult:
    """Accept a QualitySnapshot, a mapping with a ``score``, or None."""
    if quality is None:
        return ValidationResult.success(None)
    try:
        snapshot = QualitySnapshot.from_dict(quality)
    except (KeyError, TypeError, AttributeError):
        return ValidationResult.failure([
            ValidationError(field_name, "Expected a quality snapshot with a score", quality)
        ])
    score = Validators.validate_score(snapshot.score, f"{field_name}.score")
    if not score.is_valid:
        return score
    return ValidationResult.success(snapshot)


def _validate_batches(used_batches: Any) -> ValidationResult:
    if isinstance(used_batches, (str, bytes)) or not isinstance(used_batches, Sequence):
        return ValidationResult.failure([
            ValidationError("used_batches", "Expected a list of batches", used_batches)
        ])
    if not used_batches:
        return ValidationResult.failure([
            ValidationError("used_batches", "At least one herb batch is required", used_batches)
        ])

    errors: List[ValidationError] = []
    batches: List[UsedBatch] = []
    for i, raw in enumerate(used_batches):
        prefix = f"used_batches[{i}]"
        if isinstance(raw, UsedBatch):
            raw = {"item_id": raw.item_id, "units_used": raw.units_used, "unit_type": raw.unit_type}
        if not isinstance(raw, Mapping):
            errors.append(ValidationError(prefix, "Expected a batch mapping", raw))
            continue
        checked = collect(
            Validators.validate_identifier(raw.get("item_id"), f"{prefix}.item_id"),
            Validators.validate_quantity(raw.get("units_used"), f"{prefix}.units_used"),
            Validators.validate_text(raw.get("unit_type"), f"{prefix}.unit_type"),
        )
        if not checked.is_valid:
            errors.extend(checked.errors)
            continue
        item_id, units_used, unit_type = checked.sanitized_value
        batches.append(UsedBatch(item_id=item_id, units_used=units_used, unit_type=unit_type))

    if errors:
        return ValidationResult.failure(errors)
    return ValidationResult.success(tuple(batches))


def _invalid(checked: ValidationResult) -> OperationResult:
    return OperationResult.fail(
        ErrorKind.INVALID_INPUT,
        f"Invalid input: {checked.message}",
        fields=[e.field for e in checked.errors],
    )


class ContractEngine:
    """
    Ledger state plus the operations allowed to change it.

    Thread-safe: every operation and query runs under one re-entrant lock.
    Query methods return copies.
    """

    def __init__(
        self,
        *,
        chain: Optional[HashChain] = None,
        registry: Optional[TraceabilityRegistry] = None,
        inventories: Optional[InventoryStore] = None,
        reputation: Optional[ReputationLedger] = None,
        scan_log: Optional[ScanLog] = None,
        config: Optional[HerbChainConfig] = None,
        clock: Optional[LogicalClock] = None,
        on_commit: Optional[Callable[[Snapshot], None]] = None,
    ):
        self.config = config if config is not None else get_config()
        self.clock = clock if clock is not None else LogicalClock()
        self.chain = chain if chain is not None else HashChain()
        self.registry = registry if registry is not None else TraceabilityRegistry()
        self.inventories = inventories if inventories is not None else InventoryStore(INVENTORY_ACTORS)
        if reputation is None:
            reputation = ReputationLedger(
                KNOWN_ACTORS, initial_score=self.config.ledger.initial_reputation.get()
            )
        self.reputation = reputation
        self.scan_log = scan_log if scan_log is not None else ScanLog(clock=self.clock)
        self.on_commit = on_commit
        self._lock = threading.RLock()
        self._persist_lock = threading.Lock()
        self._commit_seq = 0
        self._persisted_seq = 0
        self._batches: Dict[str, int] = {
            block.record.batch_id: block.index
            for block in reversed(self.chain.blocks())
            if isinstance(block.record, UseHerb)
        }

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    @timed_operation(logger, "register")
    def register(
        self,
        collector_id: str,
        item_id: str,
        name: str,
        location: str,
        quantity: Any,
        unit_type: str,
        quality: QualityInput = None,
    ) -> OperationResult:
        """Record a collected herb batch; it stays pending until a supplier verifies it."""
        checked = collect(
            Validators.validate_identifier(collector_id, "collector_id"),
            Validators.validate_identifier(item_id, "item_id"),
            Validators.validate_text(name, "name"),
            Validators.validate_text(location, "location", allow_empty=True),
            Validators.validate_quantity(quantity, "quantity"),
            Validators.validate_text(unit_type, "unit_type"),
            _validate_quality(quality),
        )
        if not checked.is_valid:
            return _invalid(checked)
        collector_id, item_id, name, location, quantity, unit_type, quality = checked.sanitized_value

        with self._lock:
            if item_id in self.registry:
                return OperationResult.fail(
                    ErrorKind.DUPLICATE_ITEM, "This herb ID already exists.", item_id=item_id
                )
            record = RegisterHerb(
                timestamp=self.clock.now(),
                collector_id=collector_id,
                item_id=item_id,
                name=name,
                location=location,
                quantity=quantity,
                unit_type=unit_type,
                quality=quality,
            )
            block = self.chain.append(record)
            self.registry.create(
                item_id=item_id,
                name=name,
                location=location,
                quality=quality,
                registrant_id=collector_id,
                claimed_quantity=quantity,
                unit_type=unit_type,
                registration_index=block.index,
            )
            staged = self._stage_locked()

        self._commit(staged)
        logger.info("Herb registered", item_id=item_id, collector_id=collector_id, block_index=block.index)
        return OperationResult.ok(
            f"Herb ID {item_id} recorded and is pending verification by supplier.",
            item_id=item_id,
            block_index=block.index,
        )

    @timed_operation(logger, "verify_receipt")
    def verify_receipt(self, verifier_id: str, item_id: str, measured_quantity: Any) -> OperationResult:
        """
        Compare the verifier's measurement with the registered claim.

        Within tolerance the item becomes verified and the measured quantity
        enters the verifier's inventory. Outside tolerance the item is
        disputed, the registrant is penalized and a FraudAlert is recorded.
        """
        checked = collect(
            Validators.validate_identifier(verifier_id, "verifier_id"),
            Validators.validate_identifier(item_id, "item_id"),
            Validators.validate_quantity(measured_quantity, "measured_quantity", allow_zero=True),
        )
        if not checked.is_valid:
            return _invalid(checked)
        verifier_id, item_id, measured = checked.sanitized_value

        ledger = self.config.ledger
        with self._lock:
            item = self.registry.get(item_id)
            if item is None or item.status is not HerbStatus.PENDING_VERIFICATION:
                return OperationResult.fail(
                    ErrorKind.NOT_AWAITING_VERIFICATION,
                    "This herb batch is not awaiting verification.",
                    item_id=item_id,
                )

            claimed = item.claimed_quantity
            tolerance = claimed * ledger.tolerance_ratio.get()
            difference = abs(claimed - measured)
            timestamp = self.clock.now()

            if difference > tolerance:
                self._set_status(item, HerbStatus.DISPUTED)
                self.reputation.penalize(
                    item.registrant_id, ledger.fraud_penalty.get(), f"disputed claim on {item_id}"
                )
                block = self.chain.append(FraudAlert(
                    timestamp=timestamp,
                    verifier_id=verifier_id,
                    item_id=item_id,
                    claimed_quantity=claimed,
                    measured_quantity=measured,
                    message=(
                        f"Discrepancy found! Claimed: {decimal_str(claimed)}, "
                        f"Measured: {decimal_str(measured)}."
                    ),
                ))
                self.registry.append_history(item_id, block.index)
                staged = self._stage_locked()
                result = OperationResult.fail(
                    ErrorKind.FRAUD_DETECTED,
                    f"FRAUD ALERT: Weight discrepancy is too high for Herb ID {item_id}. Batch is now disputed.",
                    item_id=item_id,
                    claimed=decimal_str(claimed),
                    measured=decimal_str(measured),
                    block_index=block.index,
                )
            else:
                self._set_status(item, HerbStatus.VERIFIED)
                reward = ledger.verification_reward.get()
                self.reputation.reward(item.registrant_id, reward, f"verified claim on {item_id}")
                self.reputation.reward(verifier_id, reward, f"verified receipt of {item_id}")
                block = self.chain.append(VerifyReceipt(
                    timestamp=timestamp,
                    verifier_id=verifier_id,
                    item_id=item_id,
                    verified_quantity=measured,
                ))
                self.registry.append_history(item_id, block.index)
                self.inventories.credit(verifier_id, item_id, item.name, item.unit_type, measured)
                staged = self._stage_locked()
                result = OperationResult.ok(
                    f"Batch {item_id} verified successfully with quantity {decimal_str(measured)}.",
                    item_id=item_id,
                    block_index=block.index,
                )

        self._commit(staged)
        if result.success:
            logger.info("Receipt verified", item_id=item_id, verifier_id=verifier_id)
        else:
            logger.warning(
                "Weight discrepancy, item disputed",
                item_id=item_id,
                registrant_id=item.registrant_id,
                claimed=decimal_str(claimed),
                measured=decimal_str(measured),
            )
        return result

    @timed_operation(logger, "transfer")
    def transfer(
        self,
        from_actor: str,
        to_actor: str,
        item_id: str,
        weight: Any,
        location: str,
        unit_type: str,
        quality: QualityInput = None,
    ) -> OperationResult:
        """Move a quantity of a verified item between two actors' inventories."""
        checked = collect(
            Validators.validate_identifier(from_actor, "from_actor"),
            Validators.validate_identifier(to_actor, "to_actor"),
            Validators.validate_identifier(item_id, "item_id"),
            Validators.validate_quantity(weight, "weight"),
            Validators.validate_text(location, "location", allow_empty=True),
            Validators.validate_text(unit_type, "unit_type"),
            _validate_quality(quality),
        )
        if not checked.is_valid:
            return _invalid(checked)
        from_actor, to_actor, item_id, weight, location, unit_type, quality = checked.sanitized_value
        if from_actor == to_actor:
            return OperationResult.fail(
                ErrorKind.INVALID_INPUT,
                "Invalid input: to_actor: Cannot transfer an item to the same actor",
                fields=["to_actor"],
            )

        threshold = self.config.quality.min_score_to_transfer.get()
        with self._lock:
            entry = self.inventories.get(from_actor, item_id)
            status = self.registry.status_of(item_id)
            if entry is None or entry.quantity <= 0:
                # A pending or disputed item never reaches an inventory
                if status is not None and status is not HerbStatus.VERIFIED:
                    return OperationResult.fail(
                        ErrorKind.ITEM_NOT_TRANSFERABLE,
                        "Cannot transfer a disputed or unverified batch.",
                        item_id=item_id,
                        status=status.value,
                    )
                return OperationResult.fail(
                    ErrorKind.ITEM_NOT_FOUND,
                    f"Herb ID {item_id} not found in supplier's verified inventory.",
                    item_id=item_id,
                )
            if status is not HerbStatus.VERIFIED:
                return OperationResult.fail(
                    ErrorKind.ITEM_NOT_TRANSFERABLE,
                    "Cannot transfer a disputed or unverified batch.",
                    item_id=item_id,
                )
            if entry.unit_type != unit_type:
                return OperationResult.fail(
                    ErrorKind.UNIT_MISMATCH,
                    f"Unit mismatch. Expected {entry.unit_type} but got {unit_type}.",
                    item_id=item_id,
                )
            if weight > entry.quantity:
                return OperationResult.fail(
                    ErrorKind.INSUFFICIENT_QUANTITY,
                    f"Insufficient units. Available: {_two_places(entry.quantity)} {entry.unit_type}, "
                    f"Requested: {_two_places(weight)} {unit_type}.",
                    item_id=item_id,
                    available=decimal_str(entry.quantity),
                )
            if quality is None:
                return OperationResult.fail(
                    ErrorKind.QUALITY_BELOW_THRESHOLD,
                    "QUALITY BLOCKED! No quality check was supplied. Transfer denied.",
                    item_id=item_id,
                )
            if quality.score < threshold:
                return OperationResult.fail(
                    ErrorKind.QUALITY_BELOW_THRESHOLD,
                    f"QUALITY BLOCKED! Supplier's score is too low: {quality.score}/100. Transfer denied.",
                    item_id=item_id,
                    score=quality.score,
                    threshold=threshold,
                )

            item = self.registry.get(item_id)
            self.inventories.debit(from_actor, item_id, weight)
            self.inventories.credit(to_actor, item_id, item.name, entry.unit_type, weight)
            block = self.chain.append(TransferHerb(
                timestamp=self.clock.now(),
                from_id=from_actor,
                to_id=to_actor,
                item_id=item_id,
                weight=weight,
                unit_type=unit_type,
                location=location,
                quality=quality,
            ))
            self.registry.append_history(item_id, block.index)
            staged = self._stage_locked()

        self._commit(staged)
        logger.info(
            "Herb transferred",
            item_id=item_id,
            from_actor=from_actor,
            to_actor=to_actor,
            weight=decimal_str(weight),
        )
        return OperationResult.ok(
            f"{_two_places(weight)} {unit_type} of {item.name} successfully transferred.",
            item_id=item_id,
            block_index=block.index,
        )

    @timed_operation(logger, "consume_into_product")
    def consume_into_product(
        self,
        manufacturer_id: str,
        batch_id: str,
        location: str,
        used_batches: Sequence[BatchInput],
        final_weight: Any,
        final_unit: str,
        quality: QualityInput = None,
    ) -> OperationResult:
        """
        Turn raw herbs from the manufacturer's inventory into a product batch.

        A sub-threshold quality snapshot blocks production and costs the
        manufacturer reputation. Every used batch is checked before anything
        is debited; all problems are reported together.
        """
        checked = collect(
            Validators.validate_identifier(manufacturer_id, "manufacturer_id"),
            Validators.validate_identifier(batch_id, "batch_id"),
            Validators.validate_text(location, "location", allow_empty=True),
            _validate_batches(used_batches),
            Validators.validate_quantity(final_weight, "final_weight"),
            Validators.validate_text(final_unit, "final_unit"),
            _validate_quality(quality),
        )
        if not checked.is_valid:
            return _invalid(checked)
        manufacturer_id, batch_id, location, batches, final_weight, final_unit, quality = checked.sanitized_value

        ledger = self.config.ledger
        threshold = self.config.quality.min_score_to_consume.get()
        with self._lock:
            if quality is None or quality.score < threshold:
                score = self.reputation.penalize(
                    manufacturer_id, ledger.quality_block_penalty.get(), f"quality blocked batch {batch_id}"
                )
                staged = self._stage_locked()
                blocked = True
            else:
                blocked = False

        if blocked:
            self._commit(staged)
            logger.warning(
                "Production blocked by quality",
                batch_id=batch_id,
                manufacturer_id=manufacturer_id,
                reputation=score,
            )
            if quality is None:
                message = "QUALITY BLOCKED! No quality check was supplied. Production denied."
            else:
                message = f"QUALITY BLOCKED! Manufacturer's score is too low: {quality.score}/100. Production denied."
            return OperationResult.fail(
                ErrorKind.QUALITY_BELOW_THRESHOLD,
                message,
                batch_id=batch_id,
                threshold=threshold,
            )

        with self._lock:
            if not self.inventories.has_actor(manufacturer_id):
                return OperationResult.fail(
                    ErrorKind.MANUFACTURER_NOT_FOUND, "Manufacturer not found.", manufacturer_id=manufacturer_id
                )
            if batch_id in self._batches:
                return OperationResult.fail(
                    ErrorKind.DUPLICATE_BATCH,
                    f"Batch {batch_id} has already been recorded.",
                    batch_id=batch_id,
                )

            problems = self._check_batches(manufacturer_id, batches)
            if problems:
                return OperationResult.fail(
                    ErrorKind.INSUFFICIENT_OR_MISMATCHED_BATCHES,
                    f"Error with used herbs: {', '.join(problems)}",
                    batch_id=batch_id,
                    problems=problems,
                )

            for batch in batches:
                self.inventories.debit(manufacturer_id, batch.item_id, batch.units_used)
            record = UseHerb(
                timestamp=self.clock.now(),
                manufacturer_id=manufacturer_id,
                batch_id=batch_id,
                location=location,
                used_batches=batches,
                final_weight=final_weight,
                final_unit=final_unit,
                quality=quality,
            )
            block = self.chain.append(record)
            for item_id in record.item_ids:
                self.registry.append_history(item_id, block.index)
            self._batches[batch_id] = block.index
            self.reputation.reward(
                manufacturer_id, ledger.production_reward.get(), f"produced batch {batch_id}"
            )
            staged = self._stage_locked()

        self._commit(staged)
        logger.info(
            "Product batch recorded",
            batch_id=batch_id,
            manufacturer_id=manufacturer_id,
            items=record.item_ids,
        )
        return OperationResult.ok(
            f"Batch {batch_id} successfully recorded.",
            batch_id=batch_id,
            block_index=block.index,
        )

    def record_scan(self, unit_id: str) -> ScanResult:
        """Register a consumer scan of a finished-product unit id."""
        checked = Validators.validate_identifier(unit_id, "unit_id")
        checked.raise_if_invalid()
        result = self.scan_log.record_scan(checked.sanitized_value)
        if result.first_seen:
            with self._lock:
                staged = self._stage_locked()
            self._commit(staged)
        else:
            logger.warning(
                "Unit scanned again",
                unit_id=result.unit_id,
                first_scan_timestamp=result.first_scan_timestamp,
            )
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_chain(self, newest_first: bool = True) -> List[Block]:
        with self._lock:
            return self.chain.blocks(newest_first=newest_first)

    def list_inventory(self, actor_id: str) -> List[InventoryEntry]:
        with self._lock:
            return self.inventories.list_actor(actor_id)

    def list_pending(self) -> List[ItemMasterRecord]:
        with self._lock:
            return self.registry.pending()

    def get_item(self, item_id: str) -> Optional[ItemMasterRecord]:
        with self._lock:
            return self.registry.get(item_id)

    def item_history(self, item_id: str) -> List[Block]:
        """Blocks touching an item, in chain order. Empty for unknown items."""
        with self._lock:
            item = self.registry.get(item_id)
            if item is None:
                return []
            return [self.chain[i] for i in item.history]

    def reputation_scores(self) -> Dict[str, int]:
        with self._lock:
            return self.reputation.scores()

    def reputation_of(self, actor_id: str) -> int:
        with self._lock:
            return self.reputation.score(actor_id)

    def find_use_record(self, batch_id: str) -> Optional[Block]:
        with self._lock:
            index = self._batches.get(batch_id)
            return self.chain[index] if index is not None else None

    def verify_chain(self) -> List[str]:
        with self._lock:
            return self.chain.verify()

    def snapshot(self) -> Snapshot:
        with self._lock:
            return self._snapshot_locked()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _set_status(self, item: ItemMasterRecord, status: HerbStatus) -> None:
        self.registry.transition(item.item_id, status)
        registration = self.chain[item.registration_index].record
        if not isinstance(registration, RegisterHerb):
            raise InvariantViolation(f"block {item.registration_index} does not register {item.item_id}")
        registration.status = status

    def _check_batches(self, manufacturer_id: str, batches: Iterable[UsedBatch]) -> List[str]:
        problems: List[str] = []
        requested: Dict[str, Decimal] = {}
        for batch in batches:
            entry = self.inventories.get(manufacturer_id, batch.item_id)
            if entry is None:
                problems.append(f"{batch.item_id} (Not in inventory)")
                continue
            if entry.unit_type != batch.unit_type:
                problems.append(f"{batch.item_id} (Unit Mismatch: Expected {entry.unit_type})")
                continue
            # Only entries in the stocked unit draw on the running total
            total = requested.get(batch.item_id, Decimal(0)) + batch.units_used
            requested[batch.item_id] = total
            if total > entry.quantity:
                problems.append(f"{batch.item_id} (Available: {_two_places(entry.quantity)} {entry.unit_type})")
                continue
            if self.registry.status_of(batch.item_id) is HerbStatus.DISPUTED:
                problems.append(f"{batch.item_id} (Disputed)")
        return problems

    def _snapshot_locked(self) -> Snapshot:
        return {
            "format": SNAPSHOT_FORMAT,
            "chain": self.chain.to_list(),
            "item_master": self.registry.to_dict(),
            "inventories": self.inventories.to_dict(),
            "reputation_scores": self.reputation.to_dict(),
            "scan_log": self.scan_log.to_dict(),
        }

    def _stage_locked(self) -> Tuple[int, Snapshot]:
        self._commit_seq += 1
        return self._commit_seq, self._snapshot_locked()

    def _commit(self, staged: Tuple[int, Snapshot]) -> None:
        """Hand a staged snapshot to ``on_commit``, newest wins.

        Saves run outside the engine lock but one at a time; a snapshot
        staged before the last one written is dropped.
        """
        if self.on_commit is None:
            return
        seq, snapshot = staged
        with self._persist_lock:
            if seq <= self._persisted_seq:
                logger.debug("Skipping superseded snapshot", seq=seq, persisted_seq=self._persisted_seq)
                return
            try:
                self.on_commit(snapshot)
            except Exception:
                # In-memory state stays authoritative; the next commit retries the save
                logger.error("Failed to persist ledger snapshot", error_code="persist_failed", exc_info=True)
                return
            self._persisted_seq = seq

    @classmethod
    def from_snapshot(
        cls,
        snapshot: Snapshot,
        *,
        config: Optional[HerbChainConfig] = None,
        clock: Optional[LogicalClock] = None,
        on_commit: Optional[Callable[[Snapshot], None]] = None,
    ) -> "ContractEngine":
        """Rebuild an engine from a saved snapshot; raises CorruptStateError."""
        data = validate_snapshot(snapshot)
        config = config if config is not None else get_config()
        clock = clock if clock is not None else LogicalClock()
        try:
            chain = HashChain.from_list(data["chain"])
            registry = TraceabilityRegistry.from_dict(data["item_master"])
            inventories = InventoryStore.from_dict(data["inventories"])
        except (InvariantViolation, KeyError, TypeError, ValueError) as e:
            raise CorruptStateError(f"unusable snapshot: {e}") from e

        for item in registry.items():
            if any(i <= 0 or i >= len(chain) for i in item.history):
                raise CorruptStateError(f"history of {item.item_id} points outside the chain")
        for actor in INVENTORY_ACTORS:
            inventories.add_actor(actor)

        initial = config.ledger.initial_reputation.get()
        reputation = ReputationLedger.from_dict(data["reputation_scores"], KNOWN_ACTORS, initial)
        scan_log = ScanLog(entries=data["scan_log"], clock=clock)

        timestamps = [b.timestamp for b in chain if isinstance(b.timestamp, int)]
        timestamps.extend(data["scan_log"].values())
        if timestamps:
            clock.observe(max(timestamps))

        return cls(
            chain=chain,
            registry=registry,
            inventories=inventories,
            reputation=reputation,
            scan_log=scan_log,
            config=config,
            clock=clock,
            on_commit=on_commit,
        )


def open_ledger(
    path: Optional[Union[str, Path]] = None,
    *,
    config: Optional[HerbChainConfig] = None,
    clock: Optional[LogicalClock] = None,
) -> ContractEngine:
    """
    Load the ledger saved at ``path`` (or the configured snapshot path).

    Starts from a fresh genesis chain when no snapshot exists. With autosave
    enabled, every committed change is written back to the same file.
    """
    config = config if config is not None else get_config()
    store = SnapshotStore(path if path is not None else config.persistence.snapshot_path.get())
    on_commit = store.save if config.persistence.autosave.get() else None
    snapshot = store.load()
    if snapshot is None:
        logger.info("Starting new ledger", path=str(store.path))
        return ContractEngine(config=config, clock=clock, on_commit=on_commit)
    return ContractEngine.from_snapshot(snapshot, config=config, clock=clock, on_commit=on_commit)
