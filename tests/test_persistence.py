"""
Snapshot persistence tests: save/load round trips, defaults for optional
sections, corruption handling and the autosave wiring of open_ledger.
"""

import json
import threading
from decimal import Decimal

import pytest

from herbchain.chain import CorruptStateError
from herbchain.engine import ContractEngine, open_ledger
from herbchain.persistence import SNAPSHOT_FORMAT, SnapshotStore, validate_snapshot
from herbchain.records import HerbStatus
from herbchain.schema import validate_with_schema


def _full_snapshot(stocked_engine):
    stocked_engine.consume_into_product(
        "MANU-001", "B1", "Plant 2",
        [{"item_id": "H1", "units_used": "2", "unit_type": "Kg"}],
        "2", "Bottles", {"score": 65},
    )
    stocked_engine.record_scan("B1-001")
    return stocked_engine.snapshot()


class TestSnapshotStore:

    def test_load_missing_returns_none(self, tmp_path):
        assert SnapshotStore(tmp_path / "none.json").load() is None

    def test_save_load_round_trip(self, tmp_path, stocked_engine, config, clock):
        snapshot = _full_snapshot(stocked_engine)
        store = SnapshotStore(tmp_path / "ledger.json")
        store.save(snapshot)
        loaded = store.load()
        assert loaded["format"] == SNAPSHOT_FORMAT

        restored = ContractEngine.from_snapshot(loaded, config=config, clock=clock)
        assert restored.verify_chain() == []
        assert [b.hash for b in restored.list_chain()] == [b.hash for b in stocked_engine.list_chain()]
        assert restored.get_item("H1").status is HerbStatus.VERIFIED
        assert restored.inventories.available("MANU-001", "H1") == Decimal("2")
        assert restored.reputation_scores() == stocked_engine.reputation_scores()
        assert restored.find_use_record("B1") is not None
        assert not restored.record_scan("B1-001").first_seen

    def test_save_leaves_no_temp_file(self, tmp_path, engine):
        store = SnapshotStore(tmp_path / "ledger.json")
        store.save(engine.snapshot())
        assert [p.name for p in tmp_path.iterdir()] == ["ledger.json"]

    def test_clear(self, tmp_path, engine):
        store = SnapshotStore(tmp_path / "ledger.json")
        store.save(engine.snapshot())
        assert store.clear()
        assert not store.clear()
        assert store.load() is None

    def test_failed_write_keeps_previous_snapshot(self, tmp_path, engine):
        store = SnapshotStore(tmp_path / "ledger.json")
        store.save(engine.snapshot())
        with pytest.raises(TypeError):
            store.save({"chain": [object()]})
        assert [p.name for p in tmp_path.iterdir()] == ["ledger.json"]
        assert store.load() is not None

    def test_invalid_json_is_corrupt(self, tmp_path):
        path = tmp_path / "ledger.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(CorruptStateError):
            SnapshotStore(path).load()


class TestValidateSnapshot:

    def test_snapshot_matches_schema(self, stocked_engine):
        assert validate_with_schema(_full_snapshot(stocked_engine), "snapshot") == []

    def test_missing_chain_is_corrupt(self):
        with pytest.raises(CorruptStateError):
            validate_snapshot({"item_master": {}})

    def test_empty_chain_is_corrupt(self):
        with pytest.raises(CorruptStateError):
            validate_snapshot({"chain": []})

    def test_genesis_mismatch_is_corrupt(self, engine):
        snapshot = engine.snapshot()
        snapshot["chain"][0]["hash"] = "0" * 64
        with pytest.raises(CorruptStateError, match="genesis"):
            validate_snapshot(snapshot)

    def test_schema_violation_is_corrupt(self, stocked_engine):
        snapshot = stocked_engine.snapshot()
        snapshot["inventories"]["SUPPLIER-001"]["H1"]["quantity"] = 6
        with pytest.raises(CorruptStateError, match="schema"):
            validate_snapshot(snapshot)

    def test_optional_sections_default(self, engine, config, clock):
        snapshot = engine.snapshot()
        del snapshot["reputation_scores"]
        del snapshot["scan_log"]
        restored = ContractEngine.from_snapshot(snapshot, config=config, clock=clock)
        assert restored.reputation_scores() == {
            "COLLECTOR-001": 100,
            "SUPPLIER-001": 100,
            "MANU-001": 100,
        }
        assert len(restored.scan_log) == 0

    def test_tampered_block_is_corrupt(self, stocked_engine, config):
        snapshot = stocked_engine.snapshot()
        snapshot["chain"][2]["record"]["verified_quantity"] = "100"
        with pytest.raises(CorruptStateError):
            ContractEngine.from_snapshot(snapshot, config=config)

    def test_history_outside_chain_is_corrupt(self, stocked_engine, config):
        snapshot = stocked_engine.snapshot()
        snapshot["item_master"]["H1"]["history"].append(99)
        with pytest.raises(CorruptStateError, match="history"):
            ContractEngine.from_snapshot(snapshot, config=config)

    def test_clock_resumes_after_restored_timestamps(self, stocked_engine, config):
        from herbchain.core import LogicalClock

        snapshot = stocked_engine.snapshot()
        late = max(b["timestamp"] for b in snapshot["chain"][1:])
        restored = ContractEngine.from_snapshot(snapshot, config=config, clock=LogicalClock(lambda: 0.0))
        assert restored.clock.now() >= late


class TestOpenLedger:

    def test_autosave_writes_every_commit(self, tmp_path, config, clock):
        path = tmp_path / "ledger.json"
        engine = open_ledger(path, config=config, clock=clock)
        engine.register("COLLECTOR-001", "H1", "Tulsi", "Field 7", "10", "Kg", {"score": 80})
        saved = json.loads(path.read_text(encoding="utf-8"))
        assert "H1" in saved["item_master"]

        reopened = open_ledger(path, config=config, clock=clock)
        assert reopened.get_item("H1").claimed_quantity == Decimal("10")

    def test_autosave_disabled(self, tmp_path, config, clock):
        config.persistence.autosave.set(False)
        path = tmp_path / "ledger.json"
        engine = open_ledger(path, config=config, clock=clock)
        engine.register("COLLECTOR-001", "H1", "Tulsi", "Field 7", "10", "Kg", {"score": 80})
        assert not path.exists()

    def test_configured_snapshot_path(self, tmp_path, config, clock):
        config.persistence.snapshot_path.set(str(tmp_path / "nested" / "state.json"))
        engine = open_ledger(config=config, clock=clock)
        engine.register("COLLECTOR-001", "H1", "Tulsi", "Field 7", "10", "Kg", None)
        assert (tmp_path / "nested" / "state.json").exists()

    def test_corrupt_file_refuses_to_open(self, tmp_path, config):
        path = tmp_path / "ledger.json"
        path.write_text(json.dumps({"chain": []}), encoding="utf-8")
        with pytest.raises(CorruptStateError):
            open_ledger(path, config=config)

    def test_signed_zero_measurement_reopens(self, tmp_path, config, clock):
        path = tmp_path / "ledger.json"
        engine = open_ledger(path, config=config, clock=clock)
        engine.register("COLLECTOR-001", "H1", "Tulsi", "Field 7", "10", "Kg", {"score": 80})
        engine.verify_receipt("SUPPLIER-001", "H1", "-0")

        reopened = open_ledger(path, config=config, clock=clock)
        assert reopened.get_item("H1").status is HerbStatus.DISPUTED
        assert reopened.chain.tail.record.measured_quantity == Decimal("0")
        assert reopened.verify_chain() == []


# =============================================================================
# CONCURRENT SAVES
# =============================================================================

class TestConcurrentSaves:

    def test_parallel_saves_all_succeed(self, tmp_path, engine):
        store = SnapshotStore(tmp_path / "ledger.json")
        snapshot = engine.snapshot()
        barrier = threading.Barrier(12)
        errors = []

        def worker():
            barrier.wait()
            try:
                store.save(snapshot)
            except OSError as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(12)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert errors == []
        assert [p.name for p in tmp_path.iterdir()] == ["ledger.json"]
        assert store.load()["chain"] == snapshot["chain"]

    def test_autosave_keeps_every_concurrent_commit(self, tmp_path, config, clock):
        path = tmp_path / "ledger.json"
        engine = open_ledger(path, config=config, clock=clock)
        barrier = threading.Barrier(16)

        def worker(n):
            barrier.wait()
            engine.register("COLLECTOR-001", f"H{n}", "Tulsi", "Field 7", "10", "Kg", None)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        saved = SnapshotStore(path).load()
        assert len(saved["chain"]) == len(engine.chain) == 17
        assert sorted(saved["item_master"]) == sorted(f"H{n}" for n in range(16))
