"""
Tests for the inventory store, reputation ledger and traceability registry.
"""

from decimal import Decimal

import pytest

from herbchain.hardening import InvariantViolation
from herbchain.inventory import InventoryStore
from herbchain.records import HerbStatus, QualitySnapshot
from herbchain.registry import ALLOWED_TRANSITIONS, TraceabilityRegistry
from herbchain.reputation import INITIAL_REPUTATION, ReputationLedger


# =============================================================================
# INVENTORY
# =============================================================================

class TestInventoryStore:

    def test_credit_creates_entry_lazily(self):
        store = InventoryStore(["SUPPLIER-001"])
        assert store.get("SUPPLIER-001", "H1") is None
        store.credit("SUPPLIER-001", "H1", "Tulsi", "Kg", Decimal("10"))
        entry = store.get("SUPPLIER-001", "H1")
        assert entry.quantity == Decimal("10")
        assert entry.unit_type == "Kg"

    def test_debit_cannot_go_negative(self):
        store = InventoryStore()
        store.credit("A", "H1", "Tulsi", "Kg", Decimal("1"))
        with pytest.raises(InvariantViolation):
            store.debit("A", "H1", Decimal("1.01"))
        assert store.available("A", "H1") == Decimal("1")

    def test_debit_to_exactly_zero(self):
        store = InventoryStore()
        store.credit("A", "H1", "Tulsi", "Kg", Decimal("2.5"))
        store.debit("A", "H1", Decimal("2.5"))
        assert store.available("A", "H1") == Decimal("0")

    def test_unit_fixed_per_actor_and_item(self):
        store = InventoryStore()
        store.credit("A", "H1", "Tulsi", "Kg", Decimal("1"))
        with pytest.raises(InvariantViolation):
            store.credit("A", "H1", "Tulsi", "g", Decimal("1"))

    def test_negative_credit_rejected(self):
        with pytest.raises(InvariantViolation):
            InventoryStore().credit("A", "H1", "Tulsi", "Kg", Decimal("-1"))

    def test_get_returns_copy(self):
        store = InventoryStore()
        store.credit("A", "H1", "Tulsi", "Kg", Decimal("3"))
        store.get("A", "H1").quantity = Decimal("1000")
        assert store.available("A", "H1") == Decimal("3")

    def test_round_trip(self):
        store = InventoryStore(["SUPPLIER-001", "MANU-001"])
        store.credit("SUPPLIER-001", "H1", "Tulsi", "Kg", Decimal("6.5"))
        restored = InventoryStore.from_dict(store.to_dict())
        assert restored.available("SUPPLIER-001", "H1") == Decimal("6.5")
        assert restored.has_actor("MANU-001")

    def test_negative_snapshot_quantity_rejected(self):
        with pytest.raises(InvariantViolation):
            InventoryStore.from_dict({"A": {"H1": {"name": "x", "unit_type": "Kg", "quantity": "-1"}}})


# =============================================================================
# REPUTATION
# =============================================================================

class TestReputationLedger:

    def test_known_actors_start_at_initial(self):
        ledger = ReputationLedger(["COLLECTOR-001"])
        assert ledger.scores() == {"COLLECTOR-001": INITIAL_REPUTATION}

    def test_unknown_actor_starts_at_initial_on_first_adjustment(self):
        ledger = ReputationLedger()
        assert ledger.penalize("NEW-9", 10, "dispute") == 90

    def test_scores_are_not_clamped(self):
        ledger = ReputationLedger(["C"], initial_score=5)
        ledger.penalize("C", 10, "dispute")
        assert ledger.score("C") == -5
        ledger.reward("C", 1000, "bulk")
        assert ledger.score("C") == 995

    def test_history_records_every_change(self):
        ledger = ReputationLedger(["C"])
        ledger.reward("C", 1, "verified")
        ledger.penalize("C", 10, "dispute")
        assert [(c.delta, c.score) for c in ledger.history] == [(1, 101), (-10, 91)]

    def test_from_dict_defaults_when_absent(self):
        ledger = ReputationLedger.from_dict(None, ["COLLECTOR-001", "MANU-001"])
        assert ledger.scores() == {"COLLECTOR-001": 100, "MANU-001": 100}


# =============================================================================
# REGISTRY
# =============================================================================

def _create(registry, item_id="H1", index=1):
    return registry.create(
        item_id=item_id,
        name="Tulsi",
        location="Field 7",
        quality=QualitySnapshot(80),
        registrant_id="COLLECTOR-001",
        claimed_quantity=Decimal("10"),
        unit_type="Kg",
        registration_index=index,
    )


class TestTraceabilityRegistry:

    def test_create_starts_pending(self):
        registry = TraceabilityRegistry()
        item = _create(registry)
        assert item.status is HerbStatus.PENDING_VERIFICATION
        assert item.history == [1]
        assert [i.item_id for i in registry.pending()] == ["H1"]

    def test_duplicate_rejected(self):
        registry = TraceabilityRegistry()
        _create(registry)
        with pytest.raises(InvariantViolation):
            _create(registry, index=2)

    @pytest.mark.parametrize("target", [HerbStatus.VERIFIED, HerbStatus.DISPUTED])
    def test_pending_transitions(self, target):
        registry = TraceabilityRegistry()
        _create(registry)
        assert registry.transition("H1", target) is HerbStatus.PENDING_VERIFICATION
        assert registry.status_of("H1") is target

    @pytest.mark.parametrize("start", [HerbStatus.VERIFIED, HerbStatus.DISPUTED])
    def test_terminal_states_do_not_change(self, start):
        registry = TraceabilityRegistry()
        _create(registry)
        registry.transition("H1", start)
        for target in HerbStatus:
            with pytest.raises(InvariantViolation):
                registry.transition("H1", target)

    def test_transition_table_has_no_way_out_of_dispute(self):
        assert ALLOWED_TRANSITIONS[HerbStatus.DISPUTED] == frozenset()

    def test_history_must_follow_chain_order(self):
        registry = TraceabilityRegistry()
        _create(registry, index=3)
        registry.append_history("H1", 5)
        with pytest.raises(InvariantViolation):
            registry.append_history("H1", 4)
        assert registry.get("H1").history == [3, 5]

    def test_get_returns_copy(self):
        registry = TraceabilityRegistry()
        _create(registry)
        registry.get("H1").history.append(99)
        assert registry.get("H1").history == [1]

    def test_round_trip(self):
        registry = TraceabilityRegistry()
        _create(registry)
        registry.transition("H1", HerbStatus.VERIFIED)
        restored = TraceabilityRegistry.from_dict(registry.to_dict())
        item = restored.get("H1")
        assert item.status is HerbStatus.VERIFIED
        assert item.claimed_quantity == Decimal("10")
        assert item.quality == QualitySnapshot(80)
