"""
HerbChain: supply-chain traceability ledger for herbal products.

Herbs move collector → supplier → manufacturer → consumer. Every step is
an immutable, hash-linked record; inventories, item lifecycles and actor
reputations are derived state kept consistent by the contract engine.

Architecture
────────────

    ┌─────────────────────────────────────────────────────────────────────────┐
    │  CALLER SIDE                                                             │
    │    session.py     Role contexts and caller-side quality policy          │
    │    quality.py     Deterministic pixel-byte quality score                │
    │    products.py    Unit minting, unit payloads, consumer trace           │
    │    views.py       Ledger display rows                                   │
    │                                                                          │
    │  CORE                                                                    │
    │    engine.py      register / verify_receipt / transfer / consume        │
    │    registry.py    Item master records and lifecycle state machine       │
    │    inventory.py   Per-actor inventory with non-negative quantities      │
    │    reputation.py  Per-actor integer trust scores                        │
    │    scanlog.py     One-time-use registry for product unit ids            │
    │    chain.py       Hash-linked blocks and integrity check                │
    │    records.py     Record variants and quality snapshots                 │
    │                                                                          │
    │  AMBIENT                                                                 │
    │    persistence.py Snapshot save/load with schema validation             │
    │    config.py      YAML + environment configuration                      │
    │    observability.py Structured logging and operation timing             │
    │    hardening.py   Input validators and invariant errors                 │
    └─────────────────────────────────────────────────────────────────────────┘

Usage
─────

    from herbchain import open_ledger

    engine = open_ledger("ledger.json")
    engine.register("COLLECTOR-001", "H1", "Tulsi", "Field 7", "10", "Kg", {"score": 80})
    engine.verify_receipt("SUPPLIER-001", "H1", "9.9")
"""

__version__ = "0.3.0"


# Lazy imports to avoid circular dependencies
def __getattr__(name):
    """Lazy import HerbChain modules on first access."""

    if name in ("ContractEngine", "open_ledger", "KNOWN_ACTORS", "INVENTORY_ACTORS"):
        from herbchain import engine
        return getattr(engine, name)

    if name in ("OperationResult", "ErrorKind"):
        from herbchain import results
        return getattr(results, name)

    if name in ("Block", "HashChain", "CorruptStateError", "create_genesis", "fingerprint"):
        from herbchain import chain
        return getattr(chain, name)

    if name in ("RecordType", "HerbStatus", "QualitySnapshot", "UsedBatch",
                "RegisterHerb", "VerifyReceipt", "FraudAlert", "TransferHerb", "UseHerb"):
        from herbchain import records
        return getattr(records, name)

    if name in ("ScanLog", "ScanResult"):
        from herbchain import scanlog
        return getattr(scanlog, name)

    if name in ("SnapshotStore", "validate_snapshot"):
        from herbchain import persistence
        return getattr(persistence, name)

    if name in ("Role", "RoleContext", "submit_registration", "submit_verification",
                "submit_transfer", "submit_production"):
        from herbchain import session
        return getattr(session, name)

    if name in ("ProductUnit", "InvalidUnitPayload", "mint_units", "parse_unit_payload",
                "trace_unit", "TraceReport"):
        from herbchain import products
        return getattr(products, name)

    if name in ("InvariantViolation", "ValidationErrors"):
        from herbchain import hardening
        return getattr(hardening, name)

    raise AttributeError(f"module 'herbchain' has no attribute '{name}'")


__all__ = [
    "__version__",
    # Engine
    "ContractEngine",
    "open_ledger",
    "KNOWN_ACTORS",
    "INVENTORY_ACTORS",
    "OperationResult",
    "ErrorKind",
    # Chain
    "Block",
    "HashChain",
    "CorruptStateError",
    "create_genesis",
    "fingerprint",
    # Records
    "RecordType",
    "HerbStatus",
    "QualitySnapshot",
    "UsedBatch",
    "RegisterHerb",
    "VerifyReceipt",
    "FraudAlert",
    "TransferHerb",
    "UseHerb",
    # Scan log and persistence
    "ScanLog",
    "ScanResult",
    "SnapshotStore",
    "validate_snapshot",
    # Sessions
    "Role",
    "RoleContext",
    "submit_registration",
    "submit_verification",
    "submit_transfer",
    "submit_production",
    # Products
    "ProductUnit",
    "InvalidUnitPayload",
    "mint_units",
    "parse_unit_payload",
    "trace_unit",
    "TraceReport",
    # Errors
    "InvariantViolation",
    "ValidationErrors",
]
