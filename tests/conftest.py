import os
import pathlib
import sys
import pytest


# Ensure repo root is on PYTHONPATH for direct package imports (e.g. `import herbchain`).
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from herbchain.config import HerbChainConfig  # noqa: E402
from herbchain.core import LogicalClock  # noqa: E402
from herbchain.engine import ContractEngine  # noqa: E402


class SteppingTime:
    """Wall-clock stand-in advancing one millisecond per reading."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.ms = int(start * 1000)

    def __call__(self) -> float:
        self.ms += 1
        return self.ms / 1000


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("HERBCHAIN_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def clock():
    return LogicalClock(SteppingTime())


@pytest.fixture
def config():
    return HerbChainConfig()


@pytest.fixture
def engine(config, clock):
    return ContractEngine(config=config, clock=clock)


@pytest.fixture
def stocked_engine(engine):
    """H1: 10 Kg registered and verified; 4 Kg moved on to the manufacturer."""
    assert engine.register("COLLECTOR-001", "H1", "Tulsi", "Field 7", "10", "Kg", {"score": 80}).success
    assert engine.verify_receipt("SUPPLIER-001", "H1", "10").success
    assert engine.transfer("SUPPLIER-001", "MANU-001", "H1", "4", "Depot", "Kg", {"score": 75}).success
    return engine
