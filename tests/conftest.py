"""
Shared pytest fixtures for the batch ledger test suite.

- In-memory SQLite engine (``StaticPool`` so every session sees one database)
- A session with the administrative state row initialised (admin ``deployer``)
- A dict-backed farm directory: farm 1 active, farm 2 inactive
- A settable clock so timestamp changes are deterministic
"""
from typing import Dict

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
from ledger import BatchLedger, init_ledger_state
from tests.constants import ADMIN, FARMER, HASH


class DictFarmDirectory:
    def __init__(self, farms: Dict[int, bool]):
        self.farms = dict(farms)
        self.calls = []

    def is_farm_active(self, farm_id: int) -> bool:
        self.calls.append(farm_id)
        return self.farms.get(farm_id, False)


class FixedClock:
    def __init__(self, now: int = 1_700_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int = 60) -> int:
        self.now += seconds
        return self.now


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = Session()
    init_ledger_state(session, ADMIN)
    yield session
    session.close()


@pytest.fixture
def farms() -> DictFarmDirectory:
    return DictFarmDirectory({1: True, 2: False})


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def ledger(db, farms, clock) -> BatchLedger:
    return BatchLedger(db, farms, clock=clock)


@pytest.fixture
def make_batch(ledger):
    """Create a batch on farm 1 owned by ``FARMER`` and return its id."""

    def _make(caller: str = FARMER, **overrides) -> int:
        fields = dict(
            farm_id=1,
            produce_type="Apples",
            harvest_date=1625097600,
            batch_hash=HASH,
            metadata="Organic apples",
            organic_practices=["No pesticides"],
        )
        fields.update(overrides)
        result = ledger.create_batch(caller, **fields)
        assert result.ok, result
        return result.value

    return _make
