import json
from typing import List

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import BigInteger, Integer, String, Text, Boolean, LargeBinary, ForeignKey
from database import Base

class Farm(Base):
    """Read side of the external farm directory; onboarding happens elsewhere."""
    __tablename__ = "farms"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(255))
    active: Mapped[bool] = mapped_column(Boolean, default=True)

class Batch(Base):
    __tablename__ = "batches"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    farm_id: Mapped[int] = mapped_column(Integer, index=True)
    owner: Mapped[str] = mapped_column(String(128), index=True)
    produce_type: Mapped[str] = mapped_column(String(50))
    harvest_date: Mapped[int] = mapped_column(BigInteger)
    batch_hash: Mapped[bytes] = mapped_column(LargeBinary(32))
    metadata_text: Mapped[str] = mapped_column("metadata", Text)  # "metadata" is reserved on declarative classes
    practices_json: Mapped[str] = mapped_column("organic_practices", Text)
    created_at: Mapped[int] = mapped_column(BigInteger)
    last_updated_at: Mapped[int] = mapped_column(BigInteger)
    active: Mapped[bool] = mapped_column(Boolean, default=True)

    @property
    def organic_practices(self) -> List[str]:
        return json.loads(self.practices_json)

    @organic_practices.setter
    def organic_practices(self, practices: List[str]) -> None:
        self.practices_json = json.dumps(list(practices))

class BatchVersion(Base):
    __tablename__ = "batch_versions"
    batch_id: Mapped[int] = mapped_column(Integer, ForeignKey("batches.id"), primary_key=True)
    version: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    updated_hash: Mapped[bytes] = mapped_column(LargeBinary(32))
    version_notes: Mapped[str] = mapped_column(String(200))
    timestamp: Mapped[int] = mapped_column(BigInteger)

class OwnershipTransfer(Base):
    __tablename__ = "ownership_transfers"
    batch_id: Mapped[int] = mapped_column(Integer, ForeignKey("batches.id"), primary_key=True)
    transfer_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    old_owner: Mapped[str] = mapped_column(String(128))
    new_owner: Mapped[str] = mapped_column(String(128))
    timestamp: Mapped[int] = mapped_column(BigInteger)

class LedgerState(Base):
    """Single row (id=1) of administrative state."""
    __tablename__ = "ledger_state"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    admin: Mapped[str] = mapped_column(String(128))
    paused: Mapped[bool] = mapped_column(Boolean, default=False)
    batch_counter: Mapped[int] = mapped_column(Integer, default=0)

class LedgerEvent(Base):
    __tablename__ = "ledger_events"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    kind: Mapped[str] = mapped_column(String(50), index=True)
    payload: Mapped[str] = mapped_column(Text)
    timestamp: Mapped[str] = mapped_column(String(32))
    prev_hash: Mapped[str] = mapped_column(String(128))
    hash: Mapped[str] = mapped_column(String(128))
