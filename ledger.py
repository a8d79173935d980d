"""Batch lifecycle ledger.

Owns the canonical batch records, their version history and ownership
transfer history, plus the administrative state (administrator, pause flag,
batch counter).  Every public operation is one unit of atomicity: inputs are
validated before anything is written, and the record change, history row and
emitted event are committed together.

Domain failures are returned as ``Result(ok=False, value=LedgerError.X)``.
Only storage failures raise.

Version and transfer keys are chosen by the caller and a reused key
overwrites the earlier row.
"""
import functools
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import journal
from farms import FarmDirectory
from journal import EventJournal
from models import Batch, BatchVersion, LedgerState, OwnershipTransfer

logger = logging.getLogger(__name__)

MAX_PRODUCE_TYPE_LEN = 50
MAX_METADATA_LEN = 500
MAX_PRACTICES = 10
MAX_PRACTICE_LEN = 100
MAX_VERSION_NOTES_LEN = 200
MAX_HASH_LEN = 32

STATE_ID = 1

# One mutating call at a time per process; run the API with a single worker.
_write_lock = threading.Lock()


class LedgerError(Enum):
    UNAUTHORIZED = "Unauthorized"
    INVALID_INPUT = "InvalidInput"
    INACTIVE_FARM = "InactiveFarm"
    # rejected update on a deactivated batch; shares InactiveFarm's wire code
    INACTIVE_BATCH = "InactiveBatch"
    PAUSED = "Paused"
    BATCH_NOT_FOUND = "BatchNotFound"

    @property
    def code(self) -> int:
        return ERROR_CODES[self]


ERROR_CODES = {
    LedgerError.UNAUTHORIZED: 200,
    LedgerError.INVALID_INPUT: 201,
    LedgerError.INACTIVE_FARM: 203,
    LedgerError.INACTIVE_BATCH: 203,
    LedgerError.PAUSED: 204,
    LedgerError.BATCH_NOT_FOUND: 207,
}


@dataclass(frozen=True)
class Result:
    ok: bool
    value: Any = None

    @classmethod
    def success(cls, value: Any = True) -> "Result":
        return cls(True, value)

    @classmethod
    def failure(cls, error: LedgerError) -> "Result":
        return cls(False, error)

    @property
    def error(self) -> Optional[LedgerError]:
        return None if self.ok else self.value

    def to_dict(self) -> dict:
        if self.ok:
            return {"ok": True, "value": self.value, "error": None}
        return {"ok": False, "value": self.value.code, "error": self.value.value}


def _valid_text(value: Optional[str], limit: int) -> bool:
    return value is None or len(value) <= limit


def _valid_hash(value: Optional[bytes]) -> bool:
    return value is None or 0 < len(value) <= MAX_HASH_LEN


def _valid_practices(practices: Optional[List[str]]) -> bool:
    if practices is None:
        return True
    if len(practices) > MAX_PRACTICES:
        return False
    return all(0 < len(p) <= MAX_PRACTICE_LEN for p in practices)


def _serialized(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with _write_lock:
            # drop rows cached by this session before another writer committed
            self.db.expire_all()
            return method(self, *args, **kwargs)
    return wrapper


def init_ledger_state(db: Session, admin: str) -> LedgerState:
    """Create the administrative state row on first start.

    The administrator is fixed from then on; a different ``admin`` on a later
    start is ignored.
    """
    state = db.get(LedgerState, STATE_ID)
    if state is None:
        state = LedgerState(id=STATE_ID, admin=admin, paused=False, batch_counter=0)
        db.add(state)
        db.commit()
        logger.info("ledger initialised with administrator %s", admin)
    elif state.admin != admin:
        logger.warning("ledger administrator is %s; ignoring configured %s", state.admin, admin)
    return state


def _epoch_now() -> int:
    return int(time.time())


class BatchLedger:
    def __init__(
        self,
        db: Session,
        farms: FarmDirectory,
        events: Optional[EventJournal] = None,
        clock: Callable[[], int] = _epoch_now,
    ):
        self.db = db
        self.farms = farms
        self.events = events or EventJournal(db)
        self.clock = clock

    # ---------- internals ----------
    def _state(self) -> LedgerState:
        state = self.db.get(LedgerState, STATE_ID)
        if state is None:
            raise RuntimeError("ledger state is not initialised; call init_ledger_state first")
        return state

    def _farm_active(self, farm_id: int) -> bool:
        try:
            return self.farms.is_farm_active(farm_id) is True
        except Exception:
            logger.warning("farm directory failed for farm %s; treating as inactive", farm_id, exc_info=True)
            return False

    def _commit(self, op: str, kind: str, payload: dict, now: Optional[int] = None) -> None:
        if now is None:
            now = self.clock()
        try:
            self.events.emit(kind, payload, at=now)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error("%s rolled back", op, exc_info=True)
            raise

    def _reject(self, op: str, caller: str, error: LedgerError) -> Result:
        logger.info("%s by %s rejected: %s", op, caller, error.value)
        return Result.failure(error)

    def _owned_batch(self, op: str, caller: str, batch_id: int):
        batch = self.db.get(Batch, batch_id)
        if batch is None:
            return None, self._reject(op, caller, LedgerError.BATCH_NOT_FOUND)
        if batch.owner != caller:
            return None, self._reject(op, caller, LedgerError.UNAUTHORIZED)
        return batch, None

    # ---------- batch lifecycle ----------
    @_serialized
    def create_batch(
        self,
        caller: str,
        farm_id: int,
        produce_type: str,
        harvest_date: int,
        batch_hash: bytes,
        metadata: str,
        organic_practices: List[str],
    ) -> Result:
        state = self._state()
        if state.paused:
            return self._reject("create_batch", caller, LedgerError.PAUSED)
        if not self._farm_active(farm_id):
            return self._reject("create_batch", caller, LedgerError.INACTIVE_FARM)
        if not (
            None not in (produce_type, harvest_date, batch_hash, metadata, organic_practices)
            and _valid_text(produce_type, MAX_PRODUCE_TYPE_LEN)
            and _valid_text(metadata, MAX_METADATA_LEN)
            and _valid_practices(organic_practices)
            and _valid_hash(batch_hash)
        ):
            return self._reject("create_batch", caller, LedgerError.INVALID_INPUT)

        batch_id = state.batch_counter + 1
        now = self.clock()
        batch = Batch(
            id=batch_id,
            farm_id=farm_id,
            owner=caller,
            produce_type=produce_type,
            harvest_date=harvest_date,
            batch_hash=bytes(batch_hash),
            metadata_text=metadata,
            created_at=now,
            last_updated_at=now,
            active=True,
        )
        batch.organic_practices = organic_practices
        self.db.add(batch)
        state.batch_counter = batch_id
        self._commit("create_batch", journal.BATCH_CREATED, {"batch_id": batch_id, "farm_id": farm_id, "owner": caller}, now)
        logger.info("batch %s created by %s for farm %s", batch_id, caller, farm_id)
        return Result.success(batch_id)

    @_serialized
    def update_batch(
        self,
        caller: str,
        batch_id: int,
        produce_type: Optional[str] = None,
        harvest_date: Optional[int] = None,
        batch_hash: Optional[bytes] = None,
        metadata: Optional[str] = None,
        organic_practices: Optional[List[str]] = None,
        version_notes: str = "",
        version: int = 0,
    ) -> Result:
        """Merge the provided fields into the batch and record a version row.

        ``None`` means "leave unchanged".
        """
        batch, rejected = self._owned_batch("update_batch", caller, batch_id)
        if rejected:
            return rejected
        if not batch.active:
            return self._reject("update_batch", caller, LedgerError.INACTIVE_BATCH)
        if not (
            _valid_text(produce_type, MAX_PRODUCE_TYPE_LEN)
            and _valid_text(metadata, MAX_METADATA_LEN)
            and _valid_practices(organic_practices)
            and _valid_hash(batch_hash)
            and len(version_notes) <= MAX_VERSION_NOTES_LEN
        ):
            return self._reject("update_batch", caller, LedgerError.INVALID_INPUT)

        now = self.clock()
        if produce_type is not None:
            batch.produce_type = produce_type
        if harvest_date is not None:
            batch.harvest_date = harvest_date
        if batch_hash is not None:
            batch.batch_hash = bytes(batch_hash)
        if metadata is not None:
            batch.metadata_text = metadata
        if organic_practices is not None:
            batch.organic_practices = organic_practices
        batch.last_updated_at = now
        # same key overwrites the earlier row
        self.db.merge(BatchVersion(
            batch_id=batch_id,
            version=version,
            updated_hash=batch.batch_hash,
            version_notes=version_notes,
            timestamp=now,
        ))
        self._commit("update_batch", journal.BATCH_UPDATED, {"batch_id": batch_id, "version": version, "owner": caller}, now)
        logger.info("batch %s updated by %s (version %s)", batch_id, caller, version)
        return Result.success()

    @_serialized
    def deactivate_batch(self, caller: str, batch_id: int) -> Result:
        batch, rejected = self._owned_batch("deactivate_batch", caller, batch_id)
        if rejected:
            return rejected
        batch.active = False
        self._commit("deactivate_batch", journal.BATCH_DEACTIVATED, {"batch_id": batch_id, "owner": caller})
        logger.info("batch %s deactivated by %s", batch_id, caller)
        return Result.success()

    @_serialized
    def transfer_batch_ownership(self, caller: str, batch_id: int, new_owner: str, transfer_id: int) -> Result:
        # active flag is not checked: deactivated batches can still change hands
        batch, rejected = self._owned_batch("transfer_batch_ownership", caller, batch_id)
        if rejected:
            return rejected
        if new_owner == caller:
            return self._reject("transfer_batch_ownership", caller, LedgerError.INVALID_INPUT)

        now = self.clock()
        batch.owner = new_owner
        batch.last_updated_at = now
        self.db.merge(OwnershipTransfer(
            batch_id=batch_id,
            transfer_id=transfer_id,
            old_owner=caller,
            new_owner=new_owner,
            timestamp=now,
        ))
        self._commit("transfer_batch_ownership", journal.BATCH_TRANSFERRED, {"batch_id": batch_id, "old_owner": caller, "new_owner": new_owner}, now)
        logger.info("batch %s transferred from %s to %s", batch_id, caller, new_owner)
        return Result.success()

    # ---------- administration ----------
    def _set_paused(self, caller: str, paused: bool) -> Result:
        op = "pause_contract" if paused else "unpause_contract"
        state = self._state()
        if caller != state.admin:
            return self._reject(op, caller, LedgerError.UNAUTHORIZED)
        state.paused = paused
        kind = journal.CONTRACT_PAUSED if paused else journal.CONTRACT_UNPAUSED
        self._commit(op, kind, {"caller": caller})
        logger.info("ledger %s by %s", "paused" if paused else "unpaused", caller)
        return Result.success()

    @_serialized
    def pause_contract(self, caller: str) -> Result:
        """Block batch creation. Updates, deactivation and transfers stay open."""
        return self._set_paused(caller, True)

    @_serialized
    def unpause_contract(self, caller: str) -> Result:
        return self._set_paused(caller, False)

    # ---------- read accessors ----------
    def get_batch(self, batch_id: int) -> Optional[Batch]:
        return self.db.get(Batch, batch_id)

    def get_batch_version(self, batch_id: int, version: int) -> Optional[BatchVersion]:
        return self.db.get(BatchVersion, (batch_id, version))

    def get_batch_ownership_transfer(self, batch_id: int, transfer_id: int) -> Optional[OwnershipTransfer]:
        return self.db.get(OwnershipTransfer, (batch_id, transfer_id))

    def is_batch_active(self, batch_id: int) -> bool:
        batch = self.db.get(Batch, batch_id)
        return bool(batch and batch.active)

    def get_contract_owner(self) -> str:
        return self._state().admin

    def is_paused(self) -> bool:
        return self._state().paused
