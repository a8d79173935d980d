"""Hash-chained journal of ledger events.

Events are appended inside the caller's transaction, so an event becomes
visible exactly when the state change that produced it is committed.
Indexers page through the journal by id and can re-verify the chain.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from models import LedgerEvent
from utils import GENESIS, compute_hash, verify_chain

logger = logging.getLogger(__name__)

BATCH_CREATED = "batch-created"
BATCH_UPDATED = "batch-updated"
BATCH_DEACTIVATED = "batch-deactivated"
BATCH_TRANSFERRED = "batch-transferred"
CONTRACT_PAUSED = "contract-paused"
CONTRACT_UNPAUSED = "contract-unpaused"


def _as_dict(ev: LedgerEvent) -> Dict[str, Any]:
    return {
        "id": ev.id,
        "kind": ev.kind,
        "payload": json.loads(ev.payload),
        "timestamp": ev.timestamp,
        "prev_hash": ev.prev_hash,
        "hash": ev.hash,
    }


class EventJournal:
    def __init__(self, db: Session):
        self.db = db

    def emit(self, kind: str, payload: dict, at: Optional[int] = None) -> LedgerEvent:
        """Stage an event; the caller commits.

        ``at`` is the ledger clock reading (epoch seconds) of the operation
        that produced the event; wall-clock time is used when it is omitted.
        """
        prev = self.db.scalar(select(LedgerEvent).order_by(LedgerEvent.id.desc()).limit(1))
        prev_hash = prev.hash if prev else GENESIS
        when = datetime.now(timezone.utc) if at is None else datetime.fromtimestamp(at, timezone.utc)
        ts = when.isoformat()
        ev = LedgerEvent(
            kind=kind,
            payload=json.dumps(payload),
            timestamp=ts,
            prev_hash=prev_hash,
            hash=compute_hash(prev_hash, kind, payload, ts),
        )
        self.db.add(ev)
        self.db.flush()
        logger.debug("staged %s event %s", kind, ev.id)
        return ev

    def entries(self, after_id: int = 0, limit: int = 100) -> List[Dict[str, Any]]:
        rows = self.db.scalars(
            select(LedgerEvent)
            .where(LedgerEvent.id > after_id)
            .order_by(LedgerEvent.id.asc())
            .limit(limit)
        ).all()
        return [_as_dict(ev) for ev in rows]

    def verify(self) -> Dict[str, Any]:
        rows = self.db.scalars(select(LedgerEvent).order_by(LedgerEvent.id.asc())).all()
        chain = [_as_dict(ev) for ev in rows]
        return {"verified": verify_chain(chain), "events": len(chain)}
