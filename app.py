import os
import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Depends, Header, Query
from fastapi.middleware.cors import CORSMiddleware

from sqlalchemy.orm import Session

from database import Base, engine, SessionLocal
from farms import SqlFarmDirectory, seed_demo_farms
from journal import EventJournal
from ledger import BatchLedger, LedgerError, Result, init_ledger_state
from schemas import (
    CreateBatch, UpdateBatch, TransferBatch, BatchOut, BatchVersionOut,
    OwnershipTransferOut, LedgerResponse, EventPage,
)
from utils import decode_hash

# ---------- Config ----------
LEDGER_ADMIN = os.getenv("LEDGER_ADMIN", "deployer")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Organic Batch Ledger", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

HTTP_STATUS = {
    LedgerError.UNAUTHORIZED: 403,
    LedgerError.INVALID_INPUT: 400,
    LedgerError.INACTIVE_FARM: 409,
    LedgerError.INACTIVE_BATCH: 409,
    LedgerError.PAUSED: 503,
    LedgerError.BATCH_NOT_FOUND: 404,
}

# ---------- DB ----------
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def get_ledger(db: Session = Depends(get_db)) -> BatchLedger:
    return BatchLedger(db, SqlFarmDirectory(db), EventJournal(db))

def caller_identity(x_principal: str = Header(..., alias="X-Principal")) -> str:
    return x_principal

@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        init_ledger_state(db, LEDGER_ADMIN)
    finally:
        db.close()

# ---------- Helpers ----------
def _respond(result: Result) -> LedgerResponse:
    if not result.ok:
        raise HTTPException(status_code=HTTP_STATUS[result.value], detail=result.to_dict())
    return LedgerResponse(**result.to_dict())

def _hash_or_reject(value: Optional[str]) -> Optional[bytes]:
    try:
        return decode_hash(value)
    except ValueError:
        failed = Result.failure(LedgerError.INVALID_INPUT)
        raise HTTPException(status_code=HTTP_STATUS[failed.value], detail=failed.to_dict())

# ---------- APIs: batch lifecycle ----------
@app.post("/api/batches", response_model=LedgerResponse)
def create_batch(body: CreateBatch, caller: str = Depends(caller_identity),
                 ledger: BatchLedger = Depends(get_ledger)):
    batch_hash = _hash_or_reject(body.batch_hash)
    return _respond(ledger.create_batch(
        caller,
        body.farm_id,
        body.produce_type,
        body.harvest_date,
        batch_hash,
        body.metadata,
        body.organic_practices,
    ))

@app.patch("/api/batches/{batch_id}", response_model=LedgerResponse)
def update_batch(batch_id: int, body: UpdateBatch, caller: str = Depends(caller_identity),
                 ledger: BatchLedger = Depends(get_ledger)):
    batch_hash = _hash_or_reject(body.batch_hash)
    return _respond(ledger.update_batch(
        caller,
        batch_id,
        produce_type=body.produce_type,
        harvest_date=body.harvest_date,
        batch_hash=batch_hash,
        metadata=body.metadata,
        organic_practices=body.organic_practices,
        version_notes=body.version_notes,
        version=body.version,
    ))

@app.post("/api/batches/{batch_id}/deactivate", response_model=LedgerResponse)
def deactivate_batch(batch_id: int, caller: str = Depends(caller_identity),
                     ledger: BatchLedger = Depends(get_ledger)):
    return _respond(ledger.deactivate_batch(caller, batch_id))

@app.post("/api/batches/{batch_id}/transfer", response_model=LedgerResponse)
def transfer_batch(batch_id: int, body: TransferBatch, caller: str = Depends(caller_identity),
                   ledger: BatchLedger = Depends(get_ledger)):
    return _respond(ledger.transfer_batch_ownership(caller, batch_id, body.new_owner, body.transfer_id))

# ---------- APIs: read accessors ----------
@app.get("/api/batches/{batch_id}", response_model=LedgerResponse)
def get_batch(batch_id: int, ledger: BatchLedger = Depends(get_ledger)):
    batch = ledger.get_batch(batch_id)
    value = BatchOut.model_validate(batch).model_dump(mode="json") if batch else None
    return LedgerResponse(ok=True, value=value)

@app.get("/api/batches/{batch_id}/versions/{version}", response_model=LedgerResponse)
def get_batch_version(batch_id: int, version: int, ledger: BatchLedger = Depends(get_ledger)):
    row = ledger.get_batch_version(batch_id, version)
    value = BatchVersionOut.model_validate(row).model_dump(mode="json") if row else None
    return LedgerResponse(ok=True, value=value)

@app.get("/api/batches/{batch_id}/transfers/{transfer_id}", response_model=LedgerResponse)
def get_batch_transfer(batch_id: int, transfer_id: int, ledger: BatchLedger = Depends(get_ledger)):
    row = ledger.get_batch_ownership_transfer(batch_id, transfer_id)
    value = OwnershipTransferOut.model_validate(row).model_dump(mode="json") if row else None
    return LedgerResponse(ok=True, value=value)

@app.get("/api/batches/{batch_id}/active", response_model=LedgerResponse)
def is_batch_active(batch_id: int, ledger: BatchLedger = Depends(get_ledger)):
    return LedgerResponse(ok=True, value=ledger.is_batch_active(batch_id))

# ---------- APIs: administration ----------
@app.get("/api/admin/owner", response_model=LedgerResponse)
def get_contract_owner(ledger: BatchLedger = Depends(get_ledger)):
    return LedgerResponse(ok=True, value=ledger.get_contract_owner())

@app.get("/api/admin/paused", response_model=LedgerResponse)
def is_paused(ledger: BatchLedger = Depends(get_ledger)):
    return LedgerResponse(ok=True, value=ledger.is_paused())

@app.post("/api/admin/pause", response_model=LedgerResponse)
def pause(caller: str = Depends(caller_identity), ledger: BatchLedger = Depends(get_ledger)):
    return _respond(ledger.pause_contract(caller))

@app.post("/api/admin/unpause", response_model=LedgerResponse)
def unpause(caller: str = Depends(caller_identity), ledger: BatchLedger = Depends(get_ledger)):
    return _respond(ledger.unpause_contract(caller))

# ---------- APIs: event journal ----------
@app.get("/api/events", response_model=EventPage)
def list_events(
    after: int = Query(0, ge=0, description="return events with id greater than this"),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    items = EventJournal(db).entries(after_id=after, limit=limit)
    next_after = items[-1]["id"] if items else after
    return EventPage(items=items, next_after=next_after)

@app.get("/api/events/verify")
def verify_events(db: Session = Depends(get_db)):
    return EventJournal(db).verify()

# ---------- Dev helpers ----------
@app.get("/api/seed")
def seed(db: Session = Depends(get_db)):
    created = seed_demo_farms(db)
    return {"status": "seeded" if created else "exists", "farms": created}
