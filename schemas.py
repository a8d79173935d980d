from pydantic import BaseModel, ConfigDict, Field, field_serializer
from typing import Optional, Any, Dict, List

# Length bounds are enforced by the ledger so violations come back as InvalidInput.

class CreateBatch(BaseModel):
    farm_id: int
    produce_type: str
    harvest_date: int  # epoch seconds
    batch_hash: str  # hex digest
    metadata: str = ""
    organic_practices: List[str] = []

class UpdateBatch(BaseModel):
    produce_type: Optional[str] = None
    harvest_date: Optional[int] = None
    batch_hash: Optional[str] = None
    metadata: Optional[str] = None
    organic_practices: Optional[List[str]] = None
    version_notes: str = ""
    version: int

class TransferBatch(BaseModel):
    new_owner: str
    transfer_id: int

class BatchOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    batch_id: int = Field(validation_alias="id")
    farm_id: int
    owner: str
    produce_type: str
    harvest_date: int
    batch_hash: bytes
    metadata: str = Field(validation_alias="metadata_text")
    organic_practices: List[str]
    created_at: int
    last_updated_at: int
    active: bool

    @field_serializer("batch_hash")
    def _hex(self, v: bytes) -> str:
        return v.hex()

class BatchVersionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    batch_id: int
    version: int
    updated_hash: bytes
    version_notes: str
    timestamp: int

    @field_serializer("updated_hash")
    def _hex(self, v: bytes) -> str:
        return v.hex()

class OwnershipTransferOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    batch_id: int
    transfer_id: int
    old_owner: str
    new_owner: str
    timestamp: int

class LedgerResponse(BaseModel):
    ok: bool
    value: Any = None
    error: Optional[str] = None

class EventPage(BaseModel):
    items: List[Dict[str, Any]]
    next_after: int
