import hashlib
import json
from typing import List, Dict, Any, Optional

GENESIS = "GENESIS"

def compute_hash(prev_hash: str, kind: str, payload: dict, timestamp: str) -> str:
    block = json.dumps({
        "prev_hash": prev_hash,
        "kind": kind,
        "payload": payload,
        "timestamp": timestamp
    }, sort_keys=True)
    return hashlib.sha256(block.encode("utf-8")).hexdigest()

def verify_chain(events: List[Dict[str, Any]], start: str = GENESIS) -> bool:
    prev = start
    for ev in events:
        expected = compute_hash(prev, ev["kind"], ev["payload"], ev["timestamp"])
        if ev["hash"] != expected or ev["prev_hash"] != prev:
            return False
        prev = ev["hash"]
    return True

def decode_hash(value: Optional[str]) -> Optional[bytes]:
    """Hex (optionally 0x-prefixed) to bytes. Raises ValueError on malformed input."""
    if value is None:
        return None
    if value.startswith(("0x", "0X")):
        value = value[2:]
    return bytes.fromhex(value)
