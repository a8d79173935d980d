"""
Simple simulator: walk one batch through its lifecycle against the API.
Run:
    python scripts/simulate_batch.py
"""
import os
import hashlib
import requests

API = os.getenv("BASE_URL", "http://localhost:8000")
FARMER = {"X-Principal": "wallet_1"}
BUYER = {"X-Principal": "wallet_2"}

def main():
    r = requests.get(f"{API}/api/seed")
    print("Seed:", r.json())

    digest = hashlib.sha256(b"orchard-x/apples/2021-07-01").hexdigest()
    rr = requests.post(f"{API}/api/batches", headers=FARMER, json={
        "farm_id": 1,
        "produce_type": "Apples",
        "harvest_date": 1625097600,
        "batch_hash": digest,
        "metadata": "Organic apples from Orchard X",
        "organic_practices": ["No pesticides", "Compost-based"],
    })
    print("create:", rr.status_code, rr.text)
    if rr.status_code != 200:
        return
    batch_id = rr.json()["value"]

    rr = requests.patch(f"{API}/api/batches/{batch_id}", headers=FARMER, json={
        "metadata": "Graded and washed",
        "version_notes": "Post-harvest grading",
        "version": 1,
    })
    print("update:", rr.status_code, rr.text)

    rr = requests.post(f"{API}/api/batches/{batch_id}/transfer", headers=FARMER, json={
        "new_owner": BUYER["X-Principal"],
        "transfer_id": 1,
    })
    print("transfer:", rr.status_code, rr.text)

    print("batch:", requests.get(f"{API}/api/batches/{batch_id}").json())
    print("journal:", requests.get(f"{API}/api/events/verify").json())

if __name__ == "__main__":
    main()
