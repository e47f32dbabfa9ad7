"""
Seed script for the Incident Watch store (in-memory or Firestore).

Usage:
  - Dry run (default): python scripts/seed_db.py
  - Apply to configured store: python scripts/seed_db.py --apply

Behavior:
  - Loads `db_seed.json` from repo root (users and police stations).
  - Gets the store via `app.config.firebase.get_store()`, which returns the
    in-memory store or Firestore depending on settings.
  - Writes each document under its fixed id, stamping created_at.

NOTE: When applying to real Firestore, ensure `FIREBASE_CREDENTIALS_PATH` and `USE_MOCK_DB=false` are set in `.env`.
With `USE_MOCK_DB=true` the in-memory store lives only for this process, so
`--apply` against it is a check that the seed loads, not a persistent write.
"""

import argparse
import json
import os

from app.config.firebase import get_store
from app.core.clock import system_clock
from app.store.base import DocumentStore


def load_seed(path: str = "./db_seed.json") -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_to_store(store: DocumentStore, seed: dict, apply: bool = False) -> int:
    written = 0
    now = system_clock.now()
    for collection, docs in seed.items():
        for doc_id, data in docs.items():
            print(f"Preparing: {collection}/{doc_id}")
            if not apply:
                continue
            store.add(collection, dict(data, created_at=now), doc_id=doc_id)
            written += 1
            print(f"Wrote: {collection}/{doc_id}")
    return written


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--apply", action="store_true", help="Write seed to the store instead of dry-run")
    args = parser.parse_args()

    seed_path = os.path.join(os.getcwd(), "db_seed.json")
    if not os.path.exists(seed_path):
        print(f"Seed file not found: {seed_path}")
        return

    seed = load_seed(seed_path)

    written = write_to_store(get_store(), seed, apply=args.apply)

    if args.apply:
        print(f"Seeding completed ({written} documents).")
    else:
        print("Dry run complete. Re-run with --apply to write to the store.")


if __name__ == "__main__":
    main()
