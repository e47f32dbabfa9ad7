import json
import os

from scripts.seed_db import load_seed, write_to_store


def test_dry_run_writes_nothing(store):
    seed = load_seed(os.path.join(os.path.dirname(__file__), "..", "db_seed.json"))
    assert "users" in seed
    assert write_to_store(store, seed) == 0
    assert store.find("users") == []


def test_apply_writes_under_fixed_ids(store, tmp_path):
    path = tmp_path / "seed.json"
    path.write_text(json.dumps({
        "users": {"admin-1": {"email": "admin@example.com", "role": "ADMIN"}},
        "police_stations": {"station-a": {"name": "Station A", "latitude": 19.1, "longitude": 72.8}},
    }))

    written = write_to_store(store, load_seed(str(path)), apply=True)

    assert written == 2
    assert store.get("users", "admin-1")["role"] == "ADMIN"
    assert store.get("police_stations", "station-a")["created_at"] is not None
