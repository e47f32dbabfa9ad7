import pytest

from app.models.audit import AuditAction, AuditTargetType, RequestMeta
from app.services.audit_service import AUDIT_COLLECTION, AuditTrail, build_entry


def entry(clock, action=AuditAction.VERIFY_INCIDENT, target_id="inc-1", admin_id="mod-1"):
    return build_entry(
        admin_id, action, AuditTargetType.INCIDENT, target_id, clock.now(),
        reason="checked", meta=RequestMeta(ip_address="192.168.1.10", user_agent="pytest"),
    )


def test_entry_hashes_ip(clock):
    built = entry(clock)
    assert built.ip_address_hash is not None
    assert len(built.ip_address_hash) == 16
    assert "192.168" not in built.ip_address_hash


def test_entry_is_immutable(clock):
    built = entry(clock)
    with pytest.raises(Exception):
        built.reason = "changed"


def test_record_and_list(store, clock):
    trail = AuditTrail(store)
    trail.record(entry(clock))
    clock.advance(minutes=1)
    trail.record(entry(clock, AuditAction.REJECT_INCIDENT, "inc-2"))
    clock.advance(minutes=1)
    trail.record(entry(clock, AuditAction.REJECT_INCIDENT, "inc-3", admin_id="mod-2"))

    everything = trail.list_entries()
    assert everything["total"] == 3
    assert [e["target_id"] for e in everything["entries"]] == ["inc-3", "inc-2", "inc-1"]

    rejects = trail.list_entries(action="REJECT_INCIDENT", admin_id="mod-1")
    assert [e["target_id"] for e in rejects["entries"]] == ["inc-2"]


def test_append_rolls_back_with_failed_transaction(store, clock):
    trail = AuditTrail(store)

    def failing(txn):
        trail.append(txn, entry(clock))
        raise RuntimeError("action failed after audit staged")

    with pytest.raises(RuntimeError):
        store.run_transaction(failing)
    assert store.find(AUDIT_COLLECTION) == []
