"""
Audit Trail - append-only ledger of moderator actions.

Entries are written inside the same store transaction as the action they
document, so an action and its audit entry commit or fail together. There
is no update or delete path.
"""

from datetime import datetime
from typing import Dict, List, Optional
import logging

from app.models.audit import AuditAction, AuditEntry, AuditTargetType, RequestMeta
from app.store.base import DocumentStore, StoreTransaction
from app.utils.security import hash_ip_address

logger = logging.getLogger(__name__)

AUDIT_COLLECTION = "audit_logs"


def build_entry(
    admin_id: str,
    action: AuditAction,
    target_type: AuditTargetType,
    target_id: str,
    created_at: datetime,
    reason: Optional[str] = None,
    meta: Optional[RequestMeta] = None,
) -> AuditEntry:
    meta = meta or RequestMeta()
    return AuditEntry(
        admin_id=admin_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        reason=reason,
        ip_address_hash=hash_ip_address(meta.ip_address),
        user_agent=meta.user_agent,
        created_at=created_at,
    )


class AuditTrail:
    """Writes and lists audit entries."""

    def __init__(self, store: DocumentStore):
        self.store = store

    @staticmethod
    def _to_document(entry: AuditEntry) -> Dict:
        data = entry.model_dump()
        data["action"] = entry.action.value
        data["target_type"] = entry.target_type.value
        return data

    def append(self, txn: StoreTransaction, entry: AuditEntry) -> str:
        """Stage an entry in an open transaction. Returns the new entry id."""
        entry_id = txn.add(AUDIT_COLLECTION, self._to_document(entry))
        logger.info(f"Audit: {entry.admin_id} {entry.action.value} {entry.target_type.value}/{entry.target_id}")
        return entry_id

    def record(self, entry: AuditEntry) -> str:
        """Append an entry in its own transaction."""
        return self.store.run_transaction(lambda txn: self.append(txn, entry))

    def list_entries(
        self,
        admin_id: Optional[str] = None,
        action: Optional[str] = None,
        target_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Dict:
        filters = []
        if admin_id:
            filters.append(("admin_id", "==", admin_id))
        if action:
            filters.append(("action", "==", action))
        if target_id:
            filters.append(("target_id", "==", target_id))

        entries: List[Dict] = self.store.find(
            AUDIT_COLLECTION,
            filters,
            order_by="created_at",
            descending=True,
            limit=limit,
            offset=(page - 1) * limit,
        )
        total = self.store.count(AUDIT_COLLECTION, filters)
        return {"entries": entries, "total": total}
