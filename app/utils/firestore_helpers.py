"""
Firestore query helpers.

Filters are applied with positional `where(field, op, value)` arguments,
which firebase_admin still accepts.
"""
from typing import Any, Iterable, Optional, Tuple

from firebase_admin import firestore


def build_query(
    collection,
    filters: Iterable[Tuple[str, str, Any]] = (),
    order_by: Optional[str] = None,
    descending: bool = False,
    limit: Optional[int] = None,
    offset: int = 0,
):
    """
    Build a Firestore query from (field, op, value) filters and paging options.

    Usage:
        query = build_query(db.collection("incidents"), [("status", "==", "VERIFIED")],
                            order_by="created_at", descending=True, limit=20)
    """
    query = collection
    for field, op, value in filters:
        query = query.where(field, op, value)
    if order_by:
        direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
        query = query.order_by(order_by, direction=direction)
    if offset:
        query = query.offset(offset)
    if limit is not None:
        query = query.limit(limit)
    return query
