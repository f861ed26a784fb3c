"""
Firestore query helpers built on the FieldFilter API.
"""

from typing import Dict, Optional

from google.cloud.firestore_v1.base_query import FieldFilter


def where_filter(query, field_path: str, op_string: str, value):
    """
    Apply a single field filter to a collection or query.

    Usage:
        query = where_filter(collection, "block_id", "==", "B1")
        query = where_filter(query, "role", "==", "SUPERVISOR")
    """
    return query.where(filter=FieldFilter(field_path, op_string, value))


def snapshot_to_dict(snapshot) -> Optional[Dict]:
    """Convert a document snapshot to a dict with its id, or None if missing."""
    if snapshot is None or not snapshot.exists:
        return None
    data = snapshot.to_dict() or {}
    data["id"] = snapshot.id
    return data
