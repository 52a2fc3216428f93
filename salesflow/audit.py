from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from salesflow.context import get_correlation_id

audit_entries: list[dict[str, Any]] = []


def changed_fields(before: dict[str, Any] | None, after: dict[str, Any] | None) -> list[str]:
    """Names of the fields whose value differs between two record images.

    A missing image (creation or permanent deletion) counts every field of the
    other image as changed.
    """
    before = before or {}
    after = after or {}
    return sorted(key for key in before.keys() | after.keys() if before.get(key) != after.get(key))


def record(
    actor_user_id: str,
    entity_type: str,
    entity_id: str,
    action: str,
    before: dict[str, Any] | None,
    after: dict[str, Any] | None,
    correlation_id: str | None = None,
) -> dict[str, Any]:
    entry = {
        "id": str(uuid.uuid4()),
        "actor_user_id": actor_user_id,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "action": action,
        "before": before,
        "after": after,
        "changed": changed_fields(before, after),
        "correlation_id": correlation_id or get_correlation_id(),
        "occurred_at": datetime.now(timezone.utc).isoformat(),
    }
    audit_entries.append(entry)
    return entry


def entries_for(entity_type: str, entity_id: str) -> list[dict[str, Any]]:
    """Trail of a single record, oldest first."""
    return [
        entry
        for entry in audit_entries
        if entry["entity_type"] == entity_type and entry["entity_id"] == entity_id
    ]
