# Overview: Append-only audit trail of domain events.

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from ..extensions import db
from ..models import LedgerEvent
"""
Ledger invariants

- Append-only: events are never updated or deleted.
- Events are written inside the same DB transaction as the change they record;
  the caller commits.
- occurred_at is business time; when omitted the DB default applies.
"""


def append_ledger_event(
    *,
    event_type: str,
    event_category: str,
    entity_type: str,
    entity_id: int,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: Optional[dict[str, Any]] = None,
) -> LedgerEvent:
    ev = LedgerEvent(
        event_type=event_type,
        event_category=event_category,
        entity_type=entity_type,
        entity_id=entity_id,
        occurred_at=occurred_at,
        note=note[:255] if note else None,
        payload=json.dumps(payload, default=str, sort_keys=True) if payload is not None else None,
    )
    db.session.add(ev)
    return ev


def list_ledger_events(
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    event_category: str | None = None,
    limit: int = 200,
) -> list[LedgerEvent]:
    q = db.session.query(LedgerEvent)
    if entity_type:
        q = q.filter(LedgerEvent.entity_type == entity_type)
    if entity_id is not None:
        q = q.filter(LedgerEvent.entity_id == entity_id)
    if event_category:
        q = q.filter(LedgerEvent.event_category == event_category)
    return q.order_by(LedgerEvent.id.desc()).limit(limit).all()
