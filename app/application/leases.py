"""
Per-obligation lease held in the database row.

claim() is a single conditional UPDATE, so two workers (threads or processes)
racing for the same row cannot both win. A lease older than the staleness
window is considered abandoned and may be taken over.
"""
import uuid
from datetime import datetime, timedelta

from sqlalchemy import or_
from sqlalchemy.orm import Session

IDLE = "idle"
PROCESSING = "processing"


def claim(db: Session, model, obligation_id: int, now: datetime, stale_after: timedelta) -> str | None:
    """Take the lease on one row. Returns the lease token, or None if someone else holds it."""
    token = str(uuid.uuid4())
    cutoff = now - stale_after
    updated = (
        db.query(model)
        .filter(
            model.id == obligation_id,
            or_(
                model.dispatch_status != PROCESSING,
                model.leased_at.is_(None),
                model.leased_at < cutoff,
            ),
        )
        .update(
            {"dispatch_status": PROCESSING, "lease_token": token, "leased_at": now},
            synchronize_session=False,
        )
    )
    db.commit()
    return token if updated == 1 else None


def release(db: Session, model, obligation_id: int, token: str) -> bool:
    """Drop the lease if we still hold it (a stale takeover may have replaced our token)."""
    updated = (
        db.query(model)
        .filter(model.id == obligation_id, model.lease_token == token)
        .update(
            {"dispatch_status": IDLE, "lease_token": None, "leased_at": None},
            synchronize_session=False,
        )
    )
    db.commit()
    return updated == 1
