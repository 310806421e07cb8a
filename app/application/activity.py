"""
Activity signal: when did a user last journal?
"""
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.domain.clock import as_utc
from app.infrastructure.db.models import EntryModel


def last_entry_timestamp(db: Session, user_id: int) -> datetime | None:
    value = (
        db.query(func.max(EntryModel.created_at))
        .filter(EntryModel.user_id == user_id)
        .scalar()
    )
    return as_utc(value)


def last_entry_timestamps(db: Session, user_ids: list[int]) -> dict[int, datetime]:
    """Batch lookup for a tick: {user_id: latest created_at}; users without entries are absent."""
    if not user_ids:
        return {}
    rows = (
        db.query(EntryModel.user_id, func.max(EntryModel.created_at))
        .filter(EntryModel.user_id.in_(user_ids))
        .group_by(EntryModel.user_id)
        .all()
    )
    return {user_id: as_utc(ts) for user_id, ts in rows if ts is not None}
