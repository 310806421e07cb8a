"""
Entry selection for a reporting period.

type_filter:
  daily      - combined digest entries only
  individual - everything except digests
  both       - all entries
"""
from datetime import date

from sqlalchemy.orm import Session

from app.infrastructure.db.models import EntryModel

ENTRY_TYPE_FILTERS = ("daily", "individual", "both")
DIGEST = "digest"


def entries_in_range(
    db: Session,
    user_id: int,
    period_start: date,
    period_end: date,
    type_filter: str = "both",
) -> list[EntryModel]:
    """Entries with period_start <= entry_date < period_end, oldest first."""
    if type_filter not in ENTRY_TYPE_FILTERS:
        raise ValueError(f"invalid entry type filter: {type_filter}")

    q = db.query(EntryModel).filter(
        EntryModel.user_id == user_id,
        EntryModel.entry_date >= period_start,
        EntryModel.entry_date < period_end,
    )
    if type_filter == "daily":
        q = q.filter(EntryModel.entry_type == DIGEST)
    elif type_filter == "individual":
        q = q.filter(EntryModel.entry_type != DIGEST)
    return q.order_by(EntryModel.entry_date.asc(), EntryModel.created_at.asc(), EntryModel.id.asc()).all()
