"""
Persisted audit trail of dispatch outcomes.

The row is added to the caller's session; the caller commits.
"""
import json

from sqlalchemy.orm import Session

from app.infrastructure.db.models import ProcessingLog


def log_processing(db: Session, action: str, status: str, **details) -> ProcessingLog:
    row = ProcessingLog(
        action=action,
        status=status,
        details_json=json.loads(json.dumps(details, default=str)) if details else None,
    )
    db.add(row)
    return row
