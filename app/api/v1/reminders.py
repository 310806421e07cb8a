"""
Reminder API endpoints.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.deps import get_clock, get_current_user, get_db
from app.application.reminders import CreateReminderUseCase, DeleteReminderUseCase, SetReminderActiveUseCase
from app.domain.errors import ScheduleValidationError
from app.infrastructure.db.models import ReminderModel, User

router = APIRouter(prefix="/api/reminders", tags=["reminders"])


class ReminderRequest(BaseModel):
    reminder_type: str
    time_of_day: str | None = None
    day_of_week: int | None = None
    day_of_month: int | None = None
    smart_threshold: int | None = None


class ActiveRequest(BaseModel):
    is_active: bool


def _reminder_dict(row: ReminderModel) -> dict:
    return {
        "id": row.id,
        "reminder_type": row.reminder_type,
        "time_of_day": row.time_of_day.strftime("%H:%M") if row.time_of_day else None,
        "day_of_week": row.day_of_week,
        "day_of_month": row.day_of_month,
        "smart_threshold": row.smart_threshold,
        "is_active": row.is_active,
        "needs_attention": row.needs_attention,
    }


@router.post("")
def create_reminder(
    body: ReminderRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock=Depends(get_clock),
):
    try:
        reminder_id = CreateReminderUseCase(db).execute(
            user.id,
            body.reminder_type,
            now=clock.now(),
            time_of_day=body.time_of_day,
            day_of_week=body.day_of_week,
            day_of_month=body.day_of_month,
            smart_threshold=body.smart_threshold,
        )
    except ScheduleValidationError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    return {"success": True, "reminder": _reminder_dict(db.get(ReminderModel, reminder_id))}


@router.get("")
def list_reminders(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    rows = db.query(ReminderModel).filter(ReminderModel.user_id == user.id).order_by(ReminderModel.id).all()
    return {"reminders": [_reminder_dict(r) for r in rows]}


@router.patch("/{reminder_id}")
def set_active(
    reminder_id: int,
    body: ActiveRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        SetReminderActiveUseCase(db).execute(reminder_id, user.id, body.is_active)
    except ScheduleValidationError as exc:
        return JSONResponse({"error": str(exc)}, status_code=404)
    return {"success": True}


@router.delete("/{reminder_id}")
def delete_reminder(reminder_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    try:
        DeleteReminderUseCase(db).execute(reminder_id, user.id)
    except ScheduleValidationError as exc:
        return JSONResponse({"error": str(exc)}, status_code=404)
    return {"success": True}
