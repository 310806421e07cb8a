"""
Email and print subscription API endpoints.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.deps import get_clock, get_current_user, get_db
from app.application.subscriptions import (
    CreateEmailSubscriptionUseCase,
    CreatePrintSubscriptionUseCase,
    DeactivateSubscriptionUseCase,
    UpdateEmailSubscriptionUseCase,
    UpdatePrintSubscriptionUseCase,
)
from app.config import get_settings
from app.domain.errors import SubscriptionValidationError
from app.infrastructure.db.models import EmailSubscriptionModel, PrintSubscriptionModel, User

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])


class EmailSubscriptionRequest(BaseModel):
    frequency: str
    entry_types: str = "both"
    include_images: bool = True


class PrintSubscriptionRequest(BaseModel):
    frequency: str
    color_option: str = "bw"
    include_images: bool = True
    shipping_name: str
    shipping_line1: str
    shipping_line2: str | None = None
    shipping_city: str
    shipping_state: str
    shipping_zip: str
    shipping_country: str = "US"
    shipping_phone: str | None = None


def _common(sub) -> dict:
    return {
        "id": sub.id,
        "frequency": sub.frequency,
        "is_active": sub.is_active,
        "include_images": sub.include_images,
        "needs_attention": sub.needs_attention,
        "last_error": sub.last_error,
    }


@router.get("")
def list_subscriptions(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    emails = db.query(EmailSubscriptionModel).filter(EmailSubscriptionModel.user_id == user.id).all()
    prints = db.query(PrintSubscriptionModel).filter(PrintSubscriptionModel.user_id == user.id).all()
    return {
        "email": [
            {**_common(s), "entry_types": s.entry_types,
             "next_email_date": s.next_email_date.isoformat() if s.next_email_date else None}
            for s in emails
        ],
        "print": [
            {**_common(s), "color_option": s.color_option,
             "next_print_date": s.next_print_date.isoformat() if s.next_print_date else None}
            for s in prints
        ],
    }


@router.post("/email")
def create_email_subscription(
    body: EmailSubscriptionRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock=Depends(get_clock),
):
    try:
        sub_id = CreateEmailSubscriptionUseCase(db, clock, get_settings().DEFAULT_TIMEZONE).execute(
            user.id, body.frequency, body.entry_types, body.include_images,
        )
    except SubscriptionValidationError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    return {"success": True, "id": sub_id}


@router.patch("/email/{sub_id}")
def update_email_subscription(
    sub_id: int,
    body: EmailSubscriptionRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        UpdateEmailSubscriptionUseCase(db).execute(sub_id, user.id, **body.model_dump())
    except SubscriptionValidationError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    return {"success": True}


@router.post("/print")
def create_print_subscription(
    body: PrintSubscriptionRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock=Depends(get_clock),
):
    data = body.model_dump()
    try:
        sub_id = CreatePrintSubscriptionUseCase(db, clock, get_settings().DEFAULT_TIMEZONE).execute(
            user.id, data.pop("frequency"), data.pop("color_option"), data.pop("include_images"), **data,
        )
    except SubscriptionValidationError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    return {"success": True, "id": sub_id}


@router.patch("/print/{sub_id}")
def update_print_subscription(
    sub_id: int,
    body: PrintSubscriptionRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        UpdatePrintSubscriptionUseCase(db).execute(sub_id, user.id, **body.model_dump())
    except SubscriptionValidationError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    return {"success": True}


@router.delete("/{kind}/{sub_id}")
def deactivate_subscription(
    kind: str,
    sub_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        DeactivateSubscriptionUseCase(db).execute(kind, sub_id, user.id)
    except SubscriptionValidationError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    return {"success": True}
