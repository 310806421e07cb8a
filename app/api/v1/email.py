"""
Email report API: manual "send now" outside the subscription cadence.
"""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.deps import get_clock, get_current_user, get_db, get_services
from app.application.dispatch_worker import DispatchServices
from app.application.fulfillment import SENT
from app.application.manual_send import send_email_now
from app.config import get_settings
from app.domain.errors import SubscriptionValidationError, TransientDependencyError
from app.infrastructure.db.models import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/email", tags=["email"])


class SendNowRequest(BaseModel):
    frequency: str = "weekly"
    entry_types: str = "both"


@router.post("/send-now")
def send_now(
    body: SendNowRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: DispatchServices = Depends(get_services),
    clock=Depends(get_clock),
):
    if services.email is None:
        return JSONResponse({"error": "Email delivery is not configured"}, status_code=503)

    try:
        result = send_email_now(
            db, services.email, user, body.frequency, clock.now(),
            entry_types=body.entry_types,
            default_tz=get_settings().DEFAULT_TIMEZONE,
        )
    except (SubscriptionValidationError, ValueError) as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    except TransientDependencyError as exc:
        logger.warning("Send-now email for user_id=%s failed: %s", user.id, exc)
        return JSONResponse({"error": "Email delivery failed, try again later"}, status_code=502)

    return {
        "success": result.outcome == SENT,
        "outcome": result.outcome,
        "entry_count": result.entry_count,
        "detail": result.detail,
    }
