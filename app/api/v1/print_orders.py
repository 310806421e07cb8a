"""
Print order API: manual orders for a trailing period and order history with status badges.
"""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.deps import get_clock, get_current_user, get_db, get_services
from app.application.dispatch_worker import DispatchServices
from app.application.fulfillment import SENT
from app.application.manual_send import order_print_now
from app.application.print_fulfillment import address_from_subscription
from app.config import get_settings
from app.domain.errors import SubscriptionValidationError, TransientDependencyError
from app.domain.print_order import status_label
from app.infrastructure.db.models import PrintOrderModel, PrintSubscriptionModel, User
from app.infrastructure.integrations.base import ShippingAddress

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/print", tags=["print"])


class ShippingIn(BaseModel):
    name: str
    line1: str
    line2: str | None = None
    city: str
    state: str
    zip: str
    country: str = "US"
    phone: str | None = None


class OrderRequest(BaseModel):
    frequency: str = "monthly"
    color_option: str = "bw"
    shipping: ShippingIn | None = None


def _order_dict(order: PrintOrderModel) -> dict:
    return {
        "id": order.id,
        "subscription_id": order.subscription_id,
        "status": order.status,
        "status_label": status_label(order.status),
        "frequency": order.frequency,
        "period_start": order.period_start.isoformat(),
        "period_end": order.period_end.isoformat(),
        "entry_count": order.entry_count,
        "page_count": order.page_count,
        "retail_cents": order.retail_cents,
        "tracking_url": order.tracking_url,
        "error_message": order.error_message,
        "created_at": order.created_at.isoformat() if order.created_at else None,
    }


@router.post("/orders")
def create_order(
    body: OrderRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: DispatchServices = Depends(get_services),
    clock=Depends(get_clock),
):
    if services.printing is None:
        return JSONResponse({"error": "Printing is not configured"}, status_code=503)
    if body.color_option not in ("bw", "color"):
        return JSONResponse({"error": "color_option must be 'bw' or 'color'"}, status_code=400)

    if body.shipping:
        s = body.shipping
        address = ShippingAddress(
            name=s.name, street1=s.line1, street2=s.line2, city=s.city,
            state_code=s.state, postcode=s.zip, country_code=s.country,
            phone_number=s.phone or "0000000000", email=user.email,
        )
    else:
        sub = db.query(PrintSubscriptionModel).filter(
            PrintSubscriptionModel.user_id == user.id,
            PrintSubscriptionModel.is_active == True,
        ).order_by(PrintSubscriptionModel.id.desc()).first()
        if not sub:
            return JSONResponse({"error": "Shipping address is required"}, status_code=400)
        address = address_from_subscription(sub, user.email)

    try:
        result = order_print_now(
            db, services.printing, user, body.frequency, address, clock.now(),
            color_option=body.color_option,
            default_tz=get_settings().DEFAULT_TIMEZONE,
        )
    except (SubscriptionValidationError, ValueError) as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    except TransientDependencyError as exc:
        logger.warning("Manual print order for user_id=%s failed: %s", user.id, exc)
        return JSONResponse({"error": "Print service unavailable, try again later"}, status_code=502)

    order = db.get(PrintOrderModel, result.order_id) if result.order_id else None
    return {
        "success": result.outcome == SENT,
        "outcome": result.outcome,
        "detail": result.detail,
        "order": _order_dict(order) if order else None,
    }


@router.get("/orders")
def list_orders(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    orders = (
        db.query(PrintOrderModel)
        .filter(PrintOrderModel.user_id == user.id)
        .order_by(PrintOrderModel.created_at.desc(), PrintOrderModel.id.desc())
        .limit(50)
        .all()
    )
    return {"orders": [_order_dict(o) for o in orders]}
