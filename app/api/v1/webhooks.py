"""
Print vendor webhook: asynchronous job status callbacks.

Lulu signs the raw body with HMAC-SHA256 (header Lulu-HMAC-SHA256). The raw
body is read on the event loop; the database work runs in the threadpool.
"""
import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.api.deps import get_db
from app.application.print_fulfillment import apply_vendor_status, order_for_vendor_job
from app.config import get_settings
from app.infrastructure.integrations.lulu import job_to_status, verify_webhook_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

SIGNATURE_HEADER = "Lulu-HMAC-SHA256"


def apply_job_event(db: Session, job: dict) -> dict:
    """Apply one print-job document from a verified callback."""
    job_id = job["id"]
    order = order_for_vendor_job(db, str(job_id))
    if order is None:
        # Jobs created outside this system, or orders already purged
        logger.info("Lulu webhook for unknown job %s ignored", job_id)
        return {"success": True, "updated": False}

    updated = apply_vendor_status(db, order, job_to_status(job))
    return {"success": True, "updated": updated, "status": order.status}


@router.post("/lulu")
async def lulu_webhook(request: Request, db: Session = Depends(get_db)):
    payload = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER, "")
    if not verify_webhook_signature(payload, signature, get_settings().LULU_WEBHOOK_SECRET):
        logger.warning("Rejected Lulu webhook with bad signature")
        return JSONResponse({"error": "Invalid signature"}, status_code=401)

    try:
        event = json.loads(payload)
    except ValueError:
        return JSONResponse({"error": "Invalid JSON"}, status_code=400)

    job = event.get("data") if isinstance(event, dict) else None
    if not isinstance(job, dict) or job.get("id") is None:
        return JSONResponse({"error": "Missing print job id"}, status_code=400)

    return await run_in_threadpool(apply_job_event, db, job)
