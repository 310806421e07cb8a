"""
Print fulfillment: carries one PrintOrder from pending to in_production, then
applies asynchronous vendor status updates until the order is terminal.

Every state change is committed as it happens so the order history survives a
crash mid-pipeline. Transient failures mark the order failed and re-raise, so
the dispatcher keeps the subscription's next_print_date and the next tick
opens a fresh order for the same period.
"""
import logging
from dataclasses import dataclass
from datetime import date

from sqlalchemy.orm import Session

from app.application.content_selector import entries_in_range
from app.application.fulfillment import DECLINED, EMPTY, SENT, UNREACHABLE, FulfillmentResult
from app.application.processing_log import log_processing
from app.domain import print_order as po
from app.domain.errors import (
    IllegalTransitionError,
    PaymentDeclinedError,
    PaymentGatewayError,
    RenderFailedError,
    TerminalBusinessError,
    TransientDependencyError,
    VendorRejectedError,
    VendorUnavailableError,
)
from app.domain.pricing import retail_price_cents
from app.infrastructure.db.models import PrintOrderModel, PrintSubscriptionModel, User
from app.infrastructure.integrations.base import (
    ArtifactRenderer, PaymentGateway, ShippingAddress, VendorGateway, VendorStatus,
)

logger = logging.getLogger(__name__)

NO_ENTRIES = "No entries for this period"


@dataclass(frozen=True)
class PrintJob:
    """What to print and where to ship it."""
    frequency: str
    period_start: date
    period_end: date
    address: ShippingAddress
    color_option: str = "bw"
    include_images: bool = True
    subscription_id: int | None = None


def address_from_subscription(sub: PrintSubscriptionModel, email: str | None = None) -> ShippingAddress:
    return ShippingAddress(
        name=sub.shipping_name,
        street1=sub.shipping_line1,
        street2=sub.shipping_line2,
        city=sub.shipping_city,
        state_code=sub.shipping_state,
        postcode=sub.shipping_zip,
        country_code=sub.shipping_country or "US",
        phone_number=sub.shipping_phone or "0000000000",
        email=email,
    )


def job_from_subscription(sub: PrintSubscriptionModel, user: User, period_start: date, period_end: date) -> PrintJob:
    return PrintJob(
        frequency=sub.frequency,
        period_start=period_start,
        period_end=period_end,
        address=address_from_subscription(sub, user.email),
        color_option=sub.color_option,
        include_images=sub.include_images,
        subscription_id=sub.id,
    )


class PrintFulfillmentPipeline:
    def __init__(self, vendor: VendorGateway, payments: PaymentGateway, renderer: ArtifactRenderer):
        self.vendor = vendor
        self.payments = payments
        self.renderer = renderer

    # ── Order lifecycle ──

    def create_order(self, db: Session, user_id: int, job: PrintJob) -> PrintOrderModel:
        order = PrintOrderModel(
            user_id=user_id,
            subscription_id=job.subscription_id,
            status=po.PENDING,
            frequency=job.frequency,
            period_start=job.period_start,
            period_end=job.period_end,
        )
        db.add(order)
        db.commit()
        db.refresh(order)
        return order

    def run(self, db: Session, user: User, job: PrintJob) -> FulfillmentResult:
        """Open a new order for job and drive it as far as the vendor hand-off."""
        if not user.stripe_customer_id:
            return FulfillmentResult(UNREACHABLE, detail="No payment method on file")
        order = self.create_order(db, user.id, job)
        return self.fulfil(db, order, user, job)

    def fulfil(self, db: Session, order: PrintOrderModel, user: User, job: PrintJob) -> FulfillmentResult:
        """
        Drive order to the vendor hand-off. Any error that escapes leaves the
        order terminal and any captured payment refunded; errors outside the
        taxonomy are re-raised as TransientDependencyError.
        """
        try:
            return self._drive(db, order, user, job)
        except Exception as exc:
            db.rollback()
            if not po.is_terminal(order.status):
                logger.exception("Print order %s hit an unexpected error", order.id)
                self._refund_and_fail(db, order, f"Unexpected error: {exc!r}")
            if isinstance(exc, TransientDependencyError):
                raise
            raise TransientDependencyError(f"Print order {order.id} failed: {exc!r}") from exc

    def _drive(self, db: Session, order: PrintOrderModel, user: User, job: PrintJob) -> FulfillmentResult:
        self._move(db, order, po.GENERATING)

        entries = entries_in_range(db, user.id, job.period_start, job.period_end)
        if not entries:
            self._fail(db, order, NO_ENTRIES)
            return FulfillmentResult(EMPTY, detail=NO_ENTRIES, order_id=order.id, entry_count=0)
        order.entry_count = len(entries)

        title = f"{user.display_name or 'My'} Journal: {job.period_start:%b %d, %Y} - {job.period_end:%b %d, %Y}"
        try:
            artifact = self.renderer.render(
                entries, title=title, key=f"orders/{order.id}", color_option=job.color_option,
            )
        except RenderFailedError as exc:
            self._fail(db, order, f"Render failed: {exc}")
            raise
        self._move(db, order, po.UPLOADED, page_count=artifact.page_count)

        pod_package_id = self.vendor.pod_package_id(job.frequency, job.color_option)
        try:
            quote = self.vendor.quote(pod_package_id, artifact.page_count, job.address)
        except VendorRejectedError as exc:
            self._fail(db, order, str(exc))
            return FulfillmentResult(DECLINED, detail=str(exc), order_id=order.id)
        except TransientDependencyError as exc:
            self._fail(db, order, str(exc))
            raise
        order.cost_cents = quote.cost_cents
        order.retail_cents = retail_price_cents(job.frequency, quote.cost_cents)
        db.commit()

        try:
            payment_id = self.payments.charge(
                user.stripe_customer_id,
                order.retail_cents,
                f"Journalizer {job.frequency} print ({job.period_start} to {job.period_end})",
                idempotency_key=charge_key(db, order),
            )
        except PaymentDeclinedError as exc:
            self._move(db, order, po.PAYMENT_FAILED, error_message=str(exc))
            logger.info("Payment declined for print order %s: %s", order.id, exc)
            return FulfillmentResult(DECLINED, detail=str(exc), order_id=order.id)
        except PaymentGatewayError as exc:
            self._fail(db, order, str(exc))
            raise
        order.payment_id = payment_id
        db.commit()

        try:
            vendor_job = self.vendor.submit(
                artifact,
                job.address,
                job.color_option,
                frequency=job.frequency,
                external_id=f"order-{order.id}",
            )
        except VendorRejectedError as exc:
            self._refund_and_fail(db, order, str(exc))
            return FulfillmentResult(DECLINED, detail=str(exc), order_id=order.id)
        except VendorUnavailableError as exc:
            self._refund_and_fail(db, order, str(exc))
            raise

        self._move(db, order, po.IN_PRODUCTION, vendor_job_id=vendor_job.vendor_job_id)
        logger.info(
            "Print order %s submitted: job %s, %d entries, %d pages",
            order.id, vendor_job.vendor_job_id, order.entry_count, artifact.page_count,
        )
        return FulfillmentResult(SENT, order_id=order.id, entry_count=order.entry_count)

    # ── Helpers ──

    def _move(self, db: Session, order: PrintOrderModel, target: str, **fields) -> None:
        po.transition(order, target, **fields)
        db.commit()

    def _fail(self, db: Session, order: PrintOrderModel, message: str) -> None:
        logger.warning("Print order %s failed: %s", order.id, message)
        self._move(db, order, po.FAILED, error_message=message)

    def _refund_and_fail(self, db: Session, order: PrintOrderModel, message: str) -> None:
        if order.payment_id and not self._refund(db, order):
            message = f"{message} (refund pending for payment {order.payment_id})"
        self._fail(db, order, message)

    def _refund(self, db: Session, order: PrintOrderModel) -> bool:
        """Refund the order's captured payment. A failed refund is logged and persisted, never raised."""
        try:
            self.payments.refund(order.payment_id)
        except Exception as exc:
            logger.exception("Refund of payment %s for order %s failed", order.payment_id, order.id)
            log_processing(
                db, "print_refund", "pending",
                order_id=order.id, payment_id=order.payment_id, error=str(exc),
            )
            return False
        logger.info("Refunded payment %s for order %s", order.payment_id, order.id)
        log_processing(db, "print_refund", "refunded", order_id=order.id, payment_id=order.payment_id)
        return True


def charge_key(db: Session, order: PrintOrderModel) -> str:
    """
    Idempotency key for the order's charge.

    Subscription orders share a key per period until one attempt has a recorded
    payment, so a retry after a charge with an unknown outcome is replayed by the
    gateway instead of charging twice. Manual orders are keyed on the order.
    """
    if order.subscription_id is None:
        return f"print-order-{order.id}"
    settled = (
        db.query(PrintOrderModel)
        .filter(
            PrintOrderModel.subscription_id == order.subscription_id,
            PrintOrderModel.period_start == order.period_start,
            PrintOrderModel.payment_id.isnot(None),
        )
        .count()
    )
    return f"print-{order.subscription_id}-{order.period_start.isoformat()}-{settled}"


# ── Vendor status tracking ──

def apply_vendor_status(db: Session, order: PrintOrderModel, status: VendorStatus) -> bool:
    """
    Apply one vendor report to an order. Duplicate and late reports are no-ops;
    an out-of-order report is logged and ignored. Returns True if anything changed.
    """
    changed = False
    if status.tracking_url and status.tracking_url != order.tracking_url:
        order.tracking_url = status.tracking_url
        changed = True
    if status.cost_cents is not None and order.cost_cents is None:
        order.cost_cents = status.cost_cents
        changed = True

    if status.status:
        fields = {}
        if status.status == po.FAILED:
            fields["error_message"] = status.message or f"Vendor reported {status.raw_status}"
        try:
            changed = po.transition(order, status.status, **fields) or changed
        except IllegalTransitionError as exc:
            logger.warning("Order %s: ignoring vendor status %s (%s)", order.id, status.raw_status, exc)

    if changed:
        db.commit()
    return changed


def order_for_vendor_job(db: Session, vendor_job_id: str) -> PrintOrderModel | None:
    return (
        db.query(PrintOrderModel)
        .filter(PrintOrderModel.vendor_job_id == vendor_job_id)
        .first()
    )


def poll_tracked_orders(db: Session, vendor: VendorGateway) -> int:
    """Poll the vendor for every order still in flight. Returns the number of orders updated."""
    orders = (
        db.query(PrintOrderModel)
        .filter(
            PrintOrderModel.status.in_(po.TRACKED),
            PrintOrderModel.vendor_job_id.isnot(None),
        )
        .order_by(PrintOrderModel.id)
        .all()
    )
    updated = 0
    for order in orders:
        try:
            status = vendor.poll_status(order.vendor_job_id)
        except (TransientDependencyError, TerminalBusinessError) as exc:
            logger.warning("Status poll for order %s failed: %s", order.id, exc)
            continue
        if apply_vendor_status(db, order, status):
            updated += 1
    if orders:
        logger.info("Print status sync: %d/%d orders updated", updated, len(orders))
    return updated
