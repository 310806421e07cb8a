"""
PrintOrder state machine.

  pending -> generating -> uploaded -> in_production -> shipped -> delivered
  any non-terminal -> failed
  uploaded -> payment_failed

Forward steps must follow the table: a step that skips a state (e.g.
delivered before shipped) is rejected with IllegalTransitionError.
Repeating the current state or moving backward is a no-op, so duplicate and
late vendor callbacks are harmless. Terminal orders accept nothing but a late
tracking URL update.
"""
from app.domain.errors import IllegalTransitionError


PENDING = "pending"
GENERATING = "generating"
UPLOADED = "uploaded"
IN_PRODUCTION = "in_production"
SHIPPED = "shipped"
DELIVERED = "delivered"
FAILED = "failed"
PAYMENT_FAILED = "payment_failed"

HAPPY_PATH = (PENDING, GENERATING, UPLOADED, IN_PRODUCTION, SHIPPED, DELIVERED)
TERMINAL = frozenset({DELIVERED, FAILED, PAYMENT_FAILED})
ALL_STATUSES = frozenset(HAPPY_PATH) | TERMINAL
# Orders the vendor still owes us news about
TRACKED = frozenset({UPLOADED, IN_PRODUCTION, SHIPPED})

TRANSITIONS: dict[str, frozenset[str]] = {
    PENDING: frozenset({GENERATING, FAILED}),
    GENERATING: frozenset({UPLOADED, FAILED}),
    UPLOADED: frozenset({IN_PRODUCTION, PAYMENT_FAILED, FAILED}),
    IN_PRODUCTION: frozenset({SHIPPED, FAILED}),
    SHIPPED: frozenset({DELIVERED, FAILED}),
    DELIVERED: frozenset(),
    FAILED: frozenset(),
    PAYMENT_FAILED: frozenset(),
}

STATUS_LABELS = {
    PENDING: "Queued",
    GENERATING: "Preparing your book",
    UPLOADED: "Sent to printer",
    IN_PRODUCTION: "Printing",
    SHIPPED: "Shipped",
    DELIVERED: "Delivered",
    FAILED: "Failed",
    PAYMENT_FAILED: "Payment failed",
}

APPLIED = "applied"
NOOP = "noop"


def is_terminal(status: str) -> bool:
    return status in TERMINAL


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def _rank(status: str) -> int:
    return HAPPY_PATH.index(status) if status in HAPPY_PATH else len(HAPPY_PATH)


def plan_transition(current: str, target: str) -> str:
    """
    Decide what to do with a requested status change.

    Returns APPLIED when current -> target is a legal step, NOOP for a duplicate,
    backward, or post-terminal request. Raises IllegalTransitionError otherwise.
    """
    if target not in ALL_STATUSES:
        raise IllegalTransitionError(current, target)
    if target == current:
        return NOOP
    if can_transition(current, target):
        return APPLIED
    if is_terminal(current):
        return NOOP
    if target in HAPPY_PATH and _rank(target) < _rank(current):
        return NOOP
    raise IllegalTransitionError(current, target)


def transition(order, target: str, **fields) -> bool:
    """
    Apply target to an order-like object in place.

    Extra fields (vendor_job_id, tracking_url, error_message, ...) are written
    only when the transition is applied; tracking_url is also accepted on a
    no-op so late tracking updates still land. Returns True if status changed.
    """
    outcome = plan_transition(order.status, target)
    tracking_url = fields.pop("tracking_url", None)
    if tracking_url:
        order.tracking_url = tracking_url
    if outcome == NOOP:
        return False
    order.status = target
    for name, value in fields.items():
        setattr(order, name, value)
    return True


def status_label(status: str) -> str:
    return STATUS_LABELS.get(status, status)
