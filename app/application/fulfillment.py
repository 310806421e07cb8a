"""
Outcome of one fulfillment attempt, as reported back to the dispatcher.

Transient failures are not outcomes: pipelines raise TransientDependencyError
and the dispatcher keeps the anchor so the next tick retries.
"""
from dataclasses import dataclass

SENT = "sent"                # delivered / submitted; advance the anchor
EMPTY = "empty"              # nothing to deliver for the period; advance the anchor
DECLINED = "declined"        # terminal business failure; advance to the next natural cycle
UNREACHABLE = "unreachable"  # no channel to deliver on; leave the anchor, no failure counted

ADVANCING = frozenset({SENT, EMPTY, DECLINED})


@dataclass(frozen=True)
class FulfillmentResult:
    outcome: str
    detail: str | None = None
    order_id: int | None = None
    entry_count: int | None = None

    @property
    def advances_anchor(self) -> bool:
        return self.outcome in ADVANCING
