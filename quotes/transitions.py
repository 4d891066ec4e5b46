"""
Quote status graph.

    pending -> processed -> completed
    pending | processed -> cancelled            (QUOTES["ALLOW_CANCELLATION"])
    any non-terminal -> customer_replied        (QUOTES["ENABLE_CUSTOMER_REPLIES"])
    customer_replied -> processed | cancelled

completed and cancelled are terminal. Staying in the same status is not a
transition; callers treat it as an idempotent no-op.
"""
from django.conf import settings

from .choices import QuoteStatus

TERMINAL_STATUSES = frozenset({QuoteStatus.COMPLETED, QuoteStatus.CANCELLED})

_BASE_GRAPH = {
    QuoteStatus.PENDING: {QuoteStatus.PROCESSED},
    QuoteStatus.PROCESSED: {QuoteStatus.COMPLETED},
    QuoteStatus.CUSTOMER_REPLIED: {QuoteStatus.PROCESSED},
    QuoteStatus.COMPLETED: set(),
    QuoteStatus.CANCELLED: set(),
}


def _workflow_options():
    options = getattr(settings, "QUOTES", {})
    return (
        options.get("ALLOW_CANCELLATION", True),
        options.get("ENABLE_CUSTOMER_REPLIES", False),
    )


def is_terminal(status) -> bool:
    return status in TERMINAL_STATUSES


def allowed_transitions(current, *, allow_cancellation=None, enable_customer_replies=None) -> frozenset:
    """Statuses reachable in one step from current under the deployment options."""
    default_cancel, default_replies = _workflow_options()
    if allow_cancellation is None:
        allow_cancellation = default_cancel
    if enable_customer_replies is None:
        enable_customer_replies = default_replies

    if current not in _BASE_GRAPH or is_terminal(current):
        return frozenset()
    targets = set(_BASE_GRAPH[current])
    if allow_cancellation:
        targets.add(QuoteStatus.CANCELLED)
    if enable_customer_replies and current != QuoteStatus.CUSTOMER_REPLIED:
        targets.add(QuoteStatus.CUSTOMER_REPLIED)
    return frozenset(targets)


def can_transition(current, new, **options) -> bool:
    return new in allowed_transitions(current, **options)


def enabled_statuses() -> list:
    """Statuses an administrator may request under the deployment options."""
    allow_cancellation, enable_customer_replies = _workflow_options()
    statuses = [QuoteStatus.PENDING, QuoteStatus.PROCESSED, QuoteStatus.COMPLETED]
    if allow_cancellation:
        statuses.append(QuoteStatus.CANCELLED)
    if enable_customer_replies:
        statuses.append(QuoteStatus.CUSTOMER_REPLIED)
    return statuses
