"""
Quote lifecycle: intake, status workflow and read side.

Callers get a result as soon as the database write commits. Notifications are
handed off with transaction.on_commit and never change what these functions
return or raise.
"""
import logging
import math
from dataclasses import dataclass

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction

from catalog.services import missing_product_ids
from notifications.choices import QuoteEvent
from notifications.dispatch import on_commit_dispatch
from notifications.messages import QuoteSnapshot

from .choices import EmailStatus, QuoteSort, QuoteStatus
from .exceptions import InvalidTransitionError, NotFoundError, ProductNotFoundError, ValidationError
from .filters import QuoteFilter
from .models import Quote, QuoteItem
from .serializers import QuoteCreateSerializer
from .transitions import can_transition, enabled_statuses

logger = logging.getLogger(__name__)


@dataclass
class QuotePage:
    items: list
    total: int
    pages: int
    page: int
    limit: int


def _quote_queryset():
    return Quote.objects.prefetch_related("items__product")


# ---------------------------------------------------------------------------
# Write side
# ---------------------------------------------------------------------------


def create_quote(payload) -> Quote:
    """
    Validate payload, persist a pending quote with its lines, and schedule the
    customer confirmation and admin alert once the transaction commits.

    Raises ValidationError (every bad field listed) or ProductNotFoundError.
    """
    serializer = QuoteCreateSerializer(data=payload)
    if not serializer.is_valid():
        raise ValidationError(errors=dict(serializer.errors))
    data = serializer.validated_data

    lines = data["products"]
    missing = missing_product_ids([line["product_id"] for line in lines])
    if missing:
        raise ProductNotFoundError(missing)

    with transaction.atomic():
        quote = Quote.objects.create(
            name=data["name"],
            email=data["email"],
            phone=data["phone"],
            project_details=data["project_details"],
            status=QuoteStatus.PENDING,
            email_status=EmailStatus.PENDING,
        )
        QuoteItem.objects.bulk_create(
            QuoteItem(
                quote=quote,
                product_id=line["product_id"],
                quantity=line["quantity"],
                position=position,
            )
            for position, line in enumerate(lines)
        )
        snapshot = QuoteSnapshot.from_quote(quote)
        transaction.on_commit(on_commit_dispatch(QuoteEvent.CREATED, snapshot))

    logger.info("Quote %s created for %s with %d line(s)", quote.pk, quote.email, len(lines))
    return quote


def update_status(quote_id, new_status, admin_notes=None) -> Quote:
    """
    Move a quote to new_status and schedule the customer update email.

    Re-requesting the current status succeeds without a transition or an
    email; notes sent with it are still stored. The write only matches while
    the row still has the status that was validated, so a concurrent change
    is reported instead of silently overwritten.
    """
    if new_status not in enabled_statuses():
        raise ValidationError(errors={"status": ["Invalid status value."]})
    admin_notes = (admin_notes or "").strip()

    quote = get_quote(quote_id)
    current = quote.status

    if new_status == current:
        if admin_notes and admin_notes != quote.admin_notes:
            Quote.objects.set_admin_notes(quote.pk, admin_notes)
            quote = get_quote(quote.pk)
        logger.info("Quote %s already %s; nothing to do", quote.pk, current)
        return quote

    if not can_transition(current, new_status):
        logger.warning("Rejected transition %s -> %s for quote %s", current, new_status, quote.pk)
        raise InvalidTransitionError(current, new_status)

    with transaction.atomic():
        changed = Quote.objects.apply_transition(quote.pk, current, new_status, admin_notes)
        if not changed:
            quote = get_quote(quote.pk)
            if quote.status == new_status:
                return quote
            logger.warning(
                "Quote %s moved to %s while changing %s -> %s", quote.pk, quote.status, current, new_status
            )
            raise InvalidTransitionError(quote.status, new_status)
        quote = _quote_queryset().get(pk=quote.pk)
        snapshot = QuoteSnapshot.from_quote(quote)
        transaction.on_commit(on_commit_dispatch(QuoteEvent.STATUS_CHANGED, snapshot, admin_notes))

    logger.info("Quote %s status %s -> %s", quote.pk, current, new_status)
    return quote


def resend_notification(quote_id) -> Quote:
    """Re-run the notification matching the quote's current status."""
    quote = get_quote(quote_id)
    event = QuoteEvent.CREATED if quote.status == QuoteStatus.PENDING else QuoteEvent.STATUS_CHANGED
    with transaction.atomic():
        Quote.objects.record_email_outcome(quote.pk, EmailStatus.PENDING)
        snapshot = QuoteSnapshot.from_quote(quote)
        transaction.on_commit(on_commit_dispatch(event, snapshot, quote.admin_notes))
    quote.refresh_from_db()
    return quote


# ---------------------------------------------------------------------------
# Read side
# ---------------------------------------------------------------------------


def get_quote(quote_id) -> Quote:
    try:
        return _quote_queryset().get(pk=quote_id)
    except (Quote.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError(quote_id)


def list_quotes(status=None, sort=QuoteSort.NEWEST, page=1, limit=None) -> QuotePage:
    """
    One page of quotes, optionally filtered by status, newest or oldest first.
    page is 1-based; limit is capped at QUOTES["MAX_PAGE_SIZE"].
    """
    options = settings.QUOTES
    filterset = QuoteFilter(
        data={"status": status or "", "sort": sort or QuoteSort.NEWEST},
        queryset=_quote_queryset(),
    )
    if not filterset.is_valid():
        errors = {field: [str(m) for m in messages] for field, messages in filterset.errors.items()}
        raise ValidationError(errors=errors)

    try:
        page = max(1, int(page))
        limit = int(limit or options.get("PAGE_SIZE", 10))
    except (TypeError, ValueError):
        raise ValidationError(errors={"page": ["page and limit must be integers."]})
    limit = min(max(1, limit), options.get("MAX_PAGE_SIZE", 100))

    queryset = filterset.qs
    total = queryset.count()
    offset = (page - 1) * limit
    items = list(queryset[offset:offset + limit])
    return QuotePage(
        items=items,
        total=total,
        pages=math.ceil(total / limit) if total else 0,
        page=page,
        limit=limit,
    )
