"""
Turns quote events into emails and records the outcome on the quote.

Delivery problems stop here: they become email_status / email_error on the
quote and a log line, never an exception for the code that triggered the
event.
"""
import logging

from django.conf import settings

from quotes.choices import EmailStatus
from quotes.models import Quote

from .choices import QuoteEvent
from .messages import (
    compose_admin_alert,
    compose_customer_confirmation,
    compose_status_update,
    sender_identity,
)

logger = logging.getLogger(__name__)


def reconcile(outcomes):
    """
    Fold per-message outcomes into (email_status, email_error).

    All delivered -> sent. Nothing attempted because the transport was
    unusable -> skipped. Anything else that did not arrive -> failed, with the
    first error.
    """
    if not outcomes:
        return EmailStatus.SKIPPED, ""
    if all(outcome.ok for _, outcome in outcomes):
        return EmailStatus.SENT, ""
    if all(outcome.skipped for _, outcome in outcomes):
        return EmailStatus.SKIPPED, ""
    label, first = next((label, o) for label, o in outcomes if not o.ok)
    return EmailStatus.FAILED, f"{label}: {first.error}"


class NotificationOrchestrator:
    def __init__(self, sender):
        self.sender = sender

    def compose(self, event, snapshot, admin_notes=""):
        """Return [(label, NotificationMessage)] for an event. No I/O."""
        from_email = sender_identity()
        if event == QuoteEvent.CREATED:
            messages = [("customer", compose_customer_confirmation(snapshot, from_email))]
            admin_email = getattr(settings, "ADMIN_EMAIL", "")
            if admin_email:
                messages.append(("admin", compose_admin_alert(snapshot, from_email, admin_email)))
            else:
                logger.warning("ADMIN_EMAIL is not set; no admin alert for quote %s", snapshot.id)
            return messages
        if event == QuoteEvent.STATUS_CHANGED:
            return [("customer", compose_status_update(snapshot, from_email, admin_notes))]
        raise ValueError(f"Unknown quote event: {event}")

    def handle(self, event, snapshot, admin_notes=""):
        """Send the event's messages and persist the outcome. Returns the email status."""
        messages = self.compose(event, snapshot, admin_notes)

        if not self.sender.accepting():
            logger.info("Mail transport unavailable; skipping %s emails for quote %s", event, snapshot.id)
            outcomes = []
        else:
            outcomes = [(label, self.sender.send(message)) for label, message in messages]

        email_status, email_error = reconcile(outcomes)
        Quote.objects.record_email_outcome(snapshot.id, email_status, email_error)
        if email_status == EmailStatus.FAILED:
            logger.error("Notification for quote %s (%s) failed: %s", snapshot.id, event, email_error)
        else:
            logger.info("Notification for quote %s (%s): %s", snapshot.id, event, email_status)
        return email_status
