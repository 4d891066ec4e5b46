"""
Quote queryset with single-statement field updates.

Lifecycle writes (status, admin_notes) and notification bookkeeping
(email_status, email_error) touch disjoint columns and are each issued as one
UPDATE, so neither can overwrite the other with a stale in-memory copy.
"""
from django.db import models
from django.utils import timezone

from .choices import EmailStatus, QuoteSort


class QuoteQuerySet(models.QuerySet):

    def with_status(self, status):
        """Filter by workflow status; falsy status means no filter."""
        if not status:
            return self
        return self.filter(status=status)

    def sorted_by(self, sort):
        """Order by creation time; anything but 'oldest' means newest first."""
        if sort == QuoteSort.OLDEST:
            return self.order_by("created_at", "pk")
        return self.order_by("-created_at", "-pk")

    def apply_transition(self, quote_id, from_status, to_status, admin_notes=None):
        """
        Move quote_id from from_status to to_status. Matches only while the row
        still holds from_status; returns the number of rows changed (0 or 1).
        """
        fields = {"status": to_status, "updated_at": timezone.now()}
        if admin_notes:
            fields["admin_notes"] = admin_notes
        return self.filter(pk=quote_id, status=from_status).update(**fields)

    def set_admin_notes(self, quote_id, admin_notes):
        return self.filter(pk=quote_id).update(
            admin_notes=admin_notes, updated_at=timezone.now()
        )

    def record_email_outcome(self, quote_id, email_status, email_error=""):
        """Persist delivery bookkeeping. email_error is kept only for failures."""
        if email_status != EmailStatus.FAILED:
            email_error = ""
        return self.filter(pk=quote_id).update(
            email_status=email_status,
            email_error=email_error[:2000],
            updated_at=timezone.now(),
        )
