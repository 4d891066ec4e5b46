"""
Quote models: Quote (customer's request header, workflow status and email
bookkeeping) and QuoteItem (ordered product lines).

Workflow fields (status, admin_notes) and notification fields (email_status,
email_error) are written by different components; see quotes.querysets.
"""
import uuid

from django.core.validators import MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from common.models import TimeStampedModel

from .choices import EmailStatus, QuoteStatus
from .querysets import QuoteQuerySet


class Quote(TimeStampedModel):
    """Quote request submitted by a customer."""

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        verbose_name=_("id"),
    )
    name = models.CharField(
        max_length=100,
        verbose_name=_("name"),
        help_text=_("Full name of the requester."),
    )
    email = models.EmailField(
        verbose_name=_("email"),
        help_text=_("Address the confirmation and status updates are sent to."),
    )
    phone = models.CharField(
        max_length=30,
        verbose_name=_("phone"),
        help_text=_("Contact phone number."),
    )
    project_details = models.TextField(
        max_length=2000,
        verbose_name=_("project details"),
        help_text=_("Free-text description of the project."),
    )
    status = models.CharField(
        max_length=20,
        choices=QuoteStatus.choices,
        default=QuoteStatus.PENDING,
        db_index=True,
        verbose_name=_("status"),
        help_text=_("Workflow status."),
    )
    admin_notes = models.TextField(
        blank=True,
        default="",
        verbose_name=_("admin notes"),
        help_text=_("Notes from the administrator; included in status update emails."),
    )
    email_status = models.CharField(
        max_length=10,
        choices=EmailStatus.choices,
        default=EmailStatus.PENDING,
        verbose_name=_("email status"),
        help_text=_("Outcome of the most recent notification."),
    )
    email_error = models.TextField(
        blank=True,
        default="",
        verbose_name=_("email error"),
        help_text=_("Delivery error; set only when email status is failed."),
    )

    objects = QuoteQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = _("quote")
        verbose_name_plural = _("quotes")

    def __str__(self):
        return f"Quote {self.id} - {self.name} ({self.status})"


class QuoteItem(models.Model):
    """One requested product and quantity, kept in submission order."""

    quote = models.ForeignKey(
        Quote,
        on_delete=models.CASCADE,
        related_name="items",
        verbose_name=_("quote"),
    )
    product = models.ForeignKey(
        "catalog.Product",
        on_delete=models.PROTECT,
        related_name="quote_items",
        verbose_name=_("product"),
    )
    quantity = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        verbose_name=_("quantity"),
    )
    position = models.PositiveSmallIntegerField(
        default=0,
        verbose_name=_("position"),
        help_text=_("Order of the line within the request."),
    )

    class Meta:
        ordering = ["position", "pk"]
        verbose_name = _("quote item")
        verbose_name_plural = _("quote items")

    def __str__(self):
        return f"{self.product} x{self.quantity}"
