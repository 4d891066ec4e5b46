"""
Message composition for quote notifications.

Everything here is pure: a QuoteSnapshot goes in, a NotificationMessage comes
out. No database or network access happens while composing, so content can be
checked against a fixed snapshot.
"""
from dataclasses import dataclass, field
from datetime import datetime
from email.utils import formataddr
from typing import Optional

from django.conf import settings
from django.utils.html import format_html, format_html_join


@dataclass(frozen=True)
class QuoteLine:
    product_id: int
    product_name: str
    quantity: int


@dataclass(frozen=True)
class QuoteSnapshot:
    """Immutable copy of a persisted quote taken right after a lifecycle write."""

    id: str
    name: str
    email: str
    phone: str
    project_details: str
    status: str
    status_label: str
    admin_notes: str = ""
    lines: tuple = field(default_factory=tuple)
    created_at: Optional[datetime] = None

    @classmethod
    def from_quote(cls, quote):
        lines = tuple(
            QuoteLine(
                product_id=item.product_id,
                product_name=item.product.name,
                quantity=item.quantity,
            )
            for item in quote.items.select_related("product").order_by("position", "pk")
        )
        return cls(
            id=str(quote.pk),
            name=quote.name,
            email=quote.email,
            phone=quote.phone,
            project_details=quote.project_details,
            status=quote.status,
            status_label=quote.get_status_display(),
            admin_notes=quote.admin_notes,
            lines=lines,
            created_at=quote.created_at,
        )


@dataclass(frozen=True)
class NotificationMessage:
    from_email: str
    to: str
    subject: str
    body: str
    html_body: str = ""
    correlation_id: str = ""


def sender_identity() -> str:
    """'Display Name <address>' built from EMAIL_SENDER_NAME and DEFAULT_FROM_EMAIL."""
    name = getattr(settings, "EMAIL_SENDER_NAME", "")
    address = settings.DEFAULT_FROM_EMAIL
    return formataddr((name, address)) if name else address


def _lines_text(snapshot):
    return "\n".join(f"  - {line.quantity} x {line.product_name}" for line in snapshot.lines)


def _lines_html(snapshot):
    return format_html_join(
        "",
        "<li>{} &times; {}</li>",
        ((line.quantity, line.product_name) for line in snapshot.lines),
    )


def compose_customer_confirmation(snapshot: QuoteSnapshot, from_email: str) -> NotificationMessage:
    body = (
        f"Thank you for your request, {snapshot.name}!\n\n"
        "We've received your quote request and will process it shortly.\n\n"
        f"Reference ID: {snapshot.id}\n"
        f"Project: {snapshot.project_details}\n\n"
        "Requested products:\n"
        f"{_lines_text(snapshot)}\n\n"
        "Our team will review your request within 24 hours.\n"
    )
    html_body = format_html(
        "<h2>Thank you for your request, {}!</h2>"
        "<p>We've received your quote request and will process it shortly.</p>"
        "<h3>Request Details:</h3>"
        "<p><strong>Reference ID:</strong> {}</p>"
        "<p><strong>Project:</strong> {}</p>"
        "<h3>Requested Products:</h3>"
        "<ul>{}</ul>"
        "<p>Our team will review your request within 24 hours.</p>",
        snapshot.name,
        snapshot.id,
        snapshot.project_details,
        _lines_html(snapshot),
    )
    return NotificationMessage(
        from_email=from_email,
        to=snapshot.email,
        subject=f"Your Quote Request #{snapshot.id}",
        body=body,
        html_body=str(html_body),
        correlation_id=snapshot.id,
    )


def compose_admin_alert(snapshot: QuoteSnapshot, from_email: str, admin_email: str) -> NotificationMessage:
    body = (
        "New quote request received.\n\n"
        f"Customer: {snapshot.name}\n"
        f"Email: {snapshot.email}\n"
        f"Phone: {snapshot.phone}\n"
        f"Reference ID: {snapshot.id}\n\n"
        "Project details:\n"
        f"{snapshot.project_details}\n\n"
        "Products requested:\n"
        f"{_lines_text(snapshot)}\n"
    )
    html_body = format_html(
        "<h2>New Quote Request Received</h2>"
        "<p><strong>Customer:</strong> {}</p>"
        "<p><strong>Email:</strong> {}</p>"
        "<p><strong>Phone:</strong> {}</p>"
        "<p><strong>Reference ID:</strong> {}</p>"
        "<h3>Project Details:</h3>"
        "<p>{}</p>"
        "<h3>Products Requested:</h3>"
        "<ul>{}</ul>",
        snapshot.name,
        snapshot.email,
        snapshot.phone,
        snapshot.id,
        snapshot.project_details,
        _lines_html(snapshot),
    )
    return NotificationMessage(
        from_email=from_email,
        to=admin_email,
        subject=f"New Quote Request: {snapshot.name}",
        body=body,
        html_body=str(html_body),
        correlation_id=snapshot.id,
    )


def compose_status_update(
    snapshot: QuoteSnapshot, from_email: str, admin_notes: str = ""
) -> NotificationMessage:
    """Customer-facing status change. Only notes sent with this change are included."""
    status_text = snapshot.status_label.upper()
    body = f"Your quote request #{snapshot.id} has been updated to: {status_text}\n\n"
    notes_html = ""
    if admin_notes:
        body += f"Administrator notes:\n{admin_notes}\n\n"
        notes_html = format_html("<h4>Administrator Notes:</h4><p>{}</p>", admin_notes)
    body += "If you have any questions, please contact our support team.\n"
    html_body = format_html(
        "<h2>Quote Status Updated</h2>"
        "<p>Your quote request <strong>#{}</strong> has been updated to:</p>"
        "<h3>{}</h3>"
        "{}"
        "<p>If you have any questions, please contact our support team.</p>",
        snapshot.id,
        status_text,
        notes_html,
    )
    return NotificationMessage(
        from_email=from_email,
        to=snapshot.email,
        subject=f"Your Quote #{snapshot.id} Status Update",
        body=body,
        html_body=str(html_body),
        correlation_id=snapshot.id,
    )
