"""Email backends that simulate an unhealthy mail server."""
import smtplib

from django.core.mail.backends.base import BaseEmailBackend


class UnreachableBackend(BaseEmailBackend):
    """Server is down: every connection attempt is refused."""

    def open(self):
        raise ConnectionRefusedError("Connection refused")

    def send_messages(self, email_messages):
        raise smtplib.SMTPServerDisconnected("Connection unexpectedly closed")


class RejectingBackend(BaseEmailBackend):
    """Server is up but rejects every message."""

    def send_messages(self, email_messages):
        raise smtplib.SMTPDataError(554, "Message rejected")
