"""
Notification sender: one outbound mail transport plus retry/backoff.

send() never raises. Each call returns a SendOutcome; a delivery problem is
data for the caller to record, not an exception that could unwind work the
caller has already committed.

Readiness is advisory. It starts unknown (None), is set by verify() and by
connection-level failures, and only a confirmed False makes send() fail fast
without touching the transport. A confirmed False is re-checked with
verify() once reverify_after seconds have passed, so a short outage does not
outlive itself.
"""
import logging
import smtplib
import socket
import threading
import time
from dataclasses import dataclass
from email.utils import make_msgid
from typing import Optional

from django.conf import settings
from django.core.mail import EmailMultiAlternatives, get_connection
from django.core.mail.utils import DNS_NAME

from .exceptions import ConfigurationError, DeliveryError
from .messages import NotificationMessage

logger = logging.getLogger(__name__)

SMTP_BACKEND = "django.core.mail.backends.smtp.EmailBackend"

# Failures that say the service itself is unreachable, as opposed to a
# problem with one particular message.
CONNECTION_ERRORS = (
    ConnectionError,
    TimeoutError,
    socket.gaierror,
    smtplib.SMTPServerDisconnected,
    smtplib.SMTPConnectError,
    smtplib.SMTPAuthenticationError,
)


@dataclass(frozen=True)
class SendOutcome:
    ok: bool
    message_id: str = ""
    error: str = ""
    attempts: int = 0
    exhausted: bool = False

    @property
    def skipped(self) -> bool:
        """Refused before any attempt because the transport was unusable."""
        return not self.ok and self.attempts == 0

    @classmethod
    def success(cls, message_id, attempts):
        return cls(ok=True, message_id=message_id, attempts=attempts)

    @classmethod
    def failure(cls, error, attempts, exhausted):
        return cls(ok=False, error=error, attempts=attempts, exhausted=exhausted)

    @classmethod
    def not_ready(cls, reason):
        return cls(ok=False, error=reason, attempts=0)


def validate_mail_settings():
    """Raise ConfigurationError when the configured backend cannot possibly deliver."""
    if not settings.DEFAULT_FROM_EMAIL:
        raise ConfigurationError("DEFAULT_FROM_EMAIL is not set.")
    if settings.EMAIL_BACKEND == SMTP_BACKEND and not settings.EMAIL_HOST:
        raise ConfigurationError("EMAIL_HOST is not set for the SMTP backend.")


class MailTransport:
    """Django email backend. A connection is opened per operation."""

    def __init__(self, backend=None, timeout=None):
        self.backend = backend
        self.timeout = timeout

    def _connection(self):
        timeout = self.timeout if self.timeout is not None else getattr(settings, "EMAIL_TIMEOUT", None)
        return get_connection(self.backend, fail_silently=False, timeout=timeout)

    def verify(self):
        """Open and close a connection; raises if the server is unreachable."""
        connection = self._connection()
        try:
            connection.open()
        finally:
            connection.close()

    def send(self, message: NotificationMessage) -> str:
        """Deliver one message and return its Message-ID."""
        message_id = make_msgid(domain=DNS_NAME)
        headers = {"Message-ID": message_id}
        if message.correlation_id:
            headers["X-Quote-Id"] = message.correlation_id
        email = EmailMultiAlternatives(
            subject=message.subject,
            body=message.body,
            from_email=message.from_email,
            to=[message.to],
            headers=headers,
            connection=self._connection(),
        )
        if message.html_body:
            email.attach_alternative(message.html_body, "text/html")
        if not email.send(fail_silently=False):
            raise DeliveryError("Transport accepted no recipients.")
        return message_id


class NotificationSender:
    """
    Wraps a transport with bounded retries.

    With max_retries=3 a message gets up to four attempts; after failed attempt
    n the sender waits backoff_base * n seconds, so the worst case waits
    backoff_base * 6 seconds in total.
    """

    def __init__(
        self,
        transport,
        max_retries: int = 3,
        backoff_base: float = 2.0,
        sleep=time.sleep,
        configured: bool = True,
        configuration_error: str = "",
        reverify_after: float = 30.0,
        clock=time.monotonic,
    ):
        self.transport = transport
        self.max_retries = max(0, int(max_retries))
        self.backoff_base = max(0.0, float(backoff_base))
        self.reverify_after = max(0.0, float(reverify_after))
        self.configured = configured
        self.configuration_error = configuration_error
        self._sleep = sleep
        self._clock = clock
        self._ready: Optional[bool] = None if configured else False
        self._not_ready_since: Optional[float] = None
        self._ready_lock = threading.Lock()

    @classmethod
    def from_settings(cls, transport=None, sleep=time.sleep):
        options = settings.QUOTES_NOTIFICATIONS
        kwargs = {
            "max_retries": options.get("MAX_RETRIES", 3),
            "backoff_base": options.get("BACKOFF_BASE_SECONDS", 2.0),
            "reverify_after": options.get("REVERIFY_SECONDS", 30),
            "sleep": sleep,
        }
        transport = transport or MailTransport()
        try:
            validate_mail_settings()
        except ConfigurationError as exc:
            logger.error("Email delivery disabled: %s", exc.message)
            return cls(transport, configured=False, configuration_error=exc.message, **kwargs)
        return cls(transport, **kwargs)

    @property
    def ready(self) -> Optional[bool]:
        return self._ready

    def _set_ready(self, value: bool):
        with self._ready_lock:
            previous, self._ready = self._ready, value
            # Every failed check restarts the wait before the next one.
            self._not_ready_since = None if value else self._clock()
        if previous is not value:
            if value:
                logger.info("Mail transport ready")
            else:
                logger.warning("Mail transport marked not ready")

    def _recheck_due(self) -> bool:
        with self._ready_lock:
            since = self._not_ready_since
        if self._ready is not False or since is None:
            return False
        return self._clock() - since >= self.reverify_after

    def _usable(self) -> bool:
        if self._ready is not False:
            return True
        if self._recheck_due():
            logger.info("Re-checking mail transport after %.0fs not ready", self.reverify_after)
            return self.verify()
        return False

    def accepting(self) -> bool:
        """
        False when unconfigured or confirmed not ready. Once reverify_after
        seconds have passed since the last failed check, the transport is
        verified again and the answer reflects that check.
        """
        return self.configured and self._usable()

    def verify(self) -> bool:
        """Connectivity check; updates and returns the readiness flag."""
        if not self.configured:
            self._set_ready(False)
            return False
        try:
            self.transport.verify()
        except Exception as exc:
            logger.warning("Mail transport verification failed: %s", exc)
            self._set_ready(False)
            return False
        self._set_ready(True)
        return True

    def backoff_delay(self, attempt: int) -> float:
        return self.backoff_base * attempt

    def send(self, message: NotificationMessage) -> SendOutcome:
        if not self.configured:
            return SendOutcome.not_ready(self.configuration_error or "Mail transport is not configured.")
        if not self._usable():
            return SendOutcome.not_ready("Mail transport is not ready.")

        total_attempts = self.max_retries + 1
        last_error = ""
        for attempt in range(1, total_attempts + 1):
            try:
                message_id = self.transport.send(message)
            except CONNECTION_ERRORS as exc:
                last_error = f"{type(exc).__name__}: {exc}"
                logger.warning(
                    "Send to %s failed (attempt %d/%d, quote %s): %s",
                    message.to, attempt, total_attempts, message.correlation_id, last_error,
                )
                if not self.verify():
                    return SendOutcome.failure(last_error, attempt, exhausted=False)
            except Exception as exc:
                last_error = f"{type(exc).__name__}: {exc}"
                logger.warning(
                    "Send to %s failed (attempt %d/%d, quote %s): %s",
                    message.to, attempt, total_attempts, message.correlation_id, last_error,
                )
            else:
                self._set_ready(True)
                logger.info(
                    "Sent '%s' to %s (quote %s, attempt %d)",
                    message.subject, message.to, message.correlation_id, attempt,
                )
                return SendOutcome.success(message_id, attempt)

            if attempt < total_attempts:
                self._sleep(self.backoff_delay(attempt))

        logger.error(
            "Giving up on '%s' to %s after %d attempts: %s",
            message.subject, message.to, total_attempts, last_error,
        )
        return SendOutcome.failure(last_error, total_attempts, exhausted=True)
