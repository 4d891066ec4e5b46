"""Tests for notifications app."""
import smtplib
import threading
from datetime import datetime, timezone
from unittest import mock

from django.core import mail
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase, override_settings

from catalog.choices import ProductCategory
from catalog.models import Product
from notifications import dispatch
from notifications.choices import QuoteEvent
from notifications.dispatch import NotificationDispatcher
from notifications.messages import (
    QuoteLine,
    QuoteSnapshot,
    compose_admin_alert,
    compose_customer_confirmation,
    compose_status_update,
    sender_identity,
)
from notifications.orchestrator import NotificationOrchestrator, reconcile
from notifications.sender import MailTransport, NotificationSender, SendOutcome
from quotes.choices import EmailStatus, QuoteStatus
from quotes.models import Quote, QuoteItem
from quotes.querysets import QuoteQuerySet


class FakeTransport:
    """Fails with the queued exceptions in order, then delivers."""

    def __init__(self, failures=(), verify_error=None):
        self.failures = list(failures)
        self.verify_error = verify_error
        self.sent = []
        self.send_calls = 0
        self.verify_calls = 0

    def send(self, message):
        self.send_calls += 1
        if self.failures:
            raise self.failures.pop(0)
        self.sent.append(message)
        return f"<{len(self.sent)}@test>"

    def verify(self):
        self.verify_calls += 1
        if self.verify_error is not None:
            raise self.verify_error


def make_snapshot(**overrides):
    values = {
        "id": "3f2b8c1e-0000-4000-8000-000000000001",
        "name": "Amina Otieno",
        "email": "amina@example.com",
        "phone": "+254 700 000 000",
        "project_details": "Two-storey house foundation",
        "status": QuoteStatus.PENDING,
        "status_label": "Pending",
        "lines": (
            QuoteLine(product_id=1, product_name="Premium Cement", quantity=40),
            QuoteLine(product_id=2, product_name="Fine Sand", quantity=3),
        ),
        "created_at": datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc),
    }
    values.update(overrides)
    return QuoteSnapshot(**values)


def make_message(**overrides):
    return compose_customer_confirmation(make_snapshot(**overrides), "quotes@example.com")


def rejected():
    return smtplib.SMTPDataError(554, "Message rejected")


class NotificationSenderTests(SimpleTestCase):
    """Retry, backoff and readiness behaviour."""

    def setUp(self):
        self.sleeps = []

    def make_sender(self, transport, **kwargs):
        kwargs.setdefault("sleep", self.sleeps.append)
        return NotificationSender(transport, **kwargs)

    def test_first_attempt_success(self):
        transport = FakeTransport()
        sender = self.make_sender(transport)
        outcome = sender.send(make_message())
        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.attempts, 1)
        self.assertEqual(outcome.message_id, "<1@test>")
        self.assertEqual(self.sleeps, [])
        self.assertIs(sender.ready, True)

    def test_retries_with_linear_backoff_then_succeeds(self):
        transport = FakeTransport(failures=[rejected(), rejected()])
        sender = self.make_sender(transport, max_retries=3, backoff_base=2.0)
        outcome = sender.send(make_message())
        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.attempts, 3)
        self.assertEqual(self.sleeps, [2.0, 4.0])

    def test_gives_up_after_max_retries_plus_one_attempts(self):
        transport = FakeTransport(failures=[rejected() for _ in range(10)])
        sender = self.make_sender(transport, max_retries=3, backoff_base=2.0)
        outcome = sender.send(make_message())
        self.assertFalse(outcome.ok)
        self.assertTrue(outcome.exhausted)
        self.assertFalse(outcome.skipped)
        self.assertEqual(outcome.attempts, 4)
        self.assertEqual(transport.send_calls, 4)
        self.assertEqual(self.sleeps, [2.0, 4.0, 6.0])
        self.assertEqual(sum(self.sleeps), 12.0)
        self.assertIn("SMTPDataError", outcome.error)

    def test_success_on_final_attempt(self):
        transport = FakeTransport(failures=[rejected(), rejected(), rejected()])
        sender = self.make_sender(transport, max_retries=3)
        outcome = sender.send(make_message())
        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.attempts, 4)
        self.assertEqual(self.sleeps, [2.0, 4.0, 6.0])

    def test_no_retries_means_single_attempt(self):
        transport = FakeTransport(failures=[rejected()])
        sender = self.make_sender(transport, max_retries=0)
        outcome = sender.send(make_message())
        self.assertFalse(outcome.ok)
        self.assertEqual(outcome.attempts, 1)
        self.assertEqual(self.sleeps, [])

    def test_connection_error_with_failed_verify_fails_fast(self):
        transport = FakeTransport(
            failures=[smtplib.SMTPServerDisconnected("Connection unexpectedly closed")],
            verify_error=ConnectionRefusedError("refused"),
        )
        sender = self.make_sender(transport)
        outcome = sender.send(make_message())
        self.assertFalse(outcome.ok)
        self.assertFalse(outcome.exhausted)
        self.assertEqual(outcome.attempts, 1)
        self.assertEqual(transport.verify_calls, 1)
        self.assertEqual(self.sleeps, [])
        self.assertIs(sender.ready, False)

    def test_not_ready_sender_skips_without_touching_transport(self):
        transport = FakeTransport(verify_error=ConnectionRefusedError("refused"))
        sender = self.make_sender(transport)
        self.assertFalse(sender.verify())
        outcome = sender.send(make_message())
        self.assertTrue(outcome.skipped)
        self.assertEqual(transport.send_calls, 0)
        self.assertFalse(sender.accepting())

    def test_connection_error_with_good_verify_keeps_retrying(self):
        transport = FakeTransport(failures=[ConnectionResetError("reset by peer")])
        sender = self.make_sender(transport, backoff_base=1.0)
        outcome = sender.send(make_message())
        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.attempts, 2)
        self.assertEqual(transport.verify_calls, 1)
        self.assertEqual(self.sleeps, [1.0])
        self.assertIs(sender.ready, True)

    def test_unknown_readiness_still_attempts(self):
        sender = self.make_sender(FakeTransport())
        self.assertIsNone(sender.ready)
        self.assertTrue(sender.accepting())

    def test_verify_recovers_readiness(self):
        transport = FakeTransport(verify_error=ConnectionRefusedError("refused"))
        sender = self.make_sender(transport)
        self.assertFalse(sender.verify())
        transport.verify_error = None
        self.assertTrue(sender.verify())
        self.assertTrue(sender.send(make_message()).ok)

    def test_not_ready_sender_rechecks_after_interval(self):
        now = [100.0]
        transport = FakeTransport(verify_error=ConnectionRefusedError("refused"))
        sender = self.make_sender(transport, reverify_after=30, clock=lambda: now[0])
        self.assertFalse(sender.verify())
        transport.verify_error = None

        now[0] += 10
        self.assertTrue(sender.send(make_message()).skipped)
        self.assertEqual(transport.verify_calls, 1)

        now[0] += 20
        outcome = sender.send(make_message())
        self.assertTrue(outcome.ok)
        self.assertEqual(transport.verify_calls, 2)
        self.assertIs(sender.ready, True)

    def test_failed_recheck_waits_a_full_interval_again(self):
        now = [0.0]
        transport = FakeTransport(verify_error=ConnectionRefusedError("refused"))
        sender = self.make_sender(transport, reverify_after=30, clock=lambda: now[0])
        sender.verify()

        now[0] = 30.0
        self.assertFalse(sender.accepting())
        self.assertEqual(transport.verify_calls, 2)
        now[0] = 45.0
        self.assertFalse(sender.accepting())
        self.assertEqual(transport.verify_calls, 2)
        now[0] = 60.0
        self.assertFalse(sender.accepting())
        self.assertEqual(transport.verify_calls, 3)
        self.assertEqual(transport.send_calls, 0)

    @override_settings(DEFAULT_FROM_EMAIL="")
    def test_unconfigured_sender_skips(self):
        sender = NotificationSender.from_settings(transport=FakeTransport(), sleep=self.sleeps.append)
        self.assertFalse(sender.configured)
        self.assertIn("DEFAULT_FROM_EMAIL", sender.configuration_error)
        outcome = sender.send(make_message())
        self.assertTrue(outcome.skipped)
        self.assertFalse(sender.verify())

    @override_settings(
        EMAIL_BACKEND="django.core.mail.backends.smtp.EmailBackend",
        EMAIL_HOST="",
    )
    def test_smtp_without_host_is_unconfigured(self):
        sender = NotificationSender.from_settings(transport=FakeTransport())
        self.assertFalse(sender.configured)
        self.assertIn("EMAIL_HOST", sender.configuration_error)


class MailTransportTests(SimpleTestCase):

    def test_sends_multipart_with_headers(self):
        message = make_message()
        message_id = MailTransport().send(message)
        self.assertEqual(len(mail.outbox), 1)
        sent = mail.outbox[0]
        self.assertEqual(sent.to, ["amina@example.com"])
        self.assertEqual(sent.subject, message.subject)
        self.assertEqual(sent.extra_headers["Message-ID"], message_id)
        self.assertEqual(sent.extra_headers["X-Quote-Id"], message.correlation_id)
        self.assertEqual(sent.alternatives[0][1], "text/html")

    def test_verify_with_locmem_backend(self):
        MailTransport().verify()


class CompositionTests(SimpleTestCase):

    def test_customer_confirmation(self):
        snapshot = make_snapshot()
        message = compose_customer_confirmation(snapshot, "Quotes <quotes@example.com>")
        self.assertEqual(message.to, "amina@example.com")
        self.assertEqual(message.subject, f"Your Quote Request #{snapshot.id}")
        self.assertEqual(message.correlation_id, snapshot.id)
        self.assertIn("40 x Premium Cement", message.body)
        self.assertIn("3 x Fine Sand", message.body)
        self.assertIn("Two-storey house foundation", message.html_body)

    @override_settings(ADMIN_EMAIL="sales@example.com")
    def test_admin_alert(self):
        message = compose_admin_alert(make_snapshot(), "quotes@example.com", "sales@example.com")
        self.assertEqual(message.to, "sales@example.com")
        self.assertEqual(message.subject, "New Quote Request: Amina Otieno")
        self.assertIn("+254 700 000 000", message.body)

    def test_status_update_includes_notes_only_when_given(self):
        snapshot = make_snapshot(status=QuoteStatus.PROCESSED, status_label="Processed")
        with_notes = compose_status_update(snapshot, "quotes@example.com", "Delivery on Friday")
        without_notes = compose_status_update(snapshot, "quotes@example.com")
        self.assertIn("PROCESSED", with_notes.body)
        self.assertIn("Delivery on Friday", with_notes.body)
        self.assertIn("Delivery on Friday", with_notes.html_body)
        self.assertNotIn("Administrator notes", without_notes.body)
        self.assertEqual(with_notes.subject, f"Your Quote #{snapshot.id} Status Update")

    def test_html_is_escaped(self):
        message = make_message(name="<script>alert(1)</script>")
        self.assertNotIn("<script>", message.html_body)
        self.assertIn("&lt;script&gt;", message.html_body)

    @override_settings(DEFAULT_FROM_EMAIL="quotes@example.com", EMAIL_SENDER_NAME="Acme Supplies")
    def test_sender_identity(self):
        self.assertEqual(sender_identity(), "Acme Supplies <quotes@example.com>")


class ReconcileTests(SimpleTestCase):

    def test_no_outcomes_is_skipped(self):
        self.assertEqual(reconcile([]), (EmailStatus.SKIPPED, ""))

    def test_all_sent(self):
        outcomes = [("customer", SendOutcome.success("<a>", 1)), ("admin", SendOutcome.success("<b>", 2))]
        self.assertEqual(reconcile(outcomes), (EmailStatus.SENT, ""))

    def test_all_skipped(self):
        outcomes = [("customer", SendOutcome.not_ready("down")), ("admin", SendOutcome.not_ready("down"))]
        self.assertEqual(reconcile(outcomes), (EmailStatus.SKIPPED, ""))

    def test_any_failure_is_failed_with_first_error(self):
        outcomes = [
            ("customer", SendOutcome.success("<a>", 1)),
            ("admin", SendOutcome.failure("SMTPDataError: rejected", 4, exhausted=True)),
        ]
        self.assertEqual(reconcile(outcomes), (EmailStatus.FAILED, "admin: SMTPDataError: rejected"))

    def test_partial_skip_is_failed(self):
        outcomes = [
            ("customer", SendOutcome.failure("ConnectionRefusedError: refused", 1, exhausted=False)),
            ("admin", SendOutcome.not_ready("Mail transport is not ready.")),
        ]
        status, error = reconcile(outcomes)
        self.assertEqual(status, EmailStatus.FAILED)
        self.assertTrue(error.startswith("customer: "))


class QuoteFixtureMixin:

    def create_quote(self, **kwargs):
        product = Product.objects.create(
            name="Premium Cement",
            category=ProductCategory.CEMENT,
            description="50kg bags",
            image="images/Cement.webp",
        )
        quote = Quote.objects.create(
            name=kwargs.get("name", "Amina Otieno"),
            email=kwargs.get("email", "amina@example.com"),
            phone="+254 700 000 000",
            project_details="Foundation",
            status=kwargs.get("status", QuoteStatus.PENDING),
        )
        QuoteItem.objects.create(quote=quote, product=product, quantity=10, position=0)
        return quote


@override_settings(ADMIN_EMAIL="sales@example.com")
class NotificationOrchestratorTests(QuoteFixtureMixin, TestCase):

    def setUp(self):
        self.quote = self.create_quote()
        self.snapshot = QuoteSnapshot.from_quote(self.quote)

    def make_orchestrator(self, transport):
        return NotificationOrchestrator(NotificationSender(transport, sleep=lambda seconds: None))

    def test_created_sends_customer_and_admin(self):
        transport = FakeTransport()
        status = self.make_orchestrator(transport).handle(QuoteEvent.CREATED, self.snapshot)
        self.assertEqual(status, EmailStatus.SENT)
        self.assertEqual([m.to for m in transport.sent], ["amina@example.com", "sales@example.com"])
        self.quote.refresh_from_db()
        self.assertEqual(self.quote.email_status, EmailStatus.SENT)
        self.assertEqual(self.quote.email_error, "")

    def test_status_change_sends_customer_only(self):
        transport = FakeTransport()
        self.make_orchestrator(transport).handle(QuoteEvent.STATUS_CHANGED, self.snapshot, "See you soon")
        self.assertEqual(len(transport.sent), 1)
        self.assertIn("See you soon", transport.sent[0].body)

    @override_settings(ADMIN_EMAIL="")
    def test_missing_admin_address_skips_admin_alert(self):
        transport = FakeTransport()
        with self.assertLogs("notifications.orchestrator", level="WARNING"):
            status = self.make_orchestrator(transport).handle(QuoteEvent.CREATED, self.snapshot)
        self.assertEqual(status, EmailStatus.SENT)
        self.assertEqual(len(transport.sent), 1)

    def test_delivery_failure_is_recorded(self):
        transport = FakeTransport(failures=[rejected() for _ in range(8)])
        status = self.make_orchestrator(transport).handle(QuoteEvent.CREATED, self.snapshot)
        self.assertEqual(status, EmailStatus.FAILED)
        self.quote.refresh_from_db()
        self.assertEqual(self.quote.email_status, EmailStatus.FAILED)
        self.assertTrue(self.quote.email_error.startswith("customer: SMTPDataError"))

    def test_unavailable_transport_is_skipped(self):
        transport = FakeTransport(verify_error=ConnectionRefusedError("refused"))
        orchestrator = self.make_orchestrator(transport)
        orchestrator.sender.verify()
        status = orchestrator.handle(QuoteEvent.CREATED, self.snapshot)
        self.assertEqual(status, EmailStatus.SKIPPED)
        self.assertEqual(transport.send_calls, 0)
        self.quote.refresh_from_db()
        self.assertEqual(self.quote.email_status, EmailStatus.SKIPPED)

    def test_delivery_resumes_after_transient_outage(self):
        now = [0.0]
        transport = FakeTransport(
            failures=[ConnectionRefusedError("refused")],
            verify_error=ConnectionRefusedError("refused"),
        )
        sender = NotificationSender(transport, sleep=lambda seconds: None, reverify_after=30, clock=lambda: now[0])
        orchestrator = NotificationOrchestrator(sender)
        self.assertEqual(orchestrator.handle(QuoteEvent.CREATED, self.snapshot), EmailStatus.FAILED)

        transport.verify_error = None
        now[0] = 5.0
        self.assertEqual(orchestrator.handle(QuoteEvent.CREATED, self.snapshot), EmailStatus.SKIPPED)
        self.assertEqual(transport.send_calls, 1)

        now[0] = 35.0
        self.assertEqual(orchestrator.handle(QuoteEvent.CREATED, self.snapshot), EmailStatus.SENT)
        self.assertEqual([m.to for m in transport.sent], ["amina@example.com", "sales@example.com"])
        self.quote.refresh_from_db()
        self.assertEqual(self.quote.email_status, EmailStatus.SENT)
        self.assertEqual(self.quote.email_error, "")

    def test_outcome_does_not_touch_workflow_fields(self):
        Quote.objects.filter(pk=self.quote.pk).update(status=QuoteStatus.PROCESSED, admin_notes="Noted")
        self.make_orchestrator(FakeTransport()).handle(QuoteEvent.CREATED, self.snapshot)
        self.quote.refresh_from_db()
        self.assertEqual(self.quote.status, QuoteStatus.PROCESSED)
        self.assertEqual(self.quote.admin_notes, "Noted")

    def test_unknown_event_raises(self):
        with self.assertRaises(ValueError):
            self.make_orchestrator(FakeTransport()).compose("archived", self.snapshot)


class ExplodingOrchestrator:

    def handle(self, event, snapshot, admin_notes=""):
        raise RuntimeError("template missing")


class BlockingOrchestrator:

    def __init__(self):
        self.release = threading.Event()

    def handle(self, event, snapshot, admin_notes=""):
        self.release.wait(timeout=5)
        return EmailStatus.SENT


class NotificationDispatcherTests(QuoteFixtureMixin, TestCase):

    def setUp(self):
        self.quote = self.create_quote()
        self.snapshot = QuoteSnapshot.from_quote(self.quote)

    def test_crashing_task_marks_quote_failed(self):
        dispatcher = NotificationDispatcher(ExplodingOrchestrator(), run_inline=True)
        with self.assertLogs("notifications.dispatch", level="ERROR"):
            self.assertIsNone(dispatcher.submit(QuoteEvent.CREATED, self.snapshot))
        self.quote.refresh_from_db()
        self.assertEqual(self.quote.email_status, EmailStatus.FAILED)
        self.assertIn("RuntimeError: template missing", self.quote.email_error)

    def test_failed_write_back_does_not_escape(self):
        dispatcher = NotificationDispatcher(ExplodingOrchestrator(), run_inline=True)
        with mock.patch.object(
            QuoteQuerySet, "record_email_outcome", side_effect=DatabaseError("database is locked")
        ) as record:
            with self.assertLogs("notifications.dispatch", level="ERROR") as logs:
                status = dispatcher.run(QuoteEvent.CREATED, self.snapshot)
        self.assertEqual(status, EmailStatus.FAILED)
        record.assert_called_once()
        self.assertTrue(any("Could not record email failure" in line for line in logs.output))

    def test_full_queue_marks_quote_failed(self):
        orchestrator = BlockingOrchestrator()
        dispatcher = NotificationDispatcher(orchestrator, workers=1, queue_size=1)
        try:
            future = dispatcher.submit(QuoteEvent.CREATED, self.snapshot)
            self.assertIsNotNone(future)
            with self.assertLogs("notifications.dispatch", level="ERROR"):
                self.assertIsNone(dispatcher.submit(QuoteEvent.CREATED, self.snapshot))
            self.quote.refresh_from_db()
            self.assertEqual(self.quote.email_status, EmailStatus.FAILED)
            self.assertEqual(self.quote.email_error, "Notification queue full.")
            orchestrator.release.set()
            self.assertEqual(future.result(timeout=5), EmailStatus.SENT)
        finally:
            orchestrator.release.set()
            dispatcher.shutdown()

    def test_pool_frees_slot_after_completion(self):
        orchestrator = BlockingOrchestrator()
        orchestrator.release.set()
        dispatcher = NotificationDispatcher(orchestrator, workers=1, queue_size=1)
        try:
            dispatcher.submit(QuoteEvent.CREATED, self.snapshot).result(timeout=5)
            second = dispatcher.submit(QuoteEvent.CREATED, self.snapshot)
            self.assertIsNotNone(second)
            second.result(timeout=5)
        finally:
            dispatcher.shutdown()


@override_settings(ADMIN_EMAIL="sales@example.com")
class DispatchSettingsTests(QuoteFixtureMixin, TestCase):

    def setUp(self):
        dispatch.reset()
        self.addCleanup(dispatch.reset)

    def test_sender_is_shared(self):
        self.assertIs(dispatch.get_sender(), dispatch.get_sender())

    def test_settings_change_rebuilds_sender(self):
        sender = dispatch.get_sender()
        with override_settings(QUOTES_NOTIFICATIONS={"MAX_RETRIES": 1, "RUN_INLINE": True}):
            rebuilt = dispatch.get_sender()
            self.assertIsNot(rebuilt, sender)
            self.assertEqual(rebuilt.max_retries, 1)

    @override_settings(QUOTES_NOTIFICATIONS={"RUN_INLINE": True, "BACKOFF_BASE_SECONDS": 0})
    def test_inline_dispatch_delivers_through_django_mail(self):
        quote = self.create_quote()
        dispatch.dispatch_quote_event(QuoteEvent.CREATED, QuoteSnapshot.from_quote(quote))
        self.assertEqual(len(mail.outbox), 2)
        quote.refresh_from_db()
        self.assertEqual(quote.email_status, EmailStatus.SENT)

    def test_check_mail_command(self):
        call_command("check_mail")

    @override_settings(DEFAULT_FROM_EMAIL="")
    def test_check_mail_command_unconfigured(self):
        with self.assertRaises(CommandError):
            call_command("check_mail")
