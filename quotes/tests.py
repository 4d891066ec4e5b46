"""Tests for quotes app."""
import uuid
from datetime import timedelta

from django.core import mail
from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone

from catalog.choices import ProductCategory
from catalog.models import Product
from notifications import dispatch
from quotes.choices import EmailStatus, QuoteSort, QuoteStatus
from quotes.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    ProductNotFoundError,
    ValidationError,
)
from quotes.models import Quote
from quotes.services import create_quote, get_quote, list_quotes, resend_notification, update_status
from quotes.transitions import allowed_transitions, can_transition, enabled_statuses, is_terminal

INLINE_NOTIFICATIONS = {
    "MAX_RETRIES": 3,
    "BACKOFF_BASE_SECONDS": 0,
    "WORKERS": 1,
    "RUN_INLINE": True,
    "VERIFY_ON_STARTUP": False,
}


class TransitionTests(SimpleTestCase):
    """Status graph."""

    def test_happy_path(self):
        self.assertTrue(can_transition(QuoteStatus.PENDING, QuoteStatus.PROCESSED))
        self.assertTrue(can_transition(QuoteStatus.PROCESSED, QuoteStatus.COMPLETED))

    def test_no_skipping_or_going_back(self):
        self.assertFalse(can_transition(QuoteStatus.PENDING, QuoteStatus.COMPLETED))
        self.assertFalse(can_transition(QuoteStatus.PROCESSED, QuoteStatus.PENDING))

    def test_terminal_statuses_have_no_exits(self):
        for status in (QuoteStatus.COMPLETED, QuoteStatus.CANCELLED):
            self.assertTrue(is_terminal(status))
            self.assertEqual(
                allowed_transitions(status, allow_cancellation=True, enable_customer_replies=True),
                frozenset(),
            )

    def test_cancellation_option(self):
        self.assertIn(
            QuoteStatus.CANCELLED,
            allowed_transitions(QuoteStatus.PENDING, allow_cancellation=True),
        )
        self.assertNotIn(
            QuoteStatus.CANCELLED,
            allowed_transitions(QuoteStatus.PROCESSED, allow_cancellation=False),
        )

    def test_customer_replied_option(self):
        self.assertFalse(
            can_transition(QuoteStatus.PENDING, QuoteStatus.CUSTOMER_REPLIED, enable_customer_replies=False)
        )
        self.assertTrue(
            can_transition(QuoteStatus.PROCESSED, QuoteStatus.CUSTOMER_REPLIED, enable_customer_replies=True)
        )
        self.assertEqual(
            allowed_transitions(
                QuoteStatus.CUSTOMER_REPLIED, allow_cancellation=True, enable_customer_replies=True
            ),
            frozenset({QuoteStatus.PROCESSED, QuoteStatus.CANCELLED}),
        )

    def test_unknown_status_has_no_exits(self):
        self.assertEqual(allowed_transitions("archived"), frozenset())

    @override_settings(QUOTES={"ALLOW_CANCELLATION": False, "ENABLE_CUSTOMER_REPLIES": True})
    def test_enabled_statuses_follow_settings(self):
        statuses = enabled_statuses()
        self.assertNotIn(QuoteStatus.CANCELLED, statuses)
        self.assertIn(QuoteStatus.CUSTOMER_REPLIED, statuses)


class QuoteTestMixin:

    def setUp(self):
        dispatch.reset()
        self.addCleanup(dispatch.reset)
        self.cement = Product.objects.create(
            name="Premium Cement",
            category=ProductCategory.CEMENT,
            description="High quality construction cement",
            image="images/Cement.webp",
        )
        self.sand = Product.objects.create(
            name="Fine Sand",
            category=ProductCategory.SAND,
            description="Fine construction sand",
            image="images/Sand.webp",
        )

    def payload(self, **overrides):
        data = {
            "name": "Amina Otieno",
            "email": "amina@example.com",
            "phone": "+254 700 123 456",
            "projectDetails": "Foundation for a two-storey house",
            "products": [
                {"productId": self.cement.pk, "quantity": 40},
                {"productId": self.sand.pk, "quantity": 3},
            ],
        }
        data.update(overrides)
        return data

    def submit(self, **overrides):
        with self.captureOnCommitCallbacks(execute=True):
            quote = create_quote(self.payload(**overrides))
        quote.refresh_from_db()
        return quote


@override_settings(QUOTES_NOTIFICATIONS=INLINE_NOTIFICATIONS, ADMIN_EMAIL="sales@example.com")
class CreateQuoteTests(QuoteTestMixin, TestCase):

    def test_creates_pending_quote_and_notifies(self):
        quote = self.submit()
        self.assertEqual(quote.status, QuoteStatus.PENDING)
        self.assertEqual(quote.email_status, EmailStatus.SENT)
        self.assertEqual(quote.email_error, "")
        self.assertEqual(
            [(item.product_id, item.quantity) for item in quote.items.all()],
            [(self.cement.pk, 40), (self.sand.pk, 3)],
        )
        self.assertEqual(
            sorted(message.to[0] for message in mail.outbox),
            ["amina@example.com", "sales@example.com"],
        )

    def test_email_is_pending_until_commit(self):
        with self.captureOnCommitCallbacks() as callbacks:
            quote = create_quote(self.payload())
        self.assertEqual(len(callbacks), 1)
        self.assertEqual(quote.email_status, EmailStatus.PENDING)
        self.assertEqual(mail.outbox, [])

    def test_email_address_is_normalized(self):
        quote = self.submit(email="Amina@EXAMPLE.COM")
        self.assertEqual(quote.email, "Amina@example.com")

    def test_reports_every_invalid_field(self):
        with self.assertRaises(ValidationError) as ctx:
            create_quote(self.payload(name="", email="not-an-email", phone="abc", products=[]))
        self.assertEqual(
            set(ctx.exception.errors),
            {"name", "email", "phone", "products"},
        )
        self.assertEqual(Quote.objects.count(), 0)

    def test_empty_products_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            create_quote(self.payload(products=[]))
        self.assertIn("products", ctx.exception.errors)
        self.assertEqual(Quote.objects.count(), 0)

    def test_missing_products_rejected(self):
        payload = self.payload()
        del payload["products"]
        with self.assertRaises(ValidationError) as ctx:
            create_quote(payload)
        self.assertIn("products", ctx.exception.errors)

    def test_non_positive_quantity_rejected(self):
        for quantity in (0, -2, 1.5):
            with self.subTest(quantity=quantity):
                with self.assertRaises(ValidationError) as ctx:
                    create_quote(self.payload(products=[{"productId": self.cement.pk, "quantity": quantity}]))
                self.assertIn("products", ctx.exception.errors)
        self.assertEqual(Quote.objects.count(), 0)

    def test_project_details_length_limit(self):
        with self.assertRaises(ValidationError) as ctx:
            create_quote(self.payload(projectDetails="x" * 2001))
        self.assertIn("projectDetails", ctx.exception.errors)

    def test_unknown_product_rejected(self):
        with self.assertRaises(ProductNotFoundError) as ctx:
            create_quote(self.payload(products=[{"productId": 999999, "quantity": 1}]))
        self.assertEqual(ctx.exception.product_ids, [999999])
        self.assertEqual(Quote.objects.count(), 0)

    def test_inactive_product_rejected(self):
        Product.objects.filter(pk=self.sand.pk).update(is_active=False)
        with self.assertRaises(ProductNotFoundError):
            create_quote(self.payload())
        self.assertEqual(Quote.objects.count(), 0)

    @override_settings(EMAIL_BACKEND="tests.mail_backends.UnreachableBackend")
    def test_unreachable_mail_server_does_not_fail_creation(self):
        quote = self.submit()
        self.assertEqual(quote.status, QuoteStatus.PENDING)
        self.assertEqual(quote.email_status, EmailStatus.FAILED)
        self.assertTrue(quote.email_error.startswith("customer: SMTPServerDisconnected"))
        self.assertIs(dispatch.get_sender().ready, False)

    @override_settings(EMAIL_BACKEND="tests.mail_backends.RejectingBackend")
    def test_rejected_message_is_retried_then_failed(self):
        quote = self.submit()
        self.assertEqual(quote.email_status, EmailStatus.FAILED)
        self.assertIn("SMTPDataError", quote.email_error)

    @override_settings(DEFAULT_FROM_EMAIL="")
    def test_unconfigured_mail_is_skipped(self):
        quote = self.submit()
        self.assertEqual(quote.email_status, EmailStatus.SKIPPED)
        self.assertEqual(quote.email_error, "")


@override_settings(QUOTES_NOTIFICATIONS=INLINE_NOTIFICATIONS, ADMIN_EMAIL="sales@example.com")
class UpdateStatusTests(QuoteTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.quote = self.submit()
        mail.outbox = []

    def change(self, status, notes=None):
        with self.captureOnCommitCallbacks(execute=True):
            quote = update_status(self.quote.pk, status, notes)
        quote.refresh_from_db()
        return quote

    def test_processed_with_notes_emails_customer(self):
        quote = self.change(QuoteStatus.PROCESSED, "Delivery scheduled for Friday")
        self.assertEqual(quote.status, QuoteStatus.PROCESSED)
        self.assertEqual(quote.admin_notes, "Delivery scheduled for Friday")
        self.assertEqual(quote.email_status, EmailStatus.SENT)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["amina@example.com"])
        self.assertIn("PROCESSED", mail.outbox[0].body)
        self.assertIn("Delivery scheduled for Friday", mail.outbox[0].body)

    def test_updated_at_advances(self):
        before = self.quote.updated_at
        quote = self.change(QuoteStatus.PROCESSED)
        self.assertGreaterEqual(quote.updated_at, before)
        self.assertEqual(quote.created_at, self.quote.created_at)

    def test_full_lifecycle(self):
        self.change(QuoteStatus.PROCESSED)
        quote = self.change(QuoteStatus.COMPLETED)
        self.assertEqual(quote.status, QuoteStatus.COMPLETED)
        with self.assertRaises(InvalidTransitionError):
            update_status(quote.pk, QuoteStatus.PENDING)

    def test_invalid_transition_leaves_quote_untouched(self):
        with self.captureOnCommitCallbacks() as callbacks:
            with self.assertRaises(InvalidTransitionError) as ctx:
                update_status(self.quote.pk, QuoteStatus.COMPLETED, "skip ahead")
        self.assertEqual(callbacks, [])
        self.assertEqual(ctx.exception.current, QuoteStatus.PENDING)
        self.quote.refresh_from_db()
        self.assertEqual(self.quote.status, QuoteStatus.PENDING)
        self.assertEqual(self.quote.admin_notes, "")

    def test_same_status_is_noop(self):
        with self.captureOnCommitCallbacks() as callbacks:
            quote = update_status(self.quote.pk, QuoteStatus.PENDING, "Called the customer")
        self.assertEqual(callbacks, [])
        self.assertEqual(quote.status, QuoteStatus.PENDING)
        self.assertEqual(quote.admin_notes, "Called the customer")
        self.assertEqual(mail.outbox, [])

    def test_unknown_status_is_validation_error(self):
        with self.assertRaises(ValidationError) as ctx:
            update_status(self.quote.pk, "archived")
        self.assertIn("status", ctx.exception.errors)

    def test_unknown_quote(self):
        with self.assertRaises(NotFoundError):
            update_status(uuid.uuid4(), QuoteStatus.PROCESSED)

    @override_settings(QUOTES={"ALLOW_CANCELLATION": False, "ENABLE_CUSTOMER_REPLIES": False})
    def test_cancellation_disabled(self):
        with self.assertRaises(ValidationError):
            update_status(self.quote.pk, QuoteStatus.CANCELLED)

    def test_cancel_pending_quote(self):
        quote = self.change(QuoteStatus.CANCELLED)
        self.assertEqual(quote.status, QuoteStatus.CANCELLED)
        with self.assertRaises(InvalidTransitionError):
            update_status(quote.pk, QuoteStatus.PROCESSED)

    @override_settings(QUOTES={"ALLOW_CANCELLATION": True, "ENABLE_CUSTOMER_REPLIES": True})
    def test_customer_replied_round_trip(self):
        self.change(QuoteStatus.CUSTOMER_REPLIED)
        quote = self.change(QuoteStatus.PROCESSED)
        self.assertEqual(quote.status, QuoteStatus.PROCESSED)

    def test_stale_transition_matches_no_rows(self):
        self.change(QuoteStatus.PROCESSED)
        changed = Quote.objects.apply_transition(
            self.quote.pk, QuoteStatus.PENDING, QuoteStatus.CANCELLED
        )
        self.assertEqual(changed, 0)
        self.quote.refresh_from_db()
        self.assertEqual(self.quote.status, QuoteStatus.PROCESSED)

    @override_settings(EMAIL_BACKEND="tests.mail_backends.UnreachableBackend")
    def test_status_change_survives_mail_outage(self):
        quote = self.change(QuoteStatus.PROCESSED)
        self.assertEqual(quote.status, QuoteStatus.PROCESSED)
        self.assertEqual(quote.email_status, EmailStatus.FAILED)

    def test_failed_email_error_is_cleared_on_success(self):
        Quote.objects.record_email_outcome(self.quote.pk, EmailStatus.FAILED, "customer: boom")
        quote = self.change(QuoteStatus.PROCESSED)
        self.assertEqual(quote.email_status, EmailStatus.SENT)
        self.assertEqual(quote.email_error, "")

    def test_resend_notification(self):
        Quote.objects.record_email_outcome(self.quote.pk, EmailStatus.FAILED, "customer: boom")
        with self.captureOnCommitCallbacks(execute=True):
            resend_notification(self.quote.pk)
        self.quote.refresh_from_db()
        self.assertEqual(self.quote.email_status, EmailStatus.SENT)
        self.assertEqual(len(mail.outbox), 2)


class ReadQuoteTests(QuoteTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        now = timezone.now()
        self.quotes = []
        for offset, status in enumerate(
            [QuoteStatus.PENDING, QuoteStatus.PROCESSED, QuoteStatus.PENDING, QuoteStatus.COMPLETED]
        ):
            quote = create_quote(self.payload(name=f"Customer {offset}"))
            Quote.objects.filter(pk=quote.pk).update(
                status=status, created_at=now - timedelta(days=10 - offset)
            )
            self.quotes.append(quote)

    def test_get_quote(self):
        quote = get_quote(self.quotes[0].pk)
        self.assertEqual(quote.name, "Customer 0")
        self.assertEqual(len(quote.items.all()), 2)

    def test_get_quote_accepts_string_id(self):
        self.assertEqual(get_quote(str(self.quotes[1].pk)).pk, self.quotes[1].pk)

    def test_get_unknown_or_malformed_id(self):
        for quote_id in (uuid.uuid4(), "not-a-uuid"):
            with self.subTest(quote_id=quote_id):
                with self.assertRaises(NotFoundError):
                    get_quote(quote_id)

    def test_newest_first_by_default(self):
        page = list_quotes()
        self.assertEqual([q.name for q in page.items], ["Customer 3", "Customer 2", "Customer 1", "Customer 0"])
        self.assertEqual(page.total, 4)
        self.assertEqual(page.pages, 1)

    def test_oldest_first(self):
        page = list_quotes(sort=QuoteSort.OLDEST)
        self.assertEqual(page.items[0].name, "Customer 0")

    def test_filter_by_status(self):
        page = list_quotes(status=QuoteStatus.PENDING)
        self.assertEqual({q.name for q in page.items}, {"Customer 0", "Customer 2"})
        self.assertEqual(page.total, 2)

    def test_pagination(self):
        page = list_quotes(page=2, limit=3)
        self.assertEqual(page.total, 4)
        self.assertEqual(page.pages, 2)
        self.assertEqual([q.name for q in page.items], ["Customer 0"])

    def test_page_past_end_is_empty(self):
        page = list_quotes(page=5, limit=3)
        self.assertEqual(page.items, [])
        self.assertEqual(page.total, 4)

    @override_settings(QUOTES={"PAGE_SIZE": 2, "MAX_PAGE_SIZE": 3})
    def test_limit_defaults_and_cap(self):
        self.assertEqual(list_quotes().limit, 2)
        self.assertEqual(list_quotes(limit=50).limit, 3)

    def test_invalid_filters(self):
        with self.assertRaises(ValidationError):
            list_quotes(status="archived")
        with self.assertRaises(ValidationError):
            list_quotes(sort="sideways")
        with self.assertRaises(ValidationError):
            list_quotes(page="two")


@override_settings(
    QUOTES_NOTIFICATIONS=INLINE_NOTIFICATIONS,
    ADMIN_EMAIL="sales@example.com",
    QUOTES={"ALLOW_CANCELLATION": True, "ENABLE_CUSTOMER_REPLIES": True},
)
class LifecyclePropertyTests(QuoteTestMixin, TestCase):

    def test_walkthrough(self):
        quote = self.submit(products=[
            {"productId": self.cement.pk, "quantity": 2},
            {"productId": self.sand.pk, "quantity": 1},
        ])
        self.assertEqual(quote.status, QuoteStatus.PENDING)

        with self.captureOnCommitCallbacks(execute=True):
            self.assertEqual(update_status(quote.pk, QuoteStatus.PROCESSED).status, QuoteStatus.PROCESSED)
        with self.assertRaises(InvalidTransitionError):
            update_status(quote.pk, QuoteStatus.PENDING)
        with self.captureOnCommitCallbacks(execute=True):
            self.assertEqual(update_status(quote.pk, QuoteStatus.COMPLETED).status, QuoteStatus.COMPLETED)
        with self.assertRaises(InvalidTransitionError):
            update_status(quote.pk, QuoteStatus.PROCESSED)

    def test_repeated_status_is_idempotent(self):
        quote = self.submit()
        with self.captureOnCommitCallbacks(execute=True):
            update_status(quote.pk, QuoteStatus.PROCESSED)
        mail.outbox = []
        for _ in range(2):
            with self.captureOnCommitCallbacks() as callbacks:
                self.assertEqual(update_status(quote.pk, QuoteStatus.PROCESSED).status, QuoteStatus.PROCESSED)
            self.assertEqual(callbacks, [])
        self.assertEqual(mail.outbox, [])

    def test_every_unlisted_pair_is_rejected(self):
        quote = create_quote(self.payload())
        statuses = list(QuoteStatus.values)
        for current in statuses:
            for new in statuses:
                if new == current or can_transition(current, new):
                    continue
                with self.subTest(current=current, new=new):
                    Quote.objects.filter(pk=quote.pk).update(status=current)
                    with self.assertRaises(InvalidTransitionError):
                        update_status(quote.pk, new)
                    self.assertEqual(Quote.objects.get(pk=quote.pk).status, current)

    def test_created_quote_always_has_email_status(self):
        with self.captureOnCommitCallbacks() as callbacks:
            quote = create_quote(self.payload())
        self.assertEqual(Quote.objects.get(pk=quote.pk).email_status, EmailStatus.PENDING)
        for callback in callbacks:
            callback()
        self.assertIn(Quote.objects.get(pk=quote.pk).email_status, EmailStatus.values)
