"""API endpoint tests for quote intake and administration."""
from django.core import mail
from django.db import connection
from django.test import TestCase, TransactionTestCase, override_settings
from django.test.utils import CaptureQueriesContext
from rest_framework.test import APIClient

from accounts.models import User
from catalog.choices import ProductCategory
from catalog.models import Product
from notifications import dispatch
from quotes.choices import EmailStatus, QuoteStatus
from quotes.models import Quote

INLINE_NOTIFICATIONS = {
    "MAX_RETRIES": 3,
    "BACKOFF_BASE_SECONDS": 0,
    "WORKERS": 1,
    "RUN_INLINE": True,
    "VERIFY_ON_STARTUP": False,
}


class QuoteAPIMixin:

    def setUp(self):
        dispatch.reset()
        self.addCleanup(dispatch.reset)
        self.client = APIClient()
        self.staff = User.objects.create_staff(email="admin@t.com", password="pass")
        self.customer = User.objects.create_user(email="c@t.com", password="pass")
        self.cement = Product.objects.create(
            name="Premium Cement",
            category=ProductCategory.CEMENT,
            description="High quality construction cement",
            image="images/Cement.webp",
        )

    def payload(self, **overrides):
        data = {
            "name": "Amina Otieno",
            "email": "amina@example.com",
            "phone": "+254 700 123 456",
            "projectDetails": "Perimeter wall",
            "products": [{"productId": self.cement.pk, "quantity": 25}],
        }
        data.update(overrides)
        return data


@override_settings(QUOTES_NOTIFICATIONS=INLINE_NOTIFICATIONS, ADMIN_EMAIL="sales@example.com")
class QuoteIntakeAPITestCase(QuoteAPIMixin, TestCase):
    """Public POST /api/v1/quotes/."""

    def test_submit_quote(self):
        with self.captureOnCommitCallbacks(execute=True):
            r = self.client.post("/api/v1/quotes/", self.payload(), format="json")
        self.assertEqual(r.status_code, 201)
        body = r.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["message"], "Quote request submitted successfully")
        data = body["data"]
        self.assertEqual(data["status"], QuoteStatus.PENDING)
        self.assertEqual(data["products"], [
            {"productId": self.cement.pk, "productName": "Premium Cement", "quantity": 25},
        ])
        quote = Quote.objects.get(pk=data["id"])
        self.assertEqual(quote.email_status, EmailStatus.SENT)
        self.assertEqual(len(mail.outbox), 2)

    def test_validation_errors_use_envelope(self):
        r = self.client.post("/api/v1/quotes/", self.payload(email="nope", products=[]), format="json")
        self.assertEqual(r.status_code, 400)
        body = r.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["message"], "Validation failed.")
        self.assertIn("email", body["errors"])
        self.assertIn("products", body["errors"])
        self.assertEqual(Quote.objects.count(), 0)

    def test_unknown_product(self):
        r = self.client.post(
            "/api/v1/quotes/",
            self.payload(products=[{"productId": 424242, "quantity": 1}]),
            format="json",
        )
        self.assertEqual(r.status_code, 400)
        self.assertIn("424242", r.json()["errors"]["products"][0])
        self.assertEqual(Quote.objects.count(), 0)

    def test_created_response_reads_products_in_bulk(self):
        names = ["Fine Sand", "Ballast", "Machine Cut Block"]
        products = [
            Product.objects.create(name=name, category=ProductCategory.SAND, description=name, image="images/x.webp")
            for name in names
        ]
        lines = [{"productId": product.pk, "quantity": 5} for product in [self.cement, *products]]
        with CaptureQueriesContext(connection) as ctx:
            r = self.client.post("/api/v1/quotes/", self.payload(products=lines), format="json")
        self.assertEqual(r.status_code, 201)
        self.assertEqual(
            [line["productName"] for line in r.json()["data"]["products"]],
            ["Premium Cement", *names],
        )
        # Lookup, snapshot and response each read the product table once.
        product_reads = [q["sql"] for q in ctx.captured_queries if '"catalog_product"' in q["sql"]]
        self.assertEqual(len(product_reads), 3)

    def test_submit_does_not_need_login(self):
        r = self.client.post("/api/v1/quotes/", self.payload(), format="json")
        self.assertEqual(r.status_code, 201)


@override_settings(QUOTES_NOTIFICATIONS=INLINE_NOTIFICATIONS, ADMIN_EMAIL="sales@example.com")
class QuoteAdminAPITestCase(QuoteAPIMixin, TestCase):
    """Staff-only quote endpoints."""

    def setUp(self):
        super().setUp()
        with self.captureOnCommitCallbacks(execute=True):
            r = self.client.post("/api/v1/quotes/", self.payload(), format="json")
        self.quote_id = r.json()["data"]["id"]
        mail.outbox = []

    def test_anonymous_cannot_list(self):
        r = self.client.get("/api/v1/quotes/")
        self.assertEqual(r.status_code, 401)
        self.assertFalse(r.json()["success"])

    def test_non_staff_forbidden(self):
        self.client.force_authenticate(user=self.customer)
        self.assertEqual(self.client.get("/api/v1/quotes/").status_code, 403)
        self.assertEqual(self.client.get(f"/api/v1/quotes/{self.quote_id}/").status_code, 403)

    def test_list_quotes(self):
        self.client.force_authenticate(user=self.staff)
        r = self.client.get("/api/v1/quotes/", {"status": "pending", "sort": "oldest", "limit": 5})
        self.assertEqual(r.status_code, 200)
        body = r.json()
        self.assertEqual(body["total"], 1)
        self.assertEqual(body["pages"], 1)
        self.assertEqual(body["count"], 1)
        self.assertEqual(body["data"][0]["emailStatus"], EmailStatus.SENT)

    def test_list_rejects_bad_status(self):
        self.client.force_authenticate(user=self.staff)
        r = self.client.get("/api/v1/quotes/", {"status": "archived"})
        self.assertEqual(r.status_code, 400)
        self.assertIn("status", r.json()["errors"])

    def test_retrieve_quote(self):
        self.client.force_authenticate(user=self.staff)
        r = self.client.get(f"/api/v1/quotes/{self.quote_id}/")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["data"]["name"], "Amina Otieno")

    def test_retrieve_unknown_quote(self):
        self.client.force_authenticate(user=self.staff)
        r = self.client.get("/api/v1/quotes/00000000-0000-4000-8000-000000000000/")
        self.assertEqual(r.status_code, 404)
        self.assertEqual(r.json()["message"], "Quote not found")

    def test_status_workflow(self):
        self.client.force_authenticate(user=self.staff)
        url = f"/api/v1/quotes/{self.quote_id}/status/"
        with self.captureOnCommitCallbacks(execute=True):
            r = self.client.put(url, {"status": "processed", "adminNotes": "Truck booked"}, format="json")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["data"]["status"], "processed")
        self.assertEqual(r.json()["data"]["adminNotes"], "Truck booked")
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn("Truck booked", mail.outbox[0].body)

        with self.captureOnCommitCallbacks(execute=True):
            r = self.client.put(url, {"status": "completed"}, format="json")
        self.assertEqual(r.status_code, 200)

        r = self.client.put(url, {"status": "pending"}, format="json")
        self.assertEqual(r.status_code, 409)
        self.assertFalse(r.json()["success"])
        self.assertEqual(Quote.objects.get(pk=self.quote_id).status, QuoteStatus.COMPLETED)

    def test_status_requires_valid_value(self):
        self.client.force_authenticate(user=self.staff)
        r = self.client.put(f"/api/v1/quotes/{self.quote_id}/status/", {"status": "archived"}, format="json")
        self.assertEqual(r.status_code, 400)
        self.assertIn("status", r.json()["errors"])

    def test_status_for_unknown_quote(self):
        self.client.force_authenticate(user=self.staff)
        r = self.client.put(
            "/api/v1/quotes/00000000-0000-4000-8000-000000000000/status/",
            {"status": "processed"},
            format="json",
        )
        self.assertEqual(r.status_code, 404)

    def test_jwt_login_grants_access(self):
        r = self.client.post("/api/v1/auth/token/", {"email": "admin@t.com", "password": "pass"}, format="json")
        self.assertEqual(r.status_code, 200)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {r.json()['access']}")
        self.assertEqual(self.client.get("/api/v1/quotes/").status_code, 200)
        me = self.client.get("/api/v1/auth/me/")
        self.assertEqual(me.json()["email"], "admin@t.com")
        self.assertTrue(me.json()["is_staff"])

    def test_non_staff_cannot_obtain_token(self):
        r = self.client.post("/api/v1/auth/token/", {"email": "c@t.com", "password": "pass"}, format="json")
        self.assertEqual(r.status_code, 401)
        self.assertFalse(r.json()["success"])

    def test_wrong_password(self):
        r = self.client.post("/api/v1/auth/token/", {"email": "admin@t.com", "password": "nope"}, format="json")
        self.assertEqual(r.status_code, 401)


@override_settings(
    QUOTES_NOTIFICATIONS=INLINE_NOTIFICATIONS,
    ADMIN_EMAIL="sales@example.com",
    EMAIL_BACKEND="tests.mail_backends.UnreachableBackend",
)
class MailOutageAPITestCase(QuoteAPIMixin, TransactionTestCase):
    """Notifications run on commit, before the response is rendered."""

    def test_quote_saved_with_warning_when_mail_is_down(self):
        r = self.client.post("/api/v1/quotes/", self.payload(), format="json")
        self.assertEqual(r.status_code, 201)
        body = r.json()
        self.assertEqual(body["data"]["emailStatus"], EmailStatus.FAILED)
        self.assertIn("warning", body)
        self.assertEqual(Quote.objects.count(), 1)

    def test_health_reports_unavailable_mail(self):
        self.client.post("/api/v1/quotes/", self.payload(), format="json")
        r = self.client.get("/health/")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["mail"], "unavailable")
        self.assertEqual(r.json()["database"], "connected")


class ServiceEndpointsTestCase(TestCase):

    def setUp(self):
        dispatch.reset()
        self.addCleanup(dispatch.reset)

    def test_index(self):
        r = self.client.get("/")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["endpoints"]["quotes"], "/api/v1/quotes/")

    def test_health(self):
        r = self.client.get("/health/")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["status"], "ok")
        self.assertEqual(r.json()["mail"], "unverified")
