import uuid

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Quote",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when the record was created.",
                        verbose_name="created at",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when the record was last updated.",
                        verbose_name="updated at",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False, verbose_name="id"
                    ),
                ),
                ("name", models.CharField(help_text="Full name of the requester.", max_length=100, verbose_name="name")),
                (
                    "email",
                    models.EmailField(
                        help_text="Address the confirmation and status updates are sent to.",
                        max_length=254,
                        verbose_name="email",
                    ),
                ),
                ("phone", models.CharField(help_text="Contact phone number.", max_length=30, verbose_name="phone")),
                (
                    "project_details",
                    models.TextField(
                        help_text="Free-text description of the project.",
                        max_length=2000,
                        verbose_name="project details",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processed", "Processed"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                            ("customer_replied", "Customer replied"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Workflow status.",
                        max_length=20,
                        verbose_name="status",
                    ),
                ),
                (
                    "admin_notes",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Notes from the administrator; included in status update emails.",
                        verbose_name="admin notes",
                    ),
                ),
                (
                    "email_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("sent", "Sent"),
                            ("failed", "Failed"),
                            ("skipped", "Skipped"),
                        ],
                        default="pending",
                        help_text="Outcome of the most recent notification.",
                        max_length=10,
                        verbose_name="email status",
                    ),
                ),
                (
                    "email_error",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Delivery error; set only when email status is failed.",
                        verbose_name="email error",
                    ),
                ),
            ],
            options={
                "verbose_name": "quote",
                "verbose_name_plural": "quotes",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="QuoteItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "quantity",
                    models.PositiveIntegerField(
                        validators=[django.core.validators.MinValueValidator(1)], verbose_name="quantity"
                    ),
                ),
                (
                    "position",
                    models.PositiveSmallIntegerField(
                        default=0, help_text="Order of the line within the request.", verbose_name="position"
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="quote_items",
                        to="catalog.product",
                        verbose_name="product",
                    ),
                ),
                (
                    "quote",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="quotes.quote",
                        verbose_name="quote",
                    ),
                ),
            ],
            options={
                "verbose_name": "quote item",
                "verbose_name_plural": "quote items",
                "ordering": ["position", "pk"],
            },
        ),
    ]
