"""Choice enums for quotes app."""

from django.db import models


class QuoteStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PROCESSED = "processed", "Processed"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"
    CUSTOMER_REPLIED = "customer_replied", "Customer replied"


class EmailStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    SENT = "sent", "Sent"
    FAILED = "failed", "Failed"
    SKIPPED = "skipped", "Skipped"


class QuoteSort(models.TextChoices):
    NEWEST = "newest", "Newest first"
    OLDEST = "oldest", "Oldest first"
