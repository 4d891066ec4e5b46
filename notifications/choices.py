"""Choice enums for notifications app."""

from django.db import models


class QuoteEvent(models.TextChoices):
    CREATED = "created", "Quote created"
    STATUS_CHANGED = "status_changed", "Status changed"
