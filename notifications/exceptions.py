from common.exceptions import DomainError


class DeliveryError(DomainError):
    """Transport gave up on a message. Recorded on the quote, never propagated."""

    default_message = "Email delivery failed."


class ConfigurationError(DomainError):
    """Mail settings are unusable; delivery is skipped rather than retried."""

    default_message = "Mail transport is not configured."
