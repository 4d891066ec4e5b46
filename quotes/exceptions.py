"""
Errors raised by the quote lifecycle. All are synchronous and reach the caller.
"""
from rest_framework import status

from common.exceptions import DomainError


class QuoteError(DomainError):
    """Base for quote lifecycle errors."""


class ValidationError(QuoteError):
    """Malformed or missing input. errors maps every offending field to its messages."""

    default_message = "Validation failed."


class ProductNotFoundError(QuoteError):
    """A line item references a product that does not resolve."""

    default_message = "One or more products could not be found."

    def __init__(self, product_ids):
        self.product_ids = list(product_ids)
        ids = ", ".join(str(pk) for pk in self.product_ids)
        super().__init__(
            errors={"products": [f"Unknown product id(s): {ids}"]},
        )


class NotFoundError(QuoteError):
    http_status = status.HTTP_404_NOT_FOUND
    default_message = "Quote not found"

    def __init__(self, quote_id=None):
        self.quote_id = quote_id
        super().__init__()


class InvalidTransitionError(QuoteError):
    """Requested status is not reachable from the current one."""

    http_status = status.HTTP_409_CONFLICT

    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(
            message=f"Cannot change status from '{current}' to '{requested}'.",
            errors={"status": [f"'{requested}' is not reachable from '{current}'."]},
        )
