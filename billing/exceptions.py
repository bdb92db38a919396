"""Custom exceptions for billing services."""

from __future__ import annotations

from django.core.exceptions import ImproperlyConfigured
from django.core.exceptions import ValidationError as DjangoValidationError


class BillingError(Exception):
    """Base exception for billing errors."""

    pass


class ValidationError(BillingError, DjangoValidationError):
    """
    Raised when request input is malformed, missing or out of range.

    Always field-qualified: construct with a ``{field: message_or_messages}``
    dict. ``message_dict`` maps each field to its list of messages.
    """

    def __init__(self, errors: dict[str, str | list[str]]):
        super().__init__(errors)

    @property
    def fields(self) -> list[str]:
        return list(self.message_dict)

    def __str__(self) -> str:
        return "; ".join(
            f"{field}: {message}"
            for field, messages in self.message_dict.items()
            for message in messages
        )


class RateNotFoundError(BillingError):
    """Raised when no rate entry matches the requested tariff combination."""

    def __init__(self, message: str, key: tuple | None = None):
        super().__init__(message)
        self.key = key


class ConfigurationError(ImproperlyConfigured):
    """Raised when a rate table is malformed. Fatal at startup."""

    def __init__(self, message: str, source: str | None = None):
        if source:
            message = f"{source}: {message}"
        super().__init__(message)
        self.source = source
