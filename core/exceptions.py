"""Typed exceptions for billing failures.

Each class carries the machine-readable `code` reported in API error
responses and in failed orchestrator results.
"""


class BillingError(Exception):
    """Base class for billing errors."""

    code = "BILLING_ERROR"


class ValidationError(BillingError, ValueError):
    """
    Input shape or values are invalid.

    Empty cart, non-positive quantity, send target that is not a draft.
    """

    code = "VALIDATION_ERROR"


class NotFoundError(BillingError):
    """A client, invoice, or service id does not resolve."""

    code = "NOT_FOUND"


class ConfigurationError(BillingError):
    """
    A required credential or brand sub-account mapping is missing.

    Raised the first time the value is needed, never at startup.
    """

    code = "CONFIGURATION_ERROR"


class RemoteServiceError(BillingError):
    """The payment processor call failed (network, auth, or rejection)."""

    code = "REMOTE_SERVICE_ERROR"


class SignatureError(BillingError):
    """Webhook signature missing or invalid."""

    code = "INVALID_SIGNATURE"
