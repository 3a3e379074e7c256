"""Error taxonomy for the switch workflow.

Every error a caller can see carries one of a small fixed set of public codes.
The HTTP layer maps codes to status codes; nothing else leaks out.
"""

from __future__ import annotations


class SwitchError(Exception):
    """Base class for all workflow errors."""

    code = "PROCESSING_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigError(SwitchError):
    """Provider credentials or local configuration missing. Fatal, not retried."""

    code = "CONFIG_ERROR"


class ValidationFailedError(SwitchError):
    """Business-rule violations, all collected in one pass."""

    code = "VALIDATION_ERROR"

    def __init__(self, violations: list[str]) -> None:
        super().__init__(f"Validation failed: {'; '.join(violations)}")
        self.violations = list(violations)


class ProviderAuthError(SwitchError):
    """The signing provider rejected our credentials."""

    code = "AUTH_ERROR"


class WorkflowTimeoutError(SwitchError):
    """A remote call or the whole workflow exceeded its time bound."""

    code = "TIMEOUT_ERROR"


class ProviderError(SwitchError):
    """Non-2xx answer from the signing provider, raw body kept for diagnosis."""

    code = "PROVIDER_ERROR"

    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ProviderDocumentError(ProviderError):
    """Document upload failed."""


class ProviderSessionError(ProviderError):
    """Signing session creation failed."""


class ProviderQueryError(ProviderError):
    """Status query or download failed."""


class TemplateMissingError(SwitchError):
    """The application base template could not be loaded."""

    code = "PROCESSING_ERROR"


class WebhookError(Exception):
    """Base class for inbound webhook trust failures."""


class InvalidSignatureError(WebhookError):
    """Webhook HMAC did not match the shared secret."""


class MalformedWebhookError(WebhookError):
    """Webhook body is not a JSON object with an event type."""
