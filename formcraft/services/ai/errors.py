"""Error types raised by the form generation pipeline."""

from typing import Optional


class FormcraftError(Exception):
    """
    Base error for the generation and embedding paths.

    Carries the HTTP status and the message shown to API callers.
    """

    status_code: int = 500
    default_message: str = "Internal error"

    def __init__(self, message: Optional[str] = None, details: Optional[str] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class InvalidRequest(FormcraftError):
    """The caller sent an unusable request, e.g. a missing prompt."""

    status_code = 400
    default_message = "Invalid request"


class RecordNotFound(FormcraftError):
    """A form referenced by id does not exist."""

    status_code = 404
    default_message = "Form not found"


class ConfigurationMissing(FormcraftError):
    """A required credential is absent."""

    default_message = "Service not configured"


class UpstreamTransportError(FormcraftError):
    """Network, timeout or HTTP failure from an upstream service."""

    default_message = "AI service error"


class RateLimited(UpstreamTransportError):
    default_message = "Rate limit exceeded, please try again later"


class QuotaExhausted(UpstreamTransportError):
    default_message = "AI usage quota exhausted, please check billing"


class InvalidSchemaOutput(FormcraftError):
    """The model output could not be parsed or validated as a form schema."""

    default_message = "Failed to parse AI response"


class StorageError(FormcraftError):
    default_message = "Failed to save embedding"


class PartialMemoryFailure(FormcraftError):
    """
    Memory retrieval failed or found nothing.

    Only used inside the retrieval path, where it is always recovered.
    """

    default_message = "Memory retrieval unavailable"
