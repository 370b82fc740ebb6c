"""Error taxonomy for the dough calculator service.

Request-facing errors carry the HTTP status they map to; the API layer turns
them into JSON bodies with ``to_payload``. Repair failures never reach the
client: the service substitutes a defaulted analysis instead.
"""

from typing import Any, Optional


class DoughServiceError(Exception):
    """Base class for all service errors."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message}


class ValidationError(DoughServiceError):
    """Bad or missing request fields. Surfaced as 400, never retried."""

    status_code = 400


class PayloadTooLarge(DoughServiceError):
    status_code = 413


class RateLimitError(DoughServiceError):
    """Client exceeded its per-minute or per-day allowance."""

    status_code = 429

    def __init__(self, message: str, retry_after: int) -> None:
        super().__init__(message)
        self.retry_after = retry_after

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message, "retryAfter": self.retry_after}


class ConfigurationError(DoughServiceError):
    """Service is missing required configuration (e.g. the completion API key)."""

    status_code = 500


class UpstreamError(DoughServiceError):
    """Network or HTTP failure from the completion service, after retries."""

    status_code = 503
    is_timeout = False

    def __init__(self, message: str, retry_after: Optional[int] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after

    def to_payload(self) -> dict[str, Any]:
        return {
            "error": "Service temporarily unavailable",
            "isTimeout": self.is_timeout,
            "retryAfter": self.retry_after,
            "message": self.message,
        }


class EmptyResponse(UpstreamError):
    """The completion service answered without any content."""


class UpstreamTimeout(UpstreamError):
    """The overall request deadline elapsed before the analysis was ready."""

    is_timeout = True

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["error"] = "Service busy"
        return payload


class ResponseRepairFailure(DoughServiceError):
    """Model output could not be coerced into an analysis object."""


class NoJsonFound(ResponseRepairFailure):
    """No JSON object start in the model output."""


class UnrepairableResponse(ResponseRepairFailure):
    """Structural repair ran but the text still does not parse as a JSON object."""
