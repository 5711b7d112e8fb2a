# catalog_aggregator/errors.py

"""Request-level error taxonomy.

Every error that can end an aggregation request is a subclass of
:class:`AggregatorError`, so the outer layer (CLI today, HTTP tomorrow)
can catch them uniformly and render a stable ``error`` code plus a
human-readable message.  Per-item failures inside the hydration
pipeline never become one of these; they are degraded in place.
"""

from typing import Any


class AggregatorError(Exception):
    """Base class for all request-level errors."""

    code: str = "INTERNAL_ERROR"
    http_status: int = 500
    default_message: str = "Error processing the request."

    def __init__(
        self,
        message: str | None = None,
        detail: str | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)

    def to_dict(self, include_detail: bool = False) -> dict[str, Any]:
        """Render the error as a caller-facing payload.

        ``detail`` carries raw exception text and is only included
        when *include_detail* is set (development mode).
        """
        payload: dict[str, Any] = {
            "success": False,
            "error": self.code,
            "message": self.message,
        }
        if include_detail and self.detail:
            payload["detail"] = self.detail
        return payload


class UpstreamUnavailable(AggregatorError):
    """Network failure or timeout while talking to the upstream."""

    code = "UPSTREAM_UNAVAILABLE"
    http_status = 503
    default_message = "Could not reach the upstream catalog service."


class UpstreamRejected(AggregatorError):
    """The upstream answered with an error status or payload."""

    code = "UPSTREAM_REJECTED"
    http_status = 502
    default_message = "The upstream catalog service returned an error."

    def __init__(
        self,
        message: str | None = None,
        status: int | None = None,
        payload: Any = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message, detail)
        self.status = status
        self.payload = payload
        if status is not None:
            self.http_status = status

    def to_dict(self, include_detail: bool = False) -> dict[str, Any]:
        """Add the upstream status and payload when known."""
        payload = super().to_dict(include_detail)
        if self.status is not None:
            payload["status"] = self.status
        if self.payload is not None:
            payload["upstream"] = self.payload
        return payload


class NotFound(AggregatorError):
    """Unknown category or warehouse, or an empty category."""

    code = "NOT_FOUND"
    http_status = 404
    default_message = "The requested resource was not found."


class InvalidInput(AggregatorError):
    """Missing or malformed category / warehouse parameters."""

    code = "INVALID_INPUT"
    http_status = 400
    default_message = "Invalid input parameters."


class Internal(AggregatorError):
    """Unexpected local fault."""

    code = "INTERNAL_ERROR"
    http_status = 500
    default_message = "Internal server error."


class ConfigurationError(Internal):
    """Required configuration (e.g. upstream base URL) is missing."""

    code = "CONFIGURATION_ERROR"
    default_message = (
        "Incomplete configuration: API_BASE_URL or PERSEO_API_KEY "
        "is not set."
    )
