"""Failure taxonomy for the agent gateway.

Every error knows the HTTP status the endpoint answers with. Errors raised
after the upstream was reached keep its raw body for diagnostics.
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base exception for gateway-level failures."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        raw_body: str | None = None,
        details: str | None = None,
        user_message: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.raw_body = raw_body
        self.details = details
        # Text shown inside the normalized envelope when it differs from ``message``
        self.user_message = user_message or message


class ValidationError(GatewayError):
    """The inbound request is missing required fields or is malformed."""

    status_code = 400


class ConfigurationError(GatewayError):
    """The server is missing configuration needed to reach the upstream."""

    status_code = 500


class ThrottlingExhausted(GatewayError):
    """The upstream kept answering 429 through every retry."""

    status_code = 429


class NetworkFailureExhausted(GatewayError):
    """The transport kept failing through every retry."""

    status_code = 500


class UpstreamApplicationError(GatewayError):
    """The upstream answered with a non-2xx status or embedded a failure in a 2xx body."""
