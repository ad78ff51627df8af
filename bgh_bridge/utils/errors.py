"""
Error taxonomy for the BGH bridge.

Every error raised by the vendor client, the service layer and the command
queue derives from BGHServiceError and carries a stable `code` that the HTTP
layer maps to a status code.
"""

from typing import Optional


class BGHServiceError(Exception):
    """Base class for all typed errors raised by the bridge."""

    code = "UNEXPECTED_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(BGHServiceError):
    """Missing or invalid local settings (credentials, timeouts, ...)."""

    code = "CONFIGURATION_ERROR"


class AuthenticationError(BGHServiceError):
    """The vendor rejected the credentials or returned an unusable token."""

    code = "AUTHENTICATION_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UpstreamError(BGHServiceError):
    """The vendor was unreachable or answered with a failure status."""

    code = "UPSTREAM_ERROR"

    def __init__(
        self,
        message: str,
        endpoint: str,
        status_code: Optional[int] = None
    ):
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code


class ProtocolError(BGHServiceError):
    """The vendor answered with a payload that is not structured JSON."""

    code = "PROTOCOL_ERROR"


class NotFoundError(BGHServiceError):
    """A home or device is absent from the vendor's answer."""

    code = "NOT_FOUND"


class InvalidCommandError(BGHServiceError, ValueError):
    """A mode-change request uses a mode or fan value outside the enumerations."""

    code = "INVALID_COMMAND"


class StatusUnavailableError(BGHServiceError):
    """Every status poll after a mode change failed; no snapshot was observed."""

    code = "STATUS_UNAVAILABLE"


class QueueClosedError(BGHServiceError):
    """The command queue is shutting down and accepts no new jobs."""

    code = "QUEUE_CLOSED"


class UnexpectedError(BGHServiceError):
    """Anything that does not fit the categories above."""

    code = "UNEXPECTED_ERROR"
