"""Exception hierarchy for evrythng-client.

Every failed terminal operation on an ApiCommand surfaces exactly one of
these. Client-side failures (transport, conversion, TLS setup) derive from
ClientError; an HTTP status other than the expected one raises
UnexpectedStatusError or one of its status-specific subclasses.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from evrythng_client.models import ErrorMessage


class EvrythngError(Exception):
    """Base class for all evrythng-client errors."""


class ClientError(EvrythngError):
    """Raised when the request could not be built, sent or read."""


class ExecutionError(ClientError):
    """Raised when the transport fails (connection error, timeout, etc.)."""

    def __init__(self, uri: str, cause: str) -> None:
        super().__init__(f"Unable to execute request: [uri={uri}, cause={cause}]")
        self.uri = uri
        self.cause = cause


class ConversionError(ClientError):
    """Raised when a body cannot be converted to or from the requested type."""


class TlsConfigurationError(ClientError):
    """Raised when the SSL context for a client cannot be built."""


class UnexpectedStatusError(EvrythngError):
    """Raised when the response status differs from the expected one.

    Attributes:
        expected: Status code the command was configured to expect.
        actual: Status code actually received.
        uri: Final request URI.
        body: Response body text (truncated for the message only).
        error: Parsed EVRYTHNG error body, if the body was one.
    """

    def __init__(
        self,
        expected: int,
        actual: int,
        uri: str,
        body: str = "",
        error: ErrorMessage | None = None,
    ) -> None:
        detail = body[:500] if body else "(empty)"
        super().__init__(
            f"Unexpected response status: [uri={uri}, expected={expected}, "
            f"actual={actual}, body={detail}]"
        )
        self.expected = expected
        self.actual = actual
        self.uri = uri
        self.body = body
        self.error = error


class BadRequestError(UnexpectedStatusError):
    """400 Bad Request."""


class UnauthorizedError(UnexpectedStatusError):
    """401 Unauthorized."""


class ForbiddenError(UnexpectedStatusError):
    """403 Forbidden."""


class NotFoundError(UnexpectedStatusError):
    """404 Not Found."""


class ConflictError(UnexpectedStatusError):
    """409 Conflict."""


class InternalServerError(UnexpectedStatusError):
    """500 Internal Server Error."""


STATUS_ERRORS: dict[int, type[UnexpectedStatusError]] = {
    400: BadRequestError,
    401: UnauthorizedError,
    403: ForbiddenError,
    404: NotFoundError,
    409: ConflictError,
    500: InternalServerError,
}


def status_error_class(actual: int) -> type[UnexpectedStatusError]:
    """Pick the most specific UnexpectedStatusError subclass for a status."""
    return STATUS_ERRORS.get(actual, UnexpectedStatusError)
