"""
cubeclient exception hierarchy.

All custom exceptions live here to avoid circular imports.
"""


class CliError(Exception):
    """Exit code 1: validation, not-found, network, parse errors."""

    exit_code = 1


class SetupError(CliError):
    """Exit code 2: missing secrets, bad build mode, locked base URL."""

    exit_code = 2


class HTTPError(Exception):
    """Raised by _http_request for HTTP errors that callers want to handle."""

    def __init__(self, code, reason, body, headers=None):
        self.code = code
        self.reason = reason
        self.body = body
        self.headers = headers or {}


class RequestError(CliError):
    """A route could not be dispatched or its response could not be used.

    ``kind`` is a stable identifier callers can branch on.
    """

    kind = "request_error"


class BadEndpoint(RequestError):
    """The base URL is malformed; no request was sent."""

    kind = "bad_endpoint"


class AuthenticationRequired(RequestError):
    """An authenticated route was attempted without a session; no request was sent."""

    kind = "authentication_required"


class TransportError(RequestError):
    """Network failure, timeout, or non-success HTTP status."""

    kind = "transport_error"

    def __init__(self, message, status=None, body=None):
        super().__init__(message)
        self.status = status
        self.body = body


class DecodeError(RequestError):
    """The response body does not match the expected schema."""

    kind = "decode_error"
