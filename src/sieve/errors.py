"""Errors raised while filtering and forwarding a request.

Every error is local to one request. Each class carries the HTTP status the
caller receives when it escapes a handler.
"""


class SieveError(Exception):
    """Base class for request-scoped failures."""

    status_code = 500


class DecodeError(SieveError):
    """The request body could not be decompressed or decoded."""


class MalformedWireFormatError(DecodeError):
    """Truncated or invalid length-delimited binary data."""


class EncodeError(SieveError):
    """The filtered payload could not be re-serialized or re-compressed."""


class RequestConstructionError(SieveError):
    """The outbound request to the backend could not be built."""


class UpstreamUnavailable(SieveError):
    """The backend could not be reached."""

    status_code = 502
