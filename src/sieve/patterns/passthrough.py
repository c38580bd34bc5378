"""The Passthrough Pattern - transparent pass-through, no transformation."""

from collections.abc import AsyncIterable

from starlette.datastructures import Headers

from ..protocol import PreparedBody


class PassthroughPattern:
    """Transparent pass-through.

    The inbound stream is handed to the forwarder as is: no buffering, no
    decompression, and the client's Content-Length still applies. Everything
    that is not a series submission goes through here.
    """

    async def request(
        self,
        body: AsyncIterable[bytes],
        headers: Headers,
    ) -> PreparedBody:
        """Pass through unchanged."""
        return PreparedBody(body)
