"""The contracts patterns and sinks must fulfill."""

from collections.abc import AsyncIterable, Sequence
from dataclasses import dataclass
from typing import Protocol

from starlette.datastructures import Headers


@dataclass
class PreparedBody:
    """The body to send upstream.

    ``content`` is either the untouched inbound stream or the rewritten bytes.
    When ``rewritten`` is set the inbound Content-Length no longer applies.
    """

    content: AsyncIterable[bytes] | bytes
    rewritten: bool = False


class Pattern(Protocol):
    """A request transformation applied before forwarding to the backend.

    Patterns only ever touch the request body. Responses are relayed as they
    arrive, untouched.
    """

    async def request(
        self,
        body: AsyncIterable[bytes],
        headers: Headers,
    ) -> PreparedBody:
        """Transform an outgoing request body.

        Args:
            body: The inbound body stream, still compressed as sent
            headers: Inbound request headers (read-only)

        Returns:
            The body to forward
        """
        ...


class MetricsSink(Protocol):
    """Where per-request counters go."""

    def count(
        self,
        name: str,
        value: int,
        tags: Sequence[str],
        rate: float,
    ) -> None:
        ...

    def close(self) -> None:
        ...
