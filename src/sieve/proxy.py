"""HTTP proxy logic for forwarding requests to the metrics backend."""

import logging
from collections.abc import AsyncIterator, Iterable

import httpx
import logfire
from starlette.background import BackgroundTask
from starlette.responses import StreamingResponse

from .errors import RequestConstructionError, UpstreamUnavailable
from .protocol import PreparedBody

logger = logging.getLogger(__name__)

RawHeaders = list[tuple[bytes, bytes]]

# Managed by the transport on each hop
_REQUEST_SKIP = {b"host", b"connection", b"transfer-encoding"}
_RESPONSE_SKIP = {b"connection", b"transfer-encoding"}


def build_client(
    timeout: float = 60.0,
    max_connections: int = 100,
    keepalive_expiry: float = 90.0,
) -> httpx.AsyncClient:
    """Pooled client shared by every request."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        limits=httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_connections,
            keepalive_expiry=keepalive_expiry,
        ),
    )


def upstream_url(base: str, path: str, query: str = "") -> str:
    """The backend URL for an inbound path and raw query string."""
    if not path.startswith("/"):
        path = "/" + path
    url = base.rstrip("/") + path
    if query:
        url += "?" + query
    return url


def filter_request_headers(raw_headers: Iterable[tuple[bytes, bytes]], rewritten: bool) -> RawHeaders:
    """Filter out headers that shouldn't be forwarded.

    Order and duplicates are kept. A rewritten body invalidates the client's
    Content-Length.
    """
    skip = _REQUEST_SKIP | {b"content-length"} if rewritten else _REQUEST_SKIP
    return [(k, v) for k, v in raw_headers if k.lower() not in skip]


def filter_response_headers(raw_headers: Iterable[tuple[bytes, bytes]]) -> RawHeaders:
    """Filter out hop-by-hop response headers.

    Content-Encoding and Content-Length stay: the body is relayed raw.
    """
    return [(k.lower(), v) for k, v in raw_headers if k.lower() not in _RESPONSE_SKIP]


def _has_body(raw_headers: Iterable[tuple[bytes, bytes]]) -> bool:
    return any(k.lower() in (b"content-length", b"transfer-encoding") for k, _ in raw_headers)


class Forwarder:
    """Sends one request to the backend and relays the response as it streams."""

    def __init__(self, client: httpx.AsyncClient, base_url: str):
        self.client = client
        self.base_url = base_url.rstrip("/")

    def build_request(
        self,
        method: str,
        path: str,
        query: str,
        raw_headers: RawHeaders,
        prepared: PreparedBody,
    ) -> httpx.Request:
        url = upstream_url(self.base_url, path, query)
        headers = filter_request_headers(raw_headers, prepared.rewritten)
        content = prepared.content
        if not prepared.rewritten and not _has_body(raw_headers):
            content = b""

        try:
            # Built directly so the client's default headers are not merged in
            return httpx.Request(
                method,
                url,
                headers=headers,
                content=content,
                extensions={"timeout": self.client.timeout.as_dict()},
            )
        except (httpx.InvalidURL, ValueError, TypeError) as e:
            raise RequestConstructionError(f"could not build request to {url}: {e}") from e

    async def forward(
        self,
        method: str,
        path: str,
        query: str,
        raw_headers: RawHeaders,
        prepared: PreparedBody,
    ) -> StreamingResponse:
        """Forward a request and stream the backend's response back.

        One attempt only. Transport failures become UpstreamUnavailable; any
        status the backend returns, errors included, is passed through.
        """
        request = self.build_request(method, path, query, raw_headers, prepared)

        try:
            upstream = await self.client.send(request, stream=True)
        except httpx.TransportError as e:
            logger.warning(f"Backend unreachable for {method} {request.url}: {e!r}")
            raise UpstreamUnavailable(str(e)) from e

        logfire.info(
            "Request handled",
            method=method,
            url=str(request.url),
            status_code=upstream.status_code,
            content_encoding=request.headers.get("content-encoding", ""),
            content_type=request.headers.get("content-type", ""),
            request_content_length=request.headers.get("content-length", ""),
        )

        async def relay() -> AsyncIterator[bytes]:
            try:
                async for chunk in upstream.aiter_raw():
                    yield chunk
            finally:
                await upstream.aclose()

        response = StreamingResponse(
            relay(),
            status_code=upstream.status_code,
            background=BackgroundTask(upstream.aclose),
        )
        response.raw_headers = filter_response_headers(upstream.headers.raw)
        return response
