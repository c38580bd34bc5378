import httpx
import pytest

from sieve.errors import RequestConstructionError
from sieve.protocol import PreparedBody
from sieve.proxy import Forwarder, filter_request_headers, filter_response_headers, upstream_url


@pytest.mark.parametrize(
    "base, path, query, expected",
    [
        ("http://backend:8080", "/api/v1/series", "", "http://backend:8080/api/v1/series"),
        ("http://backend:8080/", "/api/v1/series", "", "http://backend:8080/api/v1/series"),
        ("http://backend/prefix", "/intake", "api_key=abc&x=1", "http://backend/prefix/intake?api_key=abc&x=1"),
        ("http://backend", "status", "", "http://backend/status"),
    ],
)
def test_upstream_url(base, path, query, expected):
    assert upstream_url(base, path, query) == expected


def test_request_headers_keep_duplicates_in_order():
    raw = [
        (b"host", b"sieve:8081"),
        (b"x-dup", b"1"),
        (b"content-length", b"42"),
        (b"connection", b"keep-alive"),
        (b"x-dup", b"2"),
        (b"transfer-encoding", b"chunked"),
        (b"dd-api-key", b"secret"),
    ]
    assert filter_request_headers(raw, rewritten=False) == [
        (b"x-dup", b"1"),
        (b"content-length", b"42"),
        (b"x-dup", b"2"),
        (b"dd-api-key", b"secret"),
    ]
    assert filter_request_headers(raw, rewritten=True) == [
        (b"x-dup", b"1"),
        (b"x-dup", b"2"),
        (b"dd-api-key", b"secret"),
    ]


def test_response_headers_are_relayed_raw():
    raw = [
        (b"Content-Encoding", b"gzip"),
        (b"Content-Length", b"12"),
        (b"Connection", b"close"),
        (b"Set-Cookie", b"a=1"),
        (b"Set-Cookie", b"b=2"),
    ]
    assert filter_response_headers(raw) == [
        (b"content-encoding", b"gzip"),
        (b"content-length", b"12"),
        (b"set-cookie", b"a=1"),
        (b"set-cookie", b"b=2"),
    ]


def test_invalid_backend_url_fails_to_build():
    forwarder = Forwarder(httpx.AsyncClient(), "http://127.0.0.1:notaport")
    with pytest.raises(RequestConstructionError):
        forwarder.build_request("POST", "/api/v1/series", "", [], PreparedBody(b"{}", rewritten=True))


def test_request_without_body_sends_none():
    forwarder = Forwarder(httpx.AsyncClient(), "http://backend")

    async def never_read():
        raise AssertionError("body should not be read")
        yield b""

    request = forwarder.build_request("GET", "/", "", [(b"accept", b"*/*")], PreparedBody(never_read()))

    assert request.content == b""
    assert "content-length" not in request.headers
    assert "transfer-encoding" not in request.headers


def test_client_default_headers_are_not_added():
    forwarder = Forwarder(httpx.AsyncClient(), "http://backend")
    request = forwarder.build_request("GET", "/", "", [], PreparedBody(b""))
    assert "user-agent" not in request.headers
    assert "accept-encoding" not in request.headers
    assert request.headers["host"] == "backend"
