import httpx
import logfire
import pytest

from sieve import FilterConfig, create_app
from sieve.wire import METRIC_NAME_FIELD, SERIES_FIELD, encode_field

logfire.configure(send_to_logfire=False, console=False)

BACKEND_URL = "http://backend.test"


class FakeSink:
    def __init__(self, fail: bool = False):
        self.calls = []
        self.closed = False
        self.fail = fail

    def count(self, name, value, tags, rate):
        if self.fail:
            raise OSError("statsd agent is gone")
        self.calls.append((name, value, tuple(tags), rate))

    def close(self):
        self.closed = True


def reply(status_code: int = 200, content: bytes = b"", headers=()) -> httpx.Response:
    """A backend response that is still unread, like one off the network."""
    headers = [*headers, ("content-length", str(len(content)))]
    return httpx.Response(status_code, headers=headers, stream=httpx.ByteStream(content))


class Backend:
    """Records what reaches the backend and answers with ``respond``."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.respond = lambda request: reply(200, b"ok")

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)


def series(name: str | None, extra: bytes = b"") -> bytes:
    body = encode_field(METRIC_NAME_FIELD, name.encode()) if name is not None else b""
    return encode_field(SERIES_FIELD, body + extra)


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def backend():
    return Backend()


@pytest.fixture
def serve(sink, backend):
    """Build the app against the recording backend and return a client for it."""

    def _serve(prefix: str = "", backend_url: str = BACKEND_URL, **kwargs) -> httpx.AsyncClient:
        config = FilterConfig(backend_url, prefix, ("env:test",))
        upstream = httpx.AsyncClient(transport=httpx.MockTransport(backend))
        app = create_app(config, sink, client=upstream, **kwargs)
        return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://sieve")

    return _serve
