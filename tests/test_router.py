import pytest

from sieve import FilterConfig
from sieve.patterns import JsonSeriesPattern, PassthroughPattern, ProtobufSeriesPattern
from sieve.router import Router, build_router

from .conftest import FakeSink


@pytest.fixture
def router():
    return build_router(FilterConfig("http://backend", "x"), FakeSink())


@pytest.mark.parametrize(
    "method, path, expected",
    [
        ("POST", "/api/v1/series", JsonSeriesPattern),
        ("post", "/api/v1/series", JsonSeriesPattern),
        ("POST", "/api/v1/series/extra", JsonSeriesPattern),
        ("POST", "/api/v2/series", ProtobufSeriesPattern),
        ("GET", "/api/v1/series", PassthroughPattern),
        ("PUT", "/api/v2/series", PassthroughPattern),
        ("POST", "/api/v1/seriesfoo", PassthroughPattern),
        ("POST", "/api/v1/check_run", PassthroughPattern),
        ("POST", "/", PassthroughPattern),
    ],
)
def test_select(router, method, path, expected):
    assert type(router.select(method, path)) is expected


def test_routes_can_be_disabled():
    router = build_router(FilterConfig("http://backend", "x"), FakeSink(), json_route=False)
    assert type(router.select("POST", "/api/v1/series")) is PassthroughPattern
    assert type(router.select("POST", "/api/v2/series")) is ProtobufSeriesPattern


def test_first_registered_route_wins():
    first, second = PassthroughPattern(), PassthroughPattern()
    router = Router()
    router.register("/a", first)
    router.register("/a/b", second)
    assert router.select("POST", "/a/b") is first


def test_custom_methods():
    pattern = PassthroughPattern()
    router = Router()
    router.register("/intake", pattern, methods=("put", "POST"))
    assert router.select("PUT", "/intake") is pattern
    assert router.select("GET", "/intake") is router.default
