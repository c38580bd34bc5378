"""Pattern routing - determines which pattern handles each request."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from .config import FilterConfig
from .patterns import JsonSeriesPattern, PassthroughPattern, ProtobufSeriesPattern
from .protocol import MetricsSink, Pattern

logger = logging.getLogger(__name__)

JSON_SERIES_PATH = "/api/v1/series"
PROTOBUF_SERIES_PATH = "/api/v2/series"


@dataclass(frozen=True)
class Route:
    path: str
    methods: frozenset[str]
    pattern: Pattern

    def matches(self, method: str, path: str) -> bool:
        if method.upper() not in self.methods:
            return False
        if path == self.path:
            return True
        return path.startswith(self.path.rstrip("/") + "/")


class Router:
    """Maps method and path to a pattern.

    Routes are checked in registration order; anything unmatched goes to the
    default pattern.
    """

    def __init__(self, default: Pattern | None = None):
        self.default = default or PassthroughPattern()
        self.routes: list[Route] = []

    def register(
        self,
        path: str,
        pattern: Pattern,
        methods: Iterable[str] = ("POST",),
    ) -> None:
        """Register a pattern for a path and everything below it."""
        route = Route(path, frozenset(m.upper() for m in methods), pattern)
        self.routes.append(route)
        logger.info(f"Registered {type(pattern).__name__} for {sorted(route.methods)} {path}")

    def select(self, method: str, path: str) -> Pattern:
        for route in self.routes:
            if route.matches(method, path):
                return route.pattern
        return self.default


def build_router(
    config: FilterConfig,
    sink: MetricsSink,
    json_route: bool = True,
    protobuf_route: bool = True,
) -> Router:
    """The series routes, each toggleable, over a passthrough default."""
    router = Router(PassthroughPattern())
    if json_route:
        router.register(JSON_SERIES_PATH, JsonSeriesPattern(config, sink))
    if protobuf_route:
        router.register(PROTOBUF_SERIES_PATH, ProtobufSeriesPattern(config, sink))
    logger.info(f"Pattern router initialized with {len(router.routes)} routes")
    return router
