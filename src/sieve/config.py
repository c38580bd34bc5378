"""Startup configuration. Built once, then shared read-only."""

from dataclasses import dataclass

DEFAULT_BACKEND_URL = "http://127.0.0.1:8080"
DEFAULT_STATSD_ADDRESS = "127.0.0.1:8125"


@dataclass(frozen=True)
class FilterConfig:
    """What to filter and where to send the rest.

    An empty ``name_prefix`` disables filtering entirely.
    """

    backend_url: str = DEFAULT_BACKEND_URL
    name_prefix: str = ""
    tags: tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "backend_url", self.backend_url.rstrip("/"))
        object.__setattr__(self, "tags", tuple(self.tags))

    @property
    def enabled(self) -> bool:
        return bool(self.name_prefix)


@dataclass(frozen=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8081
    statsd_address: str = DEFAULT_STATSD_ADDRESS
    json_route: bool = True
    protobuf_route: bool = True
    shutdown_timeout: float = 10.0
    request_timeout: float = 60.0
    log_level: str = "INFO"
