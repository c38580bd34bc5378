"""DogStatsD metrics sink."""

import logging
from collections.abc import Sequence

import logfire
from datadog.dogstatsd import DogStatsd

from .filtering import METRICS_FILTERED_COUNT
from .protocol import MetricsSink

logger = logging.getLogger(__name__)

UNIX_SCHEME = "unix://"


def parse_address(address: str) -> dict:
    """Turn ``host:port`` or ``unix:///path`` into DogStatsd keyword arguments."""
    address = address.strip()
    if address.startswith(UNIX_SCHEME):
        path = address[len(UNIX_SCHEME):]
        if not path:
            raise ValueError(f"statsd address {address!r} has no socket path")
        return {"socket_path": path}

    host, sep, port = address.rpartition(":")
    if not sep or not host or not port:
        raise ValueError(f"statsd address {address!r} is not host:port or unix:///path")
    host = host.strip("[]")
    try:
        port_number = int(port)
    except ValueError:
        raise ValueError(f"statsd address {address!r} has a non-numeric port") from None
    if not 0 < port_number < 65536:
        raise ValueError(f"statsd address {address!r} has an out-of-range port")
    return {"host": host, "port": port_number}


class DogStatsdSink:
    """Counts sent to a DogStatsD agent over UDP or a unix socket."""

    def __init__(self, address: str, client: DogStatsd | None = None):
        self.address = address
        self._client = client or DogStatsd(**parse_address(address))

    def count(self, name: str, value: int, tags: Sequence[str], rate: float) -> None:
        self._client.increment(name, value, tags=list(tags), sample_rate=rate)

    def close(self) -> None:
        self._client.close_socket()


def emit_drop_count(
    sink: MetricsSink,
    dropped: int,
    tags: Sequence[str],
    encoding: str,
) -> None:
    """Log and count the series dropped from one request.

    A failing sink is logged and otherwise ignored.
    """
    logfire.info(
        "Parsed metrics",
        drop_count=dropped,
        compression=encoding,
    )
    try:
        sink.count(METRICS_FILTERED_COUNT, dropped, tags, 1)
    except Exception as e:
        logger.warning(f"Failed to emit {METRICS_FILTERED_COUNT}: {e}")
