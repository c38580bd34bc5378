"""Series submission patterns - drop series by metric name prefix."""

import logging
from collections.abc import AsyncIterable, Callable

import logfire
from starlette.datastructures import Headers

from ..compression import compress, decode_stream, normalize_encoding
from ..config import FilterConfig
from ..filtering import FilterResult, filter_json_series, filter_protobuf_series
from ..protocol import MetricsSink, PreparedBody
from ..sink import emit_drop_count

logger = logging.getLogger(__name__)


class SeriesPattern:
    """Decompress, filter, count, re-compress.

    With no prefix configured this is a passthrough and the body is never
    read. Otherwise the whole body is decoded in memory, filtered, and
    re-encoded with the Content-Encoding it arrived in.
    """

    format_name = "series"

    def __init__(
        self,
        config: FilterConfig,
        sink: MetricsSink,
        filter_payload: Callable[[bytes, str], FilterResult],
    ):
        self.config = config
        self.sink = sink
        self.filter_payload = filter_payload

    async def request(
        self,
        body: AsyncIterable[bytes],
        headers: Headers,
    ) -> PreparedBody:
        if not self.config.enabled:
            return PreparedBody(body)
        prefix = self.config.name_prefix

        encoding = normalize_encoding(headers.get("content-encoding"))
        with logfire.span(
            "filter {format} series",
            format=self.format_name,
            compression=encoding,
        ):
            payload = b"".join([chunk async for chunk in decode_stream(body, encoding)])
            result = self.filter_payload(payload, prefix)
            emit_drop_count(self.sink, result.dropped, self.config.tags, encoding)
            content = compress(result.body, encoding)

        logger.debug(
            f"{self.format_name}: kept {result.retained} of {result.total} series "
            f"({len(payload)} -> {len(result.body)} bytes)"
        )
        return PreparedBody(content, rewritten=True)


class JsonSeriesPattern(SeriesPattern):
    """``POST /api/v1/series``: a JSON object with a ``series`` list."""

    format_name = "json"

    def __init__(self, config: FilterConfig, sink: MetricsSink):
        super().__init__(config, sink, filter_json_series)


class ProtobufSeriesPattern(SeriesPattern):
    """``POST /api/v2/series``: a length-delimited binary MetricPayload."""

    format_name = "protobuf"

    def __init__(self, config: FilterConfig, sink: MetricsSink):
        super().__init__(config, sink, filter_protobuf_series)
