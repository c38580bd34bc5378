"""Series filtering by metric name prefix.

Both submission formats share one predicate and one drop count. The JSON
form is materialized in full; the binary form is walked field by field and
only the nested name of each series is read.
"""

import json
import logging
from dataclasses import dataclass

from .errors import DecodeError, EncodeError, MalformedWireFormatError
from .wire import METRIC_NAME_FIELD, SERIES_FIELD, WireType, find_field, iter_fields

logger = logging.getLogger(__name__)

METRICS_FILTERED_COUNT = "proxy_filter.filtered_metrics.count"


@dataclass(frozen=True)
class FilterResult:
    body: bytes
    total: int
    dropped: int

    @property
    def retained(self) -> int:
        return self.total - self.dropped


def is_dropped(name: str | bytes | memoryview, prefix: str) -> bool:
    """True when ``name`` starts with ``prefix``. An empty prefix drops nothing."""
    if not prefix:
        return False
    if isinstance(name, str):
        return name.startswith(prefix)
    return bytes(name).startswith(prefix.encode("utf-8"))


def _series_records(payload) -> tuple[dict, list | None]:
    try:
        document = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(f"invalid JSON payload: {e}") from e

    if not isinstance(document, dict):
        raise DecodeError(f"expected a JSON object, got {type(document).__name__}")
    if "series" not in document:
        return document, None

    series = document["series"]
    if not isinstance(series, list):
        raise DecodeError(f"expected 'series' to be a list, got {type(series).__name__}")
    for index, record in enumerate(series):
        if not isinstance(record, dict):
            raise DecodeError(f"series[{index}]: expected an object")
        if not isinstance(record.get("metric"), str):
            raise DecodeError(f"series[{index}]: missing or non-string 'metric'")
    return document, series


def filter_json_series(payload: bytes, prefix: str) -> FilterResult:
    """Drop JSON series records whose ``metric`` starts with ``prefix``.

    Retained records keep their order and every key they carried. The output
    is compact JSON followed by a newline. With an empty prefix the payload is
    validated and returned as is.
    """
    document, series = _series_records(payload)
    total = len(series) if series is not None else 0

    if not prefix:
        return FilterResult(bytes(payload), total, 0)

    if series is not None:
        document["series"] = [r for r in series if not is_dropped(r["metric"], prefix)]
        dropped = total - len(document["series"])
    else:
        dropped = 0

    try:
        body = json.dumps(document, separators=(",", ":"), ensure_ascii=False) + "\n"
    except (TypeError, ValueError) as e:
        raise EncodeError(f"could not re-encode JSON payload: {e}") from e
    return FilterResult(body.encode("utf-8"), total, dropped)


def filter_protobuf_series(payload: bytes, prefix: str) -> FilterResult:
    """Drop binary series whose nested metric name starts with ``prefix``.

    Every other top-level field, and every retained series, is copied from
    the input byte for byte. A series with no name field is kept.
    """
    out = bytearray()
    total = 0
    dropped = 0

    for field in iter_fields(payload):
        if field.number == SERIES_FIELD:
            if field.wire_type != WireType.LEN:
                raise MalformedWireFormatError(
                    f"series field has wire type {field.wire_type.name}, "
                    "expected length-delimited"
                )
            total += 1
            name = find_field(field.value, METRIC_NAME_FIELD)
            if name is not None and is_dropped(name.as_bytes(), prefix):
                dropped += 1
                continue
        out += field.raw

    logger.debug(f"Filtered {dropped} of {total} binary series")
    return FilterResult(bytes(out), total, dropped)
