"""Length-delimited binary wire codec.

Walks protobuf-encoded messages field by field without decoding them into
objects. Each field keeps a view of its complete original encoding (tag,
length prefix and payload), so fields the filter never inspects are written
back byte for byte and in their original order.

Only the two field numbers below are ever looked at. They come from
``MetricPayload`` in DataDog's agent-payload schema
(proto/metrics/agent_payload.proto) and are part of the wire contract.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import IntEnum

from .errors import MalformedWireFormatError

# MetricPayload.series
SERIES_FIELD = 1
# MetricPayload.MetricSeries.metric
METRIC_NAME_FIELD = 2

_MAX_VARINT_BYTES = 10
_MAX_FIELD_NUMBER = (1 << 29) - 1


class WireType(IntEnum):
    VARINT = 0
    I64 = 1
    LEN = 2
    SGROUP = 3
    EGROUP = 4
    I32 = 5


_FIXED_SIZES = {WireType.I64: 8, WireType.I32: 4}


@dataclass(frozen=True)
class Field:
    """One field as it appeared on the wire.

    ``raw`` is the full original encoding; ``value`` is the payload part of it
    (the varint bytes, the fixed-width bytes, or the length-delimited bytes).
    Both are memoryviews into the source buffer.
    """

    number: int
    wire_type: WireType
    raw: memoryview
    value: memoryview

    def as_bytes(self) -> memoryview:
        if self.wire_type != WireType.LEN:
            raise MalformedWireFormatError(
                f"field {self.number}: expected length-delimited value, "
                f"got wire type {self.wire_type.name}"
            )
        return self.value


def decode_varint(buf, pos: int) -> tuple[int, int]:
    """Read a base-128 varint at ``pos``. Returns (value, new position)."""
    result = 0
    shift = 0
    end = len(buf)
    for _ in range(_MAX_VARINT_BYTES):
        if pos >= end:
            raise MalformedWireFormatError("truncated varint")
        byte = buf[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, pos
        shift += 7
    raise MalformedWireFormatError("varint overflows 64 bits")


def encode_varint(value: int) -> bytes:
    if value < 0:
        value &= (1 << 64) - 1
    out = bytearray()
    while True:
        bits = value & 0x7F
        value >>= 7
        if value:
            out.append(bits | 0x80)
        else:
            out.append(bits)
            return bytes(out)


def iter_fields(buf) -> Iterator[Field]:
    """Yield the top-level fields of ``buf`` in order.

    Single forward pass. Raises MalformedWireFormatError as soon as a tag,
    length prefix or payload runs past the end of the buffer.
    """
    view = memoryview(buf)
    pos = 0
    end = len(view)
    while pos < end:
        start = pos
        key, pos = decode_varint(view, pos)
        number = key >> 3
        if number == 0 or number > _MAX_FIELD_NUMBER:
            raise MalformedWireFormatError(f"invalid field number {number}")
        try:
            wire_type = WireType(key & 0x07)
        except ValueError:
            raise MalformedWireFormatError(
                f"field {number}: invalid wire type {key & 0x07}"
            ) from None

        if wire_type == WireType.VARINT:
            value_start = pos
            _, pos = decode_varint(view, pos)
        elif wire_type == WireType.LEN:
            length, value_start = decode_varint(view, pos)
            pos = value_start + length
            if pos > end:
                raise MalformedWireFormatError(
                    f"field {number}: length {length} exceeds remaining "
                    f"{end - value_start} bytes"
                )
        elif wire_type in _FIXED_SIZES:
            value_start = pos
            pos += _FIXED_SIZES[wire_type]
            if pos > end:
                raise MalformedWireFormatError(f"field {number}: truncated fixed-width value")
        else:
            raise MalformedWireFormatError(
                f"field {number}: group wire types are not supported"
            )

        yield Field(number, wire_type, view[start:pos], view[value_start:pos])


def find_field(buf, number: int) -> Field | None:
    """Return the first field numbered ``number``, reading no further than it."""
    for field in iter_fields(buf):
        if field.number == number:
            return field
    return None


def encode_field(number: int, payload: bytes) -> bytes:
    """Encode a length-delimited field."""
    return (
        encode_varint((number << 3) | WireType.LEN)
        + encode_varint(len(payload))
        + bytes(payload)
    )


def encode_varint_field(number: int, value: int) -> bytes:
    return encode_varint((number << 3) | WireType.VARINT) + encode_varint(value)


def encode_fields(fields: Iterable[Field]) -> bytes:
    """Re-emit fields exactly as they were read."""
    return b"".join(field.raw for field in fields)
