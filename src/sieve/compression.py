"""Content-Encoding adapter.

Wraps request bodies with the matching decompressor on the way in and the
matching compressor on the way out. Only ``gzip`` and ``deflate`` (the zlib
format) are recognized; every other token, or no token at all, is treated as
identity and passed through untouched.
"""

import zlib
from collections.abc import AsyncIterable, AsyncIterator

from .errors import DecodeError, EncodeError

GZIP = "gzip"
DEFLATE = "deflate"
IDENTITY = "identity"

_WBITS = {
    GZIP: 16 + zlib.MAX_WBITS,
    DEFLATE: zlib.MAX_WBITS,
}


def normalize_encoding(token: str | None) -> str:
    """Map a Content-Encoding header value to gzip, deflate or identity."""
    if not token:
        return IDENTITY
    token = token.strip().lower()
    if token in _WBITS:
        return token
    return IDENTITY


class StreamDecoder:
    """Incremental decompressor for one request body.

    Feed it chunks as they arrive, then call ``flush()`` once the source is
    exhausted. ``flush()`` raises if the compressed stream was cut short.
    Multi-member gzip bodies are decoded member after member.
    """

    def __init__(self, encoding: str | None):
        self.encoding = normalize_encoding(encoding)
        self._obj = self._new_obj()

    def _new_obj(self):
        if self.encoding == IDENTITY:
            return None
        return zlib.decompressobj(wbits=_WBITS[self.encoding])

    def feed(self, chunk: bytes) -> bytes:
        if self._obj is None:
            return bytes(chunk)

        out = []
        data = chunk
        while data:
            if self._obj.eof:
                if self.encoding != GZIP:
                    # zlib streams end at their checksum; trailing bytes are ignored
                    break
                self._obj = self._new_obj()
            try:
                out.append(self._obj.decompress(data))
            except zlib.error as e:
                raise DecodeError(f"{self.encoding}: {e}") from e
            data = self._obj.unused_data if self._obj.eof else b""
        return b"".join(out)

    def flush(self) -> bytes:
        if self._obj is None:
            return b""
        try:
            tail = self._obj.flush()
        except zlib.error as e:
            raise DecodeError(f"{self.encoding}: {e}") from e
        if not self._obj.eof:
            raise DecodeError(f"{self.encoding}: unexpected end of compressed stream")
        return tail


class StreamEncoder:
    """Incremental compressor. ``close()`` must be called to finalize output."""

    def __init__(self, encoding: str | None, level: int = zlib.Z_DEFAULT_COMPRESSION):
        self.encoding = normalize_encoding(encoding)
        self._closed = False
        if self.encoding == IDENTITY:
            self._obj = None
        else:
            self._obj = zlib.compressobj(level, zlib.DEFLATED, _WBITS[self.encoding])

    def write(self, data: bytes) -> bytes:
        if self._closed:
            raise EncodeError(f"{self.encoding}: write after close")
        if self._obj is None:
            return bytes(data)
        try:
            return self._obj.compress(data)
        except zlib.error as e:
            raise EncodeError(f"{self.encoding}: {e}") from e

    def close(self) -> bytes:
        if self._closed:
            return b""
        self._closed = True
        if self._obj is None:
            return b""
        try:
            return self._obj.flush(zlib.Z_FINISH)
        except zlib.error as e:
            raise EncodeError(f"{self.encoding}: {e}") from e


def decompress(data: bytes, encoding: str | None) -> bytes:
    """Decode a complete body."""
    decoder = StreamDecoder(encoding)
    return decoder.feed(data) + decoder.flush()


def compress(data: bytes, encoding: str | None) -> bytes:
    """Encode a complete body."""
    encoder = StreamEncoder(encoding)
    return encoder.write(data) + encoder.close()


async def decode_stream(
    chunks: AsyncIterable[bytes], encoding: str | None
) -> AsyncIterator[bytes]:
    """Yield decompressed data as the compressed chunks arrive."""
    decoder = StreamDecoder(encoding)
    async for chunk in chunks:
        data = decoder.feed(chunk)
        if data:
            yield data
    tail = decoder.flush()
    if tail:
        yield tail
