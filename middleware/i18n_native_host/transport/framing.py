"""Native-messaging framing.

Each message is a 4-byte little-endian unsigned length followed by that many
bytes of UTF-8 JSON. The length counts bytes, not characters.
"""

from __future__ import annotations

import json
import struct
from typing import IO, Any, Optional

HEADER = struct.Struct("<I")
HEADER_SIZE = HEADER.size
DEFAULT_CHUNK_SIZE = 64 * 1024


class ProtocolError(RuntimeError):
    pass


class MessageParseError(ProtocolError):
    """The frame arrived intact but its payload is not valid JSON."""


def encode_message(message: Any) -> bytes:
    payload = json.dumps(message, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    return HEADER.pack(len(payload)) + payload


def decode_payload(payload: bytes) -> Any:
    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ProtocolError(f"Payload is not valid UTF-8: {exc}") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise MessageParseError(str(exc)) from exc


class FrameDecoder:
    """Accumulates raw chunks until one complete frame is buffered."""

    def __init__(self, max_message_bytes: Optional[int] = None):
        self.max_message_bytes = max_message_bytes
        self._buffer = bytearray()
        self._expected: Optional[int] = None

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    @property
    def expected(self) -> Optional[int]:
        return self._expected

    def feed(self, chunk: bytes) -> Optional[bytes]:
        """Add ``chunk``; return the first complete payload once available."""
        self._buffer.extend(chunk)
        if self._expected is None:
            if len(self._buffer) < HEADER_SIZE:
                return None
            (length,) = HEADER.unpack_from(self._buffer, 0)
            if self.max_message_bytes is not None and length > self.max_message_bytes:
                raise ProtocolError(
                    f"Frame length {length} exceeds limit of {self.max_message_bytes} bytes"
                )
            self._expected = length
            del self._buffer[:HEADER_SIZE]
        if len(self._buffer) < self._expected:
            return None
        payload = bytes(self._buffer[: self._expected])
        del self._buffer[: self._expected]
        self._expected = None
        return payload


def _read_chunk(stream: IO[bytes], size: int) -> bytes:
    # read1 returns whatever is available instead of waiting for ``size`` bytes.
    reader = getattr(stream, "read1", None)
    if reader is not None:
        return reader(size)
    return stream.read(size)


def read_frame(
    stream: IO[bytes],
    max_message_bytes: Optional[int] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> bytes:
    """Block until one whole frame has been read from ``stream``.

    Bytes after the first frame are left unread or discarded; the host
    handles exactly one message per process.
    """
    decoder = FrameDecoder(max_message_bytes)
    while True:
        chunk = _read_chunk(stream, chunk_size)
        if not chunk:
            if decoder.expected is None:
                raise ProtocolError(
                    f"Input closed before a complete length prefix ({decoder.buffered} of {HEADER_SIZE} bytes)"
                )
            raise ProtocolError(
                f"Input closed before a complete frame ({decoder.buffered} of {decoder.expected} bytes)"
            )
        frame = decoder.feed(chunk)
        if frame is not None:
            return frame


def write_frame(stream: IO[bytes], message: Any) -> int:
    """Write one framed message and flush; returns the payload byte length."""
    data = encode_message(message)
    stream.write(data)
    stream.flush()
    return len(data) - HEADER_SIZE
