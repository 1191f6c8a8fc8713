"""Incremental LSP message framing over an arbitrary byte stream.

LSP Header Format:
    Content-Length: <length>\r\n
    [Content-Type: <type>]\r\n
    \r\n
    <json-rpc-message>

Bytes arrive in whatever chunks the pipe hands out. ``FrameParser`` keeps the
bytes it has not yet resolved into a message and hands back complete messages
one at a time. A header block without a usable Content-Length never produces a
message; the parser simply keeps waiting for more bytes.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

# Header constants
CONTENT_LENGTH_PREFIX = "Content-Length:"
HEADER_ENCODING = "ascii"
CONTENT_ENCODING = "utf-8"
HEADER_SEPARATOR = b"\r\n\r\n"


@dataclass(frozen=True)
class Message:
    """One complete framed message, as it appeared on the wire."""

    raw: bytes
    """Header block, separator and body."""

    header_length: int
    """Number of header bytes before the blank-line separator."""

    text: str
    """Body decoded as UTF-8, invalid sequences replaced."""

    @property
    def body(self) -> bytes:
        return self.raw[self.header_length + len(HEADER_SEPARATOR) :]

    @property
    def content_length(self) -> int:
        return len(self.raw) - self.header_length - len(HEADER_SEPARATOR)


def parse_content_length(header_bytes: bytes) -> int | None:
    """Find the declared body length in a header block.

    Args:
        header_bytes: Raw header bytes, without the trailing CRLF CRLF.

    Returns:
        The value of the first line starting with ``Content-Length:``, or None
        when no such line exists or its value is not a non-negative integer.

    Example:
        >>> parse_content_length(b"Content-Length: 42\\r\\nContent-Type: x")
        42
    """
    header_text = header_bytes.decode(HEADER_ENCODING, errors="replace")

    for line in header_text.split("\n"):
        if not line.startswith(CONTENT_LENGTH_PREFIX):
            continue

        value = line[len(CONTENT_LENGTH_PREFIX) :].strip()
        digits = value[1:] if value.startswith("+") else value
        if not digits.isascii() or not digits.isdigit():
            return None
        return int(digits)

    return None


class FrameParser:
    """Stateful decoder turning an append-only byte stream into messages.

    Usage::

        parser = FrameParser()
        parser.feed(chunk)
        for message in parser.messages():
            handle(message)
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    @property
    def buffered(self) -> int:
        """Number of bytes received but not yet consumed by a message."""
        return len(self._buffer)

    def feed(self, data: bytes) -> None:
        """Append bytes read from the stream."""
        self._buffer.extend(data)

    def next_message(self) -> Message | None:
        """Extract at most one complete message.

        Returns None while the buffer does not hold a complete message yet.
        """
        header_end = self._buffer.find(HEADER_SEPARATOR)
        if header_end == -1:
            return None

        content_length = parse_content_length(bytes(self._buffer[:header_end]))
        if content_length is None:
            return None

        body_start = header_end + len(HEADER_SEPARATOR)
        body_end = body_start + content_length
        if len(self._buffer) < body_end:
            return None

        raw = bytes(self._buffer[:body_end])
        del self._buffer[:body_end]

        return Message(
            raw=raw,
            header_length=header_end,
            text=raw[body_start:].decode(CONTENT_ENCODING, errors="replace"),
        )

    def messages(self) -> Iterator[Message]:
        """Drain every complete message currently buffered."""
        while (message := self.next_message()) is not None:
            yield message


def encode_message(payload: dict[str, Any] | str | bytes) -> bytes:
    """Frame a payload with a Content-Length header.

    Dicts are serialized as compact JSON; strings are UTF-8 encoded; bytes are
    framed as-is.

    Example:
        >>> encode_message({"jsonrpc": "2.0", "id": 1})
        b'Content-Length: 24\\r\\n\\r\\n{"jsonrpc":"2.0","id":1}'
    """
    if isinstance(payload, dict):
        payload = json.dumps(payload, separators=(",", ":"))
    body = payload.encode(CONTENT_ENCODING) if isinstance(payload, str) else payload

    header = f"Content-Length: {len(body)}\r\n\r\n"
    return header.encode(HEADER_ENCODING) + body
