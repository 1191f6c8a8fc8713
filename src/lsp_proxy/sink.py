"""Log sinks recording the traffic seen on a channel."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, BinaryIO

from lsp_proxy.framing import FrameParser, Message
from lsp_proxy.logging import TRACE, get_logger

log = get_logger("sink")


class LogMode(Enum):
    """How a channel's traffic is written to its log."""

    RAW = "raw"
    """Every chunk read is appended verbatim."""

    JSON_LINES = "json-lines"
    """One compact JSON document per complete message."""

    @property
    def suffix(self) -> str:
        """File extension used for logs in this mode."""
        return "jsonl" if self is LogMode.JSON_LINES else "log"


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-standard JSON constant: {name}")


def to_json_line(text: str) -> tuple[bytes, bool]:
    """Render a message body as one UTF-8 log line.

    Returns:
        (line, parsed) where line ends with a newline. When the body is valid
        JSON the line is its canonical compact form; otherwise it is the body
        text unchanged and parsed is False. JSON nested too deeply to decode
        counts as unparsed.
    """
    try:
        value = json.loads(text, parse_constant=_reject_constant)
        compact = json.dumps(value, separators=(",", ":"), sort_keys=True, ensure_ascii=False)
    except (ValueError, RecursionError):
        return f"{text}\n".encode("utf-8"), False

    try:
        return f"{compact}\n".encode("utf-8"), True
    except UnicodeEncodeError:
        # Lone surrogates from \uD800-style escapes only survive as escapes
        compact = json.dumps(value, separators=(",", ":"), sort_keys=True)
        return f"{compact}\n".encode("ascii"), True


class LogSink:
    """Append-only log destination for one channel.

    The stream is opened by the caller and owned by the sink from then on.
    Write failures are reported and dropped; they never propagate into the
    forwarding loop.
    """

    def __init__(self, stream: BinaryIO, mode: LogMode, name: str) -> None:
        self.stream = stream
        self.mode = mode
        self.name = name
        self.messages_logged = 0
        self.parse_failures = 0

    def record_chunk(self, chunk: bytes, parser: FrameParser | None = None) -> None:
        """Log one chunk read from the channel source.

        In JSON-lines mode the chunk is fed to ``parser`` and every message it
        completes is logged; a partial message stays buffered for later chunks.
        """
        if self.mode is LogMode.RAW:
            self._write(chunk)
            return
        if parser is None:
            raise ValueError("JSON-lines logging needs a FrameParser")

        parser.feed(chunk)
        for message in parser.messages():
            self.record_message(message)

    def record_message(self, message: Message) -> None:
        """Log one complete message as a JSON line."""
        line, parsed = to_json_line(message.text)
        if not parsed:
            self.parse_failures += 1
            log.warning("Failed to parse JSON from %s (%d bytes)", self.name, message.content_length)
        log.log(TRACE, "%s: %r", self.name, line)
        self._write(line)
        self.messages_logged += 1

    def write_line(self, line: bytes) -> None:
        """Append an already delimited line."""
        self._write(line)

    def close(self) -> None:
        try:
            self.stream.close()
        except OSError as e:
            log.error("Failed to close %s log: %s", self.name, e)

    def _write(self, data: bytes) -> None:
        try:
            self.stream.write(data)
            self.stream.flush()
        except (OSError, ValueError) as e:
            log.error("Failed to write to %s log: %s", self.name, e)
