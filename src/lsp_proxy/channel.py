"""Unidirectional channels pumping bytes from a source to a destination.

Each channel owns its read buffer, its FrameParser and its log sink; nothing is
shared between channels, so no locking is needed.

Data flow for one chunk:
    source.read() -> log sink (raw chunk or parsed messages) -> destination.write()

Forwarding always uses the chunk exactly as read. Parsing only affects what is
logged.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum

from lsp_proxy.framing import FrameParser
from lsp_proxy.logging import TRACE, get_logger
from lsp_proxy.sink import LogMode, LogSink
from lsp_proxy.streams import FileReader, FileWriter

log = get_logger("channel")

READ_CHUNK_SIZE = 8192
STDERR_ECHO_PREFIX = "[LSP stderr] "


class ChannelResult(Enum):
    """Why a channel stopped."""

    EOF = "eof"
    READ_ERROR = "read_error"
    WRITE_ERROR = "write_error"


class ProxyChannel:
    """Drive one direction of the proxy until EOF or a transport error."""

    def __init__(
        self,
        name: str,
        reader: asyncio.StreamReader | FileReader,
        writer: asyncio.StreamWriter | FileWriter,
        sink: LogSink,
    ) -> None:
        self.name = name
        self.reader = reader
        self.writer = writer
        self.sink = sink
        # Only consulted in JSON-lines mode
        self.parser = FrameParser() if sink.mode is LogMode.JSON_LINES else None
        self.bytes_forwarded = 0

    async def run(self) -> ChannelResult:
        """Pump chunks until the source closes or a transport error occurs."""
        while True:
            try:
                chunk = await self.reader.read(READ_CHUNK_SIZE)
            except OSError as e:
                log.error("Error reading from %s: %s", self.name, e)
                return ChannelResult.READ_ERROR

            if not chunk:
                log.debug("%s reached EOF after %d bytes", self.name, self.bytes_forwarded)
                return ChannelResult.EOF

            log.log(TRACE, "%s: read %d bytes", self.name, len(chunk))
            try:
                self.sink.record_chunk(chunk, self.parser)
            except Exception:
                # The chunk is forwarded even when logging it fails
                log.exception("Failed to log %s chunk", self.name)

            try:
                self.writer.write(chunk)
                await self.writer.drain()
            except (OSError, RuntimeError) as e:
                log.error("Failed to forward %s: %s", self.name, e)
                return ChannelResult.WRITE_ERROR

            self.bytes_forwarded += len(chunk)


class StderrChannel:
    """Read-only channel for the server's diagnostics.

    The stream is always logged raw, line by line, whatever the log mode of
    the other channels. Each line is also echoed to the proxy's own
    diagnostic stream.
    """

    def __init__(
        self,
        name: str,
        reader: asyncio.StreamReader,
        sink: LogSink,
        echo: Callable[[str], None],
    ) -> None:
        self.name = name
        self.reader = reader
        self.sink = sink
        self.echo = echo
        self._pending = bytearray()

    async def run(self) -> ChannelResult:
        while True:
            try:
                chunk = await self.reader.read(READ_CHUNK_SIZE)
            except OSError as e:
                log.error("Error reading from %s: %s", self.name, e)
                self._flush_pending()
                return ChannelResult.READ_ERROR

            if not chunk:
                self._flush_pending()
                return ChannelResult.EOF

            self._pending.extend(chunk)
            while (newline := self._pending.find(b"\n")) != -1:
                line = bytes(self._pending[: newline + 1])
                del self._pending[: newline + 1]
                self._emit(line)

    def _flush_pending(self) -> None:
        if self._pending:
            line = bytes(self._pending)
            self._pending.clear()
            self._emit(line)

    def _emit(self, line: bytes) -> None:
        self.sink.write_line(line)
        text = line.decode("utf-8", errors="replace").rstrip("\r\n")
        try:
            self.echo(f"{STDERR_ECHO_PREFIX}{text}")
        except OSError as e:
            log.debug("Failed to echo %s line: %s", self.name, e)
