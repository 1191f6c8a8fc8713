"""Shared test utilities for lsp-proxy tests."""

from __future__ import annotations

import asyncio
import io

from lsp_proxy.sink import LogMode, LogSink


def make_reader(*chunks: bytes, eof: bool = True) -> asyncio.StreamReader:
    """Create a StreamReader pre-loaded with data.

    Args:
        chunks: Data fed to the reader, in order
        eof: Whether to mark the stream as finished

    Returns:
        StreamReader instance
    """
    reader = asyncio.StreamReader()
    for chunk in chunks:
        reader.feed_data(chunk)
    if eof:
        reader.feed_eof()
    return reader


class RecordingWriter:
    """Minimal StreamWriter stand-in collecting everything written."""

    def __init__(self, fail_after: int | None = None) -> None:
        self.data = bytearray()
        self.writes = 0
        self.fail_after = fail_after

    def write(self, data: bytes) -> None:
        if self.fail_after is not None and self.writes >= self.fail_after:
            raise BrokenPipeError("Broken pipe")
        self.writes += 1
        self.data.extend(data)

    async def drain(self) -> None:
        await asyncio.sleep(0)


class ErrorReader:
    """StreamReader stand-in that hands out some chunks, then fails."""

    def __init__(self, *chunks: bytes) -> None:
        self.chunks = list(chunks)

    async def read(self, n: int = -1) -> bytes:
        if self.chunks:
            return self.chunks.pop(0)
        raise ConnectionResetError("Connection reset by peer")


def memory_sink(mode: LogMode = LogMode.RAW, name: str = "test") -> tuple[LogSink, io.BytesIO]:
    """Create a LogSink backed by an in-memory stream."""
    stream = io.BytesIO()
    return LogSink(stream, mode, name), stream
