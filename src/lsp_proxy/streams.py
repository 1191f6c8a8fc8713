"""Async stream wrappers for the proxy's own stdin and stdout.

Pipes, sockets and terminals go through the event loop's pipe transports.
Anything else (a regular file, ``/dev/null``) cannot be registered with the
selector, so it is read and written with blocking calls on the default
executor instead.
"""

from __future__ import annotations

import asyncio
import os
import stat
import sys
from typing import BinaryIO

from lsp_proxy.logging import get_logger

log = get_logger("streams")

FILE_READ_SIZE = 65536


def is_pollable(pipe: BinaryIO) -> bool:
    """Whether ``pipe`` can be watched by the event loop's selector."""
    mode = os.fstat(pipe.fileno()).st_mode
    if stat.S_ISFIFO(mode) or stat.S_ISSOCK(mode):
        return True
    return stat.S_ISCHR(mode) and os.isatty(pipe.fileno())


class FileReader:
    """StreamReader stand-in doing blocking reads in a worker thread."""

    def __init__(self, fd: int) -> None:
        self.fd = fd

    async def read(self, n: int = -1) -> bytes:
        size = n if n > 0 else FILE_READ_SIZE
        return await asyncio.get_running_loop().run_in_executor(None, os.read, self.fd, size)


class FileWriter:
    """StreamWriter stand-in doing blocking writes in a worker thread.

    ``write`` only buffers; ``drain`` flushes the buffer completely.
    """

    def __init__(self, fd: int) -> None:
        self.fd = fd
        self._buffer = bytearray()

    def write(self, data: bytes) -> None:
        self._buffer.extend(data)

    async def drain(self) -> None:
        if not self._buffer:
            return
        data = bytes(self._buffer)
        self._buffer.clear()
        await asyncio.get_running_loop().run_in_executor(None, self._write_all, data)

    def _write_all(self, data: bytes) -> None:
        view = memoryview(data)
        while view:
            written = os.write(self.fd, view)
            view = view[written:]


async def open_stdin_reader(pipe: BinaryIO | None = None) -> asyncio.StreamReader | FileReader:
    """Create a reader for the proxy's stdin (or ``pipe``)."""
    pipe = pipe or sys.stdin.buffer
    if not is_pollable(pipe):
        log.debug("stdin is not a pipe, reading it in a worker thread")
        return FileReader(pipe.fileno())

    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, pipe)
    return reader


async def open_stdout_writer(pipe: BinaryIO | None = None) -> asyncio.StreamWriter | FileWriter:
    """Create a writer for the proxy's stdout (or ``pipe``)."""
    pipe = pipe or sys.stdout.buffer
    if not is_pollable(pipe):
        log.debug("stdout is not a pipe, writing it in a worker thread")
        return FileWriter(pipe.fileno())

    loop = asyncio.get_running_loop()
    writer_transport, writer_protocol = await loop.connect_write_pipe(
        asyncio.streams.FlowControlMixin, pipe
    )
    return asyncio.StreamWriter(writer_transport, writer_protocol, None, loop)
