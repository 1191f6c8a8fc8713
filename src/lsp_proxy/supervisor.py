"""Child process supervision: spawn the server, run the channels, race exit.

State machine:
    Starting   - child spawned with stdin/stdout/stderr pipes
    Running    - stdin, stdout and stderr channels run next to a wait for exit
    Terminated - the first of those four operations has completed

The operations that lose the race are abandoned, not drained. The caller
exits right after, which reclaims them.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from lsp_proxy.channel import ChannelResult, ProxyChannel, StderrChannel
from lsp_proxy.config import ShutdownConfig
from lsp_proxy.logging import get_logger
from lsp_proxy.sink import LogSink
from lsp_proxy.streams import FileReader, FileWriter

log = get_logger("supervisor")

# Trigger names
STDIN = "stdin"
STDOUT = "stdout"
STDERR = "stderr"
EXIT = "exit"


class SpawnError(Exception):
    """The language server could not be started."""


@dataclass(frozen=True)
class Outcome:
    """What ended the proxy session."""

    trigger: str
    """One of "stdin", "stdout", "stderr" or "exit"."""

    exit_code: int
    """Exit code the proxy itself should report."""

    returncode: int | None = None
    """Raw child return code, when the child had exited."""


def exit_code_for(returncode: int | None) -> int:
    """Map a child return code to the proxy's exit code.

    Negative return codes (killed by a signal) and a missing code map to 1.
    """
    if returncode is None or returncode < 0:
        return 1
    return returncode


class ProcessSupervisor:
    """Owns the language server process and the three channels around it."""

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        stdin_channel: ProxyChannel,
        stdout_channel: ProxyChannel,
        stderr_channel: StderrChannel,
        shutdown: ShutdownConfig | None = None,
    ) -> None:
        self.process = process
        self.channels: dict[str, ProxyChannel | StderrChannel] = {
            STDIN: stdin_channel,
            STDOUT: stdout_channel,
            STDERR: stderr_channel,
        }
        self.shutdown = shutdown or ShutdownConfig()

    @classmethod
    async def start(
        cls,
        command: str,
        args: Sequence[str],
        *,
        client_reader: asyncio.StreamReader | FileReader,
        client_writer: asyncio.StreamWriter | FileWriter,
        stdin_sink: LogSink,
        stdout_sink: LogSink,
        stderr_sink: LogSink,
        echo: Callable[[str], None],
        shutdown: ShutdownConfig | None = None,
    ) -> ProcessSupervisor:
        """Spawn the server and wire a channel to each of its pipes.

        Raises:
            SpawnError: If the executable cannot be started.
        """
        try:
            process = await asyncio.create_subprocess_exec(
                command,
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise SpawnError(f"Failed to spawn LSP server {command!r}: {e}") from e

        assert process.stdin is not None
        assert process.stdout is not None
        assert process.stderr is not None
        log.debug("Spawned %s (pid %d)", command, process.pid)

        return cls(
            process,
            ProxyChannel(STDIN, client_reader, process.stdin, stdin_sink),
            ProxyChannel(STDOUT, process.stdout, client_writer, stdout_sink),
            StderrChannel(STDERR, process.stderr, stderr_sink, echo),
            shutdown=shutdown,
        )

    async def run(self) -> Outcome:
        """Run until the first channel finishes or the child exits.

        When the server's stdout or stderr reaches EOF first, termination is
        delayed by up to ``shutdown.exit_grace`` seconds so that an exiting
        server still reports its exit code. The remaining channels are never
        waited for.
        """
        wait_task = asyncio.create_task(self.process.wait(), name=EXIT)
        tasks: dict[asyncio.Task, str] = {wait_task: EXIT}
        for name, channel in self.channels.items():
            tasks[asyncio.create_task(channel.run(), name=name)] = name

        done, _pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)

        if wait_task in done:
            return self._child_exited()

        # Prefer a deterministic order when several channels finish together
        finished = next(t for t in tasks if t in done)
        trigger = tasks[finished]
        result: ChannelResult = finished.result()

        # A server that exits closes its pipes too; let the exit win that race
        if trigger != STDIN and result is ChannelResult.EOF and self.shutdown.exit_grace > 0:
            try:
                await asyncio.wait_for(asyncio.shield(wait_task), timeout=self.shutdown.exit_grace)
            except asyncio.TimeoutError:
                pass
            else:
                return self._child_exited()

        log.info("%s channel finished (%s)", trigger.capitalize(), result.value)
        self._log_summary()

        return Outcome(trigger=trigger, exit_code=0, returncode=self.process.returncode)

    def _child_exited(self) -> Outcome:
        returncode = self.process.returncode
        log.info("LSP server exited with status: %s", returncode)
        self._log_summary()
        return Outcome(trigger=EXIT, exit_code=exit_code_for(returncode), returncode=returncode)

    def _log_summary(self) -> None:
        for name, channel in self.channels.items():
            if isinstance(channel, ProxyChannel):
                log.debug(
                    "%s: %d bytes forwarded, %d messages logged",
                    name,
                    channel.bytes_forwarded,
                    channel.sink.messages_logged,
                )
