"""Log file naming and opening."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from lsp_proxy.sink import LogMode, LogSink

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


@dataclass(frozen=True)
class LogPaths:
    """Where each channel's traffic is recorded."""

    stdin: Path
    stdout: Path
    stderr: Path

    @classmethod
    def build(cls, log_dir: Path, mode: LogMode, now: datetime | None = None) -> LogPaths:
        """Timestamped paths for one session.

        stdin and stdout logs use the mode's suffix; the stderr log is always
        plain text.
        """
        stamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
        return cls(
            stdin=log_dir / f"lsp_stdin_{stamp}.{mode.suffix}",
            stdout=log_dir / f"lsp_stdout_{stamp}.{mode.suffix}",
            stderr=log_dir / f"lsp_stderr_{stamp}.{LogMode.RAW.suffix}",
        )


@dataclass
class LogSinks:
    """The three open log sinks of a session."""

    stdin: LogSink
    stdout: LogSink
    stderr: LogSink

    def close(self) -> None:
        for sink in (self.stdin, self.stdout, self.stderr):
            sink.close()


def open_log_sinks(paths: LogPaths, mode: LogMode) -> LogSinks:
    """Create the log directory and open all three logs for appending.

    Raises:
        OSError: If the directory or a file cannot be created.
    """
    paths.stdin.parent.mkdir(parents=True, exist_ok=True)
    paths.stderr.parent.mkdir(parents=True, exist_ok=True)

    opened = []
    try:
        for path in (paths.stdin, paths.stdout, paths.stderr):
            opened.append(open(path, "ab"))
    except OSError:
        for stream in opened:
            stream.close()
        raise

    stdin_log, stdout_log, stderr_log = opened
    return LogSinks(
        stdin=LogSink(stdin_log, mode, "stdin"),
        stdout=LogSink(stdout_log, mode, "stdout"),
        stderr=LogSink(stderr_log, LogMode.RAW, "stderr"),
    )
