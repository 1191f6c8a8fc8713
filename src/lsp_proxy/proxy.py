"""Proxy session - wire the editor, the server and the logs together."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape

from lsp_proxy.logfiles import LogPaths, open_log_sinks
from lsp_proxy.logging import get_logger
from lsp_proxy.streams import open_stdin_reader, open_stdout_writer
from lsp_proxy.supervisor import Outcome, ProcessSupervisor

if TYPE_CHECKING:
    from lsp_proxy.config import Config

console = Console(stderr=True, soft_wrap=True)
log = get_logger("proxy")


def echo_server_line(line: str) -> None:
    """Print one line of server stderr on the operator console."""
    console.print(line, markup=False, highlight=False)


def print_banner(config: Config, paths: LogPaths) -> None:
    console.print("[bold]LSP Proxy starting...[/bold]")
    console.print(f"[dim]LSP Server: {escape(config.lsp_server or '')} {escape(repr(config.server_args))}[/dim]")
    console.print(f"[dim]JSON Lines mode: {config.json_lines}[/dim]")
    console.print("[dim]Logging to:[/dim]")
    console.print(f"[dim]  stdin:  {escape(str(paths.stdin))}[/dim]")
    console.print(f"[dim]  stdout: {escape(str(paths.stdout))}[/dim]")
    console.print(f"[dim]  stderr: {escape(str(paths.stderr))}[/dim]")


async def run_proxy(config: Config) -> Outcome:
    """Run one proxy session.

    Args:
        config: Configuration, with lsp_server set

    Returns:
        The outcome of the session; its exit_code is the proxy's exit code.

    Raises:
        SpawnError: If the server cannot be started.
        OSError: If the log files cannot be created.
    """
    assert config.lsp_server, "lsp_server must be configured"

    paths = LogPaths.build(config.log_dir, config.log_mode)
    if not config.quiet:
        print_banner(config, paths)

    sinks = open_log_sinks(paths, config.log_mode)
    log.debug("Opened %s logs in %s", config.log_mode.value, config.log_dir)
    try:
        client_reader = await open_stdin_reader()
        client_writer = await open_stdout_writer()

        supervisor = await ProcessSupervisor.start(
            config.lsp_server,
            config.server_args,
            client_reader=client_reader,
            client_writer=client_writer,
            stdin_sink=sinks.stdin,
            stdout_sink=sinks.stdout,
            stderr_sink=sinks.stderr,
            echo=echo_server_line,
            shutdown=config.shutdown,
        )
        return await supervisor.run()
    finally:
        sinks.close()
