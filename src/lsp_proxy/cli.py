"""Command-line interface for lsp-proxy."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from lsp_proxy import __version__

console = Console(stderr=True)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="lsp-proxy",
        description="LSP Proxy - Logs and proxies LSP server communication",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-s", "--lsp-server",
        help="Path to the LSP server executable (env: LSP_SERVER)",
    )
    parser.add_argument(
        "-l", "--log-dir",
        type=Path,
        help="Directory to write log files (default: current directory)",
    )
    parser.add_argument(
        "-j", "--json-lines",
        action="store_true",
        help="Log as JSON lines (one JSON object per line) instead of raw JSON-RPC format",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase diagnostic verbosity (can be repeated)",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress the startup banner and non-error diagnostics",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Config file path (default: ./lsp-proxy.yaml)",
    )
    parser.add_argument(
        "server_args",
        nargs="*",
        help="Arguments to pass to the LSP server (put hyphenated ones after --)",
    )
    return parser


def run_cli(args: Sequence[str]) -> int:
    """Run the CLI with the given arguments."""
    argv = list(args)
    passthrough: list[str] = []
    if "--" in argv:
        split = argv.index("--")
        argv, passthrough = argv[:split], argv[split + 1 :]

    parser = create_parser()
    parsed = parser.parse_args(argv)
    server_args = [*parsed.server_args, *passthrough]

    from lsp_proxy.config import ConfigError, load_config
    try:
        config = load_config(
            config_path=parsed.config,
            lsp_server=parsed.lsp_server,
            server_args=server_args,
            log_dir=parsed.log_dir,
            json_lines=parsed.json_lines,
            verbose=2 + parsed.verbose if parsed.verbose else None,
            quiet=parsed.quiet,
        )
    except ConfigError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    if not config.lsp_server:
        parser.error("the LSP server is required (-s/--lsp-server or LSP_SERVER)")

    from lsp_proxy.logging import setup_logging
    setup_logging(0 if config.quiet else config.verbose, log_file=config.diagnostics_file)

    from lsp_proxy.proxy import run_proxy
    from lsp_proxy.supervisor import SpawnError
    try:
        outcome = asyncio.run(run_proxy(config))
    except SpawnError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1
    except OSError as e:
        console.print(f"[red]Error creating log files: {escape(str(e))}[/red]")
        return 1
    except ValueError as e:
        console.print(f"[red]Error attaching to stdio: {escape(str(e))}[/red]")
        return 1
    except KeyboardInterrupt:
        return 130

    return outcome.exit_code
