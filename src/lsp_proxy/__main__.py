"""CLI entry point for lsp-proxy."""

import sys


def main() -> int:
    """Main entry point for lsp-proxy CLI."""
    from lsp_proxy.cli import run_cli

    return run_cli(sys.argv[1:])


if __name__ == "__main__":
    sys.exit(main())
