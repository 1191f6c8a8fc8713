"""Configuration loading for lsp-proxy.

Sources, lowest to highest precedence:
- Built-in defaults
- YAML config file (explicit path, or the first default name found in the cwd)
- Environment (LSP_SERVER)
- Command-line overrides
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from lsp_proxy.sink import LogMode

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("lsp_proxy.config")

DEFAULT_CONFIG_NAMES = ("lsp-proxy.yaml", ".lsp-proxy.yaml", "lsp-proxy.yml", ".lsp-proxy.yml")
SERVER_ENV_VAR = "LSP_SERVER"


class ConfigError(Exception):
    """Configuration is missing or malformed."""


@dataclass
class ShutdownConfig:
    """How the proxy ends a session."""

    exit_grace: float = 0.5
    """Seconds to wait for the server to exit after its stdout or stderr closes."""


@dataclass
class Config:
    """lsp-proxy configuration."""

    lsp_server: str | None = None
    server_args: list[str] = field(default_factory=list)
    log_dir: Path = field(default_factory=lambda: Path("."))
    json_lines: bool = False
    verbose: int = 2
    quiet: bool = False

    # Optional file receiving a copy of the proxy's own diagnostics
    diagnostics_file: str | None = None

    shutdown: ShutdownConfig = field(default_factory=ShutdownConfig)

    @property
    def log_mode(self) -> LogMode:
        return LogMode.JSON_LINES if self.json_lines else LogMode.RAW


def find_config_file(cwd: Path | None = None) -> Path | None:
    """Return the first default config file present in ``cwd``."""
    base = cwd or Path.cwd()
    for name in DEFAULT_CONFIG_NAMES:
        candidate = base / name
        if candidate.is_file():
            return candidate
    return None


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if invalid.

    Raises:
        ConfigError: If the file cannot be read.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        _log.warning("Ignoring %s: top level must be a mapping", path)
        return {}
    return data


def config_from_dict(data: Mapping[str, Any]) -> Config:
    """Build a Config from a parsed YAML mapping."""
    defaults = ShutdownConfig()
    shutdown_data = data.get("shutdown") or {}
    shutdown = ShutdownConfig(
        exit_grace=float(shutdown_data.get("exit_grace", defaults.exit_grace)),
    )

    server_args = data.get("server_args") or []
    if not isinstance(server_args, list):
        raise ConfigError("server_args must be a list")

    return Config(
        lsp_server=data.get("lsp_server"),
        server_args=[str(arg) for arg in server_args],
        log_dir=Path(data.get("log_dir", ".")),
        json_lines=bool(data.get("json_lines", False)),
        verbose=int(data.get("verbose", 2)),
        quiet=bool(data.get("quiet", False)),
        diagnostics_file=data.get("diagnostics_file"),
        shutdown=shutdown,
    )


def load_config(
    config_path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    lsp_server: str | None = None,
    server_args: list[str] | None = None,
    log_dir: Path | None = None,
    json_lines: bool | None = None,
    verbose: int | None = None,
    quiet: bool | None = None,
) -> Config:
    """Load configuration from file, environment and CLI overrides.

    Keyword arguments left as None keep the value from the lower layers.

    Raises:
        ConfigError: If an explicit config file is missing or unreadable.
    """
    if config_path is not None and not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")
    if config_path is None:
        config_path = find_config_file()

    try:
        config = config_from_dict(load_yaml_file(config_path)) if config_path else Config()
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value in {config_path}: {e}") from e

    env = os.environ if environ is None else environ
    if env.get(SERVER_ENV_VAR):
        config.lsp_server = env[SERVER_ENV_VAR]

    if lsp_server:
        config.lsp_server = lsp_server
    if server_args:
        config.server_args = list(server_args)
    if log_dir is not None:
        config.log_dir = log_dir
    if json_lines:
        config.json_lines = True
    if verbose is not None:
        config.verbose = verbose
    if quiet:
        config.quiet = True

    return config
