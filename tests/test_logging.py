"""Tests for diagnostic logging setup."""

from __future__ import annotations

import io
import logging
from pathlib import Path

import pytest

from lsp_proxy.logging import (
    TRACE,
    VERBOSE,
    get_logger,
    reset_logging,
    setup_logging,
    verbosity_to_level,
)


@pytest.fixture(autouse=True)
def clean_logging():
    reset_logging()
    yield
    reset_logging()


class TestVerbosity:
    """Tests for verbosity_to_level function."""

    @pytest.mark.parametrize(
        ("verbose", "level"),
        [(0, logging.ERROR), (1, logging.WARNING), (2, logging.INFO), (3, VERBOSE), (4, TRACE), (9, TRACE)],
    )
    def test_mapping(self, verbose: int, level: int) -> None:
        assert verbosity_to_level(verbose) == level

    def test_negative_is_errors_only(self) -> None:
        assert verbosity_to_level(-1) == logging.ERROR


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_lowercase_level_format(self) -> None:
        stream = io.StringIO()
        setup_logging(2, stream=stream)

        get_logger("channel").info("Stdin channel finished")

        assert stream.getvalue().rstrip().endswith("info: Stdin channel finished")

    def test_level_filters(self) -> None:
        stream = io.StringIO()
        setup_logging(0, stream=stream)

        get_logger("sink").warning("Failed to parse JSON")
        get_logger("sink").error("Failed to write")

        assert "Failed to parse JSON" not in stream.getvalue()
        assert "error: Failed to write" in stream.getvalue()

    def test_second_call_is_noop(self) -> None:
        first, second = io.StringIO(), io.StringIO()
        setup_logging(2, stream=first)
        setup_logging(2, stream=second)

        get_logger().info("hello")

        assert "hello" in first.getvalue()
        assert second.getvalue() == ""

    def test_file_copy(self, tmp_path: Path) -> None:
        log_file = tmp_path / "proxy.log"
        setup_logging(2, log_file=str(log_file), stream=io.StringIO())

        get_logger("supervisor").info("LSP server exited with status: 0")
        reset_logging()

        assert "LSP server exited with status: 0" in log_file.read_text()

    def test_child_logger_names(self) -> None:
        assert get_logger().name == "lsp_proxy"
        assert get_logger("channel").name == "lsp_proxy.channel"
