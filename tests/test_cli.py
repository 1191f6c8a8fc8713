"""Tests for the lsp-proxy command line."""

from __future__ import annotations

import json
import os
import subprocess
import sys
import textwrap
from pathlib import Path
from unittest.mock import patch

import pytest

from lsp_proxy.cli import create_parser, run_cli
from lsp_proxy.framing import FrameParser, encode_message
from lsp_proxy.supervisor import Outcome, SpawnError

SRC_DIR = Path(__file__).resolve().parents[1] / "src"


class TestCreateParser:
    """Tests for create_parser function."""

    def test_short_options(self) -> None:
        parsed = create_parser().parse_args(["-s", "clangd", "-l", "logs", "-j", "-vv"])

        assert parsed.lsp_server == "clangd"
        assert parsed.log_dir == Path("logs")
        assert parsed.json_lines is True
        assert parsed.verbose == 2

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            create_parser().parse_args(["--version"])

        assert exc_info.value.code == 0
        assert "lsp-proxy 0.1.0" in capsys.readouterr().out


class TestRunCli:
    """Tests for run_cli with the proxy session mocked out."""

    @pytest.fixture(autouse=True)
    def no_logging_setup(self):
        with patch("lsp_proxy.logging.setup_logging"):
            yield

    @pytest.fixture(autouse=True)
    def isolated_cwd(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("LSP_SERVER", raising=False)

    def test_missing_server_is_usage_error(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            run_cli([])

        assert exc_info.value.code == 2

    def test_server_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LSP_SERVER", "rust-analyzer")

        with patch("lsp_proxy.proxy.run_proxy") as mock_run:
            mock_run.return_value = Outcome(trigger="exit", exit_code=0, returncode=0)
            assert run_cli([]) == 0

        config = mock_run.call_args.args[0]
        assert config.lsp_server == "rust-analyzer"

    def test_server_args_after_separator(self) -> None:
        with patch("lsp_proxy.proxy.run_proxy") as mock_run:
            mock_run.return_value = Outcome(trigger="stdin", exit_code=0)
            run_cli(["-s", "pylsp", "-j", "plain", "--", "--stdio", "-v"])

        config = mock_run.call_args.args[0]
        assert config.lsp_server == "pylsp"
        assert config.server_args == ["plain", "--stdio", "-v"]
        assert config.json_lines is True
        assert config.verbose == 2

    def test_exit_code_from_outcome(self) -> None:
        with patch("lsp_proxy.proxy.run_proxy") as mock_run:
            mock_run.return_value = Outcome(trigger="exit", exit_code=7, returncode=7)
            assert run_cli(["-s", "server"]) == 7

    def test_verbose_raises_level(self) -> None:
        with patch("lsp_proxy.proxy.run_proxy") as mock_run:
            mock_run.return_value = Outcome(trigger="exit", exit_code=0)
            run_cli(["-s", "server", "-vv"])

        assert mock_run.call_args.args[0].verbose == 4

    def test_spawn_error_reported(self, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("lsp_proxy.proxy.run_proxy", side_effect=SpawnError("Failed to spawn LSP server 'x'")):
            assert run_cli(["-s", "x"]) == 1

        assert "Failed to spawn LSP server" in capsys.readouterr().err

    def test_missing_config_file_reported(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert run_cli(["--config", "nope.yaml", "-s", "x"]) == 1
        assert "Config file not found" in capsys.readouterr().err


def run_proxy_process(
    args: list[str], stdin: bytes, tmp_path: Path, timeout: float = 20
) -> tuple[int, bytes, bytes]:
    """Run ``python -m lsp_proxy``, writing ``stdin`` but keeping the pipe open.

    Returns:
        (returncode, stdout, stderr)
    """
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(SRC_DIR), env.get("PYTHONPATH")]))
    env.pop("LSP_SERVER", None)
    proc = subprocess.Popen(
        [sys.executable, "-m", "lsp_proxy", *args],
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        cwd=tmp_path,
        env=env,
    )
    assert proc.stdin is not None and proc.stdout is not None and proc.stderr is not None
    try:
        if stdin:
            proc.stdin.write(stdin)
            proc.stdin.flush()
        returncode = proc.wait(timeout=timeout)
        return returncode, proc.stdout.read(), proc.stderr.read()
    finally:
        if proc.poll() is None:
            proc.kill()
            proc.wait()
        proc.stdin.close()
        proc.stdout.close()
        proc.stderr.close()


ECHO_SERVER = textwrap.dedent(
    """
    import json, sys

    def read_message():
        header = b""
        while not header.endswith(b"\\r\\n\\r\\n"):
            byte = sys.stdin.buffer.read(1)
            if not byte:
                return None
            header += byte
        length = int(header.split(b":")[1])
        return json.loads(sys.stdin.buffer.read(length))

    request = read_message()
    print("server saw", request["method"], file=sys.stderr, flush=True)
    reply = json.dumps({"jsonrpc": "2.0", "id": request["id"], "result": {"ok": True}}).encode()
    sys.stdout.buffer.write(b"Content-Length: %d\\r\\n\\r\\n" % len(reply) + reply)
    sys.stdout.flush()
    sys.exit(5)
    """
)


class TestEndToEnd:
    """Run the proxy as a real process between a pipe and a Python server."""

    def test_json_lines_session(self, tmp_path: Path) -> None:
        request = encode_message({"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {"processId": 123}})
        log_dir = tmp_path / "logs"

        returncode, stdout, stderr = run_proxy_process(
            ["-s", sys.executable, "-l", str(log_dir), "-j", "--", "-c", ECHO_SERVER],
            request,
            tmp_path,
        )

        assert returncode == 5, stderr.decode()
        parser = FrameParser()
        parser.feed(stdout)
        reply = parser.next_message()
        assert reply is not None
        assert json.loads(reply.text) == {"jsonrpc": "2.0", "id": 1, "result": {"ok": True}}

        (stdin_log,) = log_dir.glob("lsp_stdin_*.jsonl")
        assert stdin_log.read_text().splitlines() == [
            '{"id":1,"jsonrpc":"2.0","method":"initialize","params":{"processId":123}}'
        ]
        (stderr_log,) = log_dir.glob("lsp_stderr_*.log")
        assert b"server saw initialize" in stderr_log.read_bytes()
        assert b"[LSP stderr] server saw initialize" in stderr

    def test_raw_session_and_missing_server(self, tmp_path: Path) -> None:
        returncode, _, stderr = run_proxy_process(
            ["-s", str(tmp_path / "missing-server"), "-l", str(tmp_path)],
            b"",
            tmp_path,
        )

        assert returncode == 1
        assert b"Failed to spawn LSP server" in stderr

    def test_stdio_redirected_to_files(self, tmp_path: Path) -> None:
        """Regular files work as the proxy's stdin and stdout."""
        request = encode_message({"jsonrpc": "2.0", "id": 1, "method": "initialize"})
        input_file = tmp_path / "input.bin"
        input_file.write_bytes(request)
        output_file = tmp_path / "output.bin"
        env = dict(os.environ)
        env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(SRC_DIR), env.get("PYTHONPATH")]))
        env.pop("LSP_SERVER", None)
        server = "import sys; sys.stdin.buffer.read()"

        with input_file.open("rb") as stdin, output_file.open("wb") as stdout:
            result = subprocess.run(
                [sys.executable, "-m", "lsp_proxy", "-s", sys.executable, "-l", str(tmp_path), "-q", "--", "-c", server],
                stdin=stdin,
                stdout=stdout,
                stderr=subprocess.PIPE,
                cwd=tmp_path,
                env=env,
                timeout=20,
            )

        assert result.returncode == 0, result.stderr.decode()
        assert b"Pipe transport" not in result.stderr
        (stdin_log,) = tmp_path.glob("lsp_stdin_*.log")
        assert stdin_log.read_bytes() == request
