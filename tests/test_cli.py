"""CLI tests using click.testing.CliRunner.

uvicorn and the LAN scan are mocked; nothing binds a port or sends UDP.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner
from lifxlan.errors import WorkflowException
from starlette.datastructures import Headers

from rewardhook.cli.main import cli
from rewardhook.verify import MESSAGE_ID_HEADER, MESSAGE_TYPE_HEADER, verify_request


@pytest.fixture
def runner():
    """Click CliRunner for CLI testing."""
    return CliRunner()


def _parse_headers(output: str) -> Headers:
    pairs = dict(line.split(": ", 1) for line in output.strip().splitlines())
    return Headers(headers=pairs)


def test_cli_help(runner: CliRunner):
    """--help shows all commands."""
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    for cmd in ("serve", "sign", "discover"):
        assert cmd in result.output


def test_cli_version(runner: CliRunner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


# ---------------------------------------------------------------------------
# sign
# ---------------------------------------------------------------------------


class TestSign:
    def test_signature_verifies(self, runner: CliRunner, tmp_path):
        body = b'{"event":{"user_input":"100","reward":{"title":"lights"}}}'
        path = tmp_path / "body.json"
        path.write_bytes(body)

        result = runner.invoke(cli, ["sign", str(path), "--secret", "s3cret", "--algorithm", "sha384"])
        assert result.exit_code == 0, result.output

        headers = _parse_headers(result.output)
        assert headers[MESSAGE_TYPE_HEADER] == "notification"
        assert verify_request(body, headers, [b"s3cret"]) is True
        assert verify_request(body, headers, [b"other"]) is False

    def test_reads_stdin_with_fixed_fields(self, runner: CliRunner):
        body = b'{"challenge":"abc123"}'
        result = runner.invoke(
            cli,
            [
                "sign", "-",
                "--secret", "s3cret",
                "--message-id", "msg-1",
                "--timestamp", "2024-05-01T12:00:00Z",
                "--type", "webhook_callback_verification",
            ],
            input=body,
        )
        assert result.exit_code == 0, result.output
        headers = _parse_headers(result.output)
        assert headers[MESSAGE_ID_HEADER] == "msg-1"
        assert headers[MESSAGE_TYPE_HEADER] == "webhook_callback_verification"
        assert verify_request(body, headers, [b"s3cret"]) is True

    def test_secret_from_env(self, runner: CliRunner, monkeypatch):
        monkeypatch.setenv("REWARDHOOK_PRIMARY_SECRET", "from-env")
        result = runner.invoke(cli, ["sign", "-"], input=b"{}")
        assert result.exit_code == 0
        assert verify_request(b"{}", _parse_headers(result.output), [b"from-env"])

    def test_secret_required(self, runner: CliRunner, monkeypatch):
        monkeypatch.delenv("REWARDHOOK_PRIMARY_SECRET", raising=False)
        result = runner.invoke(cli, ["sign", "-"], input=b"{}")
        assert result.exit_code != 0


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


class TestServe:
    @pytest.fixture(autouse=True)
    def _no_tls(self, monkeypatch):
        monkeypatch.delenv("REWARDHOOK_TLS_CERTFILE", raising=False)
        monkeypatch.delenv("REWARDHOOK_TLS_KEYFILE", raising=False)

    def test_runs_uvicorn_factory(self, runner: CliRunner):
        with patch("uvicorn.run") as run:
            result = runner.invoke(cli, ["serve", "--port", "9000"])
        assert result.exit_code == 0, result.output
        args, kwargs = run.call_args
        assert args == ("rewardhook.app:create_app",)
        assert kwargs["factory"] is True
        assert kwargs["port"] == 9000
        assert kwargs["ssl_certfile"] is None

    def test_passes_tls_files(self, runner: CliRunner, monkeypatch, tmp_path):
        cert, key = tmp_path / "fullchain.pem", tmp_path / "privkey.pem"
        cert.write_text("cert")
        key.write_text("key")
        monkeypatch.setenv("REWARDHOOK_TLS_CERTFILE", str(cert))
        monkeypatch.setenv("REWARDHOOK_TLS_KEYFILE", str(key))
        with patch("uvicorn.run") as run:
            result = runner.invoke(cli, ["serve"])
        assert result.exit_code == 0, result.output
        assert run.call_args.kwargs["ssl_certfile"] == str(cert)
        assert run.call_args.kwargs["ssl_keyfile"] == str(key)

    def test_missing_tls_file_is_fatal(self, runner: CliRunner, monkeypatch, tmp_path):
        monkeypatch.setenv("REWARDHOOK_TLS_CERTFILE", str(tmp_path / "missing.pem"))
        monkeypatch.setenv("REWARDHOOK_TLS_KEYFILE", str(tmp_path / "missing-key.pem"))
        with patch("uvicorn.run") as run:
            result = runner.invoke(cli, ["serve"])
        assert result.exit_code == 1
        assert "TLS file not found" in result.output
        run.assert_not_called()

    def test_half_configured_tls_is_fatal(self, runner: CliRunner, monkeypatch):
        monkeypatch.setenv("REWARDHOOK_TLS_CERTFILE", "fullchain.pem")
        with patch("uvicorn.run") as run:
            result = runner.invoke(cli, ["serve"])
        assert result.exit_code == 1
        run.assert_not_called()


# ---------------------------------------------------------------------------
# discover
# ---------------------------------------------------------------------------


def _light(mac: str) -> MagicMock:
    light = MagicMock()
    light.get_mac_addr.return_value = mac
    return light


class TestDiscover:
    def test_lists_and_marks_bulbs(self, runner: CliRunner, monkeypatch):
        monkeypatch.delenv("REWARDHOOK_BED_BULB_MAC", raising=False)
        monkeypatch.delenv("REWARDHOOK_CEILING_BULB_MAC", raising=False)
        lan = MagicMock()
        lan.get_lights.return_value = [_light("D0:73:D5:64:76:AC"), _light("aa:bb:cc:dd:ee:ff")]
        with patch("rewardhook.cli.main.LifxLAN", return_value=lan):
            result = runner.invoke(cli, ["discover"])
        assert result.exit_code == 0, result.output
        lines = result.output.strip().splitlines()
        assert lines == ["d0:73:d5:64:76:ac  (ceiling)", "aa:bb:cc:dd:ee:ff"]

    def test_no_bulbs(self, runner: CliRunner):
        lan = MagicMock()
        lan.get_lights.return_value = []
        with patch("rewardhook.cli.main.LifxLAN", return_value=lan):
            result = runner.invoke(cli, ["discover"])
        assert result.exit_code == 0
        assert "No bulbs found." in result.output

    def test_scan_failure_exits_1(self, runner: CliRunner):
        lan = MagicMock()
        lan.get_lights.side_effect = WorkflowException("timeout")
        with patch("rewardhook.cli.main.LifxLAN", return_value=lan):
            result = runner.invoke(cli, ["discover"])
        assert result.exit_code == 1
