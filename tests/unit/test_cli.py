"""Unit tests for the export command."""

import os
import signal
import sys

import pytest

from spender_export.cli import build_parser, run_export
from spender_export.errors import ApplicationError


class TestRunExport:
    """Exit codes and output of ``spender-export run``."""

    @pytest.mark.asyncio
    async def test_complete_export_is_saved(self, make_service, settings, sleep, tmp_path, capsys):
        target = tmp_path / "spenders.csv"

        code = await run_export(make_service(total_batches=2), settings, "token-123", target, sleep=sleep)

        assert code == 0
        assert target.read_bytes().startswith(b"Name,Email")
        out = capsys.readouterr().out
        assert "[ 50%] Processing batch 2 of 2..." in out
        assert f"Saved {target}" in out

    @pytest.mark.asyncio
    async def test_failed_export_exits_1(self, make_service, settings, sleep, tmp_path, capsys):
        service = make_service(prepare_error=ApplicationError("No registered users found."))

        code = await run_export(service, settings, "token-123", tmp_path / "out.csv", sleep=sleep)

        assert code == 1
        assert "Export failed: No registered users found." in capsys.readouterr().err
        assert not (tmp_path / "out.csv").exists()

    @pytest.mark.asyncio
    @pytest.mark.skipif(sys.platform == "win32", reason="needs loop signal handlers")
    async def test_ctrl_c_cancels_and_notifies_service(self, make_service, settings, sleep, tmp_path, capsys):
        service = make_service(total_batches=50)
        service.hooks[1] = lambda: os.kill(os.getpid(), signal.SIGINT)

        code = await run_export(service, settings, "token-123", tmp_path / "out.csv", sleep=sleep)

        assert code == 1
        assert ("cancel", "token-123") in service.calls
        assert len(service.batch_calls) < 50
        assert "download" not in [call[0] for call in service.calls]
        assert "Export cancelled" in capsys.readouterr().err


class TestParser:
    def test_run_options(self):
        args = build_parser().parse_args(["run", "--url", "http://jobs.test", "--max-retries", "5"])
        assert args.url == "http://jobs.test"
        assert args.max_retries == 5

    def test_serve_defaults(self):
        args = build_parser().parse_args(["serve"])
        assert (args.host, args.port, args.customers) == ("127.0.0.1", 8000, 250)
