"""End-to-end tests for the loadburst CLI."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest
from typer.testing import CliRunner

from loadburst import __version__
from loadburst.cli.app import app

if TYPE_CHECKING:
    from pathlib import Path

    from tests.conftest import TargetServer

runner = CliRunner()


# ---------------------------------------------------------------------------
# Tests: version and help
# ---------------------------------------------------------------------------


def test_version_flag():
    """--version prints version and exits 0."""
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_help():
    """--help lists both commands."""
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "run" in result.output
    assert "report" in result.output


def test_run_help_lists_options():
    result = runner.invoke(app, ["run", "--help"])
    assert result.exit_code == 0
    for option in ("--requests", "--concurrency", "--header", "--deadline", "--save"):
        assert option in result.output


# ---------------------------------------------------------------------------
# Tests: run
# ---------------------------------------------------------------------------


@pytest.mark.timeout(60)
class TestRunCommand:
    def test_basic_run(self, sync_target_server: TargetServer):
        result = runner.invoke(
            app,
            ["run", sync_target_server.url("/ok"), "-n", "20", "-c", "4", "--no-progress"],
        )
        assert result.exit_code == 0, result.output
        assert "Summary" in result.output
        assert "Load test completed!" in result.output
        assert sync_target_server.stats.total == 20

    def test_method_header_and_body(self, sync_target_server: TargetServer):
        result = runner.invoke(
            app,
            [
                "run",
                sync_target_server.url("/ok"),
                "-n", "3",
                "-c", "1",
                "-m", "put",
                "-H", "X-Trace: abc",
                "-d", "payload",
                "--no-progress",
            ],
        )
        assert result.exit_code == 0, result.output
        assert sync_target_server.stats.methods == ["PUT", "PUT", "PUT"]
        assert sync_target_server.stats.last_headers["X-Trace"] == "abc"
        assert sync_target_server.stats.last_body == b"payload"

    def test_default_accept_header(self, sync_target_server: TargetServer):
        result = runner.invoke(app, ["run", sync_target_server.url("/metrics"), "-n", "1", "--no-progress"])
        assert result.exit_code == 0, result.output
        assert sync_target_server.stats.last_headers["Accept"] == "application/json"

    def test_accept_header_can_be_overridden(self, sync_target_server: TargetServer):
        result = runner.invoke(
            app,
            ["run", sync_target_server.url("/ok"), "-n", "1", "-H", "accept: text/plain", "--no-progress"],
        )
        assert result.exit_code == 0, result.output
        assert sync_target_server.stats.last_headers["Accept"] == "text/plain"

    def test_accept_from_environment(self, sync_target_server: TargetServer, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LOADBURST_ACCEPT", "application/xml")
        result = runner.invoke(app, ["run", sync_target_server.url("/ok"), "-n", "1", "--no-progress"])
        assert result.exit_code == 0, result.output
        assert sync_target_server.stats.last_headers["Accept"] == "application/xml"

    def test_body_file(self, sync_target_server: TargetServer, tmp_path: Path):
        body = tmp_path / "body.json"
        body.write_bytes(b'{"a": 1}')
        result = runner.invoke(
            app,
            ["run", sync_target_server.url("/ok"), "-n", "1", "-c", "1", "-m", "POST", "-D", str(body), "--no-progress"],
        )
        assert result.exit_code == 0, result.output
        assert sync_target_server.stats.last_body == b'{"a": 1}'

    def test_concurrency_clamped_to_requests(self, sync_target_server: TargetServer):
        result = runner.invoke(
            app,
            ["run", sync_target_server.url("/ok"), "-n", "3", "-c", "10", "--no-progress"],
        )
        assert result.exit_code == 0, result.output
        assert "exceeds request count" in result.output
        assert sync_target_server.stats.peak <= 3

    def test_zero_requests(self, sync_target_server: TargetServer):
        result = runner.invoke(app, ["run", sync_target_server.url("/ok"), "-n", "0", "--no-progress"])
        assert result.exit_code == 0, result.output
        assert "No requests were dispatched." in result.output
        assert sync_target_server.stats.total == 0

    def test_unreachable_target_still_completes(self, unreachable_url: str):
        result = runner.invoke(app, ["run", unreachable_url, "-n", "5", "-c", "5", "--no-progress"])
        assert result.exit_code == 0, result.output
        assert "Error Distribution" in result.output
        assert "connection" in result.output

    def test_deadline_exits_incomplete(self, sync_target_server: TargetServer):
        result = runner.invoke(
            app,
            ["run", sync_target_server.url("/delay?delay=3"), "-n", "10", "-c", "10", "-z", "0.3", "--no-progress"],
        )
        assert result.exit_code == 1, result.output
        assert "timed out" in result.output

    def test_with_live_progress(self, sync_target_server: TargetServer):
        result = runner.invoke(app, ["run", sync_target_server.url("/ok"), "-n", "10", "-c", "2"])
        assert result.exit_code == 0, result.output

    def test_save_then_report(self, sync_target_server: TargetServer, tmp_path: Path):
        saved = tmp_path / "reports" / "run.json"
        result = runner.invoke(
            app,
            ["run", sync_target_server.url("/status?code=201"), "-n", "8", "-c", "2", "--no-progress", "--save", str(saved)],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(saved.read_text())
        assert data["state"] == "completed"
        assert data["summary"]["total_counted"] == 8
        assert data["summary"]["status_codes"] == {"201": 8}

        report = runner.invoke(app, ["report", str(saved)])
        assert report.exit_code == 0, report.output
        assert "Summary" in report.output
        assert "Status Code Distribution" in report.output

        as_json = runner.invoke(app, ["report", str(saved), "-f", "json"])
        assert as_json.exit_code == 0
        assert '"total_counted": 8' in as_json.output

    def test_json_format(self, sync_target_server: TargetServer):
        result = runner.invoke(
            app, ["run", sync_target_server.url("/ok"), "-n", "4", "-c", "2", "-f", "json", "--no-progress"]
        )
        assert result.exit_code == 0, result.output
        assert '"state": "completed"' in result.output

    def test_url_from_environment(self, sync_target_server: TargetServer, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LOADBURST_URL", sync_target_server.url("/ok"))
        monkeypatch.setenv("LOADBURST_NUM_REQUESTS", "6")
        monkeypatch.setenv("LOADBURST_CONCURRENCY", "3")
        result = runner.invoke(app, ["run", "--no-progress"])
        assert result.exit_code == 0, result.output
        assert sync_target_server.stats.total == 6

    def test_url_built_from_host_and_port(self, sync_target_server: TargetServer, monkeypatch: pytest.MonkeyPatch):
        port = sync_target_server.base_url.rsplit(":", 1)[1]
        monkeypatch.setenv("LOADBURST_HOST", "127.0.0.1")
        monkeypatch.setenv("LOADBURST_PORT", port)
        monkeypatch.setenv("LOADBURST_ENDPOINT", "metrics")
        result = runner.invoke(app, ["run", "-n", "2", "-c", "1", "--no-progress"])
        assert result.exit_code == 0, result.output
        assert sync_target_server.stats.total == 2


# ---------------------------------------------------------------------------
# Tests: configuration errors
# ---------------------------------------------------------------------------


class TestConfigErrors:
    def test_invalid_url(self):
        result = runner.invoke(app, ["run", "not-a-url", "-n", "1", "--no-progress"])
        assert result.exit_code == 2
        assert "Configuration error" in result.output

    def test_invalid_header(self):
        result = runner.invoke(app, ["run", "http://127.0.0.1:9/", "-H", "NoColon", "--no-progress"])
        assert result.exit_code == 2

    def test_unsupported_method(self):
        result = runner.invoke(app, ["run", "http://127.0.0.1:9/", "-m", "BREW", "--no-progress"])
        assert result.exit_code == 2
        assert "Unsupported HTTP method" in result.output

    def test_body_and_body_file_are_exclusive(self, tmp_path: Path):
        body = tmp_path / "b.txt"
        body.write_text("x")
        result = runner.invoke(
            app, ["run", "http://127.0.0.1:9/", "-d", "x", "-D", str(body), "--no-progress"]
        )
        assert result.exit_code == 2
        assert "mutually exclusive" in result.output

    def test_invalid_env_value(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LOADBURST_NUM_REQUESTS", "lots")
        result = runner.invoke(app, ["run", "http://127.0.0.1:9/", "--no-progress"])
        assert result.exit_code == 2
        assert "LOADBURST_NUM_REQUESTS" in result.output

    def test_invalid_deadline(self):
        result = runner.invoke(app, ["run", "http://127.0.0.1:9/", "-n", "1", "-z", "0", "--no-progress"])
        assert result.exit_code == 2

    def test_unknown_format(self):
        result = runner.invoke(app, ["run", "http://127.0.0.1:9/", "-f", "xml"])
        assert result.exit_code != 0

    def test_report_rejects_non_report_file(self, tmp_path: Path):
        bogus = tmp_path / "bogus.json"
        bogus.write_text('{"not": "a report"}')
        result = runner.invoke(app, ["report", str(bogus)])
        assert result.exit_code == 2

    def test_report_with_malformed_summary(self, tmp_path: Path):
        bogus = tmp_path / "malformed.json"
        latency = {"min_ms": 1.0, "max_ms": 2.0, "mean_ms": 1.5, "percentiles": []}
        report = {
            "state": "completed",
            "target": "http://127.0.0.1:9/",
            "method": "GET",
            "total": 1,
            "concurrency": 1,
            "summary": {"latency": latency},
        }
        bogus.write_text(json.dumps(report))
        result = runner.invoke(app, ["report", str(bogus)])
        assert result.exit_code == 2

    def test_report_missing_file(self, tmp_path: Path):
        result = runner.invoke(app, ["report", str(tmp_path / "missing.json")])
        assert result.exit_code != 0
