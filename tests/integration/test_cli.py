"""
Integration tests for the command-line entrypoint.

Argument handling is tested with run_fetch patched out; the end-to-end
cases run the real runner with the network replaced.
"""

from unittest.mock import patch

import httpx
import pytest

from conftest import mock_transport
from httpfetch.core.config import Settings
from httpfetch.domain.models import FetchOutcome
from httpfetch.main import build_parser, configure, main
from httpfetch.worker.runner import run_fetch


@pytest.fixture(autouse=True)
def mock_setup_logging():
    """Keep main() from replacing pytest's log handlers."""
    with patch("httpfetch.main.setup_logging") as mock_setup:
        yield mock_setup


def _outcome(exit_code: int = 0) -> FetchOutcome:
    return FetchOutcome(
        url="http://example.com/", success=exit_code == 0, exit_code=exit_code
    )


class TestArguments:
    """Tests for flag parsing and settings overlay."""

    def test_defaults(self, fetch_settings):
        args = build_parser().parse_args(["http://example.com/"])
        config = configure(args, fetch_settings)

        assert config.quiet is False
        assert config.verify_certificate is True
        assert config.output_file == "out.bin"
        assert config.ca_certificates == []

    def test_all_flags(self, fetch_settings):
        args = build_parser().parse_args(
            [
                "-q",
                "-O",
                "-",
                "--no-check-certificate",
                "--ca-certificate=/etc/a.pem",
                "--ca-certificate",
                "/etc/b.pem",
                "https://example.com/",
            ]
        )
        config = configure(args, fetch_settings)

        assert config.quiet is True
        assert config.output_file == "-"
        assert config.verify_certificate is False
        assert config.ca_certificates == ["/etc/a.pem", "/etc/b.pem"]

    @pytest.mark.parametrize(
        "argv",
        [[], ["--bogus", "http://example.com/"], ["http://a/", "http://b/"], ["-O"]],
    )
    def test_usage_errors_exit_1(self, argv):
        with patch("httpfetch.main.run_fetch") as mock_run:
            assert main(argv) == 1
        mock_run.assert_not_called()


class TestMain:
    """Tests for main() exit codes."""

    @pytest.mark.parametrize("exit_code", [0, 3, 4, 5, 8])
    def test_propagates_outcome_exit_code(self, exit_code):
        with patch("httpfetch.main.run_fetch", return_value=_outcome(exit_code)):
            assert main(["http://example.com/"]) == exit_code

    def test_passes_settings_and_tls(self):
        with patch("httpfetch.main.run_fetch", return_value=_outcome()) as mock_run:
            main(["-q", "--no-check-certificate", "https://example.com/"])

        url = mock_run.call_args.args[0]
        kwargs = mock_run.call_args.kwargs
        assert url == "https://example.com/"
        assert kwargs["config"].quiet is True
        assert kwargs["config"].verify_certificate is False
        assert kwargs["tls"] is not None

    def test_logging_uses_overlaid_settings(self, mock_setup_logging, monkeypatch):
        monkeypatch.setenv("HTTPFETCH_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("HTTPFETCH_LOG_FORMAT", "%(levelname)s %(message)s")
        base = Settings(_env_file=None)

        with patch("httpfetch.main.settings", base), patch(
            "httpfetch.main.run_fetch", return_value=_outcome()
        ):
            main(["http://example.com/"])

        mock_setup_logging.assert_called_once_with("DEBUG", "%(levelname)s %(message)s")

    def test_https_without_tls_support(self):
        with patch("httpfetch.main.load_tls_provider", return_value=None), patch(
            "httpfetch.main.run_fetch"
        ) as mock_run:
            assert main(["https://example.com/"]) == 1
        mock_run.assert_not_called()

    def test_missing_ca_file(self, tmp_path):
        with patch("httpfetch.main.run_fetch") as mock_run:
            code = main(
                ["--ca-certificate", str(tmp_path / "none.pem"), "http://example.com/"]
            )

        assert code == 1
        mock_run.assert_not_called()

    def test_invalid_url(self):
        assert main(["ftp://example.com/file"]) == 1


class TestEndToEnd:
    """main() → runner → controller → sink, with a mocked network."""

    def _runner(self, transport, resolver):
        def run(url, **kwargs):
            return run_fetch(url, transport=transport, resolver=resolver, **kwargs)

        return run

    def test_download_to_derived_name(self, tmp_path, monkeypatch, fake_resolver):
        monkeypatch.chdir(tmp_path)
        transport = mock_transport(
            {"http://example.com/files/report.txt": httpx.Response(200, content=b"report")}
        )

        with patch(
            "httpfetch.main.run_fetch", side_effect=self._runner(transport, fake_resolver)
        ):
            code = main(["-q", "http://example.com/files/report.txt"])

        assert code == 0
        assert (tmp_path / "report.txt").read_bytes() == b"report"

    def test_rejected_status(self, tmp_path, monkeypatch, fake_resolver):
        monkeypatch.chdir(tmp_path)
        transport = mock_transport(
            {"http://example.com/gone": httpx.Response(410)}
        )

        with patch(
            "httpfetch.main.run_fetch", side_effect=self._runner(transport, fake_resolver)
        ):
            code = main(["-q", "http://example.com/gone"])

        assert code == 8
        assert list(tmp_path.iterdir()) == []
