"""Tests for version module.

The PyPI lookup is patched; no network access.
"""

import time
from urllib.error import HTTPError, URLError

import pytest

from llmd.config import get_last_version_check, set_last_version_check
from llmd.version import (
    BackgroundVersionCheck,
    VersionCheckResult,
    check_for_updates,
    display_update_hint,
    is_newer_version,
)


@pytest.fixture
def installed(mocker):
    mocker.patch("llmd.version.get_current_version", return_value="0.3.0")


class TestIsNewerVersion:
    @pytest.mark.parametrize("current,latest,expected", [
        ("0.3.0", "0.4.0", True),
        ("0.3.0", "0.3.1", True),
        ("0.3.0", "1.0.0", True),
        ("0.3.0", "0.3.0", False),
        ("0.4.0", "0.3.9", False),
        ("0.3", "0.3.1", True),
        ("0.3.0", "0.3.1rc1", True),
        ("0.10.0", "0.9.0", False),
    ])
    def test_comparison(self, current, latest, expected):
        assert is_newer_version(current, latest) is expected


class TestCheckForUpdates:
    """Tests for check_for_updates function."""

    def test_reports_update(self, installed, mocker):
        mocker.patch("llmd.version._fetch_latest_version", return_value="0.4.0")

        result = check_for_updates(force=True)

        assert result == VersionCheckResult("0.3.0", "0.4.0", has_update=True)

    def test_up_to_date(self, installed, mocker):
        mocker.patch("llmd.version._fetch_latest_version", return_value="0.3.0")
        result = check_for_updates(force=True)
        assert result.has_update is False
        assert result.error is None

    def test_records_check_time(self, installed, mocker):
        mocker.patch("llmd.version._fetch_latest_version", return_value="0.3.0")
        assert get_last_version_check() is None

        check_for_updates()

        assert get_last_version_check() is not None

    def test_skipped_when_checked_today(self, installed, mocker):
        set_last_version_check(time.time())
        fetch = mocker.patch("llmd.version._fetch_latest_version")

        result = check_for_updates()

        fetch.assert_not_called()
        assert result == VersionCheckResult("0.3.0")

    def test_force_ignores_daily_gate(self, installed, mocker):
        set_last_version_check(time.time())
        fetch = mocker.patch("llmd.version._fetch_latest_version", return_value="0.3.0")

        check_for_updates(force=True)

        fetch.assert_called_once()

    def test_http_error(self, installed, mocker):
        mocker.patch(
            "llmd.version._fetch_latest_version",
            side_effect=HTTPError("https://pypi.org", 503, "unavailable", {}, None),
        )
        result = check_for_updates(force=True)
        assert result.error == "HTTP 503"
        assert result.has_update is False

    def test_network_error(self, installed, mocker):
        mocker.patch("llmd.version._fetch_latest_version", side_effect=URLError("no route"))
        result = check_for_updates(force=True)
        assert "no route" in result.error

    def test_missing_version(self, installed, mocker):
        mocker.patch("llmd.version._fetch_latest_version", return_value=None)
        result = check_for_updates(force=True)
        assert result.error == "Could not determine latest version"


class TestBackgroundVersionCheck:
    def test_poll_returns_result_when_done(self, mocker):
        expected = VersionCheckResult("0.3.0", "0.4.0", has_update=True)
        mocker.patch("llmd.version.check_for_updates", return_value=expected)

        check = BackgroundVersionCheck().start()
        check._thread.join(timeout=5)

        assert check.poll() == expected

    def test_poll_while_running_is_none(self, mocker):
        check = BackgroundVersionCheck()
        mocker.patch.object(check._thread, "is_alive", return_value=True)
        assert check.poll() is None


class TestDisplayUpdateHint:
    def test_prints_hint(self, capsys):
        display_update_hint(VersionCheckResult("0.3.0", "0.4.0", has_update=True))

        out = capsys.readouterr().out
        assert "Update available: v0.3.0 → v0.4.0" in out
        assert "llmd update install" in out

    @pytest.mark.parametrize("result", [
        None,
        VersionCheckResult("0.3.0", "0.3.0"),
        VersionCheckResult("0.3.0", error="HTTP 500"),
    ])
    def test_silent_without_update(self, capsys, result):
        display_update_hint(result)
        assert capsys.readouterr().out == ""
