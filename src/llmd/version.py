"""Release check module.

Asks PyPI whether a newer llmd is published. The check is started in a
background thread when a query begins and is only looked at once the
command has finished; a check still in flight at that point is ignored.
"""

import json
import logging
import threading
import time
from dataclasses import dataclass
from importlib import metadata
from urllib import request
from urllib.error import HTTPError, URLError

from llmd import __version__
from llmd.config import set_last_version_check, should_check_version
from llmd.constants import PACKAGE_NAME, PYPI_URL, VERSION_CHECK_TIMEOUT

logger = logging.getLogger(__name__)


@dataclass
class VersionCheckResult:
    current_version: str
    latest_version: str | None = None
    has_update: bool = False
    error: str | None = None


def get_current_version() -> str:
    try:
        return metadata.version(PACKAGE_NAME)
    except metadata.PackageNotFoundError:
        return __version__


def _version_parts(version: str) -> list[int]:
    parts = []
    for piece in version.split(".")[:3]:
        digits = ""
        for ch in piece:
            if not ch.isdigit():
                break
            digits += ch
        parts.append(int(digits) if digits else 0)
    return parts + [0] * (3 - len(parts))


def is_newer_version(current: str, latest: str) -> bool:
    """True if ``latest`` is greater than ``current`` on major.minor.patch."""
    return _version_parts(latest) > _version_parts(current)


def _fetch_latest_version() -> str | None:
    url = PYPI_URL.format(package=PACKAGE_NAME)
    req = request.Request(url, headers={"Accept": "application/json"})
    with request.urlopen(req, timeout=VERSION_CHECK_TIMEOUT) as resp:  # noqa: S310
        data = json.loads(resp.read().decode("utf-8"))
    latest = data.get("info", {}).get("version") if isinstance(data, dict) else None
    return str(latest) if latest else None


def check_for_updates(force: bool = False) -> VersionCheckResult:
    """Compare the installed version with the latest release.

    Runs at most once a day unless ``force`` is set. Never raises: network
    and parse failures are reported in ``error``.
    """
    current = get_current_version()

    if not force and not should_check_version():
        return VersionCheckResult(current_version=current)

    try:
        latest = _fetch_latest_version()
    except HTTPError as e:
        logger.debug("Release check failed: HTTP %s", e.code)
        return VersionCheckResult(current_version=current, error=f"HTTP {e.code}")
    except (URLError, OSError, ValueError) as e:
        logger.debug("Release check failed: %s", e)
        return VersionCheckResult(current_version=current, error=str(e))

    try:
        set_last_version_check(time.time())
    except OSError as e:
        logger.warning("Could not record release check time: %s", e)

    if not latest:
        return VersionCheckResult(
            current_version=current, error="Could not determine latest version"
        )

    return VersionCheckResult(
        current_version=current,
        latest_version=latest,
        has_update=is_newer_version(current, latest),
    )


class BackgroundVersionCheck:
    """Runs check_for_updates() on a daemon thread."""

    def __init__(self):
        self._result: VersionCheckResult | None = None
        self._thread = threading.Thread(target=self._run, daemon=True)

    def _run(self) -> None:
        self._result = check_for_updates()

    def start(self) -> "BackgroundVersionCheck":
        self._thread.start()
        return self

    def poll(self) -> VersionCheckResult | None:
        """The result if the check has finished, otherwise None."""
        if self._thread.is_alive():
            return None
        return self._result


def display_update_hint(result: VersionCheckResult | None) -> None:
    if result is None or not result.has_update or not result.latest_version:
        return
    print(f"\n\U0001f4a1 Update available: v{result.current_version} → v{result.latest_version}")
    print(f"   Run llmd update install or pip install --upgrade {PACKAGE_NAME} to update\n")
