"""Tool inventory module.

Finds which common CLI tools are installed and stores the result in
$LLMD_HOME/tools.json so generation prompts can prefer them. The
inventory is advisory: when it is missing or unreadable the prompt simply
omits it.
"""

import json
import logging
import os
import re
import shutil
import tempfile
import time

from llmd.config import get_home_dir
from llmd.constants import TOOLS_FILE_NAME, TOOLS_TO_SCAN
from llmd.models import ToolInfo

logger = logging.getLogger(__name__)

_TOOL_NAME_RE = re.compile(r"^[a-zA-Z0-9_.+-]+$")


def get_tools_path() -> str:
    return os.path.join(get_home_dir(), TOOLS_FILE_NAME)


def scan_cli_tools(progress=None) -> list[ToolInfo]:
    """Look up every tool in TOOLS_TO_SCAN on PATH.

    Args:
        progress: Optional callable(done, total) invoked after each lookup.

    Returns:
        Found tools in table order, each name once.
    """
    candidates: dict[str, str] = {}
    for category, names in TOOLS_TO_SCAN.items():
        for name in names:
            candidates.setdefault(name, category)

    tools = []
    total = len(candidates)
    for done, (name, category) in enumerate(candidates.items(), 1):
        if _TOOL_NAME_RE.match(name):
            path = shutil.which(name)
            if path:
                tools.append(ToolInfo(name=name, path=path, category=category))
        if progress is not None:
            progress(done, total)

    logger.debug("Tool scan found %d of %d tools", len(tools), total)
    return tools


def _load(path: str | None = None) -> dict:
    path = path or get_tools_path()
    try:
        with open(path) as f:
            data = json.load(f)
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as e:
        logger.warning("Tool inventory %s unreadable: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def save_available_tools(tools: list[ToolInfo], path: str | None = None) -> None:
    """Replace the stored inventory and stamp the scan time."""
    path = path or get_tools_path()
    directory = os.path.dirname(path)
    os.makedirs(directory, exist_ok=True)
    data = {
        "availableTools": [
            {"name": t.name, "path": t.path, "category": t.category} for t in tools
        ],
        "scanDate": time.time(),
    }
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".tools-")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, path)
    except OSError:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def get_available_tools(path: str | None = None) -> list[ToolInfo]:
    tools = []
    for entry in _load(path).get("availableTools") or []:
        if isinstance(entry, dict) and entry.get("name"):
            tools.append(ToolInfo(
                name=str(entry["name"]),
                path=str(entry.get("path", "")),
                category=str(entry.get("category") or "Other"),
            ))
    return tools


def get_scan_date(path: str | None = None) -> float | None:
    scan_date = _load(path).get("scanDate")
    return scan_date if isinstance(scan_date, (int, float)) else None


def has_scanned_tools(path: str | None = None) -> bool:
    return len(get_available_tools(path)) > 0


def group_by_category(tools: list[ToolInfo]) -> dict[str, list[ToolInfo]]:
    grouped: dict[str, list[ToolInfo]] = {}
    for tool in tools:
        grouped.setdefault(tool.category, []).append(tool)
    return grouped
