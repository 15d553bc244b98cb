"""Tests for tools module."""

import json

from llmd.constants import TOOLS_TO_SCAN
from llmd.models import ToolInfo
from llmd.tools import (
    get_available_tools,
    get_scan_date,
    get_tools_path,
    group_by_category,
    has_scanned_tools,
    save_available_tools,
    scan_cli_tools,
)


def _fake_which(installed):
    return lambda name: f"/usr/bin/{name}" if name in installed else None


class TestScan:
    def test_finds_installed_tools(self, mocker):
        mocker.patch("llmd.tools.shutil.which", side_effect=_fake_which({"git", "jq"}))

        tools = scan_cli_tools()

        assert {t.name for t in tools} == {"git", "jq"}
        git = next(t for t in tools if t.name == "git")
        assert git.path == "/usr/bin/git"
        assert git.category == "Version Control"

    def test_each_tool_looked_up_once(self, mocker):
        which = mocker.patch("llmd.tools.shutil.which", return_value=None)

        scan_cli_tools()

        names = [c.args[0] for c in which.call_args_list]
        assert len(names) == len(set(names))

    def test_progress_reaches_total(self, mocker):
        mocker.patch("llmd.tools.shutil.which", return_value=None)
        calls = []

        scan_cli_tools(progress=lambda done, total: calls.append((done, total)))

        total = len({name for names in TOOLS_TO_SCAN.values() for name in names})
        assert calls[-1] == (total, total)


class TestInventoryStore:
    """Tests for saving and loading tools.json."""

    def test_save_and_load(self, isolated_home):
        tools = [
            ToolInfo(name="rg", path="/usr/bin/rg", category="Text Processing"),
            ToolInfo(name="docker", path="/usr/bin/docker", category="Containers"),
        ]

        save_available_tools(tools)

        assert get_tools_path().startswith(str(isolated_home))
        assert get_available_tools() == tools
        assert get_scan_date() is not None
        assert has_scanned_tools() is True

    def test_missing_inventory(self):
        assert get_available_tools() == []
        assert get_scan_date() is None
        assert has_scanned_tools() is False

    def test_corrupt_inventory_ignored(self, tmp_path):
        path = tmp_path / "tools.json"
        path.write_text("{broken")
        assert get_available_tools(str(path)) == []

    def test_entries_without_name_skipped(self, tmp_path):
        path = tmp_path / "tools.json"
        path.write_text(json.dumps({
            "availableTools": [{"path": "/bin/x"}, {"name": "fd", "path": "/usr/bin/fd"}],
            "scanDate": "yesterday",
        }))

        tools = get_available_tools(str(path))

        assert tools == [ToolInfo(name="fd", path="/usr/bin/fd", category="Other")]
        assert get_scan_date(str(path)) is None


def test_group_by_category_keeps_order():
    tools = [
        ToolInfo("jq", "/usr/bin/jq", "Text Processing"),
        ToolInfo("git", "/usr/bin/git", "Version Control"),
        ToolInfo("rg", "/usr/bin/rg", "Text Processing"),
    ]
    grouped = group_by_category(tools)
    assert [t.name for t in grouped["Text Processing"]] == ["jq", "rg"]
    assert list(grouped) == ["Text Processing", "Version Control"]
