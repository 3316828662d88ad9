import pytest

from haemil.tools.base import Capability, PermissionMode
from haemil.tools.bash import BashTool
from haemil.tools.registry import default_tools


def test_default_tools_names_in_order():
    tools = default_tools(PermissionMode.DANGER_FULL_ACCESS, "")
    assert [tool.spec.name for tool in tools] == [
        "bash",
        "read_file",
        "write_file",
        "edit_file",
        "glob_search",
        "grep_search",
    ]


def test_default_tools_names_unique():
    tools = default_tools(PermissionMode.READ_ONLY, "")
    names = [tool.spec.name for tool in tools]
    assert len(names) == len(set(names))


@pytest.mark.parametrize("mode", list(PermissionMode))
def test_bash_receives_mode_and_workspace(mode, tmp_path):
    tools = default_tools(mode, str(tmp_path))
    bash = next(tool for tool in tools if isinstance(tool, BashTool))
    assert bash.mode is mode
    assert bash.workspace == str(tmp_path)


def test_default_tools_capabilities():
    tools = default_tools(PermissionMode.WORKSPACE_WRITE, "")
    by_name = {tool.spec.name: tool.capability for tool in tools}
    assert by_name["bash"] is Capability.EXEC
    assert by_name["read_file"] is Capability.READ
    assert by_name["glob_search"] is Capability.READ
    assert by_name["grep_search"] is Capability.READ
    assert by_name["write_file"] is Capability.WRITE
    assert by_name["edit_file"] is Capability.WRITE


def test_default_tools_returns_fresh_instances():
    first = default_tools(PermissionMode.READ_ONLY, "")
    second = default_tools(PermissionMode.READ_ONLY, "")
    assert all(a is not b for a, b in zip(first, second))
    assert len(first) == len(second)


def test_default_tools_are_usable(tmp_path):
    (tmp_path / "f.txt").write_text("needle\n")
    tools = {tool.spec.name: tool for tool in default_tools(PermissionMode.READ_ONLY, "")}
    out = tools["grep_search"].execute({"pattern": "needle", "path": str(tmp_path)})
    assert str(tmp_path / "f.txt") in out