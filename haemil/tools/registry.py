"""The default tool set."""

from __future__ import annotations

from haemil.tools.base import PermissionMode, Tool
from haemil.tools.bash import BashTool
from haemil.tools.edit_file import EditFileTool
from haemil.tools.glob_search import GlobSearchTool
from haemil.tools.grep_search import GrepSearchTool
from haemil.tools.read_file import ReadFileTool
from haemil.tools.write_file import WriteFileTool


def default_tools(mode: PermissionMode, workspace: str = "") -> list[Tool]:
    """Fresh instances of every default tool.

    ``mode`` and ``workspace`` (the workspace root, or "" if unknown) are
    captured by the bash tool; rebuild the set when either changes.
    """
    return [
        BashTool(mode, workspace),
        ReadFileTool(),
        WriteFileTool(),
        EditFileTool(),
        GlobSearchTool(),
        GrepSearchTool(),
    ]