"""Tool that replaces an exact substring inside an existing text file."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from typing import Any

from haemil.tools.base import (
    BINARY_MESSAGE,
    EMPTY_PATH_MESSAGE,
    FILE_MAX_BYTES,
    IS_DIRECTORY_MESSAGE,
    TOO_LARGE_MESSAGE,
    Capability,
    Tool,
    ToolError,
    ToolSpec,
    is_binary_bytes,
    resolve_file_path,
)

EDIT_FILE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "path": {
            "type": "string",
            "description": "Absolute or cwd-relative path to an existing text file.",
        },
        "old_string": {
            "type": "string",
            "description": "Exact substring to replace. Must match literally (whitespace and all).",
        },
        "new_string": {"type": "string", "description": "Replacement text."},
        "replace_all": {
            "type": "boolean",
            "description": (
                "If true, replace every occurrence. If false (default), "
                "old_string must appear exactly once."
            ),
        },
    },
    "required": ["path", "old_string", "new_string"],
}

EDIT_FILE_DESCRIPTION = (
    "Replace an exact substring inside an existing text file. By default fails if "
    "old_string matches more than once (safety); pass replace_all:true to allow "
    "multi-match. Binary files and files >10 MiB are rejected."
)

_CODEC = "utf-8"
_ERRORS = "surrogateescape"


def _load_input(raw: str | bytes | Mapping[str, Any]) -> Mapping[str, Any]:
    if isinstance(raw, Mapping):
        return raw
    if not raw:
        raise ToolError(EMPTY_PATH_MESSAGE)
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as err:
        raise ToolError(f"edit_file: parse input: {err}") from err
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ToolError("edit_file: parse input: input must be a JSON object")
    return data


def _str_field(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key, "")
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ToolError(f"edit_file: parse input: {key} must be a string")
    return value


def _bool_field(data: Mapping[str, Any], key: str) -> bool:
    value = data.get(key, False)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ToolError(f"edit_file: parse input: {key} must be a boolean")
    return value


class EditFileTool(Tool):
    """Exact find-and-replace on an existing file."""

    def __init__(self) -> None:
        self.spec = ToolSpec(
            name="edit_file",
            description=EDIT_FILE_DESCRIPTION,
            input_schema=EDIT_FILE_SCHEMA,
        )
        self.capability = Capability.WRITE

    def execute(self, input: str | bytes | Mapping[str, Any]) -> str:
        """Apply the edit described by ``input`` and return a summary.

        Without ``replace_all`` the old string must occur exactly once.
        """
        data = _load_input(input)
        raw_path = _str_field(data, "path")
        old = _str_field(data, "old_string")
        new = _str_field(data, "new_string")
        replace_all = _bool_field(data, "replace_all")

        if not old:
            raise ToolError("edit_file: old_string is required and must be non-empty")
        if old == new:
            raise ToolError(
                "edit_file: old_string and new_string are identical — nothing to do"
            )
        try:
            path = resolve_file_path(raw_path)
        except ToolError as err:
            raise ToolError(f"edit_file: {err}") from err

        try:
            info = os.stat(path)
        except OSError as err:
            raise ToolError(f"edit_file: stat: {err}") from err
        if os.path.isdir(path):
            raise ToolError(f"edit_file: {IS_DIRECTORY_MESSAGE}")
        if info.st_size > FILE_MAX_BYTES:
            raise ToolError(f"edit_file: {TOO_LARGE_MESSAGE} (size={info.st_size})")

        try:
            with open(path, "rb") as handle:
                raw = handle.read()
        except OSError as err:
            raise ToolError(f"edit_file: read: {err}") from err
        if is_binary_bytes(raw):
            raise ToolError(f"edit_file: {BINARY_MESSAGE}")
        content = raw.decode(_CODEC, errors=_ERRORS)

        count = content.count(old)
        if count == 0:
            raise ToolError(f"edit_file: old_string not found in {path}")
        if count > 1 and not replace_all:
            raise ToolError(
                f"edit_file: old_string appears {count} times in {path} — pass "
                "replace_all:true to edit all, or include more context to make it unique"
            )

        updated = content.replace(old, new) if replace_all else content.replace(old, new, 1)

        # Opening an existing file for writing keeps its permission bits.
        try:
            with open(path, "wb") as handle:
                handle.write(updated.encode(_CODEC, errors=_ERRORS))
        except OSError as err:
            raise ToolError(f"edit_file: write: {err}") from err

        replaced = count if replace_all else 1
        line_delta = len(updated.split("\n")) - len(content.split("\n"))
        return (
            f"edited {path}: replaced {replaced} occurrence(s) ({line_delta:+d} lines)"
        )