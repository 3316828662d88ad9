"""Tool that creates or overwrites a UTF-8 text file."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from typing import Any

from haemil.tools.base import (
    EMPTY_PATH_MESSAGE,
    FILE_MAX_BYTES,
    IS_DIRECTORY_MESSAGE,
    TOO_LARGE_MESSAGE,
    Capability,
    Tool,
    ToolError,
    ToolSpec,
    resolve_file_path,
)

WRITE_FILE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "path": {"type": "string", "description": "Absolute or cwd-relative path."},
        "content": {"type": "string", "description": "File content. UTF-8."},
        "mkdir": {
            "type": "boolean",
            "description": "Create parent directories if missing. Default true.",
        },
    },
    "required": ["path", "content"],
}

WRITE_FILE_DESCRIPTION = (
    "Write (create or overwrite) a UTF-8 text file with the given content. "
    "Parent directories are created automatically by default. Content is capped at 10 MiB."
)

_FILE_MODE = 0o644
_DIR_MODE = 0o755


def _load_input(raw: str | bytes | Mapping[str, Any]) -> Mapping[str, Any]:
    if isinstance(raw, Mapping):
        return raw
    if not raw:
        raise ToolError(EMPTY_PATH_MESSAGE)
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as err:
        raise ToolError(f"write_file: parse input: {err}") from err
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ToolError("write_file: parse input: input must be a JSON object")
    return data


def _str_field(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key, "")
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ToolError(f"write_file: parse input: {key} must be a string")
    return value


def count_lines(content: str) -> int:
    """Number of lines in ``content``; a trailing newline does not start a new line."""
    if not content:
        return 0
    lines = content.count("\n") + 1
    if content.endswith("\n"):
        lines -= 1
    return lines


def _open_for_write(path: str, flags: int) -> int:
    return os.open(path, flags, _FILE_MODE)


class WriteFileTool(Tool):
    """Creates or overwrites a file with the given content."""

    def __init__(self) -> None:
        self.spec = ToolSpec(
            name="write_file",
            description=WRITE_FILE_DESCRIPTION,
            input_schema=WRITE_FILE_SCHEMA,
        )
        self.capability = Capability.WRITE

    def execute(self, input: str | bytes | Mapping[str, Any]) -> str:
        """Write the content from ``input`` and return a short summary."""
        data = _load_input(input)
        raw_path = _str_field(data, "path")
        content = _str_field(data, "content")
        make_dirs = data.get("mkdir")
        if make_dirs is None:
            make_dirs = True
        if not isinstance(make_dirs, bool):
            raise ToolError("write_file: parse input: mkdir must be a boolean")

        encoded = content.encode("utf-8", errors="replace")
        if len(encoded) > FILE_MAX_BYTES:
            raise ToolError(
                f"write_file: {TOO_LARGE_MESSAGE} (content_size={len(encoded)})"
            )

        try:
            path = resolve_file_path(raw_path)
        except ToolError as err:
            raise ToolError(f"write_file: {err}") from err

        if os.path.isdir(path):
            raise ToolError(f"write_file: {IS_DIRECTORY_MESSAGE}")

        if make_dirs:
            try:
                os.makedirs(os.path.dirname(path), mode=_DIR_MODE, exist_ok=True)
            except OSError as err:
                raise ToolError(f"write_file: mkdir: {err}") from err

        existed = os.path.exists(path)

        try:
            with open(path, "wb", opener=_open_for_write) as handle:
                handle.write(encoded)
        except OSError as err:
            raise ToolError(f"write_file: write: {err}") from err

        verb = "overwrote" if existed else "created"
        return f"{verb} {path} ({count_lines(content)} lines, {len(encoded)} bytes)"