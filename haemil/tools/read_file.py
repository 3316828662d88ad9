"""Tool that reads a text file, optionally restricted to a line range."""

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

READ_FILE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "path": {"type": "string", "description": "Absolute or cwd-relative path."},
        "start_line": {
            "type": "integer",
            "description": "First line to include (1-based, inclusive). Default 1.",
        },
        "end_line": {
            "type": "integer",
            "description": "Last line to include (1-based, inclusive). -1 means EOF. Default EOF.",
        },
    },
    "required": ["path"],
}

READ_FILE_DESCRIPTION = (
    "Read the contents of a text file, optionally restricted to a line range. "
    "Returns line-numbered content. Binary files and files larger than 10 MiB are rejected."
)

_PEEK_BYTES = 8192


def _load_input(raw: str | bytes | Mapping[str, Any]) -> Mapping[str, Any]:
    if isinstance(raw, Mapping):
        return raw
    if not raw:
        raise ToolError(EMPTY_PATH_MESSAGE)
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as err:
        raise ToolError(f"read_file: parse input: {err}") from err
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ToolError("read_file: parse input: input must be a JSON object")
    return data


def _int_field(data: Mapping[str, Any], key: str) -> int:
    value = data.get(key, 0)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ToolError(f"read_file: parse input: {key} must be an integer")
    return value


def _split_lines(text: str) -> list[str]:
    """Split on newlines, dropping a trailing empty line and any CR before LF."""
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


class ReadFileTool(Tool):
    """Returns line-numbered text content of a file."""

    def __init__(self) -> None:
        self.spec = ToolSpec(
            name="read_file",
            description=READ_FILE_DESCRIPTION,
            input_schema=READ_FILE_SCHEMA,
        )
        self.capability = Capability.READ

    def execute(self, input: str | bytes | Mapping[str, Any]) -> str:
        """Read the file named in ``input`` and return numbered lines."""
        data = _load_input(input)
        raw_path = data.get("path", "")
        if raw_path is None:
            raw_path = ""
        if not isinstance(raw_path, str):
            raise ToolError("read_file: parse input: path must be a string")
        start = _int_field(data, "start_line")
        end = _int_field(data, "end_line")

        try:
            path = resolve_file_path(raw_path)
        except ToolError as err:
            raise ToolError(f"read_file: {err}") from err

        try:
            info = os.stat(path)
        except OSError as err:
            raise ToolError(f"read_file: stat: {err}") from err
        if os.path.isdir(path):
            raise ToolError(f"read_file: {IS_DIRECTORY_MESSAGE}")
        if info.st_size > FILE_MAX_BYTES:
            raise ToolError(f"read_file: {TOO_LARGE_MESSAGE} (size={info.st_size})")

        try:
            with open(path, "rb") as handle:
                peek = handle.read(_PEEK_BYTES)
                if is_binary_bytes(peek):
                    raise ToolError(
                        f"read_file: {BINARY_MESSAGE} (peeked {len(peek)} bytes)"
                    )
                content = peek + handle.read()
        except OSError as err:
            raise ToolError(f"read_file: open: {err}") from err

        lines = _split_lines(content.decode("utf-8", errors="replace"))
        total = len(lines)
        if start <= 0:
            start = 1
        if end in (0, -1) or end > total:
            end = total
        if start > total:
            return (
                f"{path}\n(file has {total} lines; requested start_line={start} "
                "is past EOF)\n"
            )
        if start > end:
            raise ToolError(f"read_file: start_line ({start}) > end_line ({end})")

        header = f"{path} ({total} lines total"
        if start != 1 or end != total:
            header += f", showing {start}–{end}"
        header += ")\n"
        width = len(str(end)) if end > 0 else 1
        body = "".join(
            f"{number:>{width}}\t{line}\n"
            for number, line in enumerate(lines[start - 1:end], start=start)
        )
        return header + body