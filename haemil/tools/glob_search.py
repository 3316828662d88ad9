"""Tool that lists files matching a glob pattern, newest first."""

from __future__ import annotations

import functools
import json
import os
import re
from collections.abc import Iterator, Mapping, Sequence
from typing import Any, NamedTuple

from haemil.tools.base import Capability, Tool, ToolError, ToolSpec

GLOB_SEARCH_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "pattern": {
            "type": "string",
            "description": (
                "Glob pattern. ** matches any path segments recursively. "
                'Example: "**/*.go" or "internal/**/*_test.go".'
            ),
        },
        "cwd": {
            "type": "string",
            "description": "Base directory. Default: current working directory.",
        },
        "limit": {"type": "integer", "description": "Max results (default 200)."},
    },
    "required": ["pattern"],
}

GLOB_SEARCH_DESCRIPTION = (
    "Find files matching a glob pattern. Returns paths sorted by modification time "
    "(newest first). Auto-excludes .git/, node_modules/, vendor/, and other noise dirs."
)

DEFAULT_LIMIT = 200

# Directories skipped during walks: almost always noise in search results.
EXCLUDED_DIRS = frozenset({
    ".git", ".svn", ".hg", "node_modules", "vendor", "__pycache__", ".venv",
    "venv", ".pytest_cache", "dist", "build", ".next", ".nuxt", ".idea",
    ".vscode", "reference", "graphify-out",
})


class _Hit(NamedTuple):
    path: str
    mtime_ns: int


def _to_slash(path: str) -> str:
    return path if os.sep == "/" else path.replace(os.sep, "/")


@functools.lru_cache(maxsize=256)
def _segment_regex(pattern: str) -> re.Pattern[str] | None:
    """Compile one path-segment pattern (``*``, ``?``, ``[...]``, ``\\`` escapes).

    Returns None for a malformed pattern, which then matches nothing.
    """
    out: list[str] = []
    i, size = 0, len(pattern)
    while i < size:
        char = pattern[i]
        if char == "*":
            out.append("[^/]*")
        elif char == "?":
            out.append("[^/]")
        elif char == "\\" and os.sep == "/":
            i += 1
            if i >= size:
                return None
            out.append(re.escape(pattern[i]))
        elif char == "[":
            i += 1
            negate = i < size and pattern[i] == "^"
            if negate:
                i += 1
            items: list[str] = []
            while True:
                if i >= size:
                    return None
                if pattern[i] == "]" and items:
                    break
                low, i = _class_char(pattern, i)
                if low is None:
                    return None
                if i < size and pattern[i] == "-":
                    high, i = _class_char(pattern, i + 1)
                    if high is None or high < low:
                        return None
                    items.append(f"{re.escape(low)}-{re.escape(high)}")
                else:
                    items.append(re.escape(low))
            out.append(("[^" if negate else "[") + "".join(items) + "]")
        else:
            out.append(re.escape(char))
        i += 1
    return re.compile("".join(out), re.DOTALL)


def _class_char(pattern: str, i: int) -> tuple[str | None, int]:
    """Read one character of a bracket class at ``i``; None if malformed."""
    if i >= len(pattern):
        return None, i
    char = pattern[i]
    if char in "-]":
        return None, i
    if char == "\\" and os.sep == "/":
        i += 1
        if i >= len(pattern):
            return None, i
        char = pattern[i]
    return char, i + 1


def _match_one_segment(pattern: str, name: str) -> bool:
    regex = _segment_regex(pattern)
    return regex is not None and regex.fullmatch(name) is not None


def _seg_match(pattern: Sequence[str], name: Sequence[str]) -> bool:
    for index, part in enumerate(pattern):
        if part == "**":
            rest = pattern[index + 1:]
            if not rest:
                return True
            return any(_seg_match(rest, name[k:]) for k in range(index, len(name) + 1))
        if index >= len(name) or not _match_one_segment(part, name[index]):
            return False
    return len(pattern) == len(name)


def match_glob(pattern: str, path: str) -> bool:
    """Match a slash-separated path against a pattern supporting ``?``, ``*`` and ``**``."""
    pattern = _to_slash(pattern)
    path = _to_slash(path)
    if "*" not in pattern and "?" not in pattern:
        return pattern == path
    return _seg_match(pattern.split("/"), path.split("/"))


def _walk_files(base: str) -> Iterator[tuple[str, str, int]]:
    """Yield ``(path, relative_path, mtime_ns)`` for files under ``base`` in lexical order.

    Excluded directories are pruned and symlinks are not followed.
    """
    try:
        root = os.lstat(base)
    except OSError:
        return
    if not os.path.isdir(base) or os.path.islink(base):
        yield base, ".", root.st_mtime_ns
        return

    def visit(directory: str, prefix: str) -> Iterator[tuple[str, str, int]]:
        try:
            with os.scandir(directory) as scan:
                entries = sorted(scan, key=lambda entry: entry.name)
        except OSError:
            return
        for entry in entries:
            rel = prefix + entry.name
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                is_dir = False
            if is_dir:
                if entry.name not in EXCLUDED_DIRS:
                    yield from visit(entry.path, rel + "/")
                continue
            try:
                mtime = entry.stat(follow_symlinks=False).st_mtime_ns
            except OSError:
                mtime = 0
            yield entry.path, rel, mtime

    yield from visit(base, "")


def _load_input(raw: str | bytes | Mapping[str, Any]) -> Mapping[str, Any]:
    if isinstance(raw, Mapping):
        return raw
    if not raw:
        raise ToolError("glob_search: empty input")
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as err:
        raise ToolError(f"glob_search: parse input: {err}") from err
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ToolError("glob_search: parse input: input must be a JSON object")
    return data


def _str_field(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key, "")
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ToolError(f"glob_search: parse input: {key} must be a string")
    return value


def _int_field(data: Mapping[str, Any], key: str) -> int:
    value = data.get(key, 0)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ToolError(f"glob_search: parse input: {key} must be an integer")
    return value


class GlobSearchTool(Tool):
    """Lists files under a directory whose relative path matches a glob."""

    def __init__(self) -> None:
        self.spec = ToolSpec(
            name="glob_search",
            description=GLOB_SEARCH_DESCRIPTION,
            input_schema=GLOB_SEARCH_SCHEMA,
        )
        self.capability = Capability.READ

    def execute(self, input: str | bytes | Mapping[str, Any]) -> str:
        """Return a header line followed by matching paths, newest first."""
        data = _load_input(input)
        pattern = _str_field(data, "pattern")
        cwd = _str_field(data, "cwd")
        limit = _int_field(data, "limit")
        if not pattern:
            raise ToolError("glob_search: pattern is required")
        if limit <= 0:
            limit = DEFAULT_LIMIT

        try:
            base = cwd if os.path.isabs(cwd) else os.path.join(os.getcwd(), cwd)
        except OSError as err:
            raise ToolError(f"glob_search: getwd: {err}") from err
        base = os.path.normpath(base)

        hits = [
            _Hit(path, mtime)
            for path, rel, mtime in _walk_files(base)
            if match_glob(pattern, rel)
        ]
        hits.sort(key=lambda hit: hit.mtime_ns, reverse=True)

        truncated = len(hits) > limit
        hits = hits[:limit]

        header = (
            f"glob {json.dumps(pattern, ensure_ascii=False)} in {base}: "
            f"{len(hits)} match(es)"
        )
        if truncated:
            header += f" (truncated at limit={limit})"
        return header + "\n" + "".join(f"{hit.path}\n" for hit in hits)