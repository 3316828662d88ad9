"""Tool that searches files in a directory tree for a regular expression."""

from __future__ import annotations

import json
import os
import re
from collections.abc import Iterator, Mapping, Sequence
from typing import Any, NamedTuple

from haemil.tools.base import (
    FILE_MAX_BYTES,
    Capability,
    Tool,
    ToolError,
    ToolSpec,
    is_binary_bytes,
)
from haemil.tools.glob_search import EXCLUDED_DIRS, match_glob

GREP_SEARCH_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "pattern": {"type": "string", "description": "Go RE2 regex pattern."},
        "path": {
            "type": "string",
            "description": "Base directory. Default: current working directory.",
        },
        "include": {
            "type": "string",
            "description": 'Optional glob to filter which files to search, e.g. "**/*.go".',
        },
        "case_insensitive": {"type": "boolean", "description": "Case-insensitive match."},
        "context": {
            "type": "integer",
            "description": "Lines of context before and after each match (default 0).",
        },
        "max_matches": {
            "type": "integer",
            "description": "Cap on total matches (default 200).",
        },
    },
    "required": ["pattern"],
}

GREP_SEARCH_DESCRIPTION = (
    "Search for a regex pattern across files in a directory tree. Returns matching "
    "lines with optional before/after context. Skips binary files and noise "
    "directories (.git, node_modules, vendor, etc.). Use `include` to narrow the "
    "file set by glob."
)

DEFAULT_MAX_MATCHES = 200

_PEEK_BYTES = 4096
_MAX_LINE_BYTES = 2 * 1024 * 1024

# Cheap pre-filter for obvious non-text files; not a security boundary.
BINARY_EXTENSIONS = frozenset({
    ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".webp", ".tiff",
    ".pdf", ".zip", ".gz", ".tgz", ".bz2", ".xz", ".7z", ".rar",
    ".mp3", ".mp4", ".mov", ".avi", ".mkv", ".webm", ".flac", ".wav",
    ".so", ".dylib", ".dll", ".a", ".o", ".exe", ".class", ".jar",
    ".pyc", ".pyo", ".wasm", ".bin",
})


class _LineHit(NamedTuple):
    number: int
    text: str


def _load_input(raw: str | bytes | Mapping[str, Any]) -> Mapping[str, Any]:
    if isinstance(raw, Mapping):
        return raw
    if not raw:
        raise ToolError("grep_search: empty input")
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as err:
        raise ToolError(f"grep_search: parse input: {err}") from err
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ToolError("grep_search: parse input: input must be a JSON object")
    return data


def _str_field(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key, "")
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ToolError(f"grep_search: parse input: {key} must be a string")
    return value


def _int_field(data: Mapping[str, Any], key: str) -> int:
    value = data.get(key, 0)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ToolError(f"grep_search: parse input: {key} must be an integer")
    return value


def _bool_field(data: Mapping[str, Any], key: str) -> bool:
    value = data.get(key, False)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ToolError(f"grep_search: parse input: {key} must be a boolean")
    return value


def _is_likely_binary_ext(path: str) -> bool:
    return os.path.splitext(path)[1].lower() in BINARY_EXTENSIONS


def _walk_files(base: str) -> Iterator[tuple[str, str]]:
    """Yield ``(path, relative_path)`` for files under ``base`` in lexical order."""
    try:
        os.lstat(base)
    except OSError:
        return
    if not os.path.isdir(base) or os.path.islink(base):
        yield base, "."
        return

    def visit(directory: str, prefix: str) -> Iterator[tuple[str, str]]:
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
            yield entry.path, rel

    yield from visit(base, "")


def _read_text_lines(path: str) -> list[str] | None:
    """Lines of a text file, or None when it is unreadable, binary or too large."""
    try:
        if os.lstat(path).st_size > FILE_MAX_BYTES:
            return None
        with open(path, "rb") as handle:
            peek = handle.read(_PEEK_BYTES)
            if is_binary_bytes(peek):
                return None
            raw = peek + handle.read()
    except OSError:
        return None
    if not raw:
        return []
    chunks = raw.split(b"\n")
    if chunks[-1] == b"":
        chunks.pop()
    if any(len(chunk) > _MAX_LINE_BYTES for chunk in chunks):
        return None
    return [
        (chunk[:-1] if chunk.endswith(b"\r") else chunk).decode("utf-8", errors="replace")
        for chunk in chunks
    ]


def _expand_context(
    lines: Sequence[str], hits: Sequence[_LineHit], context: int
) -> list[_LineHit]:
    """Hit lines plus ``context`` lines around each, merged and in order."""
    if context <= 0 or not hits:
        return list(hits)
    wanted = {
        number
        for hit in hits
        for number in range(hit.number - context, hit.number + context + 1)
        if 1 <= number <= len(lines)
    }
    return [_LineHit(number, lines[number - 1]) for number in sorted(wanted)]


class GrepSearchTool(Tool):
    """Regex search across the text files of a directory tree."""

    def __init__(self) -> None:
        self.spec = ToolSpec(
            name="grep_search",
            description=GREP_SEARCH_DESCRIPTION,
            input_schema=GREP_SEARCH_SCHEMA,
        )
        self.capability = Capability.READ

    def execute(self, input: str | bytes | Mapping[str, Any]) -> str:
        """Return a summary line followed by one block of matching lines per file."""
        data = _load_input(input)
        pattern = _str_field(data, "pattern")
        base_arg = _str_field(data, "path")
        include = _str_field(data, "include")
        case_insensitive = _bool_field(data, "case_insensitive")
        context = _int_field(data, "context")
        max_matches = _int_field(data, "max_matches")

        if not pattern:
            raise ToolError("grep_search: pattern is required")
        if max_matches <= 0:
            max_matches = DEFAULT_MAX_MATCHES
        if context < 0:
            context = 0

        try:
            regex = re.compile(("(?i)" if case_insensitive else "") + pattern)
        except re.error as err:
            raise ToolError(f"grep_search: compile pattern: {err}") from err

        try:
            base = base_arg if os.path.isabs(base_arg) else os.path.join(os.getcwd(), base_arg)
        except OSError as err:
            raise ToolError(f"grep_search: getwd: {err}") from err
        base = os.path.normpath(base)

        results: dict[str, list[_LineHit]] = {}
        total = 0
        truncated = False

        for path, rel in _walk_files(base):
            if truncated:
                break
            if include and not match_glob(include, rel):
                continue
            if _is_likely_binary_ext(path):
                continue
            lines = _read_text_lines(path)
            if lines is None:
                continue

            local: list[_LineHit] = []
            for number, line in enumerate(lines, start=1):
                if regex.search(line):
                    local.append(_LineHit(number, line))
                    total += 1
                    if total >= max_matches:
                        truncated = True
                        break
            if local:
                results.setdefault(path, []).extend(_expand_context(lines, local, context))

        header = (
            f"grep {json.dumps(pattern, ensure_ascii=False)} in {base}: "
            f"{total} match(es) across {len(results)} file(s)"
        )
        if truncated:
            header += f" (truncated at max_matches={max_matches})"
        parts = [header + "\n"]
        for path in sorted(results):
            parts.append(f"\n{path}\n")
            parts.extend(f"  {hit.number}: {hit.text}\n" for hit in results[path])
        return "".join(parts)