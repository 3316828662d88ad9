"""Shared tool types and file helpers."""

from __future__ import annotations

import enum
import os
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

FILE_MAX_BYTES = 10 * 1024 * 1024

EMPTY_PATH_MESSAGE = "file: path is required"
TOO_LARGE_MESSAGE = "file: content exceeds 10 MiB cap"
BINARY_MESSAGE = "file: binary content not supported (use bash for hex dump)"
IS_DIRECTORY_MESSAGE = "file: path is a directory, not a file"

_BINARY_SAMPLE = 8192


class PermissionMode(enum.Enum):
    """How much a tool run is allowed to change."""

    READ_ONLY = "read-only"
    WORKSPACE_WRITE = "workspace-write"
    DANGER_FULL_ACCESS = "danger-full-access"


class Capability(enum.Enum):
    """What kind of effect a tool has."""

    READ = "read"
    WRITE = "write"
    EXEC = "exec"


@dataclass(frozen=True)
class ToolSpec:
    """Name, description and JSON Schema advertised for a tool."""

    name: str
    description: str
    input_schema: Mapping[str, Any] = field(default_factory=dict)


class ToolError(Exception):
    """Raised when a tool refuses or fails to do its work."""


class Tool(ABC):
    """A callable tool: a spec, a capability class and an execute method."""

    spec: ToolSpec
    capability: Capability

    @abstractmethod
    def execute(self, input: str | bytes | Mapping[str, Any]) -> str:
        """Run the tool on a JSON input document and return its text output."""


def is_binary_bytes(data: bytes) -> bool:
    """Whether the first 8 KiB look binary: a NUL byte or >30% control bytes."""
    sample = bytes(data[:_BINARY_SAMPLE])
    if b"\x00" in sample:
        return True
    if not sample:
        return False
    non_printable = sum(
        1 for c in sample if c not in (0x09, 0x0A, 0x0D) and (c < 0x20 or c == 0x7F)
    )
    return non_printable * 10 > len(sample) * 3


def resolve_file_path(path: str) -> str:
    """Make ``path`` absolute (relative to the working directory) and clean it."""
    if not path:
        raise ToolError(EMPTY_PATH_MESSAGE)
    if os.path.isabs(path):
        return os.path.normpath(path)
    return os.path.normpath(os.path.join(os.getcwd(), path))