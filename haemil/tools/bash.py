"""Local bash execution tool with safety screening."""

from __future__ import annotations

import json
import os
import re
import signal
import subprocess
import threading
from collections.abc import Mapping
from typing import Any

from haemil.tools.base import Capability, PermissionMode, Tool, ToolError, ToolSpec
from haemil.tools.bash_validation import ValidationKind, validate_command

BASH_SPEC_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "command": {
            "type": "string",
            "description": "The bash command to execute.",
        },
        "timeout_seconds": {
            "type": "integer",
            "description": "Max execution time in seconds. Default 30.",
            "default": 30,
        },
    },
    "required": ["command"],
}

BASH_SPEC_DESCRIPTION = (
    "Run a bash command on the local machine. Output is captured (stdout+stderr "
    "combined) and returned as text. Commands are screened against a multi-stage "
    "validation pipeline (mode check → sed guard → destructive-pattern warn → path "
    "traversal warn). Blocked commands return an error; warnings run but prefix the "
    "output with a cautionary note."
)

DEFAULT_TIMEOUT_SEC = 30
MAX_OUTPUT_BYTES = 10 * 1024 * 1024
TRUNCATION_MARKER = b"\n[output truncated: reached 10 MiB cap]\n"

# Last line of defence: commands refused in every mode. Kept narrow; the
# validation pipeline warns on the broader destructive cases.
BLOCKED_PATTERNS: tuple[re.Pattern[str], ...] = (
    # rm -rf (any flag form) targeting the literal root only.
    re.compile(r"\brm\s+(-[a-zA-Z]*r[a-zA-Z]*f|-[a-zA-Z]*f[a-zA-Z]*r|-r\s+-f|-f\s+-r)\s+/\s*$"),
    # mkfs.* wipes a filesystem.
    re.compile(r"\bmkfs\.[a-zA-Z0-9]+\b"),
    # dd writing to a raw block device.
    re.compile(r"\bdd\s+.*\bof=/dev/(sd[a-z]|nvme|hd[a-z]|disk)"),
    # Fork bomb.
    re.compile(r":\s*\(\s*\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:"),
    # Redirecting to a raw block device.
    re.compile(r">\s*/dev/(sd[a-z]|nvme|hd[a-z]|disk)"),
)

_READ_CHUNK = 64 * 1024


class BashError(ToolError):
    """A bash run was refused or failed; ``output`` holds what was captured."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class _CappedBuffer:
    """Accumulates bytes up to a cap, then drops the rest after one marker."""

    def __init__(self, cap: int) -> None:
        self._cap = cap
        self._buf = bytearray()

    def write(self, chunk: bytes) -> None:
        if len(self._buf) >= self._cap:
            return
        remaining = self._cap - len(self._buf)
        if remaining >= len(chunk):
            self._buf.extend(chunk)
            return
        self._buf.extend(chunk[:remaining])
        if not self._buf.endswith(TRUNCATION_MARKER):
            self._buf.extend(TRUNCATION_MARKER)

    def text(self) -> str:
        return bytes(self._buf).decode("utf-8", errors="replace")


def _load_input(raw: str | bytes | Mapping[str, Any]) -> Mapping[str, Any]:
    if isinstance(raw, Mapping):
        return raw
    if not raw:
        raise BashError("bash: empty input")
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as err:
        raise BashError(f"bash: parse input: {err}") from err
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BashError("bash: parse input: input must be a JSON object")
    return data


def _kill_group(proc: subprocess.Popen[bytes]) -> None:
    try:
        pgid = os.getpgid(proc.pid)
    except ProcessLookupError:
        return
    except OSError:
        pgid = 0
    try:
        if pgid > 0:
            os.killpg(pgid, signal.SIGKILL)
        else:
            proc.kill()
    except ProcessLookupError:
        pass


def _exit_description(returncode: int) -> str:
    if returncode < 0:
        try:
            name = signal.strsignal(-returncode) or f"signal {-returncode}"
        except ValueError:
            name = f"signal {-returncode}"
        return f"signal: {name.lower()}"
    return f"exit status {returncode}"


class BashTool(Tool):
    """Runs commands through ``bash -c`` after mode-aware validation."""

    def __init__(self, mode: PermissionMode, workspace: str = "") -> None:
        self.spec = ToolSpec(
            name="bash",
            description=BASH_SPEC_DESCRIPTION,
            input_schema=BASH_SPEC_SCHEMA,
        )
        self.capability = Capability.EXEC
        self.mode = mode
        self.workspace = workspace

    def execute(self, input: str | bytes | Mapping[str, Any]) -> str:
        """Run the command in ``input`` and return combined stdout and stderr.

        Raises BashError for refused commands, timeouts and non-zero exits;
        the error's ``output`` carries whatever was captured.
        """
        data = _load_input(input)
        command = data.get("command", "")
        timeout = data.get("timeout_seconds", 0)
        if not isinstance(command, str):
            raise BashError("bash: parse input: command must be a string")
        if timeout is None:
            timeout = 0
        if isinstance(timeout, bool) or not isinstance(timeout, int):
            raise BashError("bash: parse input: timeout_seconds must be an integer")
        if not command:
            raise BashError("bash: command is required")
        if timeout <= 0:
            timeout = DEFAULT_TIMEOUT_SEC

        for pattern in BLOCKED_PATTERNS:
            if pattern.search(command):
                raise BashError(
                    "bash: command blocked by safety pattern "
                    + json.dumps(pattern.pattern, ensure_ascii=False)
                )

        verdict = validate_command(command, self.mode, self.workspace)
        warn_prefix = ""
        if verdict.kind is ValidationKind.BLOCK:
            raise BashError(f"bash: validation blocked: {verdict.reason}")
        if verdict.kind is ValidationKind.WARN:
            warn_prefix = f"[warning] {verdict.message}\n"

        return self._run(command, timeout, warn_prefix)

    def _run(self, command: str, timeout: int, warn_prefix: str) -> str:
        try:
            proc = subprocess.Popen(
                ["bash", "-c", command],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError as err:
            raise BashError(f"bash: {err}", output=warn_prefix) from err

        buffer = _CappedBuffer(MAX_OUTPUT_BYTES)
        assert proc.stdout is not None
        fd = proc.stdout.fileno()

        def pump() -> None:
            while chunk := os.read(fd, _READ_CHUNK):
                buffer.write(chunk)

        reader = threading.Thread(target=pump, daemon=True)
        reader.start()

        timed_out = False
        try:
            proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            _kill_group(proc)
            proc.wait()
            timed_out = True
        except BaseException:
            _kill_group(proc)
            proc.wait()
            reader.join()
            proc.stdout.close()
            raise
        reader.join()
        proc.stdout.close()

        output = warn_prefix + buffer.text()
        if timed_out:
            raise BashError(f"bash: timed out after {timeout}s", output=output)
        if proc.returncode != 0:
            raise BashError(f"bash: {_exit_description(proc.returncode)}", output=output)
        return output