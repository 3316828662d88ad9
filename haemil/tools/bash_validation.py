"""Screening of bash commands: intent classification and the validation pipeline."""

from __future__ import annotations

import enum
import json
import string
from dataclasses import dataclass

from haemil.tools.base import PermissionMode


class CommandIntent(enum.Enum):
    """Semantic purpose of a bash command."""

    UNKNOWN = "unknown"
    READ_ONLY = "read_only"
    WRITE = "write"
    DESTRUCTIVE = "destructive"
    NETWORK = "network"
    PROCESS_MANAGEMENT = "process"
    PACKAGE_MANAGEMENT = "package"
    SYSTEM_ADMIN = "system_admin"

    def __str__(self) -> str:
        return self.value


class ValidationKind(enum.Enum):
    """Verdict kind produced by validate_command."""

    ALLOW = "allow"
    BLOCK = "block"
    WARN = "warn"


@dataclass(frozen=True)
class ValidationResult:
    """Typed verdict: ``reason`` is set for BLOCK, ``message`` for WARN."""

    kind: ValidationKind
    reason: str = ""
    message: str = ""


def allow() -> ValidationResult:
    """An Allow verdict."""
    return ValidationResult(ValidationKind.ALLOW)


def block(reason: str) -> ValidationResult:
    """A Block verdict with ``reason``."""
    return ValidationResult(ValidationKind.BLOCK, reason=reason)


def warn(message: str) -> ValidationResult:
    """A Warn verdict with ``message``."""
    return ValidationResult(ValidationKind.WARN, message=message)


WRITE_COMMANDS = frozenset({
    "cp", "mv", "rm", "mkdir", "rmdir", "touch", "chmod", "chown", "chgrp",
    "ln", "install", "tee", "truncate", "shred", "mkfifo", "mknod", "dd",
})

STATE_MODIFYING_COMMANDS = frozenset({
    "apt", "apt-get", "yum", "dnf", "pacman", "brew", "pip", "pip3", "npm",
    "yarn", "pnpm", "bun", "cargo", "gem", "go", "rustup", "docker",
    "systemctl", "service", "mount", "umount", "kill", "pkill", "killall",
    "reboot", "shutdown", "halt", "poweroff", "useradd", "userdel", "usermod",
    "groupadd", "groupdel", "crontab", "at",
})

READ_ONLY_COMMANDS = frozenset({
    "ls", "cat", "head", "tail", "less", "more", "wc", "sort", "uniq",
    "grep", "egrep", "fgrep", "find", "which", "whereis", "whatis", "man",
    "info", "file", "stat", "du", "df", "free", "uptime", "uname",
    "hostname", "whoami", "id", "groups", "env", "printenv", "echo",
    "printf", "date", "cal", "bc", "expr", "test", "true", "false", "pwd",
    "tree", "diff", "cmp", "md5sum", "sha256sum", "sha1sum", "xxd", "od",
    "hexdump", "strings", "readlink", "realpath", "basename", "dirname",
    "seq", "yes", "tput", "column", "jq", "yq", "xargs", "tr", "cut",
    "paste", "awk", "sed",
})

NETWORK_COMMANDS = frozenset({
    "curl", "wget", "ssh", "scp", "rsync", "ftp", "sftp", "nc", "ncat",
    "telnet", "ping", "traceroute", "dig", "nslookup", "host", "whois",
    "ifconfig", "ip", "netstat", "ss", "nmap",
})

PROCESS_COMMANDS = frozenset({
    "kill", "pkill", "killall", "ps", "top", "htop", "bg", "fg", "jobs",
    "nohup", "disown", "wait", "nice", "renice",
})

PACKAGE_COMMANDS = frozenset({
    "apt", "apt-get", "yum", "dnf", "pacman", "brew", "pip", "pip3", "npm",
    "yarn", "pnpm", "bun", "cargo", "gem", "go", "rustup", "snap", "flatpak",
})

SYSTEM_ADMIN_COMMANDS = frozenset({
    "sudo", "su", "chroot", "mount", "umount", "fdisk", "parted", "lsblk",
    "blkid", "systemctl", "service", "journalctl", "dmesg", "modprobe",
    "insmod", "rmmod", "iptables", "ufw", "firewall-cmd", "sysctl",
    "crontab", "at", "useradd", "userdel", "usermod", "groupadd", "groupdel",
    "passwd", "visudo",
})

ALWAYS_DESTRUCTIVE_COMMANDS = frozenset({"shred", "wipefs"})

GIT_READ_ONLY_SUBCOMMANDS = frozenset({
    "status", "log", "diff", "show", "branch", "tag", "stash", "remote",
    "fetch", "ls-files", "ls-tree", "cat-file", "rev-parse", "describe",
    "shortlog", "blame", "bisect", "reflog", "config",
})

_WRITE_REDIRECTIONS = (">", ">>", ">&")

# Literal substring -> warning. Generic "rm -rf" cases are handled by
# _rm_has_recursive_force to avoid substring false positives.
_DESTRUCTIVE_PATTERNS = (
    ("mkfs", "Filesystem creation will destroy existing data on the device"),
    ("dd if=", "Direct disk write — can overwrite partitions or devices"),
    ("> /dev/sd", "Writing to raw disk device"),
    ("chmod -R 777", "Recursively setting world-writable permissions"),
    ("chmod -R 000", "Recursively removing all permissions"),
    (":(){ :|:& };:", "Fork bomb — will crash the system"),
)

_SYSTEM_PATHS = (
    "/etc/", "/usr/", "/var/", "/boot/", "/sys/", "/proc/", "/dev/",
    "/sbin/", "/lib/", "/opt/",
)

_SUDO_VALUE_FLAGS = frozenset({"-u", "-g", "-U", "-C", "-r", "-t", "-T", "-D", "-p", "-h"})
_GIT_VALUE_FLAGS = frozenset({"-C", "-c"})
_ENV_NAME_CHARS = frozenset(string.ascii_letters + string.digits + "_")


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def validate_command(
    command: str, mode: PermissionMode, workspace: str = ""
) -> ValidationResult:
    """Run every stage and return the first non-Allow verdict, else Allow.

    Stages in order: mode rules, sed guard, destructive patterns, path
    heuristics. ``workspace`` is the workspace root, or "" if unknown.
    """
    for stage in (
        lambda: _validate_mode(command, mode),
        lambda: _validate_sed(command, mode),
        lambda: _check_destructive(command),
    ):
        result = stage()
        if result.kind is not ValidationKind.ALLOW:
            return result
    return _validate_paths(command, workspace)


def classify_command(command: str) -> CommandIntent:
    """Return the semantic intent of ``command``."""
    first = extract_first_command(command)
    if not first:
        return CommandIntent.UNKNOWN
    if first in READ_ONLY_COMMANDS:
        if first == "sed" and " -i" in command:
            return CommandIntent.WRITE
        return CommandIntent.READ_ONLY
    if first in ALWAYS_DESTRUCTIVE_COMMANDS or first == "rm":
        return CommandIntent.DESTRUCTIVE
    if first in WRITE_COMMANDS:
        return CommandIntent.WRITE
    if first in NETWORK_COMMANDS:
        return CommandIntent.NETWORK
    if first in PROCESS_COMMANDS:
        return CommandIntent.PROCESS_MANAGEMENT
    if first in PACKAGE_COMMANDS:
        return CommandIntent.PACKAGE_MANAGEMENT
    if first in SYSTEM_ADMIN_COMMANDS:
        return CommandIntent.SYSTEM_ADMIN
    if first == "git":
        sub = git_subcommand(command)
        if not sub or sub in GIT_READ_ONLY_SUBCOMMANDS:
            return CommandIntent.READ_ONLY
        return CommandIntent.WRITE
    return CommandIntent.UNKNOWN


def _validate_mode(command: str, mode: PermissionMode) -> ValidationResult:
    if mode is PermissionMode.READ_ONLY:
        return _validate_read_only(command)
    if mode is PermissionMode.WORKSPACE_WRITE and _targets_outside_workspace(command):
        return warn(
            "Command targets a system path outside the workspace — requires elevated permission"
        )
    return allow()


def _validate_read_only(command: str) -> ValidationResult:
    first = extract_first_command(command)
    if not first:
        return allow()
    if first in WRITE_COMMANDS:
        return block(
            f"Command {_quote(first)} modifies the filesystem and is not allowed in read-only mode"
        )
    if first in STATE_MODIFYING_COMMANDS:
        return block(
            f"Command {_quote(first)} modifies system state and is not allowed in read-only mode"
        )
    if first == "sudo":
        inner = extract_sudo_inner(command)
        if inner:
            result = _validate_read_only(inner)
            if result.kind is not ValidationKind.ALLOW:
                return result
    for redirection in _WRITE_REDIRECTIONS:
        if redirection in command:
            return block(
                f"Command contains write redirection {_quote(redirection)} "
                "which is not allowed in read-only mode"
            )
    if first == "git":
        sub = git_subcommand(command)
        if not sub or sub in GIT_READ_ONLY_SUBCOMMANDS:
            return allow()
        return block(
            f"Git subcommand {_quote(sub)} modifies repository state "
            "and is not allowed in read-only mode"
        )
    return allow()


def _targets_outside_workspace(command: str) -> bool:
    first = extract_first_command(command)
    if first not in WRITE_COMMANDS and first not in STATE_MODIFYING_COMMANDS:
        return False
    return any(path in command for path in _SYSTEM_PATHS)


def _validate_sed(command: str, mode: PermissionMode) -> ValidationResult:
    if extract_first_command(command) != "sed":
        return allow()
    if mode is PermissionMode.READ_ONLY and " -i" in command:
        return block("sed -i (in-place editing) is not allowed in read-only mode")
    return allow()


def _check_destructive(command: str) -> ValidationResult:
    for pattern, warning in _DESTRUCTIVE_PATTERNS:
        if pattern in command:
            return warn("Destructive command detected: " + warning)
    first = extract_first_command(command)
    if first in ALWAYS_DESTRUCTIVE_COMMANDS:
        return warn(
            f"Command {_quote(first)} is inherently destructive and may cause data loss"
        )
    if _rm_has_recursive_force(command):
        return warn("Recursive forced deletion detected — verify the target path is correct")
    return allow()


def _rm_has_recursive_force(command: str) -> bool:
    """True when the command has an ``rm`` token plus recursive and force flags."""
    has_rm = recursive = force = False
    for token in command.split():
        if token == "rm":
            has_rm = True
        elif token == "--recursive":
            recursive = True
        elif token == "--force":
            force = True
        elif token.startswith("-") and not token.startswith("--"):
            flags = token[1:]
            recursive = recursive or "r" in flags or "R" in flags
            force = force or "f" in flags
    return has_rm and recursive and force


def _validate_paths(command: str, workspace: str) -> ValidationResult:
    if "../" in command and (not workspace or workspace not in command):
        return warn(
            "Command contains directory traversal pattern '../' — "
            "verify the target path resolves within the workspace"
        )
    if "~/" in command or "$HOME" in command:
        return warn(
            "Command references home directory — verify it stays within the workspace scope"
        )
    return allow()


def _is_env_var_name(name: str) -> bool:
    return bool(name) and all(c in _ENV_NAME_CHARS for c in name)


def _find_end_of_value(text: str) -> int:
    """Offset where the command after a ``KEY=value`` starts, or -1 if none."""
    i = 0
    size = len(text)
    while i < size and text[i] in " \t":
        i += 1
    if i >= size:
        return -1
    if text[i] in "\"'":
        quote = text[i]
        i += 1
        while i < size:
            if text[i] == quote and text[i - 1] != "\\":
                i += 1
                break
            i += 1
    else:
        while i < size and text[i] not in " \t":
            i += 1
    while i < size and text[i] in " \t":
        i += 1
    return -1 if i >= size else i


def extract_first_command(command: str) -> str:
    """First bare token after any leading ``KEY=value`` assignments, or ""."""
    remaining = command.strip()
    while True:
        trimmed = remaining.lstrip(" \t")
        eq = trimmed.find("=")
        if eq <= 0 or not _is_env_var_name(trimmed[:eq]):
            break
        after_eq = trimmed[eq + 1:]
        end = _find_end_of_value(after_eq)
        if end < 0:
            return ""
        remaining = after_eq[end:]
    fields = remaining.split()
    return fields[0] if fields else ""


def extract_sudo_inner(command: str) -> str:
    """The command wrapped by ``sudo`` (after its flags), or "" if none."""
    fields = command.split()
    try:
        sudo_index = fields.index("sudo")
    except ValueError:
        return ""
    rest = fields[sudo_index + 1:]
    i = 0
    while i < len(rest):
        part = rest[i]
        if part == "--":
            i += 1
            break
        if not part.startswith("-"):
            break
        i += 2 if part in _SUDO_VALUE_FLAGS else 1
    if i >= len(rest):
        return ""
    inner_first = rest[i]
    offset = command.find(inner_first)
    if offset >= 0:
        return command[offset:]
    return " ".join(rest[i:])


def git_subcommand(command: str) -> str:
    """First non-flag token after ``git``, skipping ``-C``/``-c`` values; "" if none."""
    fields = command.split()
    seen_git = False
    i = 0
    while i < len(fields):
        token = fields[i]
        if not seen_git:
            seen_git = token == "git"
            i += 1
            continue
        if not token.startswith("-"):
            return token
        i += 2 if token in _GIT_VALUE_FLAGS else 1
    return ""