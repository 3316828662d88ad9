# haemil

`haemil` provides two building blocks for an agent runtime:

- **`haemil.store`** is a small multi-tenant data layer on SQLite. It holds an
  append-only event log in which every read and write is scoped to the tenant
  bound to the current context.
- **`haemil.tools`** is a set of local tools that a model can call: a guarded
  bash runner, file read/write/edit, glob search and regex search. Each tool
  publishes a JSON Schema for its input.

The package uses only the standard library. The bash tool relies on process
groups and needs a POSIX system with `bash` on the `PATH`.

## Store

`open_store(dsn)` in `haemil.store.store` connects, sets a busy timeout,
applies the schema migrations and returns a `Store`. Only `sqlite://` DSNs are
accepted:

| DSN                              | Meaning                           |
|----------------------------------|-----------------------------------|
| `sqlite://:memory:`              | in-memory database                |
| `sqlite:///abs/path/haemil.db`   | file at an absolute path          |
| `sqlite://relative/haemil.db`    | file relative to the working dir  |

Any other scheme raises `StoreError`. `parse_dsn(dsn)` returns the
`(driver, path)` pair that `open_store` uses. `Store.migrate()` can be run
again safely. A `Store` is a context manager that closes its connection on
exit, and it serialises access through a lock so it can be shared between
threads.

```python
from datetime import datetime, timezone

from haemil.store.eventlog import EventLog
from haemil.store.store import open_store
from haemil.store.tenant import with_tenant_id

with open_store("sqlite://:memory:") as store:
    log = EventLog(store)

    with with_tenant_id("acme"):
        event = log.append("turn.completed", b'{"x": 1}')
        print(event.id, event.tenant_id, event.created_at)

        recent = log.since(datetime.fromtimestamp(0, timezone.utc), 10)
        everything = log.since()  # from the beginning, at most 100 rows

    print(log.count_all())  # counts rows across all tenants
```

### Tenants

The tenant comes from the context, never from an argument.
`with_tenant_id(tenant_id)` in `haemil.store.tenant` is a context manager that
binds a tenant for the duration of a block; blocks nest, and the inner tenant
shadows the outer one.

- `tenant_id_from_context()` returns the current tenant and raises
  `MissingTenantError` when none is bound or the bound id is empty.
- `must_tenant_id_from_context()` is for code that only runs inside a tenant
  scope; a missing tenant there raises `RuntimeError`.

### Event log

`EventLog(store)` works on the `event_log` table. Its methods return
`LoggedEvent` records (`id`, `tenant_id`, `type`, `payload`, `created_at`).

- `append(event_type, payload)` stores one event for the current tenant and
  returns it. Without a tenant it raises `MissingTenantError` and writes
  nothing.
- `since(since=None, limit=100)` returns the current tenant's events at or
  after `since`, oldest first. `since=None` means from the beginning; a
  `limit` of zero or less means 100.
- `count_all()` is the only call that ignores the tenant. Use it for audits
  and checks, not in request handling.

Event IDs come from `new_event_id()`: 26 base32 characters whose first bytes
are a millisecond timestamp, so IDs sort roughly by creation time.

### Dialect

`Store.dialect()` returns the active SQL dialect, a `SQLiteDialect` (the
shared instance is also returned by `new_sqlite_dialect()`). Its methods are
`name()`, `placeholder(n)`, `supports_returning()` and `quote_ident(ident)`.
`Store.db()` returns the underlying `sqlite3.Connection` for queries that have
no typed method yet.

## Tools

`default_tools(mode, workspace)` in `haemil.tools.registry` returns fresh
instances of the standard tool set: `BashTool`, `ReadFileTool`,
`WriteFileTool`, `EditFileTool`, `GlobSearchTool` and `GrepSearchTool`.

- `mode` is a `PermissionMode` from `haemil.tools.base`: `READ_ONLY`,
  `WORKSPACE_WRITE` or `DANGER_FULL_ACCESS`.
- `workspace` is the absolute path of the workspace root, or `""` if unknown.

Each tool has a `spec` (`ToolSpec`: name, description, input schema) and a
`capability` (`Capability.READ`, `WRITE` or `EXEC`). Its `execute(input)`
method takes the model's JSON input as a string, bytes or an already decoded
mapping. It returns text, or raises `ToolError` (`BashError` for bash, whose
`output` attribute holds whatever was captured).

```python
import json

from haemil.tools.read_file import ReadFileTool

print(ReadFileTool().execute(json.dumps({"path": "notes.txt", "start_line": 2, "end_line": 4})))
```

### What each tool does

- **bash** runs `bash -c <command>` in its own session.
  - stdout and stderr are captured together, up to 10 MiB; beyond that the
    output ends with a truncation marker.
  - `timeout_seconds` defaults to 30. On timeout, or if the call is
    interrupted, the whole process group is killed.
  - A timeout or a non-zero exit raises `BashError`.
- **read_file** returns line-numbered content for an optional 1-based range
  (`end_line` of -1 means end of file). It rejects directories, binary files
  and files larger than 10 MiB.
- **write_file** creates or overwrites a file and creates parent directories
  unless `mkdir` is false. It reports whether it created or overwrote the file,
  with the line count that `count_lines` computes and the byte count.
- **edit_file** replaces an exact substring. The substring must occur exactly
  once unless `replace_all` is true. Binary files and files over 10 MiB are
  rejected.
- **glob_search** lists files whose path relative to `cwd` matches a pattern,
  newest first, up to `limit` (default 200). `match_glob(pattern, path)`
  supports `?`, `*`, `[...]` classes within a segment and `**` across
  segments. Directories such as `.git`, `node_modules` and `vendor` are
  skipped.
- **grep_search** searches text files for a Python regular expression, up to
  `max_matches` (default 200). It can filter files with an `include` glob,
  match case-insensitively and show `context` lines, and it skips binary files,
  known binary extensions and noise directories.

`is_binary_bytes(data)` and `resolve_file_path(path)` in `haemil.tools.base`
are the shared helpers behind these checks.

### Command validation

Before the bash tool runs a command, it checks it in two steps.

1. `BLOCKED_PATTERNS` in `haemil.tools.bash` are refused in every mode: for
   example `rm -rf /`, `mkfs.*`, `dd` or redirection onto raw disk devices, and
   the classic fork bomb.
2. The command goes through `validate_command(command, mode, workspace)` in
   `haemil.tools.bash_validation`, which returns a `ValidationResult` whose
   `kind` is a `ValidationKind` (`ALLOW`, `BLOCK` or `WARN`).
   - A blocked command is refused with its `reason`.
   - A warned command runs, and its output starts with a `[warning]` line
     holding the `message`.

The checks in `validate_command` run in this order, and the first verdict that
is not allow wins:

1. Mode rules. Read-only mode blocks writes, state changes, write
   redirections, `sudo`-wrapped writes and git subcommands that change the
   repository. Workspace-write mode warns on writes to system paths such as
   `/etc/` or `/usr/`.
2. `sed -i` is blocked in read-only mode.
3. Destructive patterns (`mkfs`, `dd if=`, recursive `chmod 777`, `shred`,
   `wipefs`, any `rm` with recursive and force flags) produce a warning.
4. `../` outside the workspace and home-directory references (`~/`, `$HOME`)
   produce a warning.

`classify_command(command)` returns the `CommandIntent` of a command, such as
read-only, write, destructive, network, process or package management. The
helpers `extract_first_command`, `extract_sudo_inner` and `git_subcommand` are
public as well:

```python
from haemil.tools.bash_validation import classify_command, extract_first_command

classify_command("git commit -m x")           # CommandIntent.WRITE
classify_command("curl https://example.com")  # CommandIntent.NETWORK
extract_first_command("FOO=bar ls -la")       # "ls"
```

## What this package does not do

- It has no command-line program and no conversation loop or model client;
  the tools are meant to be called by such a runtime.
- Storage is SQLite only. No other database backend or dialect exists, and
  there is no schema-version tracking beyond the idempotent migrations.