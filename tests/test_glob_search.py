import json
import os

import pytest

from haemil.tools.base import Capability, ToolError
from haemil.tools.glob_search import GlobSearchTool, match_glob


def run(payload):
    return GlobSearchTool().execute(json.dumps(payload))


def listed_paths(out):
    return out.splitlines()[1:]


def test_basic_recursive_match(tmp_path):
    (tmp_path / "a" / "b").mkdir(parents=True)
    (tmp_path / "top.go").write_text("package x")
    (tmp_path / "a" / "mid.go").write_text("package x")
    (tmp_path / "a" / "b" / "deep.go").write_text("package x")
    (tmp_path / "a" / "readme.txt").write_text("notes")

    out = run({"pattern": "**/*.go", "cwd": str(tmp_path)})
    assert "top.go" in out
    assert "mid.go" in out
    assert "deep.go" in out
    assert "readme.txt" not in out
    assert "3 match(es)" in out.splitlines()[0]


def test_excludes_noise_dirs(tmp_path):
    (tmp_path / "node_modules" / "pkg").mkdir(parents=True)
    (tmp_path / "node_modules" / "pkg" / "x.js").write_text("// x")
    (tmp_path / "src.js").write_text("// src")

    out = run({"pattern": "**/*.js", "cwd": str(tmp_path)})
    assert "node_modules" not in out
    assert "src.js" in out


def test_sorted_newest_first(tmp_path):
    for name, mtime in (("old.txt", 1_000), ("new.txt", 3_000), ("mid.txt", 2_000)):
        path = tmp_path / name
        path.write_text(name)
        os.utime(path, ns=(mtime * 10**9, mtime * 10**9))

    out = run({"pattern": "*.txt", "cwd": str(tmp_path)})
    assert listed_paths(out) == [
        str(tmp_path / "new.txt"),
        str(tmp_path / "mid.txt"),
        str(tmp_path / "old.txt"),
    ]


def test_limit_truncates(tmp_path):
    for i in range(5):
        (tmp_path / f"f{i}.txt").write_text("x")
    out = run({"pattern": "*.txt", "cwd": str(tmp_path), "limit": 2})
    header = out.splitlines()[0]
    assert "2 match(es)" in header
    assert header.endswith("(truncated at limit=2)")
    assert len(listed_paths(out)) == 2


def test_header_format(tmp_path):
    out = run({"pattern": "*.none", "cwd": str(tmp_path)})
    assert out == f'glob "*.none" in {tmp_path}: 0 match(es)\n'


def test_relative_cwd(tmp_path, monkeypatch):
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "x.py").write_text("")
    monkeypatch.chdir(tmp_path)
    out = run({"pattern": "*.py", "cwd": "sub"})
    assert listed_paths(out) == [str(tmp_path / "sub" / "x.py")]


def test_missing_pattern_rejected():
    with pytest.raises(ToolError, match="pattern is required"):
        run({"cwd": "/"})


def test_empty_input_rejected():
    with pytest.raises(ToolError, match="empty input"):
        GlobSearchTool().execute("")


def test_capability_and_name():
    tool = GlobSearchTool()
    assert tool.spec.name == "glob_search"
    assert tool.capability is Capability.READ