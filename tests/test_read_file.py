import json

import pytest

from haemil.tools.base import Capability, ToolError
from haemil.tools.read_file import ReadFileTool


def run(payload: dict) -> str:
    return ReadFileTool().execute(json.dumps(payload))


def test_spec_and_capability():
    tool = ReadFileTool()
    assert tool.spec.name == "read_file"
    assert tool.spec.input_schema["required"] == ["path"]
    assert tool.capability is Capability.READ


def test_read_full(tmp_path):
    path = tmp_path / "hello.txt"
    path.write_bytes(b"line one\nline two\nline three\n")
    out = run({"path": str(path)})
    for want in ["3 lines total", "1\tline one", "2\tline two", "3\tline three"]:
        assert want in out


def test_read_full_exact_format(tmp_path):
    path = tmp_path / "hello.txt"
    path.write_bytes(b"a\nb\n")
    out = run({"path": str(path)})
    assert out == f"{path} (2 lines total)\n1\ta\n2\tb\n"


def test_read_line_range(tmp_path):
    path = tmp_path / "multi.txt"
    path.write_bytes(b"one\ntwo\nthree\nfour\nfive\n")
    out = run({"path": str(path), "start_line": 2, "end_line": 4})
    assert "showing 2–4" in out
    assert "one" not in out and "five" not in out
    assert "two" in out and "three" in out and "four" in out


def test_read_pads_line_numbers(tmp_path):
    path = tmp_path / "many.txt"
    path.write_text("".join(f"l{i}\n" for i in range(1, 13)))
    out = run({"path": str(path), "start_line": 8, "end_line": 10})
    assert " 8\tl8\n" in out
    assert "10\tl10\n" in out


def test_read_end_line_minus_one_means_eof(tmp_path):
    path = tmp_path / "x.txt"
    path.write_bytes(b"a\nb\nc")
    out = run({"path": str(path), "start_line": 2, "end_line": -1})
    assert "showing 2–3" in out
    assert out.endswith("3\tc\n")


def test_read_strips_carriage_returns(tmp_path):
    path = tmp_path / "crlf.txt"
    path.write_bytes(b"a\r\nb\r\n")
    out = run({"path": str(path)})
    assert out.endswith("1\ta\n2\tb\n")


def test_read_binary(tmp_path):
    path = tmp_path / "binary.bin"
    path.write_bytes(bytes([0, 1, 2, 3]))
    with pytest.raises(ToolError, match="binary"):
        run({"path": str(path)})


def test_read_missing():
    with pytest.raises(ToolError, match="stat"):
        run({"path": "/no/such/path/here"})


def test_read_directory(tmp_path):
    with pytest.raises(ToolError, match="directory"):
        run({"path": str(tmp_path)})


def test_read_start_past_eof(tmp_path):
    path = tmp_path / "short.txt"
    path.write_bytes(b"only\n")
    out = run({"path": str(path), "start_line": 5})
    assert out == f"{path}\n(file has 1 lines; requested start_line=5 is past EOF)\n"


def test_read_start_after_end(tmp_path):
    path = tmp_path / "f.txt"
    path.write_bytes(b"a\nb\nc\n")
    with pytest.raises(ToolError, match=r"start_line \(3\) > end_line \(2\)"):
        run({"path": str(path), "start_line": 3, "end_line": 2})


def test_read_relative_path(tmp_path, monkeypatch):
    (tmp_path / "rel.txt").write_bytes(b"hi\n")
    monkeypatch.chdir(tmp_path)
    out = run({"path": "rel.txt"})
    assert out.startswith(str(tmp_path / "rel.txt"))
    assert "1\thi" in out


def test_read_empty_input():
    with pytest.raises(ToolError, match="path is required"):
        ReadFileTool().execute("")


def test_read_empty_path():
    with pytest.raises(ToolError, match="path is required"):
        run({"path": ""})


def test_read_bad_json():
    with pytest.raises(ToolError, match="parse input"):
        ReadFileTool().execute("{nope")