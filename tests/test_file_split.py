"""Tests for splitting oversized source files."""

import pytest

from toolgate.services.file_split import split_file


def _js_source(functions: int, body_lines: int = 8) -> str:
    lines = ["import fs from 'fs';", "// helpers", ""]
    for i in range(functions):
        lines.append(f"export function f{i}() {{")
        lines.extend(f"  const v{j} = {j};" for j in range(body_lines))
        lines.append("}")
    return "\n".join(lines) + "\n"


def _py_source(functions: int, body_lines: int = 8) -> str:
    lines = ["import os", "import sys", ""]
    for i in range(functions):
        lines.append(f"def f{i}():")
        lines.extend(f"    v{j} = {j}" for j in range(body_lines))
        lines.append("")
    return "\n".join(lines) + "\n"


class TestSplitFile:
    def test_short_file_untouched(self, tmp_path):
        target = tmp_path / "small.js"
        target.write_text(_js_source(2))
        assert split_file(target, max_lines=300) is None
        assert not (tmp_path / "small_parts").exists()

    def test_js_split_rewrites_original(self, tmp_path):
        target = tmp_path / "big.js"
        target.write_text(_js_source(10))
        summary = split_file(target, max_lines=30)

        assert summary is not None
        assert summary.rewritten is True
        assert len(summary.parts) > 1
        parts_dir = tmp_path / "big_parts"
        assert (parts_dir / "index.js").exists()
        for part in summary.parts:
            text = open(part, encoding="utf-8").read()
            assert text.startswith("import fs from 'fs';")
        original = target.read_text()
        assert "export * from './big_parts/big.part1';" in original

    def test_parts_keep_every_function(self, tmp_path):
        target = tmp_path / "big.js"
        target.write_text(_js_source(10))
        summary = split_file(target, max_lines=30)
        combined = "".join(open(p, encoding="utf-8").read() for p in summary.parts)
        for i in range(10):
            assert f"export function f{i}()" in combined

    def test_python_split_keeps_original(self, tmp_path):
        target = tmp_path / "mod.py"
        source = _py_source(10)
        target.write_text(source)
        summary = split_file(target, max_lines=30)

        assert summary is not None
        assert summary.rewritten is False
        assert target.read_text() == source
        first = open(summary.parts[0], encoding="utf-8").read()
        second = open(summary.parts[1], encoding="utf-8").read()
        assert first.startswith("import os\nimport sys")
        assert second.startswith("import os\nimport sys")
        assert "def f" in second

    def test_python_split_at_top_level_only(self, tmp_path):
        target = tmp_path / "mod.py"
        target.write_text(_py_source(10))
        summary = split_file(target, max_lines=30)
        for part in summary.parts:
            body = [
                line for line in open(part, encoding="utf-8").read().splitlines()
                if line and not line.startswith("import")
            ]
            assert body[0].startswith("def ")

    def test_already_split_file_skipped(self, tmp_path):
        parts_dir = tmp_path / "big_parts"
        parts_dir.mkdir()
        target = parts_dir / "big.part1.js"
        target.write_text(_js_source(10))
        assert split_file(target, max_lines=30) is None

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            split_file(tmp_path / "nope.js")
