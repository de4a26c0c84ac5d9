"""File splitting — break an oversized source file into parts.

The leading import/header block is repeated in every part, and splits
only happen at top-level declaration boundaries once the line budget is
reached. Parts land in ``<base>_parts/`` next to the original as
``<base>.part<N><ext>``. For JS/TS sources the original is rewritten to
re-export the parts and an ``index`` module is written; other languages
keep their original file untouched.
"""

from __future__ import annotations

import re
import shutil
from pathlib import Path

from toolgate.logging import get_logger
from toolgate.models import SplitSummary

logger = get_logger("toolgate.split")

DEFAULT_MAX_LINES = 300

JS_EXTENSIONS = (".js", ".jsx", ".mjs", ".cjs", ".ts", ".tsx", ".mts", ".cts")

_IMPORT_RE = re.compile(r"^(import\s|from\s+\S+\s+import\s|export\s+\*\s+from\s|require\s*\()")
_COMMENT_PREFIXES = ("//", "#")
_BOUNDARY_RE = re.compile(
    r"^(export\s+|class\s+|function\s+|async\s+function\s+|interface\s+|type\s+"
    r"|const\s+[A-Za-z0-9_]+\s*=\s*\(|let\s+[A-Za-z0-9_]+\s*=\s*\(|var\s+[A-Za-z0-9_]+\s*=\s*\("
    r"|def\s+|async\s+def\s+|@)"
)


def _gather_header(lines: list[str]) -> tuple[list[str], int]:
    header: list[str] = []
    index = 0
    while index < len(lines):
        stripped = lines[index].strip()
        if not stripped or stripped.startswith(_COMMENT_PREFIXES) or _IMPORT_RE.match(stripped):
            header.append(lines[index])
            index += 1
            continue
        break
    return header, index


def _chunk_body(lines: list[str], max_lines: int, header_count: int, indent_scoped: bool) -> list[list[str]]:
    chunks: list[list[str]] = []
    current: list[str] = []
    brace_depth = 0

    for line in lines:
        stripped = line.strip()
        # Depth before this line decides whether it opens a top-level declaration.
        top_level = (not line[:1].isspace()) if indent_scoped else brace_depth == 0
        brace_depth += line.count("{") - line.count("}")

        if (
            current
            and top_level
            and _BOUNDARY_RE.match(stripped)
            and len(current) + header_count >= max_lines
            and not current[-1].lstrip().startswith("@")
        ):
            chunks.append(current)
            current = []

        current.append(line)

    if current:
        chunks.append(current)
    return chunks


def split_file(file_path: Path, max_lines: int = DEFAULT_MAX_LINES) -> SplitSummary | None:
    """Split ``file_path`` if it exceeds ``max_lines``.

    Returns None when the file is already a part, is short enough, or has
    no usable boundary.
    """
    if not file_path.is_file():
        raise FileNotFoundError(f"File not found: {file_path}")
    if "_parts" in file_path.parent.name or ".part" in file_path.name:
        logger.warning("Skipping already-split file: %s", file_path)
        return None

    lines = file_path.read_text(encoding="utf-8").splitlines()
    if len(lines) <= max_lines:
        return None

    extension = file_path.suffix
    indent_scoped = extension in (".py", ".pyi")
    header, body_start = _gather_header(lines)
    chunks = _chunk_body(lines[body_start:], max_lines, len(header), indent_scoped)
    if len(chunks) <= 1:
        logger.warning("Unable to split %s into multiple parts", file_path)
        return None

    base = file_path.stem
    parts_dir = file_path.parent / f"{base}_parts"
    if parts_dir.exists():
        shutil.rmtree(parts_dir)
    parts_dir.mkdir(parents=True)

    part_paths: list[Path] = []
    default_index: int | None = None
    for index, chunk in enumerate(chunks):
        content = list(header)
        if header and header[-1].strip():
            content.append("")
        content.extend(chunk)
        part = parts_dir / f"{base}.part{index + 1}{extension}"
        part.write_text("\n".join(content).rstrip() + "\n", encoding="utf-8")
        part_paths.append(part)
        if default_index is None and "export default" in "\n".join(chunk):
            default_index = index

    rewritten = False
    if extension in JS_EXTENSIONS:
        _write_reexports(parts_dir / f"index{extension}", ".", part_paths, default_index)
        _write_reexports(file_path, f"./{base}_parts", part_paths, default_index)
        rewritten = True

    logger.info("Split %s into %d parts", file_path, len(part_paths))
    return SplitSummary(
        original=str(file_path),
        parts=[str(p) for p in part_paths],
        max_lines=max_lines,
        rewritten=rewritten,
    )


def _write_reexports(target: Path, prefix: str, parts: list[Path], default_index: int | None) -> None:
    lines = [f"export * from '{prefix}/{part.name[: -len(part.suffix)]}';" for part in parts]
    if default_index is not None:
        module = parts[default_index].name[: -len(parts[default_index].suffix)]
        lines.append(f"export {{ default }} from '{prefix}/{module}';")
    target.write_text("\n".join(lines) + "\n", encoding="utf-8")
