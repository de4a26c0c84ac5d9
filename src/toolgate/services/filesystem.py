"""File operations confined to the workspace root.

Every path argument is cleaned and resolved against the workspace root:
quotes are stripped, ``<>|`` and NUL are rejected, ``..`` is rejected,
and the resolved path must stay inside the root. Violations raise
BadRequestError; I/O failures propagate as OSError.
"""

from __future__ import annotations

import base64
import binascii
import os
import shutil
from pathlib import Path

from toolgate.exceptions import BadRequestError
from toolgate.models import DirectoryCreateResult, ReadFileResult, SplitSummary, WriteFileResult
from toolgate.services.file_split import DEFAULT_MAX_LINES, split_file

SUPPORTED_ENCODINGS = ("utf8", "utf16le", "latin1", "ascii", "hex", "base64")
WRITE_MODES = ("overwrite", "append")

_TEXT_CODECS = {
    "utf8": "utf-8",
    "utf16le": "utf-16-le",
    "latin1": "latin-1",
    "ascii": "ascii",
}
_INVALID_PATH_CHARS = set("<>|\0")


def normalize_encoding(raw: str) -> str:
    normalized = raw.strip().lower().replace("-", "").replace("_", "")
    if normalized not in SUPPORTED_ENCODINGS:
        raise BadRequestError(
            f"encoding must be one of: {', '.join(SUPPORTED_ENCODINGS)}",
            field="encoding",
        )
    return normalized


def _encode(content: str, encoding: str) -> bytes:
    if encoding == "hex":
        try:
            return bytes.fromhex(content)
        except ValueError as e:
            raise BadRequestError(f"content is not valid hex: {e}", field="content") from e
    if encoding == "base64":
        try:
            return base64.b64decode(content, validate=True)
        except binascii.Error as e:
            raise BadRequestError(f"content is not valid base64: {e}", field="content") from e
    return content.encode(_TEXT_CODECS[encoding])


def _decode(data: bytes, encoding: str) -> str:
    if encoding == "hex":
        return data.hex()
    if encoding == "base64":
        return base64.b64encode(data).decode("ascii")
    return data.decode(_TEXT_CODECS[encoding], errors="replace")


def _unique(items: list[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for item in items:
        normalized = item.strip()
        if normalized and normalized not in seen:
            seen.add(normalized)
            result.append(normalized)
    return result


def _describe_entry(entry: os.DirEntry) -> str:
    if entry.is_dir():
        return f"{entry.name}/"
    if entry.is_file():
        size = entry.stat().st_size
        size_str = f"{round(size / 1024)}KB" if size > 1024 else f"{size}B"
        return f"{entry.name} ({size_str})"
    return entry.name


class FilesystemService:
    """Filesystem primitives exposed to the fs tool."""

    def __init__(self, workspace_root: str | Path):
        self._root = Path(workspace_root).resolve()

    @property
    def workspace_root(self) -> Path:
        return self._root

    def resolve(self, raw: str) -> Path:
        """Map an untrusted path to an absolute path inside the workspace."""
        cleaned = raw.strip().strip("\"'").strip()
        if not cleaned:
            raise BadRequestError("Path must be a non-empty string")
        if any(ch in _INVALID_PATH_CHARS for ch in cleaned):
            raise BadRequestError(f"Path contains invalid characters: {raw}")
        if ".." in Path(cleaned.replace("\\", "/")).parts:
            raise BadRequestError("Path traversal not allowed", details={"path": raw})

        candidate = Path(cleaned).expanduser()
        if not candidate.is_absolute():
            candidate = self._root / candidate
        resolved = candidate.resolve()
        if not resolved.is_relative_to(self._root):
            raise BadRequestError("Path must stay within workspace", details={"path": raw})
        return resolved

    def list_files(self, pattern: str | None = None, path: str | None = None) -> list[str]:
        base = self.resolve(path) if path else self._root
        if not base.is_dir():
            raise NotADirectoryError(f"Not a directory: {path}")

        if not pattern:
            with os.scandir(base) as entries:
                return sorted(_describe_entry(entry) for entry in entries)

        if os.path.isabs(pattern) or ".." in pattern:
            raise BadRequestError("Glob pattern must stay inside workspace", field="payload.pattern")
        return sorted(p.relative_to(base).as_posix() for p in base.glob(pattern))

    def move_path(self, source: str, destination: str) -> None:
        src = self._existing(source)
        dst = self.resolve(destination)
        if dst.exists() and dst != src:
            self._delete(dst)
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(src), str(dst))

    def copy_path(self, source: str, destination: str) -> None:
        src = self._existing(source)
        dst = self.resolve(destination)
        dst.parent.mkdir(parents=True, exist_ok=True)
        if src.is_dir():
            shutil.copytree(src, dst, dirs_exist_ok=True)
        else:
            shutil.copy2(src, dst)

    def remove_path(self, target: str, force: bool = False) -> None:
        resolved = self.resolve(target)
        if resolved == self._root:
            raise BadRequestError("Refusing to remove the workspace root", details={"path": target})
        if not resolved.exists() and not resolved.is_symlink():
            if force:
                return
            raise FileNotFoundError(f"Path not found: {target}")
        self._delete(resolved)

    def split_large_file(self, file_path: str, max_lines: int | None = None) -> SplitSummary | None:
        return split_file(self.resolve(file_path), max_lines or DEFAULT_MAX_LINES)

    def create_directories(self, paths: list[str]) -> DirectoryCreateResult:
        result = DirectoryCreateResult()
        for entry in _unique(paths):
            target = self.resolve(entry)
            if target.exists():
                result.skipped.append(str(target))
                continue
            target.mkdir(parents=True, exist_ok=True)
            result.created.append(str(target))
        return result

    def read_file_content(
        self,
        target: str,
        encoding: str = "utf8",
        max_bytes: int | None = None,
    ) -> ReadFileResult:
        resolved = self._existing(target)
        if resolved.is_dir():
            raise IsADirectoryError(f"Cannot read directory content: {target}")
        stats = resolved.stat()
        with resolved.open("rb") as f:
            data = f.read(max_bytes) if max_bytes else f.read()
        return ReadFileResult(
            path=str(resolved),
            content=_decode(data, encoding),
            bytes=len(data),
            encoding=encoding,
            modified_at=stats.st_mtime * 1000,
        )

    def write_file_content(
        self,
        target: str,
        content: str,
        encoding: str = "utf8",
        mode: str = "overwrite",
    ) -> WriteFileResult:
        resolved = self.resolve(target)
        if resolved.is_dir():
            raise IsADirectoryError(f"Cannot write to a directory: {target}")
        data = _encode(content, encoding)
        existed = resolved.exists()
        resolved.parent.mkdir(parents=True, exist_ok=True)
        with resolved.open("ab" if mode == "append" else "wb") as f:
            f.write(data)
        return WriteFileResult(
            path=str(resolved),
            bytes_written=len(data),
            mode=mode,
            encoding=encoding,
            created=not existed,
        )

    def _existing(self, raw: str) -> Path:
        resolved = self.resolve(raw)
        if not resolved.exists():
            raise FileNotFoundError(f"Path not found: {raw}")
        return resolved

    @staticmethod
    def _delete(path: Path) -> None:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
