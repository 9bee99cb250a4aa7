"""Thin file helpers over :mod:`pathlib`."""

from __future__ import annotations

import shutil
from pathlib import Path

_BOM = "\ufeff"


def read_text(path: str | Path, encoding: str = "utf-8") -> str:
    """Return the file contents with a leading byte order mark removed."""
    text = Path(path).read_text(encoding=encoding)
    if text.startswith(_BOM):
        return text[1:]
    return text


def write_text(path: str | Path, content: str, encoding: str = "utf-8") -> None:
    """Write `content`, replacing any existing file."""
    Path(path).write_text(content, encoding=encoding)


def read_bytes(path: str | Path) -> bytes:
    return Path(path).read_bytes()


def write_bytes(path: str | Path, data: bytes) -> None:
    Path(path).write_bytes(data)


def append_text(path: str | Path, content: str, encoding: str = "utf-8") -> None:
    """Append `content`, creating the file when it does not exist yet."""
    with Path(path).open("a", encoding=encoding) as handle:
        handle.write(content)


def exists(path: str | Path) -> bool:
    return Path(path).exists()


def delete(path: str | Path) -> None:
    """Remove the file; a missing file raises ``FileNotFoundError``."""
    Path(path).unlink()


def copy(source: str | Path, destination: str | Path) -> None:
    shutil.copyfile(source, destination)


__all__ = [
    "append_text",
    "copy",
    "delete",
    "exists",
    "read_bytes",
    "read_text",
    "write_bytes",
    "write_text",
]
