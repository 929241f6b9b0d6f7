"""Filesystem access for note files.

Everything that touches the disk lives here; the parser, registry and
graph only see text and paths.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .errors import FileReadError, FileWriteError, FilenameCollisionError, RootNotFoundError

log = logging.getLogger(__name__)


def ensure_root(root: Path) -> Path:
    """Return root resolved, or raise if it is not a directory."""
    if not root.exists():
        raise RootNotFoundError(f"Notes directory not found: {root}", {"root": str(root)})
    if not root.is_dir():
        raise RootNotFoundError(f"Not a directory: {root}", {"root": str(root)})
    return root.resolve()


def iter_note_files(root: Path, extension: str) -> list[Path]:
    """All note files under root, sorted by path.

    Hidden files and anything inside hidden directories (".git",
    ".obsidian", ...) are skipped.
    """
    suffix = "." + extension.lstrip(".")
    files = []
    for path in root.rglob(f"*{suffix}"):
        relative = path.relative_to(root)
        if any(part.startswith(".") for part in relative.parts):
            continue
        if not path.name.endswith(suffix) or not path.is_file():
            continue
        files.append(path)
    return sorted(files)


def read_note_text(path: Path) -> str:
    """Read a note as UTF-8, keeping line breaks exactly as stored.

    Raises:
        FileReadError: If the file cannot be read or is not valid UTF-8.
    """
    try:
        data = path.read_bytes()
    except OSError as e:
        raise FileReadError(path, e.strerror or str(e)) from e

    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise FileReadError(path, f"not valid UTF-8 ({e.reason} at byte {e.start})") from e


def write_note_text(path: Path, text: str) -> None:
    """Write a note as UTF-8 without translating line breaks.

    Raises:
        FileWriteError: If the file cannot be written.
    """
    try:
        with path.open("w", encoding="utf-8", newline="") as f:
            f.write(text)
    except OSError as e:
        raise FileWriteError(path, e.strerror or str(e)) from e
    log.debug("Wrote %s", path)


def rename_note_file(path: Path, new_path: Path) -> None:
    """Rename a note file, refusing to overwrite another file.

    Raises:
        FilenameCollisionError: If new_path exists and is a different file.
        FileWriteError: If the rename fails.
    """
    if new_path.exists():
        try:
            same = path.samefile(new_path)
        except OSError:
            same = False
        if not same:
            raise FilenameCollisionError(path, new_path, "a file with this name already exists")

    try:
        path.rename(new_path)
    except OSError as e:
        raise FileWriteError(path, e.strerror or str(e)) from e
    log.info("Renamed %s to %s", path.name, new_path.name)
