"""Shared test fixtures for the noteexplorer test suite.

Design:
- tmp_notes: isolated notes directory in a temp dir
- write_note: helper that writes a note below a root
- runner: CliRunner for CLI tests
- package_logger: the noteexplorer logger, restored after the test
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterator

import pytest
from click.testing import CliRunner

from noteexplorer._logging import PACKAGE_LOGGER
from noteexplorer.config import ExplorerSettings
from noteexplorer.core import NoteCollection, build_collection
from noteexplorer.parser.note import NoteParser


def write_note(root: Path, name: str, content: str) -> Path:
    """Write a note file (creating folders) and return its path.

    Content is written byte for byte, so CRLF line breaks survive.
    """
    path = root / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content.encode("utf-8"))
    return path


def make_collection(notes: dict[str, str], settings: ExplorerSettings | None = None) -> NoteCollection:
    """Build a collection from {filename: text} without touching the disk."""
    parser = NoteParser(settings or ExplorerSettings())
    parsed = [parser.parse(Path("/notes") / name, text) for name, text in notes.items()]
    return build_collection(parsed, parser, Path("/notes"))


# ─────────────────────────────────────────────────────────────────────────────
# Core Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def runner() -> CliRunner:
    """CLI runner with isolated environment."""
    return CliRunner()


@pytest.fixture
def package_logger() -> Iterator[logging.Logger]:
    """The package logger with no handlers; level and handlers are restored afterwards."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    saved = (logger.level, logger.propagate, list(logger.handlers))
    logger.handlers = []
    yield logger
    logger.setLevel(saved[0])
    logger.propagate = saved[1]
    logger.handlers = saved[2]


@pytest.fixture
def tmp_notes(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create an empty notes directory and clear NOTEEXPLORER_* overrides."""
    for name in (
        "NOTEEXPLORER_ROOT",
        "NOTEEXPLORER_EXTENSION",
        "NOTEEXPLORER_ID_FORMAT",
        "NOTEEXPLORER_BACKLINKS_HEADING",
        "NOTEEXPLORER_QUIET",
    ):
        monkeypatch.delenv(name, raising=False)

    root = tmp_path / "notes"
    root.mkdir()
    return root


@pytest.fixture
def zettelkasten(tmp_notes: Path) -> Path:
    """A small linked collection.

    Creates:
    - 20210101000000 Alpha.md   links to Beta by ID and to Gamma by filename
    - 20210102000000 Beta.md    links back to Alpha, has an open task
    - Gamma.md                  no ID, no outgoing links
    - Loner.md                  nothing links in or out
    - Broken.md                 links to a missing note
    - Hub.md                    links to Gamma (filename, other case), nothing links in
    """
    write_note(
        tmp_notes,
        "20210101000000 Alpha.md",
        "# Alpha\n\n20210101000000\n\nSee [[20210102000000]] and [[Gamma]].\n",
    )
    write_note(
        tmp_notes,
        "20210102000000 Beta.md",
        "# Beta\n\nBack to [[20210101000000]].\n\n- [ ] Review Alpha\n- [x] Done already\n",
    )
    write_note(tmp_notes, "Gamma.md", "# Gamma\n\nA sink.\n")
    write_note(tmp_notes, "Loner.md", "# Loner\n\nNo links here.\n")
    write_note(tmp_notes, "Broken.md", "# Broken\n\nPoints to [[Nowhere]].\n")
    write_note(tmp_notes, "Hub.md", "# Hub\n\nStart at [[gamma.md]].\n")
    return tmp_notes


@pytest.fixture
def collection_from() -> Callable[..., NoteCollection]:
    """Build an in-memory collection from {filename: text}.

    Usage:
        def test_graph(collection_from):
            collection = collection_from({"a.md": "[[b]]", "b.md": ""})
    """
    return make_collection
