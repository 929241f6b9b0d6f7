"""Canonical filenames for notes, and the link rewrites a rename needs.

A note's canonical filename is built from its ID and title:

    20210119212027 Some title.md    (ID and title)
    Some title.md                   (title only)
    20210119212027.md               (ID only)

Notes with neither get no proposal.
"""

from __future__ import annotations

import logging
import re
import sys
import unicodedata
from pathlib import Path
from typing import Callable

from .graph import LinkGraph
from .models import Note, RenameConflict, RenameProposal
from .registry import NoteRegistry
from .parser.links import replace_link_targets

log = logging.getLogger(__name__)

# Characters that are illegal in filenames on some platform, or that would
# break a [[wikilink]] to the file
_ILLEGAL_FILENAME_RE = re.compile(r'[<>:"/\\|?*\[\]#\x00-\x1f\x7f]')
_SPACES_RE = re.compile(r"\s+")

# Filesystems that treat "Note.md" and "note.md" as the same file by default
CASE_INSENSITIVE_PLATFORMS = ("win32", "darwin")


def clean_filename(name: str) -> str:
    """Make a string usable as a filename stem.

    Illegal characters become spaces, runs of whitespace collapse to one
    space, and leading or trailing spaces and dots are removed.
    """
    name = unicodedata.normalize("NFC", name)
    name = _ILLEGAL_FILENAME_RE.sub(" ", name)
    name = _SPACES_RE.sub(" ", name)
    return name.strip(" .")


def is_legal_filename(name: str) -> bool:
    """True if name is already clean (clean_filename would not change it)."""
    return bool(name) and clean_filename(name) == name


def canonical_stem(note: Note) -> str | None:
    """Filename stem a note should have, or None if it has no ID and no title."""
    title = clean_filename(note.title) if note.title else ""
    note_id = clean_filename(note.id) if note.id else ""
    if note_id and title:
        return f"{note_id} {title}"
    return title or note_id or None


def is_case_sensitive_platform(platform: str | None = None) -> bool:
    return (platform or sys.platform) not in CASE_INSENSITIVE_PLATFORMS


def _name_key(name: str, case_sensitive: bool) -> str:
    return name if case_sensitive else name.casefold()


def _is_same_file(path: Path, other: Path) -> bool:
    try:
        return path.samefile(other)
    except OSError:
        return False


def plan_renames(
    notes: list[Note],
    *,
    case_sensitive: bool | None = None,
    exists: Callable[[Path], bool] | None = None,
    registry: NoteRegistry | None = None,
) -> tuple[list[RenameProposal], list[RenameConflict]]:
    """Work out which notes need a new filename.

    No rename is proposed when the new name matches the current one,
    ignoring case where the filesystem does. A rename is skipped (reported
    as a conflict) when its new name is taken by a file on disk, by another
    note's current name, or by an earlier rename in the same plan.

    Args:
        notes: Notes to consider, in file order.
        case_sensitive: Compare names case-sensitively. Defaults to the
            platform convention.
        exists: Check for an existing file (defaults to Path.exists).
        registry: Registry the notes belong to, used to link each note in the
            returned summaries.

    Returns:
        (proposals, conflicts), both in file order.
    """
    if case_sensitive is None:
        case_sensitive = is_case_sensitive_platform()
    if exists is None:
        exists = Path.exists
    summarize = registry.summary if registry is not None else Note.summary

    current: dict[tuple[Path, str], Note] = {
        (note.path.parent, _name_key(note.path.name, case_sensitive)): note for note in notes
    }
    claimed: set[tuple[Path, str]] = set()
    proposals: list[RenameProposal] = []
    conflicts: list[RenameConflict] = []

    for note in notes:
        stem = canonical_stem(note)
        if stem is None:
            continue

        new_name = f"{stem}.{note.extension}"
        old_name = note.path.name
        if _name_key(new_name, case_sensitive) == _name_key(old_name, case_sensitive):
            continue

        new_path = note.path.with_name(new_name)
        key = (note.path.parent, _name_key(new_name, case_sensitive))

        reason = None
        owner = current.get(key)
        if key in claimed:
            reason = "another rename already uses this name"
        elif owner is not None and owner is not note:
            reason = f"{owner.path.name} already has this name"
        elif owner is None and exists(new_path) and not _is_same_file(new_path, note.path):
            reason = "a file with this name already exists"

        if reason is not None:
            log.warning("Skipping rename of %s to %s: %s", old_name, new_name, reason)
            conflicts.append(
                RenameConflict(note=summarize(note), old_name=old_name, new_name=new_name, reason=reason)
            )
            continue

        claimed.add(key)
        proposals.append(
            RenameProposal(note=summarize(note), old_name=old_name, new_name=new_name, new_path=str(new_path))
        )

    return proposals, conflicts


def rewrite_links(graph: LinkGraph, renamed: dict[Path, str]) -> dict[Path, str]:
    """Point filename-based links at renamed notes to their new stems.

    Links by ID keep working after a rename and are left alone.

    Args:
        graph: Graph of the collection before the renames.
        renamed: Old path of each renamed note mapped to its new stem.

    Returns:
        Old path of every note whose text changed, mapped to its new text.
    """
    edits: dict[Path, list] = {}
    sources: dict[Path, Note] = {}
    for note in graph.notes:
        new_stem = renamed.get(note.path)
        if new_stem is None:
            continue
        for source, link in graph.links_to(note):
            if graph.registry.is_id_link(link.target):
                continue
            edits.setdefault(source.path, []).append((link, new_stem))
            sources[source.path] = source

    return {path: replace_link_targets(sources[path].text, link_edits) for path, link_edits in edits.items()}
