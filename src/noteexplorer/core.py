"""Core business logic for noteexplorer.

This module contains the operations the CLI exposes, on top of a loaded
NoteCollection.

Design principles:
- All operations are async for consistency; file I/O runs in worker threads
- Every file is read and parsed before any cross-note work starts
- Read-only operations never write; write operations honor dry_run
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from . import backlinks as _backlinks
from . import filenames as _filenames
from .config import ExplorerSettings
from .errors import FileReadError, FileWriteError, FilenameCollisionError
from .graph import LinkGraph
from .models import (
    BacklinkChange,
    BacklinksReport,
    BrokenLink,
    CollectionStats,
    FileFailure,
    Note,
    NoteSummary,
    RenameConflict,
    RenameProposal,
    RenameReport,
    TaskGroup,
)
from .parser.note import NoteParser
from .registry import NoteRegistry
from .vault import ensure_root, iter_note_files, read_note_text, rename_note_file, write_note_text

log = logging.getLogger(__name__)


@dataclass
class NoteCollection:
    """All notes under one root, parsed, registered and linked."""

    root: Path
    parser: NoteParser
    registry: NoteRegistry
    graph: LinkGraph
    failures: list[FileFailure] = field(default_factory=list)

    @property
    def settings(self) -> ExplorerSettings:
        return self.parser.settings

    @property
    def notes(self) -> list[Note]:
        return self.registry.notes


def build_collection(
    notes: Iterable[Note],
    parser: NoteParser,
    root: Path | None = None,
    failures: Iterable[FileFailure] = (),
) -> NoteCollection:
    """Register already parsed notes and build their link graph."""
    registry = NoteRegistry.build(notes, parser)
    return NoteCollection(
        root=root or Path("."),
        parser=parser,
        registry=registry,
        graph=LinkGraph(registry),
        failures=list(failures),
    )


def _load_note(parser: NoteParser, path: Path) -> Note | FileFailure:
    try:
        text = read_note_text(path)
    except FileReadError as e:
        log.warning("Skipping %s: %s", path, e.reason)
        return FileFailure(path=str(path), reason=e.reason)
    return parser.parse(path, text)


async def load_collection(root: Path, settings: ExplorerSettings | None = None) -> NoteCollection:
    """Read and parse every note under root.

    Files are read and parsed concurrently; registration happens afterwards
    in path order, so the result does not depend on scheduling.

    Raises:
        ConfigurationError: If the settings are unusable or root is missing.
    """
    parser = NoteParser(settings or ExplorerSettings())
    root = ensure_root(root)

    start = time.perf_counter()
    paths = await asyncio.to_thread(iter_note_files, root, parser.settings.extension)
    results = await asyncio.gather(*(asyncio.to_thread(_load_note, parser, path) for path in paths))

    notes = [result for result in results if isinstance(result, Note)]
    failures = [result for result in results if isinstance(result, FileFailure)]
    collection = build_collection(notes, parser, root, failures)

    log.debug(
        "Loaded %d notes from %s in %.3fs (%d failed)",
        len(collection.notes),
        root,
        time.perf_counter() - start,
        len(failures),
    )
    return collection


# =============================================================================
# Read-only reports
# =============================================================================


async def broken_links(collection: NoteCollection) -> list[BrokenLink]:
    return collection.graph.broken_links()


async def list_sources(collection: NoteCollection) -> list[NoteSummary]:
    """Notes that link out but that nothing links to."""
    return [collection.registry.summary(note) for note in collection.graph.sources()]


async def list_sinks(collection: NoteCollection) -> list[NoteSummary]:
    """Notes that are linked to but link nowhere."""
    return [collection.registry.summary(note) for note in collection.graph.sinks()]


async def list_isolated(collection: NoteCollection) -> list[NoteSummary]:
    """Notes with no links in either direction."""
    return [collection.registry.summary(note) for note in collection.graph.isolated()]


async def list_tasks(collection: NoteCollection) -> list[TaskGroup]:
    """Open tasks grouped by note, notes sorted by title."""
    notes = sorted((note for note in collection.notes if note.tasks), key=lambda note: note.sort_key)
    return [TaskGroup(note=collection.registry.summary(note), tasks=note.tasks) for note in notes]


async def stats(collection: NoteCollection) -> CollectionStats:
    graph = collection.graph
    notes = collection.notes
    resolved = sum(
        1 for note in notes for resolution in graph.resolutions(note) if resolution.target is not None
    )
    links = sum(len(note.links) for note in notes)
    return CollectionStats(
        notes=len(notes),
        notes_with_id=sum(1 for note in notes if note.id is not None),
        links=links,
        resolved_links=resolved,
        broken_links=links - resolved,
        sources=len(graph.sources()),
        sinks=len(graph.sinks()),
        isolated=len(graph.isolated()),
        id_collisions=len(collection.registry.collisions),
        failures=len(collection.failures),
    )


# =============================================================================
# Backlinks
# =============================================================================


def compute_backlink_changes(collection: NoteCollection, *, remove: bool = False) -> list[BacklinkChange]:
    """New text for every note, with its backlinks section updated or removed."""
    heading = collection.parser.heading
    changes = []
    for note in collection.notes:
        if remove:
            text = _backlinks.remove_backlinks(note)
        else:
            text = _backlinks.update_backlinks(note, collection.graph, heading)
        summary = collection.registry.summary(note)
        changes.append(BacklinkChange(note=summary, changed=text != note.text, text=text))
    return changes


def _write(path: Path, text: str) -> FileFailure | None:
    try:
        write_note_text(path, text)
    except FileWriteError as e:
        log.error("%s", e.message)
        return FileFailure(path=str(path), reason=e.reason)
    return None


async def _write_all(texts: dict[Path, str]) -> list[FileFailure]:
    results = await asyncio.gather(*(asyncio.to_thread(_write, path, text) for path, text in texts.items()))
    return [failure for failure in results if failure is not None]


async def update_backlinks(
    collection: NoteCollection, *, remove: bool = False, dry_run: bool = False
) -> BacklinksReport:
    """Rewrite the backlinks section of every note that needs it.

    Only notes whose text actually changes are written. With remove=True the
    sections are deleted instead of regenerated.
    """
    changes = compute_backlink_changes(collection, remove=remove)
    report = BacklinksReport(changes=changes, dry_run=dry_run)
    if dry_run:
        return report

    texts = {Path(change.note.path): change.text for change in report.changed}
    report.failures = await _write_all(texts)
    verb = "Removed" if remove else "Updated"
    log.info("%s backlinks in %d notes", verb, len(texts) - len(report.failures))
    return report


async def remove_backlinks(collection: NoteCollection, *, dry_run: bool = False) -> BacklinksReport:
    return await update_backlinks(collection, remove=True, dry_run=dry_run)


# =============================================================================
# Filenames
# =============================================================================


async def plan_renames(
    collection: NoteCollection, *, case_sensitive: bool | None = None
) -> tuple[list[RenameProposal], list[RenameConflict]]:
    """Which notes would get a new filename, and which renames are blocked."""
    return await asyncio.to_thread(
        _filenames.plan_renames,
        collection.notes,
        case_sensitive=case_sensitive,
        registry=collection.registry,
    )


async def apply_renames(
    collection: NoteCollection,
    proposals: list[RenameProposal],
    *,
    dry_run: bool = False,
) -> RenameReport:
    """Rename notes and update filename links that pointed at the old names.

    Renames run one at a time; a rename that fails is reported and its link
    rewrites are skipped. Link rewrites are written after all renames, to the
    notes' new paths where they were renamed too.
    """
    report = RenameReport(dry_run=dry_run)
    renamed_stems: dict[Path, str] = {}
    new_paths: dict[Path, Path] = {}

    for proposal in proposals:
        old_path = Path(proposal.note.path)
        new_path = Path(proposal.new_path)
        if not dry_run:
            try:
                await asyncio.to_thread(rename_note_file, old_path, new_path)
            except FilenameCollisionError as e:
                log.warning("%s", e.message)
                report.conflicts.append(
                    RenameConflict(
                        note=proposal.note,
                        old_name=proposal.old_name,
                        new_name=proposal.new_name,
                        reason=e.reason,
                    )
                )
                continue
            except FileWriteError as e:
                log.error("%s", e.message)
                report.failures.append(FileFailure(path=str(old_path), reason=e.reason))
                continue

        report.renamed.append(proposal)
        renamed_stems[old_path] = new_path.name[: -len(collection.settings.suffix)]
        new_paths[old_path] = new_path

    rewrites = _filenames.rewrite_links(collection.graph, renamed_stems)
    report.rewritten = [str(new_paths.get(path, path)) for path in rewrites]
    if not dry_run and rewrites:
        texts = {new_paths.get(path, path): text for path, text in rewrites.items()}
        report.failures.extend(await _write_all(texts))

    return report
