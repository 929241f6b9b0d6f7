"""Note registry: maps IDs and filenames to notes.

Resolves [[ID]] and [[filename]] style links. A link target that is
shaped like an ID (the whole target matches the ID pattern) is looked up
among IDs only, by exact equality. Anything else is looked up among
filename stems, case-insensitively, with an optional trailing extension.
"""

from __future__ import annotations

import logging
from typing import Iterable

from .models import IdCollision, Note, NoteSummary
from .parser.note import NoteParser

log = logging.getLogger(__name__)


class NoteRegistry:
    """Notes of one collection, keyed by ID or filename stem.

    Registration order is file order: when two notes claim the same key the
    first one keeps it. A later note with a duplicate ID falls back to its
    filename stem as key; if that is taken too, it is left out entirely.
    Every such clash is recorded in `collisions`.
    """

    def __init__(self, parser: NoteParser) -> None:
        self.parser = parser
        self.notes: list[Note] = []
        self.collisions: list[IdCollision] = []
        self._by_key: dict[str, Note] = {}
        self._by_id: dict[str, Note] = {}
        self._by_stem: dict[str, Note] = {}

    @classmethod
    def build(cls, notes: Iterable[Note], parser: NoteParser) -> "NoteRegistry":
        registry = cls(parser)
        for note in notes:
            registry.register(note)
        return registry

    def __len__(self) -> int:
        return len(self.notes)

    def register(self, note: Note) -> bool:
        """Add a note. Returns False if it could not be registered."""
        stem_key = note.stem.casefold()

        if note.id is not None and note.id not in self._by_id and note.id not in self._by_key:
            self._by_id[note.id] = note
            key = note.id
        else:
            if note.id is not None:
                kept = self._by_id.get(note.id) or self._by_key[note.id]
                log.warning("Duplicate ID %s in %s (already used by %s)", note.id, note.path, kept.path)
                excluded = stem_key in self._by_stem
                self.collisions.append(
                    IdCollision(
                        key=note.id,
                        kind="id",
                        kept=str(kept.path),
                        duplicate=str(note.path),
                        excluded=excluded,
                    )
                )
                if excluded:
                    return False
            elif stem_key in self._by_stem:
                kept = self._by_stem[stem_key]
                log.warning("Duplicate filename %s (already used by %s)", note.path, kept.path)
                self.collisions.append(
                    IdCollision(
                        key=stem_key,
                        kind="filename",
                        kept=str(kept.path),
                        duplicate=str(note.path),
                        excluded=True,
                    )
                )
                return False
            key = stem_key

        self._by_key[key] = note
        self._by_stem.setdefault(stem_key, note)
        self.notes.append(note)
        return True

    def key_of(self, note: Note) -> str:
        """Registry key of a registered note (its ID unless that was a duplicate)."""
        if note.id is not None and self._by_id.get(note.id) is note:
            return note.id
        return note.stem.casefold()

    def link_target(self, note: Note) -> str:
        """What to write inside [[...]] so the link resolves to this note.

        A note that lost its ID to an earlier note is linked by filename.
        """
        if note.id is not None and self._by_id.get(note.id) is note:
            return note.id
        if self.parser.is_id(note.stem):
            # A bare ID-shaped stem would be looked up as an ID
            return note.filename
        return note.stem

    def summary(self, note: Note) -> NoteSummary:
        return note.summary(self.link_target(note))

    def by_id(self, note_id: str) -> Note | None:
        return self._by_id.get(note_id)

    def by_filename(self, name: str) -> Note | None:
        """Look up a note by filename stem, with or without extension."""
        suffix = self.parser.settings.suffix
        if len(name) > len(suffix) and name.casefold().endswith(suffix.casefold()):
            name = name[: -len(suffix)]
        return self._by_stem.get(name.casefold())

    def resolve(self, target: str) -> Note | None:
        """Resolve a link target to a note, or None if nothing matches."""
        target = target.strip()
        if not target:
            return None
        if self.parser.is_id(target):
            return self.by_id(target)
        return self.by_filename(target)

    def is_id_link(self, target: str) -> bool:
        return self.parser.is_id(target.strip())
