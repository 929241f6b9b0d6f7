"""Link graph built from resolved wikilinks."""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple

from .models import BrokenLink, BrokenReason, LinkRef, Note
from .registry import NoteRegistry


class Connectivity(str, Enum):
    """How a note is wired into the rest of the collection."""

    ISOLATED = "isolated"  # No links in or out
    SOURCE = "source"  # Links out, nothing links in
    SINK = "sink"  # Linked to, links nowhere
    CONNECTED = "connected"


class Resolution(NamedTuple):
    link: LinkRef
    target: Note | None
    reason: BrokenReason | None  # Why target is None


class LinkGraph:
    """Outgoing and incoming edges between the notes of a registry.

    outgoing(n) is the set of distinct notes n links to, self excluded.
    incoming(n) is every other note whose outgoing set contains n.
    Edges keep first-seen order: outgoing in link order, incoming in file order.
    """

    def __init__(self, registry: NoteRegistry) -> None:
        self.registry = registry
        self._resolutions: dict[str, list[Resolution]] = {}
        self._outgoing: dict[str, list[Note]] = {}
        self._incoming: dict[str, list[Note]] = {}
        self._build()

    def _build(self) -> None:
        registry = self.registry
        for note in registry.notes:
            self._incoming.setdefault(registry.key_of(note), [])

        for note in registry.notes:
            key = registry.key_of(note)
            resolutions: list[Resolution] = []
            targets: dict[str, Note] = {}

            for link in note.links:
                if link.problem is not None:
                    resolutions.append(Resolution(link, None, link.problem))
                    continue
                target = registry.resolve(link.target)
                if target is None:
                    resolutions.append(Resolution(link, None, "unknown"))
                    continue
                resolutions.append(Resolution(link, target, None))
                target_key = registry.key_of(target)
                if target_key != key:
                    targets.setdefault(target_key, target)

            self._resolutions[key] = resolutions
            self._outgoing[key] = list(targets.values())
            for target_key in targets:
                self._incoming[target_key].append(note)

    @property
    def notes(self) -> list[Note]:
        return self.registry.notes

    def resolutions(self, note: Note) -> list[Resolution]:
        return self._resolutions.get(self.registry.key_of(note), [])

    def outgoing(self, note: Note) -> list[Note]:
        return self._outgoing.get(self.registry.key_of(note), [])

    def incoming(self, note: Note) -> list[Note]:
        return self._incoming.get(self.registry.key_of(note), [])

    def classify(self, note: Note) -> Connectivity:
        has_out = bool(self.outgoing(note))
        has_in = bool(self.incoming(note))
        if has_out and has_in:
            return Connectivity.CONNECTED
        if has_out:
            return Connectivity.SOURCE
        if has_in:
            return Connectivity.SINK
        return Connectivity.ISOLATED

    def notes_with(self, connectivity: Connectivity) -> list[Note]:
        """Notes of one class, sorted by title (or filename)."""
        return sorted(
            (note for note in self.notes if self.classify(note) is connectivity),
            key=lambda note: note.sort_key,
        )

    def sources(self) -> list[Note]:
        return self.notes_with(Connectivity.SOURCE)

    def sinks(self) -> list[Note]:
        return self.notes_with(Connectivity.SINK)

    def isolated(self) -> list[Note]:
        return self.notes_with(Connectivity.ISOLATED)

    def broken_links(self) -> list[BrokenLink]:
        """Every unresolved link occurrence, in file order then link order."""
        broken = []
        for note in self.notes:
            for resolution in self.resolutions(note):
                if resolution.target is None:
                    broken.append(
                        BrokenLink(
                            source=self.registry.summary(note),
                            target=resolution.link.raw_target,
                            line=resolution.link.line,
                            reason=resolution.reason or "unknown",
                        )
                    )
        return broken

    def links_to(self, target: Note) -> list[tuple[Note, LinkRef]]:
        """Every (source, link) pair that resolves to target, self-links included."""
        pairs = []
        for note in self.notes:
            for resolution in self.resolutions(note):
                if resolution.target is target:
                    pairs.append((note, resolution.link))
        return pairs
