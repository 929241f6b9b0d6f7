"""Pydantic models for notes, links and reports."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

LinkProblem = Literal["empty", "illegal"]
BrokenReason = Literal["empty", "illegal", "unknown"]


class LinkRef(BaseModel):
    """One [[wikilink]] occurrence in a note's body."""

    raw_target: str  # Target text as written, before trimming
    label: str | None = None  # Text before the first unescaped |
    section: str | None = None  # Text after the first # in the target
    start: int  # Offset of the opening [[
    end: int  # Offset just past the closing ]]
    target_start: int  # Offset of raw_target in the note text
    target_end: int
    line: int  # 1-based line number of the opening [[
    problem: LinkProblem | None = None  # Set for degenerate targets

    @property
    def target(self) -> str:
        return self.raw_target.strip()


class TaskRef(BaseModel):
    """An open checklist item (- [ ] ...)."""

    text: str
    line: int  # 1-based
    offset: int  # Offset of the line start


class Note(BaseModel):
    """Facts extracted from one note file."""

    path: Path
    stem: str  # Filename without directory and extension
    extension: str
    text: str = Field(repr=False)
    id: str | None = None
    title: str | None = None
    links: list[LinkRef] = Field(default_factory=list)  # In document order
    tasks: list[TaskRef] = Field(default_factory=list)
    backlinks_offset: int | None = None  # Where the backlinks heading starts
    open_block: str | None = None  # Fence or comment left open at end of file

    @property
    def filename(self) -> str:
        return f"{self.stem}.{self.extension}"

    @property
    def link_target(self) -> str:
        """What other notes write inside [[...]] to link here."""
        return self.id if self.id is not None else self.stem

    @property
    def sort_key(self) -> tuple[str, str]:
        return ((self.title or self.stem).casefold(), self.stem)

    def wikilink(self, link_target: str | None = None) -> str:
        """A list-ready link to this note, e.g. "[[20210119212027]] Some title".

        link_target overrides the default target, for a note whose ID is
        already taken by another note.
        """
        target = link_target or self.link_target
        # No need for a description that repeats the link target
        description = self.title if self.title and self.title != target else ""
        return f"[[{target}]] {description}".rstrip()

    def summary(self, link_target: str | None = None) -> "NoteSummary":
        return NoteSummary(
            path=str(self.path),
            stem=self.stem,
            id=self.id,
            title=self.title,
            wikilink=self.wikilink(link_target),
        )


class NoteSummary(BaseModel):
    """Serializable identity of a note for listings."""

    path: str
    stem: str
    id: str | None = None
    title: str | None = None
    wikilink: str


class BrokenLink(BaseModel):
    """An unresolved link occurrence."""

    source: NoteSummary
    target: str  # Raw target text as written
    line: int
    reason: BrokenReason


class IdCollision(BaseModel):
    """Two notes claimed the same registry key; the first-seen note keeps it.

    kind is "id" when two notes share an ID and "filename" when two notes
    without a usable ID share a filename stem (in different folders).
    """

    key: str
    kind: Literal["id", "filename"] = "id"
    kept: str  # Path of the note that owns the key
    duplicate: str  # Path of the later note
    excluded: bool = False  # True if the later note could not be registered at all


class FileFailure(BaseModel):
    """A file that could not be read, written or renamed."""

    path: str
    reason: str


class TaskGroup(BaseModel):
    """Open tasks of one note."""

    note: NoteSummary
    tasks: list[TaskRef]


class BacklinkChange(BaseModel):
    """Result of recomputing one note's backlinks section."""

    note: NoteSummary
    changed: bool
    text: str = Field(exclude=True, repr=False)  # Full rewritten note text


class RenameProposal(BaseModel):
    """A proposed filename change for one note."""

    note: NoteSummary
    old_name: str
    new_name: str
    new_path: str


class RenameConflict(BaseModel):
    """A rename that was skipped because its target is taken."""

    note: NoteSummary
    old_name: str
    new_name: str
    reason: str


class CollectionStats(BaseModel):
    """Corpus-wide counts."""

    notes: int
    notes_with_id: int
    links: int  # Wikilink occurrences in body text
    resolved_links: int
    broken_links: int
    sources: int
    sinks: int
    isolated: int
    id_collisions: int
    failures: int


class BacklinksReport(BaseModel):
    """Outcome of updating or removing backlinks sections."""

    changes: list[BacklinkChange] = Field(default_factory=list)  # One per note, file order
    failures: list[FileFailure] = Field(default_factory=list)
    dry_run: bool = False

    @property
    def changed(self) -> list[BacklinkChange]:
        return [change for change in self.changes if change.changed]


class RenameReport(BaseModel):
    """Outcome of applying filename changes."""

    renamed: list[RenameProposal] = Field(default_factory=list)
    conflicts: list[RenameConflict] = Field(default_factory=list)
    failures: list[FileFailure] = Field(default_factory=list)
    rewritten: list[str] = Field(default_factory=list)  # Notes whose links were updated
    dry_run: bool = False
