"""Turn a note file's text into a Note."""

from __future__ import annotations

from pathlib import Path

from ..config import ExplorerSettings, compile_id_pattern, validate_backlinks_heading
from ..models import Note
from .blocks import BlockMap, scan_blocks
from .identity import find_id, find_title, id_from_stem
from .links import extract_links
from .tasks import extract_tasks


class NoteParser:
    """Parses notes with one set of settings.

    Construction validates the settings, so a NoteParser that exists can
    parse anything: parsing itself never fails.

    Raises:
        ConfigurationError: (from __init__) if the settings are unusable.
    """

    def __init__(self, settings: ExplorerSettings) -> None:
        settings.validate()
        self.settings = settings
        self.heading = validate_backlinks_heading(settings.backlinks_heading)
        self.id_exact, self.id_search = compile_id_pattern(settings.id_pattern)

    def is_id(self, target: str) -> bool:
        """True if the whole link target is shaped like an ID."""
        return self.id_exact.fullmatch(target) is not None

    def stem_of(self, path: Path) -> str:
        name = path.name
        suffix = self.settings.suffix
        if len(name) > len(suffix) and name.endswith(suffix):
            return name[: -len(suffix)]
        return path.stem

    def scan(self, text: str) -> BlockMap:
        return scan_blocks(text, self.heading)

    def parse(self, path: Path, text: str) -> Note:
        """Extract ID, title, links and tasks from one note.

        The ID comes from the filename when the stem contains one, else from
        the first standalone ID in the text.
        """
        blocks = self.scan(text)
        stem = self.stem_of(path)

        note_id = id_from_stem(stem, self.id_search)
        if note_id is None:
            note_id = find_id(blocks, self.id_search)

        return Note(
            path=path,
            stem=stem,
            extension=self.settings.extension.lstrip("."),
            text=text,
            id=note_id,
            title=find_title(blocks),
            links=extract_links(blocks),
            tasks=extract_tasks(blocks),
            backlinks_offset=blocks.backlinks_offset,
            open_block=blocks.open_block.value if blocks.open_block else None,
        )


def parse_note(path: Path, text: str, settings: ExplorerSettings | None = None) -> Note:
    """Parse a single note with default (or given) settings."""
    return NoteParser(settings or ExplorerSettings()).parse(path, text)
