"""Render, replace and remove the generated backlinks section of a note.

The section is everything from the backlinks heading to the end of the file.
It always sits at the very end of a note:

    ...note text...

    ## Links to this note

    - [[20210119212027]] Some title
    - [[other note]]

Updating is idempotent: running it twice over an unchanged collection
produces the same text as running it once.
"""

from __future__ import annotations

import logging

from .graph import LinkGraph
from .models import Note

log = logging.getLogger(__name__)


def detect_newline(text: str) -> str:
    """Line break style of a note: CRLF if the note uses it anywhere, else LF."""
    return "\r\n" if "\r\n" in text else "\n"


def backlink_items(note: Note, graph: LinkGraph) -> list[str]:
    """List items for every note linking to `note`, sorted by title."""
    items: list[str] = []
    for linker in sorted(graph.incoming(note), key=lambda other: other.sort_key):
        item = f"- {linker.wikilink(graph.registry.link_target(linker))}"
        if item not in items:
            items.append(item)
    return items


def render_backlinks_section(note: Note, graph: LinkGraph, heading: str, newline: str = "\n") -> str:
    """Render the backlinks section, or "" when nothing links to the note."""
    items = backlink_items(note, graph)
    if not items:
        return ""
    return newline.join([heading.rstrip(), "", *items]) + newline


def remove_backlinks(note: Note) -> str:
    """Return the note text without its backlinks section.

    Trailing blank lines left above the section are collapsed into a single
    line break. A note without a section is returned unchanged.
    """
    if note.backlinks_offset is None:
        return note.text

    before = note.text[: note.backlinks_offset].rstrip()
    if not before:
        return ""
    return before + detect_newline(note.text)


def update_backlinks(note: Note, graph: LinkGraph, heading: str) -> str:
    """Return the note text with a freshly rendered backlinks section.

    When nothing links to the note any existing section is removed. A note
    that ends inside an unterminated code fence or HTML comment is returned
    unchanged: a heading appended there could never be found again.
    """
    if note.backlinks_offset is None and note.open_block is not None:
        log.warning("Not adding backlinks to %s: file ends inside an open %s", note.path, note.open_block)
        return note.text

    newline = detect_newline(note.text)
    base = remove_backlinks(note)
    section = render_backlinks_section(note, graph, heading, newline)
    if not section:
        return base

    before = base.rstrip()
    if not before:
        return section
    return before + newline + newline + section
