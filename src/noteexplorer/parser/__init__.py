"""Markdown parsing: block scanning and per-note extraction."""

from .blocks import BlockMap, BlockTag, Span, scan_blocks
from .links import extract_links, is_valid_link_target
from .note import NoteParser, parse_note
from .tasks import extract_tasks

__all__ = [
    "BlockMap",
    "BlockTag",
    "NoteParser",
    "Span",
    "extract_links",
    "extract_tasks",
    "is_valid_link_target",
    "parse_note",
    "scan_blocks",
]
