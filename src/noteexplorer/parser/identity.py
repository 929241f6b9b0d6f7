"""ID and title extraction."""

from __future__ import annotations

import re

from .blocks import BlockMap, BlockTag

_H1_RE = re.compile(r"^#[ \t]+(.+)$")

# Pandoc-style attributes at the end of a heading, e.g. "Title {#anchor .class}"
_ATTRIBUTES_RE = re.compile(r"[ \t]*\{[^{}]*\}[ \t]*$")

# ATX closing sequence: "# Title ##"; the #s must be preceded by whitespace
_CLOSING_HASHES_RE = re.compile(r"(?:^|[ \t]+)#+[ \t]*$")


def find_id(blocks: BlockMap, id_search: re.Pattern[str]) -> str | None:
    """Return the first standalone ID in frontmatter or body text.

    Code, comments and the backlinks section are never searched, so an ID
    quoted in a code sample or listed as a backlink is not taken for the
    note's own.
    """
    for span in blocks.spans_of(BlockTag.FRONTMATTER, BlockTag.BODY):
        match = id_search.search(blocks.text, span.start, span.end)
        if match:
            return match.group("id")
    return None


def id_from_stem(stem: str, id_search: re.Pattern[str]) -> str | None:
    """Return the ID in a filename stem, e.g. "20210119212027 Some title"."""
    match = id_search.search(stem)
    return match.group("id") if match else None


def clean_heading(heading: str) -> str:
    """Strip trailing attributes and the closing # sequence from heading text."""
    heading = _ATTRIBUTES_RE.sub("", heading)
    heading = _CLOSING_HASHES_RE.sub("", heading)
    return heading.strip()


def find_title(blocks: BlockMap) -> str | None:
    """Return the text of the first level-1 heading in body text."""
    for segment in blocks.segments(BlockTag.BODY):
        if not segment.at_line_start:
            continue
        match = _H1_RE.match(segment.text)
        if match:
            title = clean_heading(match.group(1))
            if title:
                return title
    return None
