"""Wikilink extraction.

A wikilink is `[[target]]`, `[[target#section]]` or `[[label|target]]`.
Links are only looked for in BODY spans and never cross a line break.

The scan is a small automaton rather than a regular expression so that the
awkward inputs behave predictably:

- `[[[a]]` yields `a` (extra opening brackets belong to the surrounding text)
- `[[a [[b]]` yields only `b` (a new `[[` restarts the match)
- `[[a` followed by a line break yields nothing
"""

from __future__ import annotations

import re
from typing import Iterator

from ..models import LinkProblem, LinkRef
from .blocks import BlockMap, BlockTag

# Characters that can never appear in a note filename or ID link
_ILLEGAL_TARGET_RE = re.compile(r'[<>:"/\\|?*\[\]\x00-\x1f\x7f]')


def link_problem(target: str) -> LinkProblem | None:
    """Classify a link target: None when usable, else "empty" or "illegal"."""
    target = target.strip()
    if not target:
        return "empty"
    if _ILLEGAL_TARGET_RE.search(target):
        return "illegal"
    return None


def is_valid_link_target(target: str) -> bool:
    return link_problem(target) is None


def _first_unescaped(text: str, char: str) -> int:
    """Index of the first `char` not preceded by a backslash escape, or -1."""
    index = 0
    while index < len(text):
        current = text[index]
        if current == "\\":
            index += 2
            continue
        if current == char:
            return index
        index += 1
    return -1


def iter_link_bounds(text: str, start: int = 0, end: int | None = None) -> Iterator[tuple[int, int]]:
    """Yield (open, close) pairs where text[open:close + 2] is a `[[...]]` link."""
    if end is None:
        end = len(text)

    pos = start
    while True:
        opener = text.find("[[", pos, end)
        if opener == -1:
            return
        while opener + 2 < end and text[opener + 2] == "[":
            opener += 1

        cursor = opener + 2
        while cursor < end:
            char = text[cursor]
            if char == "\n" or char == "\r":
                pos = cursor + 1
                break
            if char == "]" and text.startswith("]]", cursor, end):
                yield opener, cursor
                pos = cursor + 2
                break
            if char == "[" and text.startswith("[[", cursor, end):
                pos = cursor
                break
            cursor += 1
        else:
            return


def parse_link(text: str, opener: int, closer: int, line: int) -> LinkRef:
    """Build a LinkRef for the link whose brackets sit at opener and closer."""
    inner_start = opener + 2
    inner = text[inner_start:closer]

    label = None
    target_offset = 0
    target = inner
    pipe = _first_unescaped(inner, "|")
    if pipe != -1:
        label = inner[:pipe]
        target = inner[pipe + 1 :]
        target_offset = pipe + 1

    section = None
    hash_index = target.find("#")
    if hash_index != -1:
        section = target[hash_index + 1 :]
        target = target[:hash_index]

    target_start = inner_start + target_offset
    return LinkRef(
        raw_target=target,
        label=label,
        section=section,
        start=opener,
        end=closer + 2,
        target_start=target_start,
        target_end=target_start + len(target),
        line=line,
        problem=link_problem(target),
    )


def extract_links(blocks: BlockMap) -> list[LinkRef]:
    """Return every wikilink in the note's body text, in document order."""
    links = []
    for span in blocks.spans_of(BlockTag.BODY):
        for opener, closer in iter_link_bounds(blocks.text, span.start, span.end):
            links.append(parse_link(blocks.text, opener, closer, blocks.line_of(opener)))
    return links


def replace_link_targets(text: str, edits: list[tuple[LinkRef, str]]) -> str:
    """Replace the target text of the given links.

    Edits are applied from the end of the text backwards so earlier offsets
    stay valid. Labels and sections are left as written.
    """
    for link, new_target in sorted(edits, key=lambda edit: edit[0].target_start, reverse=True):
        text = text[: link.target_start] + new_target + text[link.target_end :]
    return text
