"""Block scanner: tags every part of a note by its markdown context.

The scanner walks a note line by line and produces an ordered, gap-free list
of spans. Every extractor downstream only looks at the spans it cares about,
so a [[link]] inside a code fence, an HTML comment or the generated backlinks
section is never mistaken for a real link.

Boundaries (fence markers, comment markers, the backlinks heading) are only
honored in BODY context. Once the backlinks heading is seen, the rest of the
file is BACKLINKS_SECTION, whatever it contains.
"""

from __future__ import annotations

import re
from bisect import bisect_right
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, NamedTuple

BOM = "\ufeff"


class BlockTag(str, Enum):
    """Structural context of a span of note text."""

    FRONTMATTER = "frontmatter"
    FENCED_CODE = "fenced_code"
    INDENTED_CODE = "indented_code"
    HTML_COMMENT = "html_comment"
    BACKLINKS_SECTION = "backlinks_section"
    BODY = "body"


class Span(NamedTuple):
    """Half-open range [start, end) of the note text with one tag."""

    tag: BlockTag
    start: int
    end: int


class Segment(NamedTuple):
    """The part of one line that lies inside a span, line break excluded."""

    start: int
    end: int
    text: str
    at_line_start: bool


class Line(NamedTuple):
    start: int
    end: int  # End of content, line break excluded
    next: int  # Start of the following line


_LINE_RE = re.compile(r"[^\r\n]*(?:\r\n|\r|\n)|[^\r\n]+")
_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")

# Fences may be indented by up to three spaces, or any amount inside a list item
_FENCE_OPEN_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})")
_FENCE_CLOSE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})[ \t]*$")
_NESTED_FENCE_OPEN_RE = re.compile(r"^[ \t]*(`{3,}|~{3,})")
_NESTED_FENCE_CLOSE_RE = re.compile(r"^[ \t]*(`{3,}|~{3,})[ \t]*$")

_INDENTED_RE = re.compile(r"^(?: {4}|\t)")
_LIST_ITEM_RE = re.compile(r"^[ \t]*(?:[-+*]|\d{1,9}[.)])(?:[ \t]|$)")

COMMENT_OPEN = "<!--"
COMMENT_CLOSE = "-->"


def iter_lines(text: str) -> Iterator[Line]:
    """Yield every line of text; `\\n`, `\\r\\n` and lone `\\r` all end a line."""
    for match in _LINE_RE.finditer(text):
        raw = match.group()
        yield Line(match.start(), match.start() + len(raw.rstrip("\r\n")), match.end())


@dataclass(frozen=True)
class BlockMap:
    """Result of scanning one note."""

    text: str
    spans: tuple[Span, ...]
    backlinks_offset: int | None
    """Offset of the backlinks heading line, or None if the note has none."""

    open_block: BlockTag | None
    """Tag of a fence or comment still open at end of file, if any."""

    line_starts: tuple[int, ...]

    @property
    def body_end(self) -> int:
        """Offset where the note's own content ends."""
        return self.backlinks_offset if self.backlinks_offset is not None else len(self.text)

    def spans_of(self, *tags: BlockTag) -> Iterator[Span]:
        for span in self.spans:
            if span.tag in tags:
                yield span

    def segments(self, *tags: BlockTag) -> Iterator[Segment]:
        """Split the spans with the given tags into per-line segments."""
        text = self.text
        for span in self.spans_of(*tags):
            pos = span.start
            if pos == 0 and text.startswith(BOM):
                pos = 1
            for match in _LINE_BREAK_RE.finditer(text, pos, span.end):
                yield Segment(pos, match.start(), text[pos : match.start()], self._is_line_start(pos))
                pos = match.end()
            if pos < span.end:
                yield Segment(pos, span.end, text[pos : span.end], self._is_line_start(pos))

    def tag_at(self, offset: int) -> BlockTag:
        """Tag of the span containing offset."""
        starts = [span.start for span in self.spans]
        index = bisect_right(starts, offset) - 1
        if index < 0 or offset >= len(self.text):
            raise IndexError(f"offset {offset} outside text")
        return self.spans[index].tag

    def line_of(self, offset: int) -> int:
        """1-based line number of offset."""
        return bisect_right(self.line_starts, offset)

    def _is_line_start(self, pos: int) -> bool:
        if pos == 0:
            return True
        if pos == 1 and self.text[0] == BOM:
            return True
        return self.text[pos - 1] in "\r\n"


class _SpanBuilder:
    """Collects spans, merging neighbours with the same tag."""

    def __init__(self) -> None:
        self.spans: list[Span] = []

    def add(self, tag: BlockTag, start: int, end: int) -> None:
        if end <= start:
            return
        if self.spans and self.spans[-1].tag == tag and self.spans[-1].end == start:
            self.spans[-1] = Span(tag, self.spans[-1].start, end)
        else:
            self.spans.append(Span(tag, start, end))


def _frontmatter_close(text: str, lines: list[Line]) -> int | None:
    """Index of the line closing a leading frontmatter block, if there is one."""
    if not lines:
        return None

    first = text[lines[0].start : lines[0].end]
    if first.startswith(BOM):
        first = first[1:]
    if first != "---":
        return None

    for index in range(1, len(lines)):
        if text[lines[index].start : lines[index].end] in ("---", "..."):
            return index
    return None


def _fence_opener(content: str, nested: bool = False) -> str | None:
    match = (_NESTED_FENCE_OPEN_RE if nested else _FENCE_OPEN_RE).match(content)
    if not match:
        return None
    fence = match.group(1)
    # A backtick fence's info string cannot contain backticks (that's inline code)
    if fence[0] == "`" and "`" in content[match.end() :]:
        return None
    return fence


def _fence_close(text: str, lines: list[Line], first: int, fence: str, nested: bool = False) -> int | None:
    close_re = _NESTED_FENCE_CLOSE_RE if nested else _FENCE_CLOSE_RE
    for index in range(first, len(lines)):
        line = lines[index]
        match = close_re.match(text[line.start : line.end])
        if match:
            closer = match.group(1)
            if closer[0] == fence[0] and len(closer) >= len(fence):
                return index
    return None


def scan_blocks(text: str, backlinks_heading: str | None = None) -> BlockMap:
    """Tag the whole text by markdown context.

    Args:
        text: Full note text, possibly starting with a byte-order mark.
        backlinks_heading: Heading line that starts the generated backlinks
            section (matched case-insensitively, trailing whitespace ignored).
            None disables backlinks detection.

    Returns:
        BlockMap whose spans are ordered, non-overlapping and cover the text
        exactly.
    """
    lines = list(iter_lines(text))
    builder = _SpanBuilder()
    heading_key = backlinks_heading.rstrip().casefold() if backlinks_heading else None

    backlinks_offset: int | None = None
    open_block: BlockTag | None = None

    index = 0
    close = _frontmatter_close(text, lines)
    if close is not None:
        builder.add(BlockTag.FRONTMATTER, 0, lines[close].next)
        index = close + 1

    in_list = False
    # Offset inside lines[index] where body text continues after a comment closed
    resume: int | None = None

    while index < len(lines):
        line = lines[index]

        if resume is None:
            content = text[line.start : line.end]

            if heading_key is not None and content.rstrip().casefold() == heading_key:
                backlinks_offset = line.start
                builder.add(BlockTag.BACKLINKS_SECTION, line.start, len(text))
                break

            fence = _fence_opener(content, nested=in_list)
            if fence is not None:
                closing = _fence_close(text, lines, index + 1, fence, nested=in_list)
                if closing is None:
                    builder.add(BlockTag.FENCED_CODE, line.start, len(text))
                    open_block = BlockTag.FENCED_CODE
                    break
                builder.add(BlockTag.FENCED_CODE, line.start, lines[closing].next)
                index = closing + 1
                # An unindented fence ends the list
                in_list = in_list and content[:1] in " \t"
                continue

            if not content.strip():
                builder.add(BlockTag.BODY, line.start, line.next)
                index += 1
                continue

            is_list_item = _LIST_ITEM_RE.match(content) is not None
            is_indented = _INDENTED_RE.match(content) is not None
            if is_indented and not is_list_item and not in_list:
                builder.add(BlockTag.INDENTED_CODE, line.start, line.next)
                index += 1
                continue

            if is_list_item:
                in_list = True
            elif not is_indented:
                in_list = False

            pos = line.start
        else:
            pos = resume
            resume = None

        opener = text.find(COMMENT_OPEN, pos, line.end)
        if opener == -1:
            builder.add(BlockTag.BODY, pos, line.next)
            index += 1
            continue

        builder.add(BlockTag.BODY, pos, opener)
        closer = text.find(COMMENT_CLOSE, opener + len(COMMENT_OPEN))
        if closer == -1:
            builder.add(BlockTag.HTML_COMMENT, opener, len(text))
            open_block = BlockTag.HTML_COMMENT
            break

        stop = closer + len(COMMENT_CLOSE)
        builder.add(BlockTag.HTML_COMMENT, opener, stop)
        while index < len(lines) and lines[index].next <= stop:
            index += 1
        resume = stop

    return BlockMap(
        text=text,
        spans=tuple(builder.spans),
        backlinks_offset=backlinks_offset,
        open_block=open_block,
        line_starts=tuple(line.start for line in lines) or (0,),
    )
