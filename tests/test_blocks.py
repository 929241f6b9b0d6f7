"""Tests for the block scanner (noteexplorer.parser.blocks).

Philosophy: assert on the tag at interesting offsets rather than on exact
span lists, except where the exact boundaries are the point of the test.
"""

from __future__ import annotations

import pytest

from noteexplorer.parser.blocks import BlockMap, BlockTag, Span, iter_lines, scan_blocks

HEADING = "## Links to this note"


def _assert_covers(blocks: BlockMap) -> None:
    """Spans are ordered, gap-free, non-empty and cover the whole text."""
    pos = 0
    for span in blocks.spans:
        assert span.start == pos
        assert span.end > span.start
        pos = span.end
    assert pos == len(blocks.text)


def _tag_of(blocks: BlockMap, needle: str) -> BlockTag:
    return blocks.tag_at(blocks.text.index(needle))


# ─────────────────────────────────────────────────────────────────────────────
# Coverage
# ─────────────────────────────────────────────────────────────────────────────


class TestCoverage:
    """Every scan partitions the text exactly."""

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "plain",
            "a\n\nb\n",
            "---\nid: 1\n---\nBody\n",
            "a\n```\ncode\n```\nb",
            "x <!-- c --> y <!-- d\nstill -->z\n",
            "Para\n\n    code\n\n- item\n    more\n",
            "a\r\n```\r\nx\r\n```\r\nb\rc",
            "Body\n\n## Links to this note\n\n- [[a]]\n",
            "```\nnever closed\n",
            "<!-- never closed\n[[x]]\n",
        ],
    )
    def test_spans_cover_text(self, text):
        """Spans are contiguous and cover [0, len(text))."""
        _assert_covers(scan_blocks(text, HEADING))

    def test_empty_text_has_no_spans(self):
        blocks = scan_blocks("", HEADING)
        assert blocks.spans == ()
        assert blocks.backlinks_offset is None

    def test_adjacent_body_lines_merge(self):
        """Consecutive body lines form a single span."""
        assert scan_blocks("a\n\nb\n").spans == (Span(BlockTag.BODY, 0, 5),)


# ─────────────────────────────────────────────────────────────────────────────
# Frontmatter
# ─────────────────────────────────────────────────────────────────────────────


class TestFrontmatter:
    """Leading --- blocks."""

    def test_terminated_block_is_frontmatter(self):
        blocks = scan_blocks("---\nid: 1\n---\nBody\n")
        assert blocks.spans[0] == Span(BlockTag.FRONTMATTER, 0, 14)
        assert _tag_of(blocks, "Body") is BlockTag.BODY

    def test_dots_close_frontmatter(self):
        blocks = scan_blocks("---\nid: 1\n...\nBody\n")
        assert blocks.spans[0].tag is BlockTag.FRONTMATTER
        assert _tag_of(blocks, "Body") is BlockTag.BODY

    def test_unterminated_block_is_body(self):
        """Without a closing line there is no frontmatter at all."""
        blocks = scan_blocks("---\nid: 1\nBody\n")
        assert [span.tag for span in blocks.spans] == [BlockTag.BODY]

    def test_frontmatter_only_at_file_start(self):
        blocks = scan_blocks("Intro\n---\nid: 1\n---\n")
        assert [span.tag for span in blocks.spans] == [BlockTag.BODY]

    def test_byte_order_mark_before_frontmatter(self):
        blocks = scan_blocks("\ufeff---\nid: 1\n---\nBody")
        assert blocks.spans[0].tag is BlockTag.FRONTMATTER
        assert _tag_of(blocks, "Body") is BlockTag.BODY


# ─────────────────────────────────────────────────────────────────────────────
# Code
# ─────────────────────────────────────────────────────────────────────────────


class TestFencedCode:
    """``` and ~~~ fences."""

    def test_fence_spans_opener_to_closer(self):
        blocks = scan_blocks("a\n```\n[[x]]\n```\nb\n")
        assert [span.tag for span in blocks.spans] == [
            BlockTag.BODY,
            BlockTag.FENCED_CODE,
            BlockTag.BODY,
        ]
        assert blocks.spans[1] == Span(BlockTag.FENCED_CODE, 2, 16)

    def test_info_string_allowed(self):
        blocks = scan_blocks("```python\nx = '[[y]]'\n```\n")
        assert _tag_of(blocks, "[[y]]") is BlockTag.FENCED_CODE

    def test_shorter_fence_does_not_close(self):
        text = "````\ncode\n```\nstill code\n````\nafter\n"
        blocks = scan_blocks(text)
        assert _tag_of(blocks, "still") is BlockTag.FENCED_CODE
        assert _tag_of(blocks, "after") is BlockTag.BODY

    def test_other_fence_character_does_not_close(self):
        blocks = scan_blocks("~~~\n```\ninside\n~~~\nafter\n")
        assert _tag_of(blocks, "inside") is BlockTag.FENCED_CODE
        assert _tag_of(blocks, "after") is BlockTag.BODY

    def test_unterminated_fence_runs_to_end(self):
        blocks = scan_blocks("a\n```\ncode\n\nmore [[x]]\n")
        assert _tag_of(blocks, "[[x]]") is BlockTag.FENCED_CODE
        assert blocks.open_block is BlockTag.FENCED_CODE

    def test_inline_backticks_are_not_a_fence(self):
        blocks = scan_blocks("```code``` here\n[[x]]\n")
        assert _tag_of(blocks, "[[x]]") is BlockTag.BODY
        assert blocks.open_block is None


class TestIndentedCode:
    """Lines indented by four spaces or a tab."""

    def test_indented_line_after_paragraph_break(self):
        blocks = scan_blocks("Para\n\n    [[x]]\n\nAfter\n")
        assert _tag_of(blocks, "[[x]]") is BlockTag.INDENTED_CODE
        assert _tag_of(blocks, "After") is BlockTag.BODY

    def test_tab_indent(self):
        blocks = scan_blocks("\t[[x]]\n")
        assert _tag_of(blocks, "[[x]]") is BlockTag.INDENTED_CODE

    def test_nested_list_item_is_body(self):
        blocks = scan_blocks("- item\n    - nested [[x]]\n")
        assert _tag_of(blocks, "[[x]]") is BlockTag.BODY

    def test_list_continuation_is_body(self):
        blocks = scan_blocks("1. item\n\n    continued [[x]]\n")
        assert _tag_of(blocks, "[[x]]") is BlockTag.BODY

    def test_list_context_ends_at_plain_paragraph(self):
        blocks = scan_blocks("- item\n\nParagraph\n\n    code [[x]]\n")
        assert _tag_of(blocks, "[[x]]") is BlockTag.INDENTED_CODE

    def test_fence_nested_in_list_item(self):
        blocks = scan_blocks("- item\n\n    ```\n    [[x]]\n    ```\n\n    continued [[y]]\n")
        assert _tag_of(blocks, "[[x]]") is BlockTag.FENCED_CODE
        assert _tag_of(blocks, "[[y]]") is BlockTag.BODY
        assert blocks.open_block is None

    def test_unindented_fence_ends_list(self):
        blocks = scan_blocks("- item\n```\ncode\n```\n    [[x]]\n")
        assert _tag_of(blocks, "[[x]]") is BlockTag.INDENTED_CODE


# ─────────────────────────────────────────────────────────────────────────────
# HTML Comments
# ─────────────────────────────────────────────────────────────────────────────


class TestHtmlComments:
    """<!-- ... --> anywhere in body text."""

    def test_inline_comment(self):
        text = "a <!-- [[x]] --> b [[y]]\n"
        blocks = scan_blocks(text)
        assert blocks.spans == (
            Span(BlockTag.BODY, 0, 2),
            Span(BlockTag.HTML_COMMENT, 2, 16),
            Span(BlockTag.BODY, 16, len(text)),
        )

    def test_multi_line_comment(self):
        blocks = scan_blocks("a\n<!--\n[[x]]\n-->\nb\n")
        assert _tag_of(blocks, "[[x]]") is BlockTag.HTML_COMMENT
        assert _tag_of(blocks, "b\n") is BlockTag.BODY

    def test_text_after_comment_on_closing_line(self):
        blocks = scan_blocks("<!-- one\ntwo --> [[y]] <!-- three --> [[z]]\n")
        assert _tag_of(blocks, "two") is BlockTag.HTML_COMMENT
        assert _tag_of(blocks, "[[y]]") is BlockTag.BODY
        assert _tag_of(blocks, "three") is BlockTag.HTML_COMMENT
        assert _tag_of(blocks, "[[z]]") is BlockTag.BODY

    def test_unterminated_comment_runs_to_end(self):
        blocks = scan_blocks("a <!-- open\n[[x]]\n")
        assert _tag_of(blocks, "[[x]]") is BlockTag.HTML_COMMENT
        assert blocks.open_block is BlockTag.HTML_COMMENT

    def test_comment_marker_inside_fence_is_ignored(self):
        blocks = scan_blocks("```\n<!--\n```\n[[x]]\n")
        assert _tag_of(blocks, "[[x]]") is BlockTag.BODY

    def test_fence_marker_inside_comment_is_ignored(self):
        blocks = scan_blocks("<!--\n```\n-->\n[[x]]\n")
        assert _tag_of(blocks, "[[x]]") is BlockTag.BODY


# ─────────────────────────────────────────────────────────────────────────────
# Backlinks Section
# ─────────────────────────────────────────────────────────────────────────────


class TestBacklinksSection:
    """The generated section runs from its heading to end of file."""

    def test_heading_starts_section(self):
        text = "Body\n\n## Links to this note\n\n- [[a]]\n"
        blocks = scan_blocks(text, HEADING)
        assert blocks.backlinks_offset == 6
        assert blocks.spans[-1] == Span(BlockTag.BACKLINKS_SECTION, 6, len(text))
        assert blocks.body_end == 6

    def test_heading_match_ignores_case_and_trailing_space(self):
        blocks = scan_blocks("Body\n## links TO this NOTE  \n- [[a]]\n", HEADING)
        assert blocks.backlinks_offset == 5

    def test_everything_after_heading_is_section(self):
        """Fences and comments after the heading do not end the section."""
        blocks = scan_blocks("## Links to this note\n```\n<!--\n", HEADING)
        assert [span.tag for span in blocks.spans] == [BlockTag.BACKLINKS_SECTION]
        assert blocks.open_block is None

    def test_heading_inside_fence_is_ignored(self):
        blocks = scan_blocks("```\n## Links to this note\n```\n", HEADING)
        assert blocks.backlinks_offset is None

    def test_heading_inside_comment_is_ignored(self):
        blocks = scan_blocks("<!--\n## Links to this note\n-->\n", HEADING)
        assert blocks.backlinks_offset is None

    def test_no_heading_configured(self):
        blocks = scan_blocks("## Links to this note\n")
        assert blocks.backlinks_offset is None
        assert blocks.body_end == len(blocks.text)


# ─────────────────────────────────────────────────────────────────────────────
# Lines and Segments
# ─────────────────────────────────────────────────────────────────────────────


class TestLines:
    """Line splitting, line numbers and per-line segments."""

    def test_all_line_break_styles(self):
        lines = list(iter_lines("a\nb\r\nc\rd"))
        assert [(line.start, line.end, line.next) for line in lines] == [
            (0, 1, 2),
            (2, 3, 5),
            (5, 6, 7),
            (7, 8, 8),
        ]

    def test_crlf_fence(self):
        blocks = scan_blocks("a\r\n```\r\n[[x]]\r\n```\r\nb")
        assert _tag_of(blocks, "[[x]]") is BlockTag.FENCED_CODE
        assert _tag_of(blocks, "b") is BlockTag.BODY

    def test_line_of(self):
        blocks = scan_blocks("a\nb\r\nc\rd")
        assert blocks.line_of(0) == 1
        assert blocks.line_of(blocks.text.index("c")) == 3
        assert blocks.line_of(blocks.text.index("d")) == 4

    def test_segments_split_lines(self):
        blocks = scan_blocks("ab\ncd")
        segments = list(blocks.segments(BlockTag.BODY))
        assert [segment.text for segment in segments] == ["ab", "cd"]
        assert all(segment.at_line_start for segment in segments)

    def test_segment_after_comment_is_not_at_line_start(self):
        blocks = scan_blocks("x <!-- c --> y")
        segments = list(blocks.segments(BlockTag.BODY))
        assert [(segment.text, segment.at_line_start) for segment in segments] == [
            ("x ", True),
            (" y", False),
        ]

    def test_segments_skip_byte_order_mark(self):
        blocks = scan_blocks("\ufeff# Title\n")
        first = next(blocks.segments(BlockTag.BODY))
        assert first.text == "# Title"
        assert first.at_line_start
