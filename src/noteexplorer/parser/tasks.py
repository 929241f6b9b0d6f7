"""Open task extraction."""

from __future__ import annotations

import re

from ..models import TaskRef
from .blocks import BlockMap, BlockTag

# "- [ ] Buy milk", also with + or * bullets and indented
_TASK_RE = re.compile(r"^[ \t]*[-+*][ \t]+\[ \][ \t]+(.+?)[ \t]*$")

# A task crossed out with ~~...~~ is done, not open
_STRUCK_RE = re.compile(r"^~~.*~~$")


def extract_tasks(blocks: BlockMap) -> list[TaskRef]:
    """Return the open checklist items in body text, in document order."""
    tasks = []
    for segment in blocks.segments(BlockTag.BODY):
        if not segment.at_line_start:
            continue
        match = _TASK_RE.match(segment.text)
        if not match:
            continue
        text = match.group(1)
        if _STRUCK_RE.match(text):
            continue
        tasks.append(TaskRef(text=text, line=blocks.line_of(segment.start), offset=segment.start))
    return tasks
