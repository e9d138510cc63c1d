"""List formatting post-processor.

Models often emit list items glued to whatever precedes them
(``migration)2. Finding``, ``nodes.- Data``, ``account* Access``). Each rule
needs a list marker directly adjacent to prior content on the same line, so
a list that is already separated is left alone.

This is a structure problem rather than a markdown one, so it runs on every
target except HTML files.
"""

import logging
import re
from typing import List, Tuple

from ..code_masking import MASK_CLOSE, mask_code_segments
from .base import ProcessingContext, ProcessResult, never_raises

logger = logging.getLogger(__name__)

# "N. Item" start, optionally bold: "2. Check", "2. **Check"
_NUMBERED_ITEM = r"\d+\.[ \t]*\*{0,2}[ \t]*[A-Z]"

NUMBERED_LIST_RULES: List[Tuple[re.Pattern, str]] = [
    # migration)2. Finding
    (re.compile(rf"(\))({_NUMBERED_ITEM})"), r"\1\n\n\2"),
    # directory.2. Check (not "1.2. Then")
    (re.compile(rf"((?<!\d)[.!?])({_NUMBERED_ITEM})"), r"\1\n\n\2"),
    # Sync5. Download
    (re.compile(r"([a-z])(\d+\.[ \t]+[A-Z])"), r"\1\n\n\2"),
    # **Step one**2. Next
    (re.compile(r"(?<=[^\s*])(\*{2,3})(\d+\.[ \t]+[A-Z])"), r"\1\n\n\2"),
    # Solution:1. First (not "10:30. Then")
    (re.compile(rf"((?<!\d):)({_NUMBERED_ITEM})"), r"\1\n\n\2"),
    # **Steps:**1. First
    (re.compile(rf"(\*{{2,3}}[^*\n]+:\*{{2,3}})(\d+\.)(?=[ \t]*\*{{0,2}}[ \t]*[A-Z])"), r"\1\n\n\2"),
    # **Steps**:1. First
    (re.compile(rf"(\*{{2,3}}[^*\n]+\*{{2,3}}):(\d+\.)(?=[ \t]*\*{{0,2}}[ \t]*[A-Z])"), r"\1:\n\n\2"),
]

DASH_BULLET_RULES: List[Tuple[re.Pattern, str]] = [
    # Phase)- During / nodes.- Data / options:- First / properly- Missing
    (re.compile(r"([a-z).!?:])(-[ \t]+[A-Z])"), r"\1\n\n\2"),
]

_COLON_ASTERISK_RE = re.compile(r"(:)[ \t]*(\*[ \t]+)")
_WORD_ASTERISK_RE = re.compile(r"([a-z])(\*[ \t]+[A-Z])")
_CODE_OR_QUOTE_ASTERISK_RE = re.compile(rf"([{MASK_CLOSE}'\"])(\*[ \t]+)(?=\S)")
_SENTENCE_ASTERISK_RE = re.compile(r"((?<!\d)[.!?])[ \t]+(\*[ \t]+\*{0,2}[A-Z])")
_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")


def _closes_emphasis(text: str, marker_index: int) -> bool:
    """True when an odd number of ``*`` precede the marker on its line."""
    line_start = text.rfind("\n", 0, marker_index) + 1
    return text.count("*", line_start, marker_index) % 2 == 1


def _split_bullet(match: re.Match) -> str:
    if _closes_emphasis(match.string, match.start(2)):
        return match.group(0)
    return f"{match.group(1)}\n\n{match.group(2)}"


def format_lists(text: str) -> str:
    """Put glued numbered and bulleted list items on their own paragraph."""
    if not text:
        return ""

    mask = mask_code_segments(text)
    result = mask.text

    for pattern, replacement in NUMBERED_LIST_RULES + DASH_BULLET_RULES:
        result = pattern.sub(replacement, result)

    result = _COLON_ASTERISK_RE.sub(r"\1\n\n\2", result)
    result = _WORD_ASTERISK_RE.sub(_split_bullet, result)
    result = _CODE_OR_QUOTE_ASTERISK_RE.sub(_split_bullet, result)
    result = _SENTENCE_ASTERISK_RE.sub(r"\1\n\n\2", result)

    result = _EXCESS_NEWLINES_RE.sub("\n\n", result)
    return mask.restore(result)


class ListFormattingProcessor:
    """Splits list items that run together."""

    name = "list-formatting"
    description = "Fixes numbered and bulleted list items that run together"

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    def should_process(self, context: ProcessingContext) -> bool:
        return not context.is_html

    @never_raises
    def process(self, text: str, context: ProcessingContext) -> ProcessResult:
        if not text:
            return ProcessResult(text="")

        result = format_lists(text)
        was_modified = result != text
        if was_modified:
            logger.debug("[PostProcess] Split glued list items for %s", context.target_file_path)
        return ProcessResult(text=result, was_modified=was_modified)
