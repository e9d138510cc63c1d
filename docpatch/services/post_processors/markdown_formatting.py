"""Markdown formatting post-processor.

Repairs the boundary damage language models leave in markdown prose:
headings, bold titles and labels glued to the following sentence, sentences
run together after a period, links glued to the next word, and serialization
leftovers. Every rule is a narrow regex on code-masked text.

Whether a capitalized word starts a new sentence is decided by explicit
allowlists rather than grammar, so legitimate CamelCase identifiers
("JavaScript", "RocksDB", "TestNet") are never split.
"""

import logging
import re
from typing import FrozenSet, Iterable, Optional

from ..code_masking import MASK_OPEN, mask_code_segments
from .base import ProcessingContext, ProcessResult, never_raises

logger = logging.getLogger(__name__)

# Nouns that open a labelled block after a bold title, but also end
# identifiers ("TypeError", "StdOutput"), so headings never split on them.
DOCUMENTATION_LABELS: FrozenSet[str] = frozenset({
    "cause", "solution", "warning", "important", "example", "error", "issue",
    "problem", "fix", "resolution", "answer", "question", "tip", "info",
    "details", "summary", "overview", "background", "context", "result",
    "output", "input", "step", "steps", "action", "description", "reason",
    "explanation", "requirement", "requirements",
})

SENTENCE_STARTERS: FrozenSet[str] = frozenset({
    # Articles and determiners
    "the", "a", "an", "this", "that", "these", "those", "some", "any", "all",
    "each", "every", "no",
    # Pronouns
    "it", "its", "we", "you", "they", "he", "she", "i", "my", "your", "our",
    "their",
    # Verbs
    "is", "are", "was", "were", "be", "been", "being", "has", "have", "had",
    "do", "does", "did", "will", "would", "should", "could", "can", "may",
    "might", "must", "use", "run", "check", "try", "make", "see", "note",
    "ensure", "verify", "confirm", "add", "remove", "create", "delete",
    "update", "set", "get", "start", "stop", "open", "close", "install",
    "configure", "enable", "disable",
    # Prepositions
    "for", "from", "to", "in", "on", "at", "by", "with", "about", "into",
    "onto", "upon", "during", "after", "before",
    # Conjunctions and transitions
    "if", "when", "while", "unless", "although", "though", "once", "since",
    "because", "but", "and", "or", "so", "yet", "nor", "however", "therefore",
    "thus", "hence", "also", "additionally", "furthermore", "moreover",
    "otherwise", "then", "next", "first", "second", "third", "finally",
    "lastly", "now", "here", "there",
    # Adverbs
    "just", "only", "even", "still", "already", "always", "never", "often",
    "sometimes",
}) | DOCUMENTATION_LABELS

# Smaller list for ".Word" run-ons, where a false positive breaks an identifier.
SENTENCE_BOUNDARY_STARTERS: FrozenSet[str] = frozenset({
    "the", "this", "that", "if", "when", "while", "for", "to", "in", "on",
    "at", "as", "we", "you", "it", "they", "there", "however", "therefore",
    "also", "but", "or", "and", "please", "note", "ensure", "see", "refer",
    "check", "use", "after", "before",
})

SECTION_TITLES = (
    "Troubleshooting", "Overview", "Prerequisites", "Installation",
    "Configuration", "Usage", "Examples?", "Summary", "Conclusion",
    "Introduction", "Background", "Requirements", "Setup", "Notes?", "Tips?",
    "Warnings?", "Errors?", "Solutions?", "Steps", "Instructions",
)

_LABELS = r"(?:Cause|Solution|Note|Warning|Important|Example)"
# Not followed by inline code or a masked code token.
_NOT_CODE = rf"(?!`|{MASK_OPEN})"

_LITERAL_NEWLINE_RE = re.compile(r"(?<!\\)\\n")
_ORPHAN_BOLD_RE = re.compile(r"(^|[ \t])\*\*[ \t]*\n+[ \t]*([^*\n]+?)\*\*", re.MULTILINE)
_BROKEN_CODE_WORD_RE = re.compile(r"`([A-Za-z]+)\n+([A-Za-z]+)`")
_COMPOUND_WORDS = [
    (re.compile(r"\bMac[ \t]*\n[ \t]*OS\b"), "MacOS"),
    (re.compile(r"\bJava[ \t]*\n[ \t]*Script\b"), "JavaScript"),
    (re.compile(r"\bGit[ \t]*\n[ \t]*Hub\b"), "GitHub"),
    (re.compile(r"\bType[ \t]*\n[ \t]*Script\b"), "TypeScript"),
]
# Opening marker only: the same line must close it right after a non-space.
_BOLD_OPEN_SPACE_RE = re.compile(
    r"(^|[\s(])(\*{2,3})[ \t]+(?=[^\s*](?:[^*\n]*[^\s*])?\2(?!\*))",
    re.MULTILINE,
)
_HEADING_LINE_RE = re.compile(r"^#{1,6}[ \t]")
_CAMEL_BOUNDARY_RE = re.compile(r"([a-z])([A-Z][a-z]+)\b")
_PROSE_FOLLOWS_RE = re.compile(r"[ \t]+\S")
_BOLD_TITLE_GLUED_RE = re.compile(r"(\*{2,3}[^\s*\d][^*\n]*?\*{2,3})([A-Z][a-z]+)")
_BOLD_COLON_GLUED_RE = re.compile(r"(\*{2,3}[^\s*\d][^*\n]*?:\*{2,3})([A-Z])")
_ADMONITION_GLUED_RE = re.compile(r"(:::[A-Za-z]+[^:\n]*:::)([A-Z][a-z]+)")
_SECTION_TITLE_GLUED_RE = re.compile(rf"\b({'|'.join(SECTION_TITLES)})([A-Z][a-z]+)")
_LEADING_LABEL_RE = re.compile(rf"^({_LABELS}):[ \t]+{_NOT_CODE}(\S)")
_LEADING_LABEL_NO_SPACE_RE = re.compile(rf"^({_LABELS}):([A-Z])", re.MULTILINE)
_SENTENCE_LABEL_RE = re.compile(
    rf"(?<![\d\s])([.!?])[ \t]*({_LABELS}(?:[ \t]*\d+)?):[ \t]*{_NOT_CODE}(\S)"
)
_COLON_LABEL_RE = re.compile(rf"(:)({_LABELS}(?:[ \t]*\d+)?):[ \t]*{_NOT_CODE}(\S)")
_SENTENCE_RUN_ON_RE = re.compile(r"([a-z])\.([A-Z][a-z]+)\b")
_LINK_GLUED_RE = re.compile(r"(\]\([^)\s]+\))(?=[A-Za-z0-9(\"'“‘])")
_PERIOD_BOLD_RE = re.compile(r"([a-z])\.(\*{2,3}[A-Z])")
_DOUBLED_QUOTES_RE = re.compile(r'""(\w[^"\n]*?)""')
_TRAILING_RULE_RE = re.compile(r"(\n*)[ \t]*={4,}[ \t]*\n*\Z")
_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")


def is_sentence_starter(word: str, starters: Iterable[str] = SENTENCE_STARTERS) -> bool:
    return word.lower() in starters


def is_sentence_boundary_starter(word: str, starters: Iterable[str] = SENTENCE_BOUNDARY_STARTERS) -> bool:
    return word.lower() in starters


def _split_glued_heading(line: str, starters: FrozenSet[str]) -> str:
    """``## ConsiderationsThe text`` -> heading, blank line, prose.

    The starter word must be followed by more words on the line, so a
    heading ending in an identifier (``## Handling TypeError``) is kept.
    """
    if not _HEADING_LINE_RE.match(line):
        return line
    heading_starters = starters - DOCUMENTATION_LABELS
    for match in _CAMEL_BOUNDARY_RE.finditer(line):
        if match.group(2).lower() in heading_starters and _PROSE_FOLLOWS_RE.match(line, match.end(2)):
            cut = match.start(2)
            return f"{line[:cut]}\n\n{line[cut:]}"
    return line


def _split_if_starter(starters: FrozenSet[str]):
    def _replace(match: re.Match) -> str:
        if match.group(2).lower() in starters:
            return f"{match.group(1)}\n\n{match.group(2)}"
        return match.group(0)
    return _replace


def _strip_trailing_rule(text: str) -> str:
    """Drop ``====`` garbage at the very end, keeping a setext underline."""
    while True:
        match = _TRAILING_RULE_RE.search(text)
        if match is None:
            return text
        head = text[:match.start()]
        last_line = head.rsplit("\n", 1)[-1]
        if match.group(1) == "\n" and last_line.strip():
            return text
        text = head


def format_markdown(
    text: str,
    sentence_starters: FrozenSet[str] = SENTENCE_STARTERS,
    boundary_starters: FrozenSet[str] = SENTENCE_BOUNDARY_STARTERS,
) -> str:
    """Apply every markdown boundary repair; code is never rewritten."""
    if not text:
        return ""

    mask = mask_code_segments(text)
    result = mask.text

    result = _LITERAL_NEWLINE_RE.sub("\n", result)

    result = _ORPHAN_BOLD_RE.sub(r"\1**\2**", result)
    result = _BROKEN_CODE_WORD_RE.sub(r"`\1\2`", result)
    for pattern, word in _COMPOUND_WORDS:
        result = pattern.sub(word, result)
    result = _BOLD_OPEN_SPACE_RE.sub(r"\1\2", result)

    result = "\n".join(_split_glued_heading(line, sentence_starters) for line in result.split("\n"))

    split_on_starter = _split_if_starter(sentence_starters)
    result = _BOLD_TITLE_GLUED_RE.sub(split_on_starter, result)
    result = _BOLD_COLON_GLUED_RE.sub(r"\1\n\n\2", result)
    result = _ADMONITION_GLUED_RE.sub(split_on_starter, result)
    result = _SECTION_TITLE_GLUED_RE.sub(split_on_starter, result)

    result = _LEADING_LABEL_RE.sub(r"\1:\n\n\2", result)
    result = _LEADING_LABEL_NO_SPACE_RE.sub(r"\1:\n\n\2", result)
    result = _SENTENCE_LABEL_RE.sub(r"\1\n\n\2:\n\n\3", result)
    result = _COLON_LABEL_RE.sub(r"\1\n\n\2:\n\n\3", result)

    result = _SENTENCE_RUN_ON_RE.sub(
        lambda m: f"{m.group(1)}. {m.group(2)}" if m.group(2).lower() in boundary_starters else m.group(0),
        result,
    )
    result = _LINK_GLUED_RE.sub(r"\1 ", result)
    result = _PERIOD_BOLD_RE.sub(r"\1. \2", result)
    result = _DOUBLED_QUOTES_RE.sub(r'"\1"', result)

    result = _strip_trailing_rule(result)
    result = "\n".join(line.rstrip() for line in result.split("\n"))
    result = _EXCESS_NEWLINES_RE.sub("\n\n", result)

    return mask.restore(result)


class MarkdownFormattingProcessor:
    """Fixes headers, labels and sentence boundaries in markdown proposals."""

    name = "markdown-formatting"
    description = "Fixes markdown-specific formatting issues like headers and admonitions"

    def __init__(
        self,
        enabled: bool = True,
        sentence_starters: Optional[Iterable[str]] = None,
        boundary_starters: Optional[Iterable[str]] = None,
    ):
        self.enabled = enabled
        self.sentence_starters = (
            SENTENCE_STARTERS if sentence_starters is None
            else frozenset(word.lower() for word in sentence_starters)
        )
        self.boundary_starters = (
            SENTENCE_BOUNDARY_STARTERS if boundary_starters is None
            else frozenset(word.lower() for word in boundary_starters)
        )

    def should_process(self, context: ProcessingContext) -> bool:
        return context.is_markdown

    @never_raises
    def process(self, text: str, context: ProcessingContext) -> ProcessResult:
        if not text:
            return ProcessResult(text="")

        result = format_markdown(text, self.sentence_starters, self.boundary_starters)
        was_modified = result != text
        if was_modified:
            logger.debug("[PostProcess] Repaired markdown formatting for %s", context.target_file_path)
        return ProcessResult(text=result, was_modified=was_modified)
