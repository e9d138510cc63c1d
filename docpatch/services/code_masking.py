"""Reversible masking of markdown code spans.

Formatting heuristics must never rewrite code. Every text processor masks
fenced blocks and inline code behind placeholder tokens, rewrites the prose
that is left, and restores the code verbatim before returning.

Tokens look like ``<open>B0<close>`` (fenced block) or ``<open>I1<close>``
(inline span) where ``<open>``/``<close>`` are private-use code points. The
opening sentinel is repeated until it does not occur in the input, so a token
can never collide with text that was already there, and restoring an
untouched masked text always gives back the input exactly.
"""

import re
from dataclasses import dataclass
from typing import Dict

MASK_OPEN = "\ue000"
MASK_CLOSE = "\ue001"

_FENCED_RE = re.compile(r"```[\s\S]*?```")
_INLINE_RE = re.compile(r"`[^`\n]+`")

FENCED_KIND = "B"
INLINE_KIND = "I"


@dataclass(frozen=True)
class CodeMask:
    """Masked text plus the token -> original mapping, in index order."""

    text: str
    masks: Dict[str, str]

    def restore(self, text: str) -> str:
        """Unmask ``text`` (usually a rewritten ``self.text``)."""
        return unmask_code_segments(text, self.masks)

    @staticmethod
    def is_fenced(token: str) -> bool:
        return token.rstrip(MASK_CLOSE).rstrip("0123456789").endswith(FENCED_KIND)


def _open_sentinel(text: str) -> str:
    sentinel = MASK_OPEN
    while sentinel in text:
        sentinel += MASK_OPEN
    return sentinel


def mask_code_segments(text: str) -> CodeMask:
    """Replace fenced blocks, then inline spans, with unique tokens.

    Unterminated delimiters are left in place as plain text.
    """
    if not text or "`" not in text:
        return CodeMask(text=text or "", masks={})

    sentinel = _open_sentinel(text)
    masks: Dict[str, str] = {}

    def _replacer(kind: str):
        def _replace(match: re.Match) -> str:
            token = f"{sentinel}{kind}{len(masks)}{MASK_CLOSE}"
            masks[token] = match.group(0)
            return token
        return _replace

    masked = _FENCED_RE.sub(_replacer(FENCED_KIND), text)
    masked = _INLINE_RE.sub(_replacer(INLINE_KIND), masked)
    return CodeMask(text=masked, masks=masks)


def unmask_code_segments(text: str, masks: Dict[str, str]) -> str:
    """Put the original code back in place of every token.

    Tokens are restored newest first: an inline span may have swallowed an
    earlier fenced token, and restoring it first brings that token back into
    view for its own replacement.
    """
    for token in reversed(list(masks)):
        text = text.replace(token, masks[token])
    return text
