"""HTML to Markdown post-processor.

Language models regularly answer in HTML even when the target is a markdown
page. This processor rewrites the common tags into markdown and reports the
constructs it cannot convert mechanically (tables, forms, scripts...) as
warnings for the reviewer.

Conversion order matters:

1. Existing markdown code is masked, ``<pre>`` blocks become fences and are
   masked too, so nothing inside code is ever rewritten.
2. Inline rules run until stable, letting nested emphasis compose
   (``<strong><em>x</em></strong>`` -> ``***x***``).
3. Block rules, wrapper removal, then blockquotes innermost first
   (classed blockquotes become ``:::type`` admonitions).
4. Blank-line cleanup. HTML entities are never decoded.
"""

import logging
import re
from typing import Callable, List, Tuple, Union

from ..code_masking import mask_code_segments
from .base import ProcessingContext, ProcessResult, never_raises

logger = logging.getLogger(__name__)

_Replacement = Union[str, Callable[[re.Match], str]]

HTML_TAG_RE = re.compile(r"</?[a-z][a-z0-9]*(?:\s[^>]*)?/?>", re.IGNORECASE)

# Blockquote class -> admonition type. Classes not listed here fall back to a
# plain "> " quote.
ADMONITION_CLASS_MAP = {
    "info": "info",
    "note": "note",
    "tip": "tip",
    "warning": "warning",
    "caution": "caution",
    "danger": "danger",
    "important": "warning",
    "success": "tip",
}

COMPLEX_HTML_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"<table[\s\S]*?</table>", re.IGNORECASE),
     "Contains HTML table - manual conversion to markdown table may be needed"),
    (re.compile(r"<svg[\s\S]*?</svg>", re.IGNORECASE),
     "Contains SVG element - needs manual review"),
    (re.compile(r"<iframe[\s\S]*?</iframe>", re.IGNORECASE),
     "Contains iframe - needs manual review"),
    (re.compile(r"<script[\s\S]*?</script>", re.IGNORECASE),
     "Contains script tag - should be removed or converted"),
    (re.compile(r"<style[\s\S]*?</style>", re.IGNORECASE),
     "Contains style tag - should be removed"),
    (re.compile(r"""style=["'][^"']+["']""", re.IGNORECASE),
     "Contains inline styles - may need cleanup"),
    (re.compile(r"<form[\s\S]*?</form>", re.IGNORECASE),
     "Contains form element - needs manual review"),
    (re.compile(r"<input[\s\S]*?>", re.IGNORECASE),
     "Contains input element - needs manual review"),
    (re.compile(r"<button[\s\S]*?</button>", re.IGNORECASE),
     "Contains button element - needs manual review"),
    (re.compile(r"<sub[^>]*>.*?</sub>", re.IGNORECASE),
     "Contains subscript - no markdown equivalent"),
    (re.compile(r"<sup[^>]*>.*?</sup>", re.IGNORECASE),
     "Contains superscript - no markdown equivalent"),
]


def _paired(tag: str) -> re.Pattern:
    """``<tag ...>content</tag>``, without matching longer tag names."""
    return re.compile(rf"<{tag}(?:\s[^>]*)?>([\s\S]*?)</{tag}\s*>", re.IGNORECASE)


def _wrapper(tag: str) -> re.Pattern:
    """Opening or closing ``tag`` on its own, for unwrapping."""
    return re.compile(rf"</?{tag}(?:\s[^>]*)?/?>", re.IGNORECASE)


def _emphasis(marker: str) -> Callable[[re.Match], str]:
    """Wrap content in ``marker``, keeping edge whitespace outside it."""
    def _replace(match: re.Match) -> str:
        content = match.group(1)
        core = content.strip()
        if not core:
            return content
        lead = content[: len(content) - len(content.lstrip())]
        trail = content[len(content.rstrip()):]
        return f"{lead}{marker}{core}{marker}{trail}"
    return _replace


def _link(match: re.Match) -> str:
    return f"[{match.group(2)}]({match.group(1)})"


INLINE_HTML_RULES: List[Tuple[re.Pattern, _Replacement]] = [
    (_paired("strong"), _emphasis("**")),
    (_paired("b"), _emphasis("**")),
    (_paired("em"), _emphasis("*")),
    (_paired("i"), _emphasis("*")),
    (_paired("code"), r"`\1`"),
    (re.compile(r"""<a\s[^>]*?\bhref\s*=\s*["']([^"']*)["'][^>]*>([\s\S]*?)</a\s*>""", re.IGNORECASE), _link),
    (_paired("a"), r"\1"),
    (_paired("del"), _emphasis("~~")),
    (_paired("s"), _emphasis("~~")),
]

_PRE_CODE_RE = re.compile(
    r"<pre(?:\s[^>]*)?>\s*<code((?:\s[^>]*)?)>([\s\S]*?)</code\s*>\s*</pre\s*>",
    re.IGNORECASE,
)
_PRE_RE = re.compile(r"<pre(?:\s[^>]*)?>([\s\S]*?)</pre\s*>", re.IGNORECASE)
_CODE_LANG_RE = re.compile(r"""class\s*=\s*["'][^"']*?\b(?:language|lang)-([\w+-]+)""", re.IGNORECASE)

_BR_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_HEADING_RE = re.compile(r"<h([1-6])(?:\s[^>]*)?>([\s\S]*?)</h\1\s*>", re.IGNORECASE)
_IMG_RE = re.compile(r"<img(?:\s[^>]*)?/?>", re.IGNORECASE)
_ATTR_RE = re.compile(r"""([\w-]+)\s*=\s*(?:"([^"]*)"|'([^']*)')""")
_PARAGRAPH_RE = _paired("p")
_HR_RE = re.compile(r"<hr(?:\s[^>]*)?/?>", re.IGNORECASE)
# A list with no list nested inside it.
_INNERMOST_LIST_RE = re.compile(
    r"<(ul|ol)(?:\s[^>]*)?>((?:(?!<(?:ul|ol)\b)[\s\S])*?)</\1\s*>",
    re.IGNORECASE,
)
_LIST_ITEM_RE = _paired("li")
_LIST_WRAPPER_RE = _wrapper("(?:ul|ol)")
_DIV_RE = _wrapper("div")
_SPAN_RE = _wrapper("span")
_BLOCKQUOTE_RE = re.compile(
    r"<blockquote((?:\s[^>]*)?)>((?:(?!<blockquote\b)[\s\S])*?)</blockquote\s*>",
    re.IGNORECASE,
)
_CLASS_ATTR_RE = re.compile(r"""class\s*=\s*["']([^"']*)["']""", re.IGNORECASE)

_ADMONITION_OPEN_GAP_RE = re.compile(r"(:::[a-z]+[^\n]*)\n(?:[ \t]*\n)+")
_ADMONITION_CLOSE_GAP_RE = re.compile(r"\n(?:[ \t]*\n)+(:::)[ \t]*(?=\n|$)")
_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")


def contains_html(text: str) -> bool:
    """Detect if text contains HTML elements."""
    if not text:
        return False
    return HTML_TAG_RE.search(text) is not None


def _fence(body: str, lang: str = "") -> str:
    if body.startswith("\n"):
        body = body[1:]
    if body.endswith("\n"):
        body = body[:-1]
    return f"\n```{lang}\n{body}\n```\n"


def _pre_code_to_fence(match: re.Match) -> str:
    lang = _CODE_LANG_RE.search(match.group(1) or "")
    return _fence(match.group(2), lang.group(1) if lang else "")


def _heading(match: re.Match) -> str:
    level = int(match.group(1))
    title = " ".join(match.group(2).split())
    return f"\n{'#' * level} {title}\n"


def _image(match: re.Match) -> str:
    attrs = {
        m.group(1).lower(): m.group(2) if m.group(2) is not None else m.group(3)
        for m in _ATTR_RE.finditer(match.group(0))
    }
    src = attrs.get("src")
    if not src:
        return match.group(0)
    return f"![{attrs.get('alt', '')}]({src})"


def _list_item(content: str, marker: str) -> str:
    """``marker content``; continuation lines (nested lists) are indented."""
    first, *rest = content.strip().split("\n")
    indent = " " * (len(marker) + 1)
    continued = [f"{indent}{line}" if line.strip() else "" for line in rest]
    return "\n".join([f"{marker} {first}", *continued])


def _list(match: re.Match) -> str:
    ordered = match.group(1).lower() == "ol"
    body = match.group(2)
    lines: List[str] = []
    position = 0

    for number, item in enumerate(_LIST_ITEM_RE.finditer(body), start=1):
        stray = body[position:item.start()].strip()
        if stray:
            lines.append(stray)
        lines.append(_list_item(item.group(1), f"{number}." if ordered else "-"))
        position = item.end()

    stray = body[position:].strip()
    if stray:
        lines.append(stray)
    return "\n" + "".join(f"{line}\n" for line in lines) + "\n"


def _blockquote(match: re.Match) -> str:
    class_attr = _CLASS_ATTR_RE.search(match.group(1) or "")
    classes = class_attr.group(1).lower().split() if class_attr else []
    content = _EXCESS_NEWLINES_RE.sub("\n\n", match.group(2).strip())

    for cls in classes:
        if cls in ADMONITION_CLASS_MAP:
            return f"\n:::{ADMONITION_CLASS_MAP[cls]}\n{content}\n:::\n"

    quoted = "\n".join(f"> {line}" if line.strip() else ">" for line in content.split("\n"))
    return f"\n{quoted}\n"


def _apply_until_stable(
    text: str,
    rules: List[Tuple[re.Pattern, _Replacement]],
    max_passes: int = 5,
) -> str:
    result = text
    for _ in range(max_passes):
        previous = result
        for pattern, replacement in rules:
            result = pattern.sub(replacement, result)
        if result == previous:
            break
    return result


def _convert_masked(text: str) -> str:
    """Apply every tag rule to text whose code is already masked."""
    result = _apply_until_stable(text, INLINE_HTML_RULES)
    result = _BR_RE.sub("\n", result)

    result = _HEADING_RE.sub(_heading, result)
    result = _IMG_RE.sub(_image, result)
    result = _PARAGRAPH_RE.sub(r"\n\1\n", result)
    result = _HR_RE.sub("\n---\n", result)
    # Innermost first, so a nested list becomes part of its parent item.
    previous = None
    while previous != result:
        previous = result
        result = _INNERMOST_LIST_RE.sub(_list, result)
    # Items outside any list
    result = _LIST_ITEM_RE.sub(lambda m: f"- {m.group(1).strip()}\n", result)
    result = _LIST_WRAPPER_RE.sub("\n", result)
    result = _DIV_RE.sub("\n", result)
    result = _SPAN_RE.sub("", result)

    # Innermost first, so an outer quote prefixes already-converted lines.
    previous = None
    while previous != result:
        previous = result
        result = _BLOCKQUOTE_RE.sub(_blockquote, result)

    return result


def _cleanup(text: str) -> str:
    text = _ADMONITION_OPEN_GAP_RE.sub(r"\1\n", text)
    text = _ADMONITION_CLOSE_GAP_RE.sub(r"\n\1", text)
    text = _EXCESS_NEWLINES_RE.sub("\n\n", text)
    return text.strip()


def convert_html_to_markdown(text: str) -> str:
    """Convert HTML elements to markdown, leaving code spans untouched.

    Returns the input unchanged when no rule applies.
    """
    if not text:
        return ""

    outer = mask_code_segments(text)
    fenced = _PRE_CODE_RE.sub(_pre_code_to_fence, outer.text)
    fenced = _PRE_RE.sub(lambda m: _fence(m.group(1)), fenced)

    # Mask the new fences too: <pre> content keeps its exact whitespace.
    inner = mask_code_segments(fenced)
    converted = _convert_masked(inner.text)

    if converted == inner.text and fenced == outer.text:
        return text

    return outer.restore(inner.restore(_cleanup(converted)))


def _complex_warnings(text: str) -> List[str]:
    return [message for pattern, message in COMPLEX_HTML_PATTERNS if pattern.search(text)]


def _unconverted_warning(text: str) -> List[str]:
    names: List[str] = []
    for tag in HTML_TAG_RE.findall(text):
        name = re.sub(r"^</?|[\s/>].*$", "", tag, flags=re.DOTALL).lower()
        if name and name not in names:
            names.append(name)
    if not names:
        return []
    return [f"Contains unconverted HTML elements: {', '.join(names)}"]


def detect_complex_html(text: str) -> List[str]:
    """Warnings for HTML that cannot be converted mechanically.

    Code spans are ignored. Never alters the text.
    """
    if not text:
        return []
    masked = mask_code_segments(text).text
    return _complex_warnings(masked) + _unconverted_warning(masked)


class HtmlToMarkdownProcessor:
    """Converts HTML in markdown-bound proposals to markdown."""

    name = "html-to-markdown"
    description = "Converts HTML elements to markdown format"

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    def should_process(self, context: ProcessingContext) -> bool:
        """Only markdown targets whose proposal contains HTML."""
        return context.is_markdown and not context.is_html and contains_html(context.original_text)

    @never_raises
    def process(self, text: str, context: ProcessingContext) -> ProcessResult:
        if not text:
            return ProcessResult(text="")

        warnings = _complex_warnings(mask_code_segments(text).text)
        converted = convert_html_to_markdown(text)

        for warning in _unconverted_warning(mask_code_segments(converted).text):
            if warning not in warnings:
                warnings.append(warning)

        was_modified = converted != text
        if was_modified:
            logger.debug("[PostProcess] Converted HTML to markdown for %s", context.target_file_path)
        return ProcessResult(text=converted, warnings=warnings, was_modified=was_modified)
