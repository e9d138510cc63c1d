"""Shared types for proposal post-processors.

A processor is anything satisfying ``TextProcessor``; the concrete
processors are independent classes composed by ``PostProcessorPipeline``.
"""

import functools
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Protocol, Tuple, runtime_checkable

logger = logging.getLogger(__name__)

DEFAULT_MARKDOWN_EXTENSIONS: Tuple[str, ...] = ("md", "mdx", "markdown")
DEFAULT_HTML_EXTENSIONS: Tuple[str, ...] = ("html", "htm")


def file_extension(path: str) -> str:
    """Lower-cased extension without the dot ("" when there is none)."""
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


@dataclass(frozen=True)
class ProcessingContext:
    """What a processor knows about the proposal it is cleaning."""

    target_file_path: str
    file_extension: str
    is_markdown: bool
    is_html: bool
    original_text: str
    previous_warnings: Tuple[str, ...] = ()

    @classmethod
    def for_path(
        cls,
        target_file_path: str,
        original_text: str = "",
        markdown_extensions: Iterable[str] = DEFAULT_MARKDOWN_EXTENSIONS,
        html_extensions: Iterable[str] = DEFAULT_HTML_EXTENSIONS,
    ) -> "ProcessingContext":
        ext = file_extension(target_file_path)
        return cls(
            target_file_path=target_file_path,
            file_extension=ext,
            is_markdown=ext in set(markdown_extensions),
            is_html=ext in set(html_extensions),
            original_text=original_text,
        )


@dataclass
class ProcessResult:
    """Output of one processor (or of a whole pipeline run)."""

    text: str
    warnings: List[str] = field(default_factory=list)
    was_modified: bool = False


@runtime_checkable
class TextProcessor(Protocol):
    """Interface every post-processor implements."""

    name: str
    description: str
    enabled: bool

    def should_process(self, context: ProcessingContext) -> bool:
        ...

    def process(self, text: str, context: ProcessingContext) -> ProcessResult:
        ...


def never_raises(process: Callable[..., ProcessResult]) -> Callable[..., ProcessResult]:
    """Make a processor's ``process`` total.

    An unexpected exception yields the input unchanged plus a warning for the
    human reviewer instead of propagating.
    """

    @functools.wraps(process)
    def wrapper(self, text: str, context: ProcessingContext) -> ProcessResult:
        try:
            return process(self, text, context)
        except Exception as e:
            logger.warning("[PostProcess] %s failed on %s: %s", self.name, context.target_file_path, e)
            return ProcessResult(
                text=text or "",
                warnings=[f"Processor {self.name} failed: {e}"],
                was_modified=False,
            )

    return wrapper
