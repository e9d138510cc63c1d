"""Ordered composition of post-processors."""

import dataclasses
import logging
from typing import Callable, Dict, Iterable, List, Optional

from ...core.config import ConfigurationError
from .base import ProcessingContext, ProcessResult, TextProcessor
from .code_block_formatting import CodeBlockFormattingProcessor
from .html_to_markdown import HtmlToMarkdownProcessor
from .list_formatting import ListFormattingProcessor
from .markdown_formatting import MarkdownFormattingProcessor

logger = logging.getLogger(__name__)

PROCESSOR_REGISTRY: Dict[str, Callable[[], TextProcessor]] = {
    CodeBlockFormattingProcessor.name: CodeBlockFormattingProcessor,
    HtmlToMarkdownProcessor.name: HtmlToMarkdownProcessor,
    MarkdownFormattingProcessor.name: MarkdownFormattingProcessor,
    ListFormattingProcessor.name: ListFormattingProcessor,
}


class PostProcessorPipeline:
    """Runs processors in sequence, folding their results.

    Each enabled processor whose ``should_process`` accepts the context gets
    the text produced by the one before it. Warnings are concatenated and
    ``was_modified`` is true if any processor changed the text.
    """

    def __init__(
        self,
        processors: Optional[Iterable[TextProcessor]] = None,
        markdown_extensions: Optional[Iterable[str]] = None,
        html_extensions: Optional[Iterable[str]] = None,
    ):
        self._processors: List[TextProcessor] = list(processors or [])
        self._extensions = {}
        if markdown_extensions is not None:
            self._extensions["markdown_extensions"] = tuple(markdown_extensions)
        if html_extensions is not None:
            self._extensions["html_extensions"] = tuple(html_extensions)

    def add_processor(self, processor: TextProcessor) -> "PostProcessorPipeline":
        self._processors.append(processor)
        return self

    def remove_processor(self, name: str) -> bool:
        """Remove a processor by name. Returns False if it was not present."""
        for i, processor in enumerate(self._processors):
            if processor.name == name:
                del self._processors[i]
                return True
        return False

    def get_processor(self, name: str) -> Optional[TextProcessor]:
        for processor in self._processors:
            if processor.name == name:
                return processor
        return None

    def get_processors(self) -> List[TextProcessor]:
        return list(self._processors)

    @property
    def names(self) -> List[str]:
        return [processor.name for processor in self._processors]

    def process(self, text: str, target_file_path: str) -> ProcessResult:
        """Process text through all applicable processors."""
        if not text:
            return ProcessResult(text="")

        context = ProcessingContext.for_path(target_file_path, original_text=text, **self._extensions)
        current = text
        warnings: List[str] = []
        was_modified = False

        for processor in self._processors:
            if not processor.enabled or not processor.should_process(context):
                continue

            context = dataclasses.replace(context, previous_warnings=tuple(warnings))
            try:
                result = processor.process(current, context)
            except Exception as e:
                logger.warning(
                    "[PostProcess] Processor %s raised on %s: %s",
                    processor.name, target_file_path, e,
                )
                warnings.append(f"Processor {processor.name} failed: {e}")
                continue

            warnings.extend(result.warnings)
            if result.was_modified:
                current = result.text
                was_modified = True

        return ProcessResult(text=current, warnings=warnings, was_modified=was_modified)


def build_pipeline(
    order: Iterable[str],
    disabled: Iterable[str] = (),
    markdown_extensions: Optional[Iterable[str]] = None,
    html_extensions: Optional[Iterable[str]] = None,
) -> PostProcessorPipeline:
    """Build a pipeline from registry names.

    Disabled processors stay in the pipeline (so they can be re-enabled at
    runtime) but are skipped.

    Raises:
        ConfigurationError: if a name is not a registered processor.
    """
    order = list(order)
    disabled = set(disabled)
    unknown = [name for name in order + sorted(disabled) if name not in PROCESSOR_REGISTRY]
    if unknown:
        raise ConfigurationError(
            f"Unknown post-processor(s): {', '.join(unknown)}. "
            f"Available: {', '.join(PROCESSOR_REGISTRY)}"
        )

    processors = []
    for name in order:
        processor = PROCESSOR_REGISTRY[name]()
        processor.enabled = name not in disabled
        processors.append(processor)

    return PostProcessorPipeline(processors, markdown_extensions, html_extensions)
