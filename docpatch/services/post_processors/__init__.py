"""Post-processors that clean model-generated proposal text."""

from .base import ProcessingContext, ProcessResult, TextProcessor, never_raises
from .code_block_formatting import CodeBlockFormattingProcessor
from .html_to_markdown import HtmlToMarkdownProcessor
from .list_formatting import ListFormattingProcessor
from .markdown_formatting import MarkdownFormattingProcessor
from .pipeline import PROCESSOR_REGISTRY, PostProcessorPipeline, build_pipeline

__all__ = [
    "ProcessingContext",
    "ProcessResult",
    "TextProcessor",
    "never_raises",
    "CodeBlockFormattingProcessor",
    "HtmlToMarkdownProcessor",
    "ListFormattingProcessor",
    "MarkdownFormattingProcessor",
    "PROCESSOR_REGISTRY",
    "PostProcessorPipeline",
    "build_pipeline",
]
