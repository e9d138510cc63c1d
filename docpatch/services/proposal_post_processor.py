"""Proposal post-processing - entry point for cleaning model output.

Cleans ``suggested_text`` on proposals before they are reviewed or applied.
Human edits (``edited_text``) are never rewritten. The default pipeline is
built lazily from ``settings`` so the processor order can be changed through
the environment (``DOCPATCH_PIPELINE_ORDER``).
"""

import logging
from typing import Iterable, List, Optional

from ..core.config import Settings, settings
from ..schemas.proposal import Proposal
from .post_processors.base import ProcessResult, file_extension
from .post_processors.html_to_markdown import (
    contains_html,
    convert_html_to_markdown,
    detect_complex_html,
)
from .post_processors.pipeline import PostProcessorPipeline, build_pipeline

logger = logging.getLogger(__name__)

__all__ = [
    "create_pipeline",
    "get_default_pipeline",
    "reset_default_pipeline",
    "post_process_proposal",
    "post_process_proposals",
    "is_markdown_file",
    "is_html_file",
    "contains_html",
    "convert_html_to_markdown",
    "detect_complex_html",
]

_default_pipeline: Optional[PostProcessorPipeline] = None


def create_pipeline(config: Optional[Settings] = None) -> PostProcessorPipeline:
    """
    Build a fresh pipeline from configuration.

    Args:
        config: Settings to read the order and file families from.
                Defaults to the global ``settings``.

    Raises:
        ConfigurationError: if the configured order names an unknown processor
    """
    config = config or settings
    return build_pipeline(
        config.get_pipeline_order(),
        config.get_disabled_processors(),
        markdown_extensions=config.get_markdown_extensions(),
        html_extensions=config.get_html_extensions(),
    )


def get_default_pipeline() -> PostProcessorPipeline:
    """Shared pipeline built from the global settings on first use."""
    global _default_pipeline
    if _default_pipeline is None:
        _default_pipeline = create_pipeline()
        logger.debug("Built default post-processing pipeline: %s", _default_pipeline.names)
    return _default_pipeline


def reset_default_pipeline() -> None:
    """Drop the shared pipeline so the next use re-reads settings."""
    global _default_pipeline
    _default_pipeline = None


def post_process_proposal(
    text: str,
    target_path: str,
    pipeline: Optional[PostProcessorPipeline] = None,
) -> ProcessResult:
    """Clean one proposal's text for the given target file."""
    return (pipeline or get_default_pipeline()).process(text, target_path)


def post_process_proposals(
    proposals: Iterable[Proposal],
    pipeline: Optional[PostProcessorPipeline] = None,
) -> List[Proposal]:
    """
    Clean ``suggested_text`` on every proposal.

    Returns new Proposal objects; the inputs are not mutated. Processor
    warnings are appended to each proposal's ``warnings`` for reviewers.
    """
    pipeline = pipeline or get_default_pipeline()
    processed: List[Proposal] = []

    for proposal in proposals:
        if not proposal.suggested_text:
            processed.append(proposal)
            continue

        result = pipeline.process(proposal.suggested_text, proposal.target_path)
        if not result.was_modified and not result.warnings:
            processed.append(proposal)
            continue

        if result.was_modified:
            logger.debug("Post-processed proposal %s for %s", proposal.id, proposal.target_path)
        processed.append(proposal.model_copy(update={
            "suggested_text": result.text,
            "warnings": [*proposal.warnings, *result.warnings],
        }))

    return processed


def is_markdown_file(path: str, extensions: Optional[Iterable[str]] = None) -> bool:
    families = settings.get_markdown_extensions() if extensions is None else extensions
    return file_extension(path) in set(families)


def is_html_file(path: str, extensions: Optional[Iterable[str]] = None) -> bool:
    families = settings.get_html_extensions() if extensions is None else extensions
    return file_extension(path) in set(families)
