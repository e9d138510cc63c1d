"""Shared test fixtures for the docpatch test suite.

Everything under test is a pure text transform, so fixtures only build
processing contexts and reset the lazily-built default pipeline.
"""

import os

# Human-readable logs; must be set before docpatch builds its settings.
os.environ["DOCPATCH_LOG_FORMAT"] = "text"

import pytest

from docpatch.services import proposal_post_processor
from docpatch.services.post_processors import ProcessingContext


@pytest.fixture(autouse=True)
def _reset_default_pipeline():
    """Each test builds the shared pipeline from current settings."""
    proposal_post_processor.reset_default_pipeline()
    yield
    proposal_post_processor.reset_default_pipeline()


@pytest.fixture
def md_context():
    """Context for a markdown target."""
    return ProcessingContext.for_path("docs/guide.md")


@pytest.fixture
def html_context():
    """Context for an HTML target."""
    return ProcessingContext.for_path("site/index.html")


@pytest.fixture
def yaml_context():
    """Context for a target that is neither markdown nor HTML."""
    return ProcessingContext.for_path("config/app.yaml")
