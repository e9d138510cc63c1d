"""Post-processing and patch application services."""

from .patch_service import FilePatchService, InMemoryDocumentSource
from .proposal_post_processor import post_process_proposal, post_process_proposals

__all__ = [
    "FilePatchService",
    "InMemoryDocumentSource",
    "post_process_proposal",
    "post_process_proposals",
]
