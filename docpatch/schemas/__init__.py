"""Pydantic schemas exchanged with the calling orchestrator."""

from .proposal import (
    UpdateType,
    ProposalLocation,
    Proposal,
    ProposalOutcome,
    FilePatchResult,
)

__all__ = [
    "UpdateType",
    "ProposalLocation",
    "Proposal",
    "ProposalOutcome",
    "FilePatchResult",
]
