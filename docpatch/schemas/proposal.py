"""Proposal schemas."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..exceptions import ErrorCode


class UpdateType(str, Enum):
    """Kind of edit a proposal makes to its target file."""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    NONE = "NONE"


class ProposalLocation(BaseModel):
    """0-based, inclusive line range inside the target document."""
    line_start: int = Field(ge=0)
    line_end: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def validate_range(self) -> "ProposalLocation":
        if self.line_end is not None and self.line_end < self.line_start:
            raise ValueError("line_end must not be before line_start")
        return self

    @property
    def last_line(self) -> int:
        """Inclusive last line; a missing line_end targets line_start alone."""
        return self.line_start if self.line_end is None else self.line_end


class Proposal(BaseModel):
    """A single candidate edit (insert/update/delete) targeting one file."""
    id: Optional[str] = None
    target_path: str
    update_type: UpdateType
    section: Optional[str] = None  # Heading name, matched case-insensitively
    location: Optional[ProposalLocation] = None
    suggested_text: Optional[str] = None  # Model output
    edited_text: Optional[str] = None  # Human override, wins over suggested_text
    warnings: List[str] = []

    @field_validator('target_path')
    @classmethod
    def normalize_target_path(cls, v: str) -> str:
        v = v.strip()
        while v.startswith("./"):
            v = v[2:]
        return v.lstrip("/")

    @field_validator('section')
    @classmethod
    def blank_section_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()

    @property
    def text(self) -> str:
        """Content to write: the human edit when present, else the model's."""
        if self.edited_text is not None:
            return self.edited_text
        return self.suggested_text or ""

    @property
    def has_target(self) -> bool:
        return self.location is not None or self.section is not None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "id": "prop-42",
                    "target_path": "docs/api/errors.md",
                    "update_type": "UPDATE",
                    "section": "Troubleshooting",
                    "suggested_text": "If the node stalls, restart it.",
                }
            ]
        }
    }


class ProposalOutcome(BaseModel):
    """Success/failure classification of one proposal in an apply-pass."""
    proposal_id: Optional[str] = None
    proposal_index: int
    status: str  # "applied", "failed" or "skipped"
    error_code: Optional[ErrorCode] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "applied"


class FilePatchResult(BaseModel):
    """New document text plus per-proposal outcomes for one target file."""
    target_path: str
    content: Optional[str] = None  # None when the document could not be read
    outcomes: List[ProposalOutcome] = []

    @property
    def applied_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.succeeded)

    @property
    def failed_outcomes(self) -> List[ProposalOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status == "failed"]

    @property
    def all_failed(self) -> bool:
        """True when there was something to apply and nothing applied."""
        return bool(self.outcomes) and all(o.status == "failed" for o in self.outcomes)
