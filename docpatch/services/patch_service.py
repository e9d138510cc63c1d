"""File patch service: deep module for applying proposals to a document.

Resolves every proposal for one file against a single snapshot of its lines,
then applies the resulting line-range edits bottom to top so that no edit
shifts the line numbers of an edit still pending above it. End-of-file
appends go last, in input order.

The service never touches the filesystem: callers pass the current text (or
a ``DocumentSource``) and persist the returned text themselves. Failures are
per proposal; one bad proposal never aborts the rest of the pass.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from ..core.logging_config import target_path_context
from ..exceptions import (
    DocumentNotFoundError,
    MissingTargetError,
    ParseError,
    SectionNotFoundError,
    classify_error,
)
from ..schemas.proposal import FilePatchResult, Proposal, ProposalOutcome, UpdateType

logger = logging.getLogger(__name__)

_HEADING_RE = re.compile(r"^(#{1,6})[ \t]+(.*?)(?:[ \t]+#+)?[ \t]*$")
_EMPTY_HEADING_RE = re.compile(r"^(#{1,6})[ \t]*$")
_FENCE_RE = re.compile(r"^[ \t]{0,3}(`{3,}|~{3,})")


@dataclass(frozen=True)
class Heading:
    """An ATX heading found in the document."""
    index: int
    level: int
    text: str


@dataclass(frozen=True)
class PatchOperation:
    """Replace ``lines[start:end]`` with ``replacement``.

    ``start == end`` is a pure insertion. ``end_of_file`` operations are
    appends with no position of their own.
    """
    start: int
    end: int
    replacement: Tuple[str, ...]
    proposal_index: int
    end_of_file: bool = False


class DocumentSource(Protocol):
    """Where current document text comes from (filesystem, VCS, cache...)."""

    def read(self, target_path: str) -> Optional[str]:
        """Current text of ``target_path``, or None if it does not exist."""
        ...


class InMemoryDocumentSource:
    """DocumentSource backed by a path -> content mapping."""

    def __init__(self, documents: Optional[Mapping[str, str]] = None):
        self.documents: Dict[str, str] = dict(documents or {})

    def read(self, target_path: str) -> Optional[str]:
        return self.documents.get(target_path)


def split_lines(content: str) -> Tuple[List[str], bool]:
    """Split into lines; the trailing newline is a terminator, not a line."""
    if not content:
        return [], False
    has_trailing_newline = content.endswith("\n")
    if has_trailing_newline:
        content = content[:-1]
    return content.split("\n"), has_trailing_newline


def join_lines(lines: Sequence[str], trailing_newline: bool) -> str:
    text = "\n".join(lines)
    if trailing_newline and lines:
        text += "\n"
    return text


def _text_lines(text: str) -> Tuple[str, ...]:
    if not text:
        return ()
    if text.endswith("\n"):
        text = text[:-1]
    return tuple(text.split("\n"))


class FilePatchService:
    """Applies insert/update/delete proposals to one document's text.

    All methods are pure with respect to shared state; a single instance can
    be used across threads and files.
    """

    # ------------------------------------------------------------------
    # Section resolution
    # ------------------------------------------------------------------

    def find_headings(self, lines: Sequence[str]) -> List[Heading]:
        """ATX headings outside fenced code blocks, in document order."""
        headings: List[Heading] = []
        fence: Optional[str] = None

        for i, line in enumerate(lines):
            fence_match = _FENCE_RE.match(line)
            if fence_match:
                marker = fence_match.group(1)
                if fence is None:
                    fence = marker
                elif marker[0] == fence[0] and len(marker) >= len(fence):
                    fence = None
                continue
            if fence is not None:
                continue

            match = _HEADING_RE.match(line) or _EMPTY_HEADING_RE.match(line)
            if match:
                text = match.group(2).strip() if match.lastindex and match.lastindex >= 2 else ""
                headings.append(Heading(index=i, level=len(match.group(1)), text=text))

        return headings

    def find_section(self, lines: Sequence[str], name: str) -> Heading:
        """
        Find the heading for a section name.

        Exact (case-insensitive) match wins; otherwise the first heading
        containing the name. Leading ``#`` in the name are ignored.

        Raises:
            SectionNotFoundError: if no heading matches
        """
        wanted = name.strip().lstrip("#").strip().lower()
        if not wanted:
            raise SectionNotFoundError(name)

        headings = self.find_headings(lines)
        for heading in headings:
            if heading.text.lower() == wanted:
                return heading
        for heading in headings:
            if wanted in heading.text.lower():
                return heading

        raise SectionNotFoundError(name)

    def find_section_end(self, lines: Sequence[str], heading_index: int) -> int:
        """Index of the next heading of equal or higher level, else len(lines)."""
        headings = self.find_headings(lines)
        level = next((h.level for h in headings if h.index == heading_index), None)
        if level is None:
            raise ParseError(f"Line {heading_index} is not a heading")

        for heading in headings:
            if heading.index > heading_index and heading.level <= level:
                return heading.index
        return len(lines)

    # ------------------------------------------------------------------
    # Proposal -> operation
    # ------------------------------------------------------------------

    def resolve(self, lines: Sequence[str], proposal: Proposal, index: int = 0) -> Optional[PatchOperation]:
        """
        Turn a proposal into a line-range operation on ``lines``.

        Returns None for NONE proposals (nothing to do).

        Raises:
            SectionNotFoundError: named section is absent
            MissingTargetError: UPDATE/DELETE with neither location nor section
            ParseError: location outside the document
        """
        update_type = proposal.update_type
        if update_type == UpdateType.NONE:
            return None

        line_count = len(lines)
        text = _text_lines(proposal.text)

        if update_type == UpdateType.INSERT:
            if proposal.location is not None:
                after = proposal.location.line_start
                self._check_line(after, line_count)
                return PatchOperation(after + 1, after + 1, text, index)
            if proposal.section is not None:
                heading = self.find_section(lines, proposal.section)
                end = self.find_section_end(lines, heading.index)
                return PatchOperation(end, end, text, index)
            return PatchOperation(line_count, line_count, text, index, end_of_file=True)

        replacement = text if update_type == UpdateType.UPDATE else ()

        if proposal.location is not None:
            start = proposal.location.line_start
            last = proposal.location.last_line
            self._check_line(last, line_count)
            return PatchOperation(start, last + 1, replacement, index)

        if proposal.section is not None:
            heading = self.find_section(lines, proposal.section)
            end = self.find_section_end(lines, heading.index)
            # UPDATE keeps the heading line, DELETE removes it
            start = heading.index + 1 if update_type == UpdateType.UPDATE else heading.index
            return PatchOperation(start, end, replacement, index)

        raise MissingTargetError(update_type.value)

    @staticmethod
    def _check_line(line: int, line_count: int) -> None:
        if line >= line_count:
            raise ParseError(f"Line {line} is out of range (document has {line_count} lines)")

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------

    def apply_proposals(
        self,
        content: str,
        proposals: Sequence[Proposal],
        target_path: Optional[str] = None,
    ) -> FilePatchResult:
        """
        Apply all proposals for one file in a single pass.

        Every proposal is resolved against the same snapshot of ``content``.
        Failures are classified into the returned outcomes, never raised.
        """
        if target_path is None:
            target_path = proposals[0].target_path if proposals else ""

        with target_path_context(target_path):
            lines, trailing_newline = split_lines(content)
            outcomes: Dict[int, ProposalOutcome] = {}
            positional: List[PatchOperation] = []
            appends: List[PatchOperation] = []

            for i, proposal in enumerate(proposals):
                try:
                    operation = self.resolve(lines, proposal, i)
                except Exception as e:
                    outcomes[i] = self._failed(i, proposal, e)
                    continue
                if operation is None:
                    outcomes[i] = ProposalOutcome(proposal_id=proposal.id, proposal_index=i, status="skipped")
                elif operation.end_of_file:
                    appends.append(operation)
                else:
                    positional.append(operation)

            # Bottom to top; ties: larger range first, later input first.
            positional.sort(key=lambda op: (-op.start, -op.end, -op.proposal_index))
            floor: Optional[int] = None

            for operation in positional:
                proposal = proposals[operation.proposal_index]
                if floor is not None and operation.end > floor:
                    outcomes[operation.proposal_index] = self._failed(
                        operation.proposal_index,
                        proposal,
                        ParseError(
                            f"Lines {operation.start}-{operation.end - 1} overlap another proposal"
                        ),
                    )
                    continue
                lines[operation.start:operation.end] = operation.replacement
                floor = operation.start if floor is None else min(floor, operation.start)
                outcomes[operation.proposal_index] = self._applied(operation.proposal_index, proposal)

            for operation in appends:
                lines.extend(operation.replacement)
                proposal = proposals[operation.proposal_index]
                outcomes[operation.proposal_index] = self._applied(operation.proposal_index, proposal)

            result = FilePatchResult(
                target_path=target_path,
                content=join_lines(lines, trailing_newline),
                outcomes=[outcomes[i] for i in sorted(outcomes)],
            )
            logger.info(
                "Applied %d of %d proposals to %s",
                result.applied_count, len(proposals), target_path,
            )
            return result

    def apply_proposal(self, content: str, proposal: Proposal) -> str:
        """
        Apply a single proposal, raising on failure.

        Raises:
            SectionNotFoundError, MissingTargetError, ParseError
        """
        lines, trailing_newline = split_lines(content)
        operation = self.resolve(lines, proposal)
        if operation is None:
            return content
        if operation.end_of_file:
            lines.extend(operation.replacement)
        else:
            lines[operation.start:operation.end] = operation.replacement
        return join_lines(lines, trailing_newline)

    def apply_from_source(
        self,
        source: DocumentSource,
        target_path: str,
        proposals: Sequence[Proposal],
    ) -> FilePatchResult:
        """Read the document from ``source`` and apply proposals to it.

        A missing document fails every proposal with FILE_NOT_FOUND.
        """
        content = source.read(target_path)
        if content is None:
            error = DocumentNotFoundError(target_path)
            with target_path_context(target_path):
                logger.warning("Cannot apply %d proposals: %s", len(proposals), error.message)
                return FilePatchResult(
                    target_path=target_path,
                    content=None,
                    outcomes=[self._failed(i, p, error, log=False) for i, p in enumerate(proposals)],
                )
        return self.apply_proposals(content, proposals, target_path)

    def apply_batch(
        self,
        source: DocumentSource,
        proposals: Sequence[Proposal],
    ) -> Dict[str, FilePatchResult]:
        """
        Apply proposals for any number of files, one pass per file.

        Returns results keyed by target path in first-seen order. Outcome
        indexes are positions within each file's group.
        """
        grouped: Dict[str, List[Proposal]] = {}
        for proposal in proposals:
            grouped.setdefault(proposal.target_path, []).append(proposal)

        return {
            target_path: self.apply_from_source(source, target_path, group)
            for target_path, group in grouped.items()
        }

    # ------------------------------------------------------------------
    # Outcomes
    # ------------------------------------------------------------------

    @staticmethod
    def _applied(index: int, proposal: Proposal) -> ProposalOutcome:
        return ProposalOutcome(proposal_id=proposal.id, proposal_index=index, status="applied")

    @staticmethod
    def _failed(index: int, proposal: Proposal, error: Exception, log: bool = True) -> ProposalOutcome:
        if log:
            logger.warning("Proposal %s (#%d) failed: %s", proposal.id, index, error)
        return ProposalOutcome(
            proposal_id=proposal.id,
            proposal_index=index,
            status="failed",
            error_code=classify_error(error),
            error=str(error),
        )
