"""Custom exception hierarchy for docpatch."""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized failure classes reported per proposal."""

    # Source errors
    FILE_NOT_FOUND = "FILE_NOT_FOUND"

    # Resolution errors
    SECTION_NOT_FOUND = "SECTION_NOT_FOUND"
    MISSING_TARGET = "MISSING_TARGET"

    # Generic errors
    PARSE_ERROR = "PARSE_ERROR"


class PatchError(Exception):
    """
    Base exception for all patch-application errors.

    Provides structured error reports with:
    - Human-readable message
    - Machine-readable error code
    - Optional additional details
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            details: Optional additional context/details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for the caller's failure report.

        Returns:
            Dictionary with error, message, and details fields
        """
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class DocumentNotFoundError(PatchError):
    """Target document could not be read from the document source."""

    def __init__(self, target_path: str):
        super().__init__(
            f"File not found: {target_path}",
            ErrorCode.FILE_NOT_FOUND,
            details={"target_path": target_path}
        )


class SectionNotFoundError(PatchError):
    """No heading matches the proposal's section name."""

    def __init__(self, section: str):
        super().__init__(
            f"Section not found: {section}",
            ErrorCode.SECTION_NOT_FOUND,
            details={"section": section}
        )


class MissingTargetError(PatchError):
    """UPDATE or DELETE proposal carries neither a location nor a section."""

    def __init__(self, update_type: str):
        super().__init__(
            f"{update_type} requires either location or section",
            ErrorCode.MISSING_TARGET,
            details={"update_type": update_type}
        )


class ParseError(PatchError):
    """Any other failure while resolving or applying a single proposal."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        details = {}
        if original_error:
            details["original_error"] = str(original_error)

        super().__init__(
            message,
            ErrorCode.PARSE_ERROR,
            details=details
        )


def classify_error(error: Exception) -> ErrorCode:
    """Map any exception raised while applying a proposal to an error code."""
    if isinstance(error, PatchError):
        return error.error_code
    return ErrorCode.PARSE_ERROR
