"""
Custom exception classes for the application.

Every error carries a stable code, a human message, an HTTP status
and optional details; routes render them with to_dict().
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "CANDIDATE_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class UnauthorizedError(AppError):
    """Request has no authenticated user (401)."""

    def __init__(self, message: str = "You must be logged in to perform this action"):
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# SPREADSHEET READER ERRORS
# ===================

class SpreadsheetParseError(ValidationError):
    """Uploaded spreadsheet could not be turned into a dataset."""

    def __init__(
        self,
        message: str,
        code: str = "SPREADSHEET_PARSE_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            details=details
        )


class UnsupportedFormatError(SpreadsheetParseError):
    """File extension is not one of the accepted tabular formats."""

    def __init__(self, filename: str, allowed: list[str]):
        super().__init__(
            code="UNSUPPORTED_FORMAT",
            message="Please upload an Excel or CSV file",
            details={"filename": filename, "allowed": allowed}
        )


class EmptyOrMalformedError(SpreadsheetParseError):
    """File has no data rows or cannot be read."""

    def __init__(
        self,
        filename: str,
        message: str = "File doesn't contain enough data to process",
        details: Optional[dict] = None
    ):
        super().__init__(
            code="EMPTY_OR_MALFORMED",
            message=message,
            details={"filename": filename, **(details or {})}
        )


# ===================
# MAPPING ERRORS
# ===================

class MappingSuggestionFailedError(ExternalServiceError):
    """AI mapping suggestion failed after all retries."""

    def __init__(self, message: str, attempts: int):
        super().__init__(
            service="ai_mapping",
            message=message,
            details={"attempts": attempts}
        )
        self.attempts = attempts


class RequiredFieldsUnmappedError(ValidationError):
    """Mapping cannot be reviewed until every required field is mapped."""

    def __init__(self, missing_fields: list[str]):
        super().__init__(
            code="REQUIRED_FIELDS_UNMAPPED",
            message="Please map all required fields before proceeding: "
                    + ", ".join(missing_fields),
            details={"missing_fields": missing_fields}
        )
        self.missing_fields = missing_fields


class InvalidWorkflowTransitionError(ValidationError):
    """Mapping workflow cannot move between these states."""

    def __init__(self, current_state: str, action: str):
        super().__init__(
            code="INVALID_WORKFLOW_TRANSITION",
            message=f"Cannot {action} while workflow is {current_state}",
            details={"current_state": current_state, "action": action}
        )


class UnknownTargetFieldError(ValidationError):
    """Column was mapped to a field that is not in the mappable catalog."""

    def __init__(self, column: str, field_id: str):
        super().__init__(
            code="UNKNOWN_TARGET_FIELD",
            message=f"'{field_id}' is not a mappable field",
            details={"column": column, "field": field_id}
        )


class UnknownSourceColumnError(ValidationError):
    """Mapping refers to a column that is not in the uploaded file."""

    def __init__(self, column: str):
        super().__init__(
            code="UNKNOWN_SOURCE_COLUMN",
            message=f"Column '{column}' is not in the uploaded file",
            details={"column": column}
        )


class WorkflowNotFoundError(NotFoundError):
    """Mapping workflow expired or never existed."""

    def __init__(self, workflow_id: str):
        super().__init__(
            resource="Workflow",
            identifier=workflow_id,
            code="WORKFLOW_NOT_FOUND"
        )


# ===================
# CANDIDATE ERRORS
# ===================

class CandidateNotFoundError(NotFoundError):
    """Candidate not found."""

    def __init__(self, candidate_id: str):
        super().__init__(
            resource="Candidate",
            identifier=candidate_id,
            code="CANDIDATE_NOT_FOUND"
        )


class UploadRunNotFoundError(NotFoundError):
    """Upload run not found."""

    def __init__(self, upload_id: str):
        super().__init__(
            resource="Upload",
            identifier=upload_id,
            code="UPLOAD_NOT_FOUND"
        )
