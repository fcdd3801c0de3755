"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    UnauthorizedError,
    ExternalServiceError,
    DatabaseError,

    # Spreadsheet reader
    SpreadsheetParseError,
    UnsupportedFormatError,
    EmptyOrMalformedError,

    # Mapping workflow
    MappingSuggestionFailedError,
    RequiredFieldsUnmappedError,
    InvalidWorkflowTransitionError,
    UnknownTargetFieldError,
    UnknownSourceColumnError,
    WorkflowNotFoundError,

    # Candidates and uploads
    CandidateNotFoundError,
    UploadRunNotFoundError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "UnauthorizedError",
    "ExternalServiceError",
    "DatabaseError",

    # Spreadsheet reader
    "SpreadsheetParseError",
    "UnsupportedFormatError",
    "EmptyOrMalformedError",

    # Mapping workflow
    "MappingSuggestionFailedError",
    "RequiredFieldsUnmappedError",
    "InvalidWorkflowTransitionError",
    "UnknownTargetFieldError",
    "UnknownSourceColumnError",
    "WorkflowNotFoundError",

    # Candidates and uploads
    "CandidateNotFoundError",
    "UploadRunNotFoundError",
]
