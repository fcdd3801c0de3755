"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    PaginationParams,
)
from models.candidate import (
    FieldDefinition,
    TARGET_FIELD_CATALOG,
    CandidateRecord,
    CandidateCreate,
    CandidateUpdate,
    CandidateResponse,
    CandidateListResponse,
    BulkDeleteRequest,
    BulkDeleteResponse,
)
from models.mapping import (
    ColumnMapping,
    SourceDataset,
    WorkflowState,
    FieldStatus,
    SuggestionSource,
    DuplicateMapping,
    FieldMappingStatus,
    ReviewRow,
    UploadProgress,
    WorkflowResponse,
    MappingUpdateRequest,
)
from models.upload import (
    FailedRecord,
    UploadRun,
    FailedRecordResponse,
    UploadResultResponse,
    UploadHistoryResponse,
    UploadHistoryListResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "PaginationParams",
    # Candidate
    "FieldDefinition",
    "TARGET_FIELD_CATALOG",
    "CandidateRecord",
    "CandidateCreate",
    "CandidateUpdate",
    "CandidateResponse",
    "CandidateListResponse",
    "BulkDeleteRequest",
    "BulkDeleteResponse",
    # Mapping
    "ColumnMapping",
    "SourceDataset",
    "WorkflowState",
    "FieldStatus",
    "SuggestionSource",
    "DuplicateMapping",
    "FieldMappingStatus",
    "ReviewRow",
    "UploadProgress",
    "WorkflowResponse",
    "MappingUpdateRequest",
    # Upload
    "FailedRecord",
    "UploadRun",
    "FailedRecordResponse",
    "UploadResultResponse",
    "UploadHistoryResponse",
    "UploadHistoryListResponse",
]
