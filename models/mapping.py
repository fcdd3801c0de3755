"""
Column mapping schemas.

SourceDataset is produced by the spreadsheet parser; the remaining
models describe the mapping workflow as the API exposes it.
"""

from dataclasses import dataclass, field
from enum import Enum
from pydantic import Field
from typing import Any, Optional

from models.base import BaseSchema

# Source header -> target field id, or None for "do not import"
ColumnMapping = dict[str, Optional[str]]


@dataclass
class SourceDataset:
    """Spreadsheet contents read from one upload attempt."""
    filename: str
    headers: list[str]
    sample_rows: list[list[Any]] = field(default_factory=list)
    all_rows: list[list[Any]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        """Number of data rows (header excluded)."""
        return len(self.all_rows)


class WorkflowState(str, Enum):
    """Mapping review workflow states."""
    ANALYZING = "analyzing"
    MAPPING = "mapping"
    REVIEW = "review"
    COMPLETE = "complete"
    CANCELLED = "cancelled"


class FieldStatus(str, Enum):
    """How a catalog field is covered by the current mapping."""
    MAPPED = "mapped"
    REQUIRED = "required"
    UNMAPPED = "unmapped"
    AUTO = "auto"


class SuggestionSource(str, Enum):
    """What produced the initial mapping."""
    AI = "ai"
    FUZZY = "fuzzy"
    NONE = "none"


# ===================
# API SCHEMAS
# ===================

class DuplicateMapping(BaseSchema):
    """Several source columns mapped to the same field."""

    field_id: str
    columns: list[str] = Field(..., description="Columns in file order; the first one is imported")


class FieldMappingStatus(BaseSchema):
    """Per-field coverage shown next to the mapping table."""

    field_id: str
    label: str
    required: bool
    auto_populate: bool
    status: FieldStatus
    mapped_from: list[str] = Field(default_factory=list)


class ReviewRow(BaseSchema):
    """One line of the read-only review table."""

    field_id: str
    label: str
    required: bool
    mapped_from: Optional[str] = None
    sample: Optional[str] = None


class UploadProgress(BaseSchema):
    """Live progress of a running upload."""

    processed: int = 0
    total: int = 0
    percent: float = 0.0


class WorkflowResponse(BaseSchema):
    """Current view of a mapping workflow."""

    workflow_id: str
    state: WorkflowState
    filename: str
    headers: list[str]
    sample_rows: list[list[str]]
    total_rows: int
    mapping: dict[str, Optional[str]]
    suggested_by: SuggestionSource
    duplicates: list[DuplicateMapping] = Field(default_factory=list)
    missing_required_fields: list[str] = Field(default_factory=list)
    can_review: bool
    field_status: list[FieldMappingStatus] = Field(default_factory=list)
    review: list[ReviewRow] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    progress: Optional[UploadProgress] = None
    expires_in_minutes: int = Field(default=30, description="Minutes until an idle workflow expires")


class MappingUpdateRequest(BaseSchema):
    """
    Change column assignments.

    None (or "do-not-import") as a value means the column is skipped.
    With replace=True the given mapping replaces the current one.
    """

    mapping: dict[str, Optional[str]] = Field(..., description="Column -> field id")
    replace: bool = Field(default=False)
