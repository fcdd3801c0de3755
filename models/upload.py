"""
Upload run schemas.

UploadRun is the running tally the orchestrator mutates record by record;
the pydantic models are what the API returns.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pydantic import Field
from typing import Any, Optional

from config.database import DegradationKind, DEGRADATION_ADVISORIES
from models.base import BaseSchema


@dataclass
class FailedRecord:
    """One row that could not be stored."""
    row_number: int
    error_message: str
    record_data: dict[str, Any]


@dataclass
class UploadRun:
    """Counts and failure log for one upload."""
    filename: str
    total_records: int
    user_id: str
    upload_id: Optional[str] = None
    success_count: int = 0
    error_count: int = 0
    failures: list[FailedRecord] = field(default_factory=list)
    degradation: Optional[DegradationKind] = None
    finalized: bool = False

    @property
    def processed(self) -> int:
        return self.success_count + self.error_count

    @property
    def progress(self) -> float:
        """Fraction of records processed, 0.0 - 1.0."""
        if self.total_records == 0:
            return 1.0
        return self.processed / self.total_records

    def record_success(self) -> None:
        self._check_open()
        self.success_count += 1

    def record_failure(self, row_number: int, message: str, record: dict[str, Any]) -> None:
        self._check_open()
        self.error_count += 1
        self.failures.append(FailedRecord(
            row_number=row_number,
            error_message=message,
            record_data=dict(record),
        ))

    def record_degraded(self, kind: DegradationKind) -> bool:
        """
        Count a record stored under a degraded backend.

        Returns:
            True the first time degradation is seen in this run
        """
        self.record_success()
        return self.note_degradation(kind)

    def note_degradation(self, kind: DegradationKind) -> bool:
        """Remember the first backend defect seen in this run; counts are untouched."""
        if self.degradation is None:
            self.degradation = kind
            return True
        return False

    def finalize(self) -> None:
        """Freeze the counts."""
        self.finalized = True

    @property
    def warning(self) -> Optional[str]:
        if self.degradation is None:
            return None
        return DEGRADATION_ADVISORIES[self.degradation]

    @property
    def summary(self) -> str:
        return (
            f"{self.success_count} of {self.total_records} records imported successfully, "
            f"{self.error_count} errors"
        )

    def _check_open(self) -> None:
        if self.finalized:
            raise RuntimeError("Upload run is already finalized")


# ===================
# API SCHEMAS
# ===================

class FailedRecordResponse(BaseSchema):
    """Failure log entry."""

    id: Optional[str] = None
    upload_id: Optional[str] = None
    row_number: int
    error_message: str
    record_data: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class UploadResultResponse(BaseSchema):
    """Outcome of a completed upload."""

    upload_id: Optional[str] = None
    filename: str
    total_records: int
    success_count: int
    error_count: int
    failures: list[FailedRecordResponse] = Field(default_factory=list)
    warning: Optional[str] = None
    summary: str

    @classmethod
    def from_run(cls, run: UploadRun) -> "UploadResultResponse":
        return cls(
            upload_id=run.upload_id,
            filename=run.filename,
            total_records=run.total_records,
            success_count=run.success_count,
            error_count=run.error_count,
            failures=[
                FailedRecordResponse(
                    upload_id=run.upload_id,
                    row_number=f.row_number,
                    error_message=f.error_message,
                    record_data=f.record_data,
                )
                for f in run.failures
            ],
            warning=run.warning,
            summary=run.summary,
        )


class UploadHistoryResponse(BaseSchema):
    """Stored upload run."""

    id: str
    filename: str
    total_records: int
    success_count: int
    error_count: int
    upload_date: Optional[datetime] = None
    user_id: Optional[str] = None


class UploadHistoryListResponse(BaseSchema):
    """Upload runs of the current user."""

    data: list[UploadHistoryResponse]
    total: int
