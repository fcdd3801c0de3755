"""
Upload run bookkeeping.

One upload_history row per upload plus one failed_records row per record
that could not be stored. Writes made while an upload is running are best
effort: a failure is logged and never changes the upload's own counts.
"""
import structlog
from datetime import datetime, timezone
from typing import Optional

from config import get_supabase_client, detect_degradation
from exceptions import DatabaseError, UploadRunNotFoundError
from models.upload import (
    FailedRecordResponse,
    UploadHistoryResponse,
    UploadRun,
)

logger = structlog.get_logger(__name__)


class UploadHistoryService:
    def __init__(self):
        self.db = get_supabase_client()
        self.table = "upload_history"
        self.failures_table = "failed_records"

    # ===================
    # UPLOAD LIFECYCLE (best effort)
    # ===================

    def create_run(self, run: UploadRun) -> Optional[str]:
        """Insert the run row before any record is processed. Returns its id or None."""
        try:
            result = self.db.table(self.table).insert({
                "filename": run.filename,
                "total_records": run.total_records,
                "success_count": 0,
                "error_count": 0,
                "upload_date": datetime.now(timezone.utc).isoformat(),
                "user_id": run.user_id,
            }).execute()
        except Exception as e:
            degradation = detect_degradation(e)
            if degradation:
                run.note_degradation(degradation)
            logger.warning(
                "upload_run_create_failed",
                filename=run.filename,
                degradation=degradation.value if degradation else None,
                error=str(e),
            )
            return None

        upload_id = result.data[0].get("id") if result.data else None
        logger.info(
            "upload_run_created",
            upload_id=upload_id,
            filename=run.filename,
            total_records=run.total_records,
        )
        return upload_id

    def finalize_run(self, run: UploadRun) -> bool:
        """Write final counts onto the run row."""
        if not run.upload_id:
            return False
        try:
            (
                self.db.table(self.table)
                .update({
                    "success_count": run.success_count,
                    "error_count": run.error_count,
                })
                .eq("id", run.upload_id)
                .execute()
            )
        except Exception as e:
            logger.warning(
                "upload_run_finalize_failed",
                upload_id=run.upload_id,
                degradation=_degradation_value(e),
                error=str(e),
            )
            return False

        logger.info(
            "upload_run_finalized",
            upload_id=run.upload_id,
            success_count=run.success_count,
            error_count=run.error_count,
        )
        return True

    def record_failures(self, run: UploadRun) -> bool:
        """Insert the failure log in one batch."""
        if not run.upload_id or not run.failures:
            return False
        rows = [
            {
                "upload_id": run.upload_id,
                "row_number": failure.row_number,
                "error_message": failure.error_message,
                "record_data": failure.record_data,
            }
            for failure in run.failures
        ]
        try:
            self.db.table(self.failures_table).insert(rows).execute()
        except Exception as e:
            logger.warning(
                "failed_records_insert_failed",
                upload_id=run.upload_id,
                count=len(rows),
                degradation=_degradation_value(e),
                error=str(e),
            )
            return False

        logger.info("failed_records_recorded", upload_id=run.upload_id, count=len(rows))
        return True

    # ===================
    # READ OPERATIONS
    # ===================

    def list_runs(self, user_id: str) -> list[UploadHistoryResponse]:
        """Upload runs of a user, newest first."""
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("user_id", user_id)
                .order("upload_date", desc=True)
                .execute()
            )
        except Exception as e:
            logger.error("list_upload_runs_failed", user_id=user_id, error=str(e))
            raise DatabaseError("select", str(e))

        return [UploadHistoryResponse(**row) for row in result.data or []]

    def get_failures(self, upload_id: str, user_id: str) -> list[FailedRecordResponse]:
        """
        Failure log of one run.

        Raises:
            UploadRunNotFoundError: Run missing or owned by someone else
        """
        try:
            run = (
                self.db.table(self.table)
                .select("id")
                .eq("id", upload_id)
                .eq("user_id", user_id)
                .execute()
            )
            if not run.data:
                raise UploadRunNotFoundError(upload_id)

            result = (
                self.db.table(self.failures_table)
                .select("*")
                .eq("upload_id", upload_id)
                .order("row_number")
                .execute()
            )
        except UploadRunNotFoundError:
            raise
        except Exception as e:
            logger.error("get_failed_records_failed", upload_id=upload_id, error=str(e))
            raise DatabaseError("select", str(e))

        return [FailedRecordResponse(**row) for row in result.data or []]


def _degradation_value(error: Exception) -> Optional[str]:
    kind = detect_degradation(error)
    return kind.value if kind else None


_service: Optional[UploadHistoryService] = None


def get_upload_history_service() -> UploadHistoryService:
    global _service
    if _service is None:
        _service = UploadHistoryService()
    return _service
