"""
Upload orchestrator.

Stores transformed candidate records one at a time, in input order, and
keeps the running tally in an UploadRun. Records without a name are
rejected without touching the store. Store errors caused by a known
backend misconfiguration count as successes and produce a single advisory
for the whole run; any other store error lands in the failure log.

The store client is synchronous, so every store call runs in a worker
thread and the event loop keeps serving other requests meanwhile.
"""

import asyncio
from typing import Callable, Optional
import structlog

from config import settings
from exceptions import DatabaseError
from models.candidate import NAME_FIELD, CandidateRecord
from models.upload import UploadRun
from services.candidate_service import CandidateService, get_candidate_service
from services.upload_history_service import UploadHistoryService, get_upload_history_service

logger = structlog.get_logger(__name__)

NAME_REQUIRED_MESSAGE = "Name field is required but missing"

ProgressCallback = Callable[[int, int], None]


class UploadOrchestrator:
    """Sequential importer for one batch of candidate records."""

    def __init__(
        self,
        candidate_service: Optional[CandidateService] = None,
        history_service: Optional[UploadHistoryService] = None,
        yield_every: Optional[int] = None,
    ):
        self.candidates = candidate_service or get_candidate_service()
        self.history = history_service or get_upload_history_service()
        self.yield_every = max(1, yield_every or settings.upload_yield_every)

    async def run(
        self,
        records: list[CandidateRecord],
        filename: str,
        user_id: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> UploadRun:
        """
        Import records.

        Args:
            records: Transformed candidate records
            filename: Source filename, stored on the run
            user_id: Owner stamped on every write
            on_progress: Called with (processed, total) after each record

        Returns:
            Finalized UploadRun with counts, failures and advisory
        """
        run = UploadRun(filename=filename, total_records=len(records), user_id=user_id)
        run.upload_id = await asyncio.to_thread(self.history.create_run, run)

        logger.info(
            "upload_started",
            upload_id=run.upload_id,
            filename=filename,
            total_records=run.total_records,
        )

        for row_number, record in enumerate(records, start=1):
            await self._import_one(run, row_number, record)

            if on_progress:
                on_progress(run.processed, run.total_records)

            if row_number % self.yield_every == 0:
                await asyncio.sleep(0)

        run.finalize()
        await asyncio.to_thread(self.history.finalize_run, run)
        await asyncio.to_thread(self.history.record_failures, run)

        logger.info(
            "upload_completed",
            upload_id=run.upload_id,
            success_count=run.success_count,
            error_count=run.error_count,
            degradation=run.degradation.value if run.degradation else None,
        )
        return run

    async def _import_one(self, run: UploadRun, row_number: int, record: CandidateRecord) -> None:
        if not (record.get(NAME_FIELD) or "").strip():
            run.record_failure(row_number, NAME_REQUIRED_MESSAGE, record)
            logger.info("upload_record_rejected", row_number=row_number, reason="missing_name")
            return

        try:
            result = await asyncio.to_thread(self.candidates.insert_candidate, record, run.user_id)
        except DatabaseError as e:
            run.record_failure(row_number, e.message, record)
            logger.warning("upload_record_failed", row_number=row_number, error=e.message)
            return

        if result.degraded:
            if run.record_degraded(result.degradation):
                logger.warning(
                    "upload_degraded",
                    upload_id=run.upload_id,
                    degradation=result.degradation.value,
                    row_number=row_number,
                )
        else:
            run.record_success()
