"""
Candidate service for business logic operations.

Every read and write is scoped to the user id passed in; there is no
ambient "current user". insert_candidate is the store call used by the
upload orchestrator and reports backend misconfiguration as a value
instead of raising.
"""

from dataclasses import dataclass
from datetime import date
from math import ceil
from typing import Optional
import structlog

from config import get_supabase_client, detect_degradation, DegradationKind
from models.base import PaginationParams
from models.candidate import (
    DATA_SOURCE_FIELD,
    LOADED_DATE_FIELD,
    MANUAL_ENTRY_SOURCE,
    UPDATED_DATE_FIELD,
    CandidateCreate,
    CandidateRecord,
    CandidateResponse,
    CandidateUpdate,
    empty_candidate,
    field_ids,
)
from exceptions import (
    CandidateNotFoundError,
    DatabaseError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

# Supabase caps a single select at 1000 rows by default
EXPORT_PAGE_SIZE = 1000


@dataclass
class PersistResult:
    """Outcome of storing one candidate."""
    record_id: Optional[str] = None
    degradation: Optional[DegradationKind] = None

    @property
    def degraded(self) -> bool:
        return self.degradation is not None


# ===================
# SEARCH HELPERS
# ===================

def parse_filter_params(raw_filters: Optional[list[str]]) -> dict[str, str]:
    """
    Parse repeated `Field:value` query parameters.

    Raises:
        ValidationError: Malformed entry or unknown field
    """
    known = set(field_ids())
    filters: dict[str, str] = {}
    for raw in raw_filters or []:
        field_id, sep, value = raw.partition(":")
        field_id = field_id.strip()
        if not sep or field_id not in known:
            raise ValidationError(
                f"Invalid filter '{raw}'. Use Field:value with a catalog field",
                code="INVALID_FILTER",
                details={"filter": raw},
            )
        if value.strip():
            filters[field_id] = value.strip()
    return filters


def like_pattern(value: str) -> str:
    """Substring pattern for ilike; LIKE wildcards in the value match literally."""
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _quote(token: str) -> str:
    return '"' + token.replace("\\", "\\\\").replace('"', '\\"') + '"'


def search_condition(search: str, columns: Optional[list[str]] = None) -> str:
    """
    PostgREST or-filter matching the search text in any column.

    Column names and the pattern are quoted so spaces, commas and
    parentheses survive the filter syntax.
    """
    pattern = _quote(like_pattern(search))
    return ",".join(
        f"{_quote(column)}.ilike.{pattern}" for column in (columns or field_ids())
    )


def total_pages(total: int, page_size: int) -> int:
    return ceil(total / page_size) if page_size else 0


class CandidateService:
    """
    Candidate business logic.

    Handles CRUD operations, search and the per-record insert used by
    file uploads.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "candidates"

    # ===================
    # READ OPERATIONS
    # ===================

    def _user_query(self, user_id: str, count: Optional[str] = None):
        return (
            self.db.table(self.table)
            .select("*", count=count)
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .order("id")
        )

    def get_all(
        self,
        user_id: str,
        search: Optional[str] = None,
        filters: Optional[dict[str, str]] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[CandidateResponse], int]:
        """
        Get the user's candidates with search, filters and pagination.

        Args:
            user_id: Owner of the records
            search: Substring matched against every field
            filters: Field id -> substring
            page: Page number (1-indexed)
            page_size: Items per page

        Returns:
            Tuple of (candidates on the page, total matches)
        """
        logger.info(
            "getting_candidates",
            user_id=user_id,
            search=search,
            filters=list((filters or {}).keys()),
            page=page,
            page_size=page_size,
        )

        try:
            query = self._user_query(user_id, count="exact")

            # Apply filters
            if search and search.strip():
                query = query.or_(search_condition(search.strip()))
            for field_id, value in (filters or {}).items():
                query = query.ilike(field_id, like_pattern(value))

            # Apply pagination
            params = PaginationParams(page=page, page_size=page_size)
            query = query.range(params.offset, params.offset + params.limit - 1)

            result = query.execute()
        except Exception as e:
            logger.error("get_candidates_failed", user_id=user_id, error=str(e))
            raise DatabaseError("select", str(e))

        candidates = [CandidateResponse(**row) for row in result.data or []]
        total = result.count or 0

        logger.info(
            "candidates_retrieved",
            count=len(candidates),
            total=total,
        )

        return candidates, total

    def get_by_id(self, candidate_id: str, user_id: str) -> CandidateResponse:
        """
        Get a single candidate.

        Raises:
            CandidateNotFoundError: Missing or owned by someone else
        """
        logger.debug("getting_candidate", candidate_id=candidate_id)

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", candidate_id)
                .eq("user_id", user_id)
                .execute()
            )
        except Exception as e:
            logger.error(
                "get_candidate_failed",
                candidate_id=candidate_id,
                error=str(e)
            )
            raise DatabaseError("select", str(e))

        if not result.data:
            raise CandidateNotFoundError(candidate_id)

        return CandidateResponse(**result.data[0])

    def get_all_for_export(self, user_id: str) -> list[CandidateRecord]:
        """All of the user's candidates as catalog records, read page by page."""
        rows: list[dict] = []
        offset = 0
        try:
            while True:
                result = (
                    self._user_query(user_id)
                    .range(offset, offset + EXPORT_PAGE_SIZE - 1)
                    .execute()
                )
                batch = result.data or []
                rows.extend(batch)
                if len(batch) < EXPORT_PAGE_SIZE:
                    break
                offset += EXPORT_PAGE_SIZE
        except Exception as e:
            logger.error("export_candidates_failed", user_id=user_id, error=str(e))
            raise DatabaseError("select", str(e))

        logger.info("candidates_exported", user_id=user_id, count=len(rows))
        return [CandidateResponse(**row).to_record() for row in rows]

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create(
        self,
        data: CandidateCreate,
        user_id: str,
        today: Optional[date] = None,
    ) -> CandidateResponse:
        """
        Create a manually entered candidate.

        Data source is "Manual Entry"; both date fields are set to today.
        """
        stamp = (today or date.today()).isoformat()
        record = empty_candidate()
        record.update(data.to_record())
        record[DATA_SOURCE_FIELD] = MANUAL_ENTRY_SOURCE
        record[LOADED_DATE_FIELD] = stamp
        record[UPDATED_DATE_FIELD] = stamp

        logger.info("creating_candidate", user_id=user_id)

        try:
            result = (
                self.db.table(self.table)
                .insert({**record, "user_id": user_id})
                .execute()
            )
        except Exception as e:
            logger.error("create_candidate_failed", user_id=user_id, error=str(e))
            raise DatabaseError("insert", str(e))

        candidate = CandidateResponse(**result.data[0])
        logger.info("candidate_created", candidate_id=candidate.id)
        return candidate

    def update(
        self,
        candidate_id: str,
        data: CandidateUpdate,
        user_id: str,
        today: Optional[date] = None,
    ) -> CandidateResponse:
        """
        Update provided fields and stamp the last-updated date.

        Raises:
            CandidateNotFoundError: If candidate doesn't exist
        """
        logger.info("updating_candidate", candidate_id=candidate_id)

        self.get_by_id(candidate_id, user_id)

        update_data = data.to_record()
        update_data[UPDATED_DATE_FIELD] = (today or date.today()).isoformat()

        try:
            result = (
                self.db.table(self.table)
                .update(update_data)
                .eq("id", candidate_id)
                .eq("user_id", user_id)
                .execute()
            )
        except Exception as e:
            logger.error(
                "update_candidate_failed",
                candidate_id=candidate_id,
                error=str(e)
            )
            raise DatabaseError("update", str(e))

        if not result.data:
            raise CandidateNotFoundError(candidate_id)

        logger.info(
            "candidate_updated",
            candidate_id=candidate_id,
            fields=list(update_data.keys())
        )
        return CandidateResponse(**result.data[0])

    def delete(self, candidate_id: str, user_id: str) -> bool:
        """
        Delete a candidate.

        Raises:
            CandidateNotFoundError: If candidate doesn't exist
        """
        logger.info("deleting_candidate", candidate_id=candidate_id)

        self.get_by_id(candidate_id, user_id)

        try:
            (
                self.db.table(self.table)
                .delete()
                .eq("id", candidate_id)
                .eq("user_id", user_id)
                .execute()
            )
        except Exception as e:
            logger.error(
                "delete_candidate_failed",
                candidate_id=candidate_id,
                error=str(e)
            )
            raise DatabaseError("delete", str(e))

        logger.info("candidate_deleted", candidate_id=candidate_id)
        return True

    def bulk_delete(self, candidate_ids: list[str], user_id: str) -> int:
        """
        Delete several candidates.

        Returns:
            Number of rows deleted
        """
        logger.info("bulk_deleting_candidates", count=len(candidate_ids))

        try:
            result = (
                self.db.table(self.table)
                .delete()
                .in_("id", candidate_ids)
                .eq("user_id", user_id)
                .execute()
            )
        except Exception as e:
            logger.error("bulk_delete_candidates_failed", error=str(e))
            raise DatabaseError("delete", str(e))

        deleted = len(result.data or [])
        logger.info("candidates_bulk_deleted", requested=len(candidate_ids), deleted=deleted)
        return deleted

    # ===================
    # UPLOAD STORE
    # ===================

    def insert_candidate(self, record: CandidateRecord, user_id: str) -> PersistResult:
        """
        Store one transformed record.

        Returns:
            PersistResult; degradation is set when the store rejected the
            write because of a known configuration defect

        Raises:
            DatabaseError: Any other store failure
        """
        try:
            result = (
                self.db.table(self.table)
                .insert({**record, "user_id": user_id})
                .execute()
            )
        except Exception as e:
            degradation = detect_degradation(e)
            if degradation:
                logger.warning(
                    "candidate_insert_degraded",
                    degradation=degradation.value,
                    error=str(e),
                )
                return PersistResult(degradation=degradation)
            raise DatabaseError("insert", str(e))

        record_id = result.data[0].get("id") if result.data else None
        return PersistResult(record_id=record_id)


_service: Optional[CandidateService] = None


def get_candidate_service() -> CandidateService:
    """Get or create CandidateService instance."""
    global _service
    if _service is None:
        _service = CandidateService()
    return _service
