"""
Candidate API routes.

All routes operate on the candidates of the user in the X-User-Id header.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, StreamingResponse
from typing import Optional
import structlog

from exceptions import AppError
from models.candidate import (
    TARGET_FIELD_CATALOG,
    BulkDeleteRequest,
    BulkDeleteResponse,
    CandidateCreate,
    CandidateListResponse,
    CandidateResponse,
    CandidateUpdate,
    FieldDefinition,
)
from routes.dependencies import get_current_user_id
from services.candidate_service import (
    get_candidate_service,
    parse_filter_params,
    total_pages,
)
from services.export_service import get_export_service

logger = structlog.get_logger(__name__)

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


def _xlsx_response(buffer, filename: str) -> StreamingResponse:
    return StreamingResponse(
        buffer,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ===================
# UTILITY ROUTES
# ===================

@router.get("/catalog", response_model=list[FieldDefinition])
async def get_field_catalog():
    """Target fields a candidate record carries."""
    return list(TARGET_FIELD_CATALOG)


@router.get("/template")
async def download_template():
    """Blank upload template with one column per mappable field."""
    try:
        buffer = get_export_service().generate_template_excel()
        return _xlsx_response(buffer, "candidate_template.xlsx")
    except Exception as e:
        return handle_error(e)


@router.get("/export")
async def export_candidates(user_id: str = Depends(get_current_user_id)):
    """Download all of the user's candidates as Excel."""
    try:
        records = get_candidate_service().get_all_for_export(user_id)
        buffer = get_export_service().generate_candidates_excel(records)
        filename = f"candidates_{date.today().isoformat()}.xlsx"
        return _xlsx_response(buffer, filename)
    except Exception as e:
        return handle_error(e)


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete_candidates(
    data: BulkDeleteRequest,
    user_id: str = Depends(get_current_user_id),
):
    """Delete several candidates."""
    try:
        deleted = get_candidate_service().bulk_delete(data.ids, user_id)
        return BulkDeleteResponse(
            deleted=deleted,
            message=f"Successfully deleted {deleted} candidate(s)",
        )
    except Exception as e:
        return handle_error(e)


# ===================
# ROUTES
# ===================

@router.get("", response_model=CandidateListResponse)
async def list_candidates(
    search: Optional[str] = Query(None, description="Match any field (case-insensitive)"),
    filters: Optional[list[str]] = Query(None, alias="filter", description="Field:value, repeatable"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    user_id: str = Depends(get_current_user_id),
):
    """
    List candidates with search, filters and pagination.

    Raises:
        422: Malformed filter
    """
    try:
        parsed_filters = parse_filter_params(filters)
        candidates, total = get_candidate_service().get_all(
            user_id,
            search=search,
            filters=parsed_filters,
            page=page,
            page_size=page_size,
        )

        return CandidateListResponse(
            data=candidates,
            total=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages(total, page_size)
        )

    except Exception as e:
        return handle_error(e)


@router.get("/{candidate_id}", response_model=CandidateResponse)
async def get_candidate(
    candidate_id: str,
    user_id: str = Depends(get_current_user_id),
):
    """
    Get a single candidate.

    Raises:
        404: Candidate not found
    """
    try:
        return get_candidate_service().get_by_id(candidate_id, user_id)
    except Exception as e:
        return handle_error(e)


@router.post("", response_model=CandidateResponse, status_code=201)
async def create_candidate(
    data: CandidateCreate,
    user_id: str = Depends(get_current_user_id),
):
    """
    Add a candidate by hand.

    Raises:
        422: Name or Email missing
    """
    try:
        return get_candidate_service().create(data, user_id)
    except Exception as e:
        return handle_error(e)


@router.patch("/{candidate_id}", response_model=CandidateResponse)
async def update_candidate(
    candidate_id: str,
    data: CandidateUpdate,
    user_id: str = Depends(get_current_user_id),
):
    """
    Update a candidate.

    Only provided fields are updated.

    Raises:
        404: Candidate not found
        422: Name or Email blanked
    """
    try:
        return get_candidate_service().update(candidate_id, data, user_id)
    except Exception as e:
        return handle_error(e)


@router.delete("/{candidate_id}", status_code=204)
async def delete_candidate(
    candidate_id: str,
    user_id: str = Depends(get_current_user_id),
):
    """
    Delete a candidate.

    Raises:
        404: Candidate not found
    """
    try:
        get_candidate_service().delete(candidate_id, user_id)
        return None  # 204 No Content
    except Exception as e:
        return handle_error(e)
