"""
Candidate upload API routes.

Flow:
    POST /analyze                        file -> workflow in "mapping"
    PUT  /workflows/{id}/mapping         adjust column assignments
    POST /workflows/{id}/review          mapping -> review
    POST /workflows/{id}/complete        review -> complete, import records

Workflows live in memory and expire after WORKFLOW_TTL_MINUTES of inactivity.
"""

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import JSONResponse
import structlog

from config import settings
from exceptions import AppError
from models.mapping import MappingUpdateRequest, WorkflowResponse
from models.upload import (
    FailedRecordResponse,
    UploadHistoryListResponse,
    UploadResultResponse,
)
from parsers.spreadsheet_parser import read_spreadsheet
from routes.dependencies import get_current_user_id
from services.mapping_workflow import MappingWorkflow, start_workflow
from services.record_transformer import transform_rows
from services.upload_history_service import get_upload_history_service
from services.upload_orchestrator import UploadOrchestrator
from services.workflow_cache_service import (
    delete_workflow,
    get_workflow,
    store_workflow,
)

logger = structlog.get_logger(__name__)

router = APIRouter()


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


def _view(workflow: MappingWorkflow) -> WorkflowResponse:
    return workflow.to_response(expires_in_minutes=settings.workflow_ttl_minutes)


# ===================
# ANALYSIS
# ===================

@router.post("/analyze", response_model=WorkflowResponse, status_code=201)
async def analyze_upload(
    file: UploadFile = File(..., description="Excel (.xlsx, .xls) or CSV file"),
    user_id: str = Depends(get_current_user_id),
):
    """
    Read a spreadsheet and propose a column mapping.

    Nothing is saved; the returned workflow id is used for the
    remaining steps.

    Raises:
        422: Unsupported format, or file without data rows
    """
    logger.info(
        "upload_analysis_started",
        filename=file.filename,
        content_type=file.content_type,
        user_id=user_id,
    )

    try:
        content = await file.read()
        dataset = read_spreadsheet(
            content,
            file.filename or "",
            sample_size=settings.sample_row_count,
        )

        workflow = await start_workflow(dataset, user_id)
        store_workflow(workflow)

        return _view(workflow)

    except Exception as e:
        return handle_error(e)


# ===================
# WORKFLOW
# ===================

@router.get("/workflows/{workflow_id}", response_model=WorkflowResponse)
async def get_workflow_view(
    workflow_id: str,
    user_id: str = Depends(get_current_user_id),
):
    """Current state of a workflow, including upload progress."""
    try:
        return _view(get_workflow(workflow_id, user_id))
    except Exception as e:
        return handle_error(e)


@router.put("/workflows/{workflow_id}/mapping", response_model=WorkflowResponse)
async def update_workflow_mapping(
    workflow_id: str,
    data: MappingUpdateRequest,
    user_id: str = Depends(get_current_user_id),
):
    """
    Change column assignments.

    Raises:
        422: Unknown column or field, or workflow not in mapping
    """
    try:
        workflow = get_workflow(workflow_id, user_id)
        workflow.update_mapping(data.mapping, replace=data.replace)
        return _view(workflow)
    except Exception as e:
        return handle_error(e)


@router.post("/workflows/{workflow_id}/auto-match", response_model=WorkflowResponse)
async def auto_match_workflow(
    workflow_id: str,
    user_id: str = Depends(get_current_user_id),
):
    """Replace the mapping with a fuzzy header match."""
    try:
        workflow = get_workflow(workflow_id, user_id)
        workflow.apply_fuzzy_match()
        return _view(workflow)
    except Exception as e:
        return handle_error(e)


@router.post("/workflows/{workflow_id}/reset", response_model=WorkflowResponse)
async def reset_workflow_mapping(
    workflow_id: str,
    user_id: str = Depends(get_current_user_id),
):
    """Clear every column assignment."""
    try:
        workflow = get_workflow(workflow_id, user_id)
        workflow.reset_mapping()
        return _view(workflow)
    except Exception as e:
        return handle_error(e)


@router.post("/workflows/{workflow_id}/review", response_model=WorkflowResponse)
async def review_workflow(
    workflow_id: str,
    user_id: str = Depends(get_current_user_id),
):
    """
    Move to review.

    Raises:
        422: Required fields unmapped (details.missing_fields)
    """
    try:
        workflow = get_workflow(workflow_id, user_id)
        workflow.proceed_to_review()
        return _view(workflow)
    except Exception as e:
        return handle_error(e)


@router.post("/workflows/{workflow_id}/back", response_model=WorkflowResponse)
async def back_to_mapping(
    workflow_id: str,
    user_id: str = Depends(get_current_user_id),
):
    """Return from review to mapping."""
    try:
        workflow = get_workflow(workflow_id, user_id)
        workflow.back_to_mapping()
        return _view(workflow)
    except Exception as e:
        return handle_error(e)


@router.post("/workflows/{workflow_id}/complete", response_model=UploadResultResponse)
async def complete_workflow(
    workflow_id: str,
    user_id: str = Depends(get_current_user_id),
):
    """
    Import the reviewed file.

    Transforms every row with the final mapping and stores the records.
    Per-record failures are reported in the result, not as an error.
    """
    try:
        workflow = get_workflow(workflow_id, user_id)
        dataset = workflow.dataset
        mapping = workflow.complete()

        records = transform_rows(
            dataset.all_rows,
            dataset.headers,
            mapping,
            dataset.filename,
        )

        run = await UploadOrchestrator().run(
            records,
            dataset.filename,
            user_id,
            on_progress=workflow.record_progress,
        )
        if run.warning:
            workflow.warnings.append(run.warning)

        return UploadResultResponse.from_run(run)

    except Exception as e:
        return handle_error(e)


@router.delete("/workflows/{workflow_id}")
async def cancel_workflow(
    workflow_id: str,
    user_id: str = Depends(get_current_user_id),
):
    """Cancel an upload before it starts; the file contents are discarded."""
    try:
        workflow = get_workflow(workflow_id, user_id)
        workflow.cancel()
        delete_workflow(workflow_id)
        return {"workflow_id": workflow_id, "state": workflow.state.value}
    except Exception as e:
        return handle_error(e)


# ===================
# HISTORY
# ===================

@router.get("/history", response_model=UploadHistoryListResponse)
async def list_upload_history(user_id: str = Depends(get_current_user_id)):
    """The user's upload runs, newest first."""
    try:
        runs = get_upload_history_service().list_runs(user_id)
        return UploadHistoryListResponse(data=runs, total=len(runs))
    except Exception as e:
        return handle_error(e)


@router.get("/history/{upload_id}/failures", response_model=list[FailedRecordResponse])
async def list_upload_failures(
    upload_id: str,
    user_id: str = Depends(get_current_user_id),
):
    """
    Failure log of one upload.

    Raises:
        404: Upload not found
    """
    try:
        return get_upload_history_service().get_failures(upload_id, user_id)
    except Exception as e:
        return handle_error(e)
