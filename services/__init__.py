"""
Business logic services.

Each service handles one domain area.
"""

from services.candidate_service import CandidateService, get_candidate_service
from services.upload_history_service import UploadHistoryService, get_upload_history_service
from services.export_service import ExportService, get_export_service
from services.mapping_suggester_service import (
    MappingSuggesterService,
    get_mapping_suggester_service,
)
from services.mapping_workflow import MappingWorkflow, start_workflow
from services.upload_orchestrator import UploadOrchestrator

__all__ = [
    "CandidateService",
    "get_candidate_service",
    "UploadHistoryService",
    "get_upload_history_service",
    "ExportService",
    "get_export_service",
    "MappingSuggesterService",
    "get_mapping_suggester_service",
    "MappingWorkflow",
    "start_workflow",
    "UploadOrchestrator",
]
