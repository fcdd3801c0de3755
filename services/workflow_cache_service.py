"""
Temporary storage for mapping workflows.
Keeps in-flight workflows in memory with TTL expiration.
Single process only; a restart drops every open workflow.
"""
from datetime import datetime, timedelta
from typing import Optional
import structlog

from config import settings
from exceptions import WorkflowNotFoundError
from services.mapping_workflow import MappingWorkflow

logger = structlog.get_logger(__name__)

_cache: dict[str, tuple[datetime, MappingWorkflow]] = {}


def _ttl(ttl_minutes: Optional[int]) -> timedelta:
    return timedelta(minutes=ttl_minutes or settings.workflow_ttl_minutes)


def store_workflow(workflow: MappingWorkflow, ttl_minutes: Optional[int] = None) -> str:
    """Store (or refresh) a workflow, return its id."""
    _cache[workflow.workflow_id] = (datetime.now() + _ttl(ttl_minutes), workflow)
    _cleanup_expired()
    return workflow.workflow_id


def retrieve_workflow(workflow_id: str) -> Optional[MappingWorkflow]:
    """Retrieve workflow by id. Returns None if expired/not found."""
    entry = _cache.get(workflow_id)
    if entry is None:
        return None
    expires_at, workflow = entry
    if datetime.now() > expires_at:
        del _cache[workflow_id]
        logger.info("workflow_expired", workflow_id=workflow_id)
        return None
    return workflow


def get_workflow(workflow_id: str, user_id: str) -> MappingWorkflow:
    """
    Retrieve a workflow owned by user_id and extend its TTL.

    Raises:
        WorkflowNotFoundError: Expired, unknown, or owned by someone else
    """
    workflow = retrieve_workflow(workflow_id)
    if workflow is None or workflow.user_id != user_id:
        raise WorkflowNotFoundError(workflow_id)
    store_workflow(workflow)
    return workflow


def delete_workflow(workflow_id: str) -> None:
    """Remove workflow after completion or cancel."""
    _cache.pop(workflow_id, None)


def clear_workflows() -> None:
    """Drop every stored workflow."""
    _cache.clear()


def _cleanup_expired() -> None:
    """Remove all expired entries."""
    now = datetime.now()
    expired = [k for k, (exp, _) in _cache.items() if now > exp]
    for k in expired:
        del _cache[k]
