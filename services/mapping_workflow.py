"""
Mapping review workflow.

One MappingWorkflow instance covers one upload attempt:

    analyzing -> mapping <-> review -> complete
         (mapping | review) -> cancelled

Column edits are only accepted while mapping. Moving to review requires
every required catalog field to be the target of at least one column.
The helper functions at module level are pure and used by the workflow
and by the API views.
"""

from typing import Any, Iterable, Optional
from uuid import uuid4
import structlog

from config import settings
from exceptions import (
    InvalidWorkflowTransitionError,
    MappingSuggestionFailedError,
    RequiredFieldsUnmappedError,
    UnknownSourceColumnError,
    UnknownTargetFieldError,
)
from models.candidate import (
    DATA_SOURCE_FIELD,
    TARGET_FIELD_CATALOG,
    FieldDefinition,
    mappable_fields,
    required_field_ids,
)
from models.mapping import (
    ColumnMapping,
    DuplicateMapping,
    FieldMappingStatus,
    FieldStatus,
    ReviewRow,
    SourceDataset,
    SuggestionSource,
    UploadProgress,
    WorkflowResponse,
    WorkflowState,
)
from services.column_matcher import suggest_mapping
from services.mapping_suggester_service import (
    MappingSuggesterService,
    get_mapping_suggester_service,
)
from utils.text_utils import cell_to_text

logger = structlog.get_logger(__name__)

DO_NOT_IMPORT = "do-not-import"

Catalog = tuple[FieldDefinition, ...]


# ===================
# PURE HELPERS
# ===================

def normalize_target(field_id: Optional[str]) -> Optional[str]:
    """Map the various "skip this column" spellings to None."""
    if field_id is None:
        return None
    field_id = field_id.strip()
    if not field_id or field_id == DO_NOT_IMPORT:
        return None
    return field_id


def mapped_targets(mapping: ColumnMapping) -> set[str]:
    """Field ids that at least one column maps to."""
    return {target for target in mapping.values() if normalize_target(target)}


def missing_required_fields(
    mapping: ColumnMapping,
    catalog: Catalog = TARGET_FIELD_CATALOG,
) -> list[str]:
    """Required field ids no column maps to, in catalog order."""
    targets = mapped_targets(mapping)
    return [fid for fid in required_field_ids(catalog) if fid not in targets]


def are_required_fields_mapped(
    mapping: ColumnMapping,
    catalog: Catalog = TARGET_FIELD_CATALOG,
) -> bool:
    """True if the mapped targets cover every required field."""
    return not missing_required_fields(mapping, catalog)


def _column_order(mapping: ColumnMapping, headers: Optional[list[str]]) -> list[str]:
    if headers is None:
        return list(mapping)
    return [h for h in dict.fromkeys(headers) if h in mapping]


def find_duplicate_mappings(
    mapping: ColumnMapping,
    headers: Optional[list[str]] = None,
) -> dict[str, list[str]]:
    """
    Targets claimed by more than one column.

    Args:
        mapping: Column -> field id
        headers: File header order; mapping order is used when omitted

    Returns:
        Field id -> columns in file order, only for fields with 2+ columns
    """
    by_target: dict[str, list[str]] = {}
    for column in _column_order(mapping, headers):
        target = normalize_target(mapping[column])
        if target:
            by_target.setdefault(target, []).append(column)

    return {target: columns for target, columns in by_target.items() if len(columns) > 1}


def columns_for_field(
    field_id: str,
    mapping: ColumnMapping,
    headers: Optional[list[str]] = None,
) -> list[str]:
    """Columns mapped to a field, in file order."""
    return [
        column for column in _column_order(mapping, headers)
        if normalize_target(mapping[column]) == field_id
    ]


def field_statuses(
    mapping: ColumnMapping,
    headers: Optional[list[str]] = None,
    catalog: Catalog = TARGET_FIELD_CATALOG,
) -> list[FieldMappingStatus]:
    """Coverage of every catalog field by the mapping."""
    statuses = []
    for field in catalog:
        columns = columns_for_field(field.id, mapping, headers)
        if field.auto_populate and not columns:
            status = FieldStatus.AUTO
        elif columns:
            status = FieldStatus.MAPPED
        elif field.required:
            status = FieldStatus.REQUIRED
        else:
            status = FieldStatus.UNMAPPED

        statuses.append(FieldMappingStatus(
            field_id=field.id,
            label=field.label,
            required=field.required,
            auto_populate=field.auto_populate,
            status=status,
            mapped_from=columns,
        ))
    return statuses


def review_rows(
    mapping: ColumnMapping,
    dataset: SourceDataset,
    catalog: Catalog = TARGET_FIELD_CATALOG,
) -> list[ReviewRow]:
    """
    Read-only review table.

    Shows, for every catalog field, the column it will be filled from and
    the first sample value. Auto-populated fields show where their value
    comes from instead.
    """
    first_sample = dataset.sample_rows[0] if dataset.sample_rows else []
    rows = []

    for field in catalog:
        columns = columns_for_field(field.id, mapping, dataset.headers)
        source = columns[0] if columns else None

        if source is not None:
            idx = dataset.headers.index(source)
            sample = cell_to_text(first_sample[idx]) if idx < len(first_sample) else ""
        elif field.auto_populate:
            sample = "From filename" if field.id == DATA_SOURCE_FIELD else "Current date"
        else:
            sample = None

        rows.append(ReviewRow(
            field_id=field.id,
            label=field.label,
            required=field.required,
            mapped_from=source,
            sample=sample,
        ))
    return rows


# ===================
# STATE MACHINE
# ===================

class MappingWorkflow:
    """
    State of one upload attempt between file analysis and import.

    Not thread-safe; requests for one workflow are handled one at a time.
    """

    def __init__(
        self,
        dataset: SourceDataset,
        user_id: str,
        workflow_id: Optional[str] = None,
        catalog: Catalog = TARGET_FIELD_CATALOG,
    ):
        self.workflow_id = workflow_id or str(uuid4())
        self.user_id = user_id
        self.filename = dataset.filename
        self.dataset: Optional[SourceDataset] = dataset
        self.catalog = catalog
        self.state = WorkflowState.ANALYZING
        self.mapping: ColumnMapping = {}
        self.suggested_by = SuggestionSource.NONE
        self.warnings: list[str] = []
        self.progress: Optional[UploadProgress] = None

    @property
    def headers(self) -> list[str]:
        return self.dataset.headers if self.dataset else []

    @property
    def can_review(self) -> bool:
        return are_required_fields_mapped(self.mapping, self.catalog)

    def _require_state(self, action: str, *allowed: WorkflowState) -> None:
        if self.state not in allowed:
            logger.warning(
                "workflow_transition_rejected",
                workflow_id=self.workflow_id,
                state=self.state.value,
                action=action,
            )
            raise InvalidWorkflowTransitionError(self.state.value, action)

    def _move(self, new_state: WorkflowState) -> None:
        logger.info(
            "workflow_state_changed",
            workflow_id=self.workflow_id,
            from_state=self.state.value,
            to_state=new_state.value,
        )
        self.state = new_state

    # ----- analysis -----

    def finish_analysis(
        self,
        mapping: Optional[ColumnMapping],
        source: SuggestionSource,
        warning: Optional[str] = None,
    ) -> None:
        """
        Enter mapping with the suggested mapping.

        Always succeeds from analyzing; a failed suggestion arrives here as
        an empty mapping plus a warning.
        """
        self._require_state("finish analysis", WorkflowState.ANALYZING)
        self.mapping = self._validated(mapping or {})
        self.suggested_by = source if self.mapping else SuggestionSource.NONE
        if warning:
            self.warnings.append(warning)
        self._move(WorkflowState.MAPPING)

    # ----- editing -----

    def _validated(self, changes: ColumnMapping) -> ColumnMapping:
        """Check columns and targets, normalize skips to None."""
        allowed = {f.id for f in mappable_fields(self.catalog)}
        headers = set(self.headers)
        validated: ColumnMapping = {}
        for column, field_id in changes.items():
            if column not in headers:
                raise UnknownSourceColumnError(column)
            target = normalize_target(field_id)
            if target is not None and target not in allowed:
                raise UnknownTargetFieldError(column, target)
            validated[column] = target
        return validated

    def set_column(self, column: str, field_id: Optional[str]) -> None:
        """Assign one column to a field, or to None to skip it."""
        self.update_mapping({column: field_id})

    def update_mapping(self, changes: ColumnMapping, replace: bool = False) -> None:
        """
        Apply several column assignments at once.

        Either all changes are applied or none (validation happens first).
        """
        self._require_state("edit mapping", WorkflowState.MAPPING)
        validated = self._validated(changes)
        if replace:
            self.mapping = validated
        else:
            self.mapping.update(validated)

        logger.info(
            "workflow_mapping_updated",
            workflow_id=self.workflow_id,
            changed=len(validated),
            replace=replace,
        )

    def reset_mapping(self) -> None:
        """Forget every assignment."""
        self._require_state("reset mapping", WorkflowState.MAPPING)
        self.mapping = {}
        self.suggested_by = SuggestionSource.NONE
        logger.info("workflow_mapping_reset", workflow_id=self.workflow_id)

    def apply_fuzzy_match(self) -> None:
        """Replace the mapping with a fresh fuzzy match."""
        self._require_state("auto-match columns", WorkflowState.MAPPING)
        self.mapping = suggest_mapping(self.headers, mappable_fields(self.catalog))
        self.suggested_by = SuggestionSource.FUZZY

    # ----- transitions -----

    def proceed_to_review(self) -> None:
        """
        Move to review.

        Raises:
            RequiredFieldsUnmappedError: State stays mapping
        """
        self._require_state("review mapping", WorkflowState.MAPPING)
        missing = missing_required_fields(self.mapping, self.catalog)
        if missing:
            logger.info(
                "workflow_review_blocked",
                workflow_id=self.workflow_id,
                missing=missing,
            )
            raise RequiredFieldsUnmappedError(missing)
        self._move(WorkflowState.REVIEW)

    def back_to_mapping(self) -> None:
        self._require_state("go back to mapping", WorkflowState.REVIEW)
        self._move(WorkflowState.MAPPING)

    def complete(self) -> ColumnMapping:
        """Finalize and hand over the mapping for import."""
        self._require_state("complete upload", WorkflowState.REVIEW)
        self._move(WorkflowState.COMPLETE)
        return dict(self.mapping)

    def cancel(self) -> None:
        """Abandon the attempt; mapping and file contents are dropped."""
        self._require_state("cancel", WorkflowState.MAPPING, WorkflowState.REVIEW)
        self.mapping = {}
        self.dataset = None
        self._move(WorkflowState.CANCELLED)

    # ----- upload progress -----

    def record_progress(self, processed: int, total: int) -> None:
        percent = round(processed / total * 100, 1) if total else 100.0
        self.progress = UploadProgress(processed=processed, total=total, percent=percent)

    # ----- views -----

    def duplicates(self) -> list[DuplicateMapping]:
        found = find_duplicate_mappings(self.mapping, self.headers)
        return [DuplicateMapping(field_id=fid, columns=cols) for fid, cols in found.items()]

    def to_response(self, expires_in_minutes: int = 30) -> WorkflowResponse:
        """Build the API view of this workflow."""
        dataset = self.dataset
        show_review = self.state in (WorkflowState.REVIEW, WorkflowState.COMPLETE)

        return WorkflowResponse(
            workflow_id=self.workflow_id,
            state=self.state,
            filename=self.filename,
            headers=self.headers,
            sample_rows=[_row_text(row) for row in dataset.sample_rows] if dataset else [],
            total_rows=dataset.row_count if dataset else 0,
            mapping=dict(self.mapping),
            suggested_by=self.suggested_by,
            duplicates=self.duplicates(),
            missing_required_fields=missing_required_fields(self.mapping, self.catalog),
            can_review=self.can_review,
            field_status=field_statuses(self.mapping, self.headers, self.catalog),
            review=review_rows(self.mapping, dataset, self.catalog) if show_review and dataset else [],
            warnings=list(self.warnings),
            progress=self.progress,
            expires_in_minutes=expires_in_minutes,
        )


def _row_text(row: Iterable[Any]) -> list[str]:
    return [cell_to_text(v) for v in row]


# ===================
# ANALYSIS
# ===================

AI_FAILED_WARNING = (
    "We couldn't suggest a column mapping automatically. "
    "Please map your columns manually or use auto-match."
)


async def start_workflow(
    dataset: SourceDataset,
    user_id: str,
    suggester: Optional[MappingSuggesterService] = None,
    use_ai: Optional[bool] = None,
) -> MappingWorkflow:
    """
    Create a workflow and run the initial suggestion.

    Uses the AI suggester when enabled, the fuzzy matcher otherwise. A
    failed AI suggestion never fails the analysis: the workflow enters
    mapping with an empty mapping and a warning.
    """
    workflow = MappingWorkflow(dataset, user_id)
    fields = mappable_fields(workflow.catalog)
    use_ai = settings.use_ai_suggester if use_ai is None else use_ai

    logger.info(
        "workflow_created",
        workflow_id=workflow.workflow_id,
        filename=dataset.filename,
        columns=len(dataset.headers),
        rows=dataset.row_count,
        suggester="ai" if use_ai else "fuzzy",
    )

    if not use_ai:
        workflow.finish_analysis(suggest_mapping(dataset.headers, fields), SuggestionSource.FUZZY)
        return workflow

    suggester = suggester or get_mapping_suggester_service()
    try:
        mapping = await suggester.suggest(dataset.headers, dataset.sample_rows, fields)
    except MappingSuggestionFailedError as e:
        logger.warning(
            "workflow_ai_suggestion_failed",
            workflow_id=workflow.workflow_id,
            attempts=e.attempts,
            error=e.message,
        )
        workflow.finish_analysis({}, SuggestionSource.NONE, warning=AI_FAILED_WARNING)
        return workflow
    except Exception as e:
        logger.error(
            "workflow_ai_suggestion_crashed",
            workflow_id=workflow.workflow_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        workflow.finish_analysis({}, SuggestionSource.NONE, warning=AI_FAILED_WARNING)
        return workflow

    workflow.finish_analysis(mapping, SuggestionSource.AI)
    return workflow
