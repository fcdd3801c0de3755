"""
Record transformer.

Turns spreadsheet rows into candidate records using a finalized mapping.
Every catalog field is present on every record; auto-populated fields get
today's date and the source filename unless a column is explicitly mapped
to them. No row is ever dropped here; validation happens during upload.
"""

from datetime import date
from typing import Any, Optional
import structlog

from models.candidate import (
    DATA_SOURCE_FIELD,
    DEFAULT_FILE_SOURCE,
    LOADED_DATE_FIELD,
    TARGET_FIELD_CATALOG,
    UPDATED_DATE_FIELD,
    CandidateRecord,
    FieldDefinition,
    empty_candidate,
)
from models.mapping import ColumnMapping
from services.mapping_workflow import normalize_target
from utils.text_utils import cell_to_text

logger = structlog.get_logger(__name__)


def column_sources(headers: list[str], mapping: ColumnMapping) -> dict[str, int]:
    """
    Column index feeding each mapped field.

    When several headers map to the same field the first one in file
    order wins.
    """
    sources: dict[str, int] = {}
    for idx, header in enumerate(headers):
        target = normalize_target(mapping.get(header))
        if target and target not in sources:
            sources[target] = idx
    return sources


def transform_row(
    row: list[Any],
    sources: dict[str, int],
    filename: Optional[str],
    today: str,
    catalog: tuple[FieldDefinition, ...] = TARGET_FIELD_CATALOG,
) -> CandidateRecord:
    """Build one candidate record from a data row."""
    record = empty_candidate(catalog)
    record[LOADED_DATE_FIELD] = today
    record[UPDATED_DATE_FIELD] = today
    record[DATA_SOURCE_FIELD] = filename or DEFAULT_FILE_SOURCE

    for field_id, idx in sources.items():
        if field_id not in record:
            continue
        record[field_id] = cell_to_text(row[idx]) if idx < len(row) else ""

    return record


def transform_rows(
    all_rows: list[list[Any]],
    headers: list[str],
    mapping: ColumnMapping,
    filename: Optional[str],
    today: Optional[date] = None,
    catalog: tuple[FieldDefinition, ...] = TARGET_FIELD_CATALOG,
) -> list[CandidateRecord]:
    """
    Transform every data row.

    Args:
        all_rows: Data rows (header excluded)
        headers: Header row, defines column positions
        mapping: Column -> field id (None = do not import)
        filename: Source filename; "File Upload" when empty
        today: Date stamped on records (defaults to today)

    Returns:
        One record per input row, same order
    """
    stamp = (today or date.today()).isoformat()
    sources = column_sources(headers, mapping)

    records = [transform_row(row, sources, filename, stamp, catalog) for row in all_rows]

    logger.info(
        "records_transformed",
        filename=filename,
        rows=len(records),
        mapped_fields=len(sources),
    )
    return records
