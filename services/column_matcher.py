"""
Fuzzy column matcher.

Proposes a source column -> catalog field mapping from header names alone.
Greedy and order-dependent: for each header the first catalog field (in
catalog order) whose normalized label or id contains the normalized header,
or is contained by it, wins. Reviewers correct mismatches afterwards.
"""

from typing import Iterable, Optional
import structlog

from models.candidate import FieldDefinition, mappable_fields
from models.mapping import ColumnMapping
from utils.text_utils import normalize_header

logger = structlog.get_logger(__name__)


def _contains_either_way(a: str, b: str) -> bool:
    return a in b or b in a


def match_header(header: str, fields: Iterable[FieldDefinition]) -> Optional[str]:
    """
    Find the first field matching a header.

    Args:
        header: Source column header
        fields: Candidate target fields, in priority order

    Returns:
        Field id, or None if nothing matches
    """
    normalized = normalize_header(header)
    if not normalized:
        return None

    for field in fields:
        label = normalize_header(field.label)
        field_id = normalize_header(field.id)
        if _contains_either_way(normalized, label) or _contains_either_way(normalized, field_id):
            return field.id

    return None


def suggest_mapping(
    headers: list[str],
    fields: Optional[list[FieldDefinition]] = None,
) -> ColumnMapping:
    """
    Build a fresh mapping for all headers.

    Never fails; headers without a match are left out. The result always
    replaces whatever mapping the caller had before.

    Args:
        headers: Source headers in file order
        fields: Mappable fields (defaults to the catalog minus auto-populated fields)

    Returns:
        Mapping of matched headers to field ids
    """
    fields = fields if fields is not None else mappable_fields()
    fields = [f for f in fields if not f.auto_populate]

    mapping: ColumnMapping = {}
    for header in headers:
        if header in mapping:
            continue
        field_id = match_header(header, fields)
        if field_id:
            mapping[header] = field_id

    logger.info(
        "fuzzy_mapping_suggested",
        headers=len(headers),
        matched=len(mapping),
    )

    return mapping
