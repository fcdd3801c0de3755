"""
Spreadsheet parser for candidate uploads.

Reads the first sheet of an .xlsx/.xls/.csv file into a SourceDataset.
The first row is always the header row; there is no header detection.
"""

import csv
from io import BytesIO, StringIO
from pathlib import PurePath
from typing import Any, Union
import structlog

import pandas as pd

from exceptions import EmptyOrMalformedError, UnsupportedFormatError
from models.mapping import SourceDataset
from utils.text_utils import cell_to_text, is_blank

logger = structlog.get_logger(__name__)

ALLOWED_EXTENSIONS = (".xlsx", ".xls", ".csv")
DEFAULT_SAMPLE_SIZE = 3

_EXCEL_ENGINES = {
    ".xlsx": "openpyxl",
    ".xls": "xlrd",
}


def get_extension(filename: str) -> str:
    """Lowercased extension including the dot, or empty string."""
    return PurePath(filename or "").suffix.lower()


def ensure_supported(filename: str) -> str:
    """
    Check the extension whitelist.

    Raises:
        UnsupportedFormatError: If the file is not a spreadsheet we read
    """
    extension = get_extension(filename)
    if extension not in ALLOWED_EXTENSIONS:
        logger.warning("unsupported_upload_format", filename=filename, extension=extension)
        raise UnsupportedFormatError(filename, list(ALLOWED_EXTENSIONS))
    return extension


def read_spreadsheet(
    file: Union[bytes, BytesIO],
    filename: str,
    sample_size: int = DEFAULT_SAMPLE_SIZE,
) -> SourceDataset:
    """
    Parse an uploaded spreadsheet.

    Args:
        file: File content (bytes or file-like object)
        filename: Original filename, used for the extension check and as data source
        sample_size: Number of data rows kept as preview sample

    Returns:
        SourceDataset with headers, sample rows and all rows

    Raises:
        UnsupportedFormatError: Extension not in ALLOWED_EXTENSIONS
        EmptyOrMalformedError: Unreadable file, or fewer than two rows
    """
    extension = ensure_supported(filename)
    buffer = BytesIO(file) if isinstance(file, (bytes, bytearray)) else file

    logger.info("parsing_spreadsheet", filename=filename, extension=extension)

    try:
        if extension == ".csv":
            df = _read_csv(buffer)
        else:
            df = pd.read_excel(
                buffer,
                sheet_name=0,
                header=None,
                dtype=object,
                engine=_EXCEL_ENGINES[extension],
            )
    except pd.errors.EmptyDataError:
        raise EmptyOrMalformedError(filename)
    except Exception as e:
        logger.error("spreadsheet_read_failed", filename=filename, error=str(e))
        raise EmptyOrMalformedError(
            filename,
            message="Failed to read file. Please ensure it's a valid .xlsx, .xls or .csv file.",
            details={"original_error": str(e)},
        )

    rows = _frame_to_rows(df)

    if len(rows) < 2:
        logger.warning("spreadsheet_too_small", filename=filename, rows=len(rows))
        raise EmptyOrMalformedError(filename)

    headers = [cell_to_text(h) for h in rows[0]]
    data_rows = rows[1:]

    logger.info(
        "spreadsheet_parsed",
        filename=filename,
        columns=len(headers),
        rows=len(data_rows),
    )

    return SourceDataset(
        filename=filename,
        headers=headers,
        sample_rows=data_rows[:sample_size],
        all_rows=data_rows,
    )


def _decode_csv(buffer: BytesIO) -> str:
    """CSV bytes as text; falls back to latin-1 for legacy exports."""
    raw = buffer.read()
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def _read_csv(buffer: BytesIO) -> pd.DataFrame:
    """
    Read CSV as text cells.

    Rows may carry more fields than the header; every row is read at the
    width of the widest one and short rows are padded with missing cells.
    """
    text = _decode_csv(buffer)
    width = max((len(row) for row in csv.reader(StringIO(text))), default=0)
    if width == 0:
        raise pd.errors.EmptyDataError("No columns to parse from file")

    return pd.read_csv(
        StringIO(text),
        header=None,
        names=list(range(width)),
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
    )


def _frame_to_rows(df: pd.DataFrame) -> list[list[Any]]:
    """Convert a headerless frame to row lists, NaN → None, blank rows dropped."""
    rows: list[list[Any]] = []
    for values in df.itertuples(index=False, name=None):
        row = [None if _is_missing(v) else v for v in values]
        if all(is_blank(v) for v in row):
            continue
        rows.append(row)
    return rows


def _is_missing(value: Any) -> bool:
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False
