"""
Parser for article import uploads.

Turns an uploaded CSV or spreadsheet into a header list plus
row records keyed by header. Cells are typed individually
(number, boolean, text or empty).

CSV: delimiter detected among comma, semicolon, tab and pipe.
Spreadsheet: first sheet only, row 0 is the header row.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from io import BytesIO, StringIO
import math
import numbers
import re
from typing import Any, Optional

import pandas as pd
import structlog

from exceptions import (
    EmptyImportFileError,
    MalformedImportFileError,
    UnsupportedFileFormatError,
)
from models.article_import import CellValue, Row, SourceFormat

logger = structlog.get_logger(__name__)


SUPPORTED_EXTENSIONS = ("csv", "xlsx", "xls")

# Order breaks ties when two delimiters appear equally often
CSV_DELIMITERS = (",", ";", "\t", "|")

_NUMERIC_PATTERN = re.compile(r"^\s*-?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?\s*$")
_LEADING_ZERO_PATTERN = re.compile(r"^\s*-?0\d")


@dataclass(frozen=True)
class ParsedDataset:
    """
    Parsed upload. Row index (position in rows) identifies a row
    in every later stage; rows are never reordered.
    """
    headers: tuple[str, ...]
    rows: tuple[Row, ...]
    source_format: SourceFormat
    file_name: str
    delimiter: Optional[str] = field(default=None, compare=False)

    @property
    def row_count(self) -> int:
        return len(self.rows)


def parse_import_file(content: bytes, file_name: str) -> ParsedDataset:
    """
    Parse an uploaded article file.

    Args:
        content: Raw file bytes
        file_name: Original file name; its extension selects the format

    Returns:
        ParsedDataset with headers and typed rows

    Raises:
        UnsupportedFileFormatError: Extension is not csv, xlsx or xls
        MalformedImportFileError: Content can't be read in that format
        EmptyImportFileError: No headers or no data rows
    """
    extension = file_extension(file_name)
    logger.info(
        "parsing_import_file",
        file_name=file_name,
        extension=extension,
        size_bytes=len(content)
    )

    if extension not in SUPPORTED_EXTENSIONS:
        logger.warning("unsupported_import_format", file_name=file_name, extension=extension)
        raise UnsupportedFileFormatError(file_name, extension)

    delimiter = None
    if extension == "csv":
        headers, rows, delimiter = _parse_csv(content, file_name)
        source_format = SourceFormat.CSV
    else:
        headers, rows = _parse_spreadsheet(content, file_name, extension)
        source_format = SourceFormat.SPREADSHEET

    if not headers or not rows:
        logger.warning(
            "import_file_empty",
            file_name=file_name,
            header_count=len(headers),
            row_count=len(rows)
        )
        raise EmptyImportFileError(file_name)

    dataset = ParsedDataset(
        headers=tuple(headers),
        rows=tuple(rows),
        source_format=source_format,
        file_name=file_name,
        delimiter=delimiter,
    )

    logger.info(
        "import_file_parsed",
        file_name=file_name,
        source_format=source_format.value,
        header_count=len(dataset.headers),
        row_count=dataset.row_count
    )

    return dataset


def file_extension(file_name: str) -> str:
    """Lowercase extension without the dot ("" when there is none)."""
    name = (file_name or "").strip()
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


# ===================
# CSV
# ===================

def _parse_csv(content: bytes, file_name: str) -> tuple[list[str], list[Row], str]:
    """Parse CSV text into headers and typed rows."""
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        logger.error("csv_decode_failed", file_name=file_name, error=str(e))
        raise MalformedImportFileError(file_name, f"File is not valid UTF-8: {e}")

    if not text.strip():
        return [], [], ","

    delimiter = detect_delimiter(text)
    logger.debug("csv_delimiter_detected", delimiter=repr(delimiter))

    try:
        df = pd.read_csv(
            StringIO(text),
            sep=delimiter,
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            quotechar='"',
        )
    except pd.errors.EmptyDataError:
        return [], [], delimiter
    except (pd.errors.ParserError, ValueError) as e:
        logger.error("csv_read_failed", file_name=file_name, error=str(e))
        raise MalformedImportFileError(file_name, str(e))

    records = df.to_numpy(dtype=object).tolist()
    if not records:
        return [], [], delimiter

    headers = [_header_text(value) for value in records[0]]
    rows = _zip_rows(headers, records[1:], coerce_csv_cell)
    return headers, rows, delimiter


def detect_delimiter(text: str) -> str:
    """
    Pick the delimiter used by the header line.

    Most frequent of CSV_DELIMITERS wins; comma when none appear.
    """
    header_line = next((line for line in text.splitlines() if line.strip()), "")
    best, best_count = ",", 0
    for candidate in CSV_DELIMITERS:
        count = header_line.count(candidate)
        if count > best_count:
            best, best_count = candidate, count
    return best


def coerce_csv_cell(value: Any) -> CellValue:
    """
    Type one CSV cell.

    "" -> None, "true"/"false" -> bool, numeric text -> int/float,
    anything else stays text. Numbers with a leading zero ("0402")
    stay text so codes keep their digits.
    """
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    text = str(value)
    if text == "":
        return None

    lowered = text.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False

    if _NUMERIC_PATTERN.match(text) and not _LEADING_ZERO_PATTERN.match(text):
        stripped = text.strip()
        if "." in stripped or "e" in stripped.lower():
            number = float(stripped)
            return number if math.isfinite(number) else text
        return int(stripped)

    return text


# ===================
# SPREADSHEET
# ===================

def _parse_spreadsheet(
    content: bytes,
    file_name: str,
    extension: str
) -> tuple[list[str], list[Row]]:
    """Parse the first sheet of an xlsx/xls workbook."""
    # openpyxl reads xlsx, xlrd reads legacy xls; try the other on mismatch
    engines = ("openpyxl", "xlrd") if extension == "xlsx" else ("xlrd", "openpyxl")

    df = None
    last_error: Optional[Exception] = None
    for engine in engines:
        try:
            df = pd.read_excel(BytesIO(content), sheet_name=0, header=None, engine=engine)
            logger.debug("spreadsheet_loaded", engine=engine, rows=len(df), columns=len(df.columns))
            break
        except Exception as e:
            last_error = e
            logger.debug("spreadsheet_engine_failed", engine=engine, error=str(e))

    if df is None:
        logger.error("spreadsheet_read_failed", file_name=file_name, error=str(last_error))
        raise MalformedImportFileError(file_name, str(last_error))

    records = df.to_numpy(dtype=object).tolist()
    if not records:
        return [], []

    headers = [_header_text(coerce_spreadsheet_cell(value)) for value in records[0]]
    rows = _zip_rows(headers, records[1:], coerce_spreadsheet_cell)
    return headers, rows


def coerce_spreadsheet_cell(value: Any) -> CellValue:
    """
    Convert a spreadsheet cell to a plain scalar.

    Integral numbers become int, dates become ISO strings.
    """
    if value is None:
        return None
    if isinstance(value, (datetime, date, time)):
        if pd.isna(value):
            return None
        return value.isoformat()
    if not isinstance(value, (str, bool, int, float)) and hasattr(value, "item"):
        value = value.item()  # numpy scalar
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return value
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, numbers.Real):
        number = float(value)
        if not math.isfinite(number):
            return None
        return int(number) if number.is_integer() else number
    if pd.isna(value):
        return None
    return str(value)


# ===================
# HELPER FUNCTIONS
# ===================

def _header_text(value: Any) -> str:
    """Header cell as text; blank -> ""."""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    return str(value)


def _zip_rows(headers: list[str], records: list[list], coerce) -> list[Row]:
    """
    Zip raw records positionally against headers.

    Missing trailing cells become None. Rows with no values are skipped.
    """
    rows: list[Row] = []
    for record in records:
        row: Row = {}
        for position, header in enumerate(headers):
            raw = record[position] if position < len(record) else None
            row[header] = coerce(raw)
        if all(value is None for value in row.values()):
            continue
        rows.append(row)
    return rows
