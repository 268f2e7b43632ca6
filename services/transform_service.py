"""
Value transforms for mapped import cells.

Pure functions: no I/O, no state. Empty input (None or "")
always transforms to None, whatever the kind.
"""

import math
import re
from typing import Callable, Iterable, Optional, Union

import numpy as np
import pandas as pd

from models.article_import import CellValue, FieldMapping, Row, TransformKind


TRUE_VALUES = frozenset({"yes", "true", "1"})

_NON_NUMERIC_CHARS = re.compile(r"[^0-9.\-]")
_LEADING_NUMBER = re.compile(r"^-?(\d+\.?\d*|\.\d+)")


def transform_value(
    value: CellValue,
    kind: Optional[Union[TransformKind, str]] = TransformKind.NONE
) -> CellValue:
    """
    Apply one transform to a cell.

    Args:
        value: Parsed cell
        kind: Transform to apply (None means passthrough)

    Returns:
        Transformed cell, or None for empty input / unparseable number or date

    Examples:
        transform_value("150.50 INR", "number") -> 150.5
        transform_value("YES", "boolean") -> True
        transform_value("maybe", "boolean") -> False
    """
    if value is None or value == "":
        return None

    kind = TransformKind(kind) if kind is not None else TransformKind.NONE

    if kind == TransformKind.UPPERCASE:
        return cell_text(value).upper()
    if kind == TransformKind.LOWERCASE:
        return cell_text(value).lower()
    if kind == TransformKind.NUMBER:
        return to_number(value)
    if kind == TransformKind.BOOLEAN:
        return cell_text(value).lower() in TRUE_VALUES
    if kind == TransformKind.DATE:
        return to_iso_timestamp(value)
    return value


def to_number(value: CellValue) -> Optional[Union[int, float]]:
    """
    Strip everything except digits, "." and "-", then read the
    leading number. "150.50 INR" -> 150.5, "1,200" -> 1200, "abc" -> None.
    """
    if value is None or value == "":
        return None
    cleaned = _NON_NUMERIC_CHARS.sub("", cell_text(value))
    match = _LEADING_NUMBER.match(cleaned)
    if not match:
        return None
    text = match.group(0)
    number = float(text)
    if not math.isfinite(number):
        return None
    if "." not in text:
        return int(text)
    return number


def to_iso_timestamp(value: CellValue) -> Optional[str]:
    """
    Read a date/time and render it as an ISO-8601 UTC timestamp
    (2024-01-15T00:00:00.000Z). Numbers are epoch milliseconds.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            parsed = pd.to_datetime(value, unit="ms", utc=True)
        else:
            parsed = pd.to_datetime(str(value).strip(), utc=True)
    except (ValueError, TypeError, OverflowError, pd.errors.OutOfBoundsDatetime):
        return None
    if pd.isna(parsed):
        return None
    return parsed.strftime("%Y-%m-%dT%H:%M:%S.") + f"{parsed.microsecond // 1000:03d}Z"


def cell_text(value: CellValue) -> str:
    """
    Render a cell as text.

    Booleans render lowercase, integral floats without ".0", other
    floats positionally (5e-05 -> "0.00005").
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    if isinstance(value, float) and math.isfinite(value):
        return np.format_float_positional(value, trim="-")
    return str(value)


Transform = Callable[[CellValue, Optional[TransformKind]], CellValue]


def build_record(
    row: Row,
    mappings: Iterable[FieldMapping],
    transform: Transform = transform_value
) -> dict[str, CellValue]:
    """
    Build a candidate article from one row.

    Every mapped target field is present; missing or empty source
    cells come through as None. When several columns map to one
    field, the first non-empty value in mapping order is kept.
    """
    record: dict[str, CellValue] = {}
    for mapping in mappings:
        if record.get(mapping.target_field) is not None:
            continue
        record[mapping.target_field] = transform(
            row.get(mapping.source_field),
            mapping.transform
        )
    return record
