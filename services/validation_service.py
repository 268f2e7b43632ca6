"""
Row validation for article imports.

Builds a candidate article from each row (mappings + transforms)
and checks it against the article rules. Produces severity-tagged
issues and the statistics derived from them.

validate_rows() is a pure function: the same dataset, mappings,
existing records and configuration always give the same issue list.

Rules, in the order they are applied per row:
    name            required; duplicate of existing article -> warning
                    when skipping duplicates, error otherwise
    base_rate       required number, not negative
    hsn_code        optional, 4-8 digits (warning)
    tax_rate        optional, 0-100
    min_quantity    optional, positive integer (warning)
"""

import math
import re
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

import structlog

from models.article_import import (
    CellValue,
    ExistingArticle,
    FieldMapping,
    ImportConfiguration,
    ImportStatistics,
    IssueCode,
    Severity,
    ValidationIssue,
)
from parsers.article_import_parser import ParsedDataset
from services.transform_service import build_record

logger = structlog.get_logger(__name__)


HSN_CODE_PATTERN = re.compile(r"^\d{4,8}$")
TAX_RATE_MIN = 0
TAX_RATE_MAX = 100

ExistingRecord = Union[ExistingArticle, Mapping[str, Any]]


def validate_rows(
    dataset: ParsedDataset,
    mappings: Iterable[FieldMapping],
    existing_records: Iterable[ExistingRecord],
    config: ImportConfiguration
) -> list[ValidationIssue]:
    """
    Validate every row of a dataset.

    Args:
        dataset: Parsed upload (not modified)
        mappings: Active column mappings
        existing_records: Snapshot of articles already in the store
        config: Import options (skip_duplicates, update_existing)

    Returns:
        Issues ordered by row, then by rule
    """
    mappings = tuple(mappings)
    existing_names = existing_name_index(existing_records)

    issues: list[ValidationIssue] = []
    for index, row in enumerate(dataset.rows):
        record = build_record(row, mappings)
        issues.extend(validate_record(index, record, existing_names, config))

    logger.info(
        "import_rows_validated",
        file_name=dataset.file_name,
        row_count=dataset.row_count,
        issue_count=len(issues),
        error_count=sum(1 for i in issues if i.is_error)
    )
    return issues


def validate_record(
    index: int,
    record: Mapping[str, CellValue],
    existing_names: Mapping[str, Optional[str]],
    config: ImportConfiguration
) -> list[ValidationIssue]:
    """Check one candidate article. `index` is its dataset row index."""
    issues: list[ValidationIssue] = []

    def add(field: str, message: str, severity: Severity, code: IssueCode) -> None:
        issues.append(ValidationIssue(
            row=index,
            field=field,
            value=record.get(field),
            message=message,
            severity=severity,
            code=code,
        ))

    # Name
    name = record.get("name")
    if is_blank(name):
        add("name", "Article name is required", Severity.ERROR, IssueCode.REQUIRED)
    elif name_key(name) in existing_names and not config.update_existing:
        add(
            "name",
            f'Article "{name}" already exists (duplicate)',
            Severity.WARNING if config.skip_duplicates else Severity.ERROR,
            IssueCode.DUPLICATE,
        )

    # Base rate
    base_rate = record.get("base_rate")
    if base_rate is None:
        add("base_rate", "Base rate is required", Severity.ERROR, IssueCode.REQUIRED)
    else:
        rate = as_number(base_rate)
        if rate is None:
            add("base_rate", "Base rate must be a number", Severity.ERROR, IssueCode.NOT_A_NUMBER)
        elif rate < 0:
            add("base_rate", "Base rate cannot be negative", Severity.ERROR, IssueCode.NEGATIVE)

    # HSN code
    hsn_code = record.get("hsn_code")
    if not is_blank(hsn_code) and not HSN_CODE_PATTERN.match(_plain_text(hsn_code)):
        add("hsn_code", "HSN code must be 4-8 digits", Severity.WARNING, IssueCode.INVALID_FORMAT)

    # Tax rate
    tax_rate = record.get("tax_rate")
    if tax_rate is not None:
        tax = as_number(tax_rate)
        if tax is None:
            add("tax_rate", "Tax rate must be a number", Severity.ERROR, IssueCode.NOT_A_NUMBER)
        elif tax < TAX_RATE_MIN or tax > TAX_RATE_MAX:
            add(
                "tax_rate",
                f"Tax rate must be between {TAX_RATE_MIN} and {TAX_RATE_MAX}",
                Severity.ERROR,
                IssueCode.OUT_OF_RANGE,
            )

    # Min quantity
    min_quantity = record.get("min_quantity")
    if min_quantity is not None:
        quantity = as_number(min_quantity)
        if quantity is None or quantity < 1 or not float(quantity).is_integer():
            add(
                "min_quantity",
                "Min quantity must be a positive integer",
                Severity.WARNING,
                IssueCode.NOT_POSITIVE_INTEGER,
            )

    return issues


# ===================
# STATISTICS
# ===================

def compute_statistics(
    dataset: Optional[ParsedDataset],
    issues: Sequence[ValidationIssue]
) -> ImportStatistics:
    """
    Derive import statistics.

    invalid = distinct rows with at least one error,
    duplicates = duplicate issues (any severity),
    warnings = warning issues.
    """
    if dataset is None:
        return ImportStatistics()

    total = dataset.row_count
    invalid = len(error_row_indices(issues))
    return ImportStatistics(
        total=total,
        valid=total - invalid,
        invalid=invalid,
        duplicates=sum(1 for i in issues if i.is_duplicate),
        warnings=sum(1 for i in issues if i.severity == Severity.WARNING),
    )


def error_row_indices(issues: Iterable[ValidationIssue]) -> set[int]:
    """Rows with at least one error-severity issue."""
    return {i.row for i in issues if i.is_error}


def can_proceed_to_preview(stats: ImportStatistics, config: ImportConfiguration) -> bool:
    """Unresolved errors block preview unless duplicates are being skipped."""
    return not (stats.invalid > 0 and not config.skip_duplicates)


# ===================
# HELPER FUNCTIONS
# ===================

def existing_name_index(records: Iterable[ExistingRecord]) -> dict[str, Optional[str]]:
    """
    Case-insensitive name -> id lookup of existing articles.

    Accepts ExistingArticle models or plain dicts with "name" (and "id").
    The first record wins when names collide.
    """
    index: dict[str, Optional[str]] = {}
    for record in records:
        if isinstance(record, Mapping):
            name, record_id = record.get("name"), record.get("id")
        else:
            name, record_id = record.name, getattr(record, "id", None)
        if is_blank(name):
            continue
        index.setdefault(name_key(name), record_id)
    return index


def name_key(name: CellValue) -> str:
    """Key used for duplicate matching."""
    return _plain_text(name).lower()


def is_blank(value: Any) -> bool:
    return value is None or _plain_text(value).strip() == ""


def as_number(value: CellValue) -> Optional[Union[int, float]]:
    """
    Numeric view of a cell, or None if it isn't one.

    Numbers pass through; text must be a plain number ("12.5").
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _plain_text(value: Any) -> str:
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value)
