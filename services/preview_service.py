"""
Preview filtering and row selection for article imports.

Works on the parsed dataset plus its validation issues; never
changes either. Row order is always the dataset order.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

import structlog

from exceptions import InvalidRowSelectionError
from models.article_import import (
    ImportStatistics,
    Row,
    RowSelectionMode,
    ValidationIssue,
)
from parsers.article_import_parser import ParsedDataset
from services.transform_service import cell_text
from services.validation_service import error_row_indices

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PreviewRow:
    """A dataset row with its issues attached."""
    index: int
    values: Row
    has_error: bool = False
    issues: tuple[ValidationIssue, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "values": dict(self.values),
            "has_error": self.has_error,
            "issues": [i.model_dump(mode="json") for i in self.issues],
        }


def filter_rows(
    dataset: ParsedDataset,
    issues: Sequence[ValidationIssue],
    search_query: str = "",
    hide_error_rows: bool = False
) -> list[PreviewRow]:
    """
    Rows for the preview table.

    Args:
        dataset: Parsed upload
        issues: Current validation issues
        search_query: Case-insensitive substring matched against every cell
        hide_error_rows: Drop rows with an error-severity issue

    Returns:
        Matching rows in dataset order
    """
    errors = error_row_indices(issues)
    by_row: dict[int, list[ValidationIssue]] = {}
    for issue in issues:
        by_row.setdefault(issue.row, []).append(issue)

    query = (search_query or "").strip().lower()

    rows: list[PreviewRow] = []
    for index, row in enumerate(dataset.rows):
        if hide_error_rows and index in errors:
            continue
        if query and not _row_matches(row, query):
            continue
        rows.append(PreviewRow(
            index=index,
            values=row,
            has_error=index in errors,
            issues=tuple(by_row.get(index, ())),
        ))
    return rows


def resolve_rows_to_import(
    dataset: ParsedDataset,
    issues: Sequence[ValidationIssue],
    mode: RowSelectionMode = RowSelectionMode.ALL,
    selected_indices: Optional[Iterable[int]] = None
) -> list[tuple[int, Row]]:
    """
    Pick the rows a commit run will import.

    Args:
        dataset: Parsed upload
        issues: Current validation issues
        mode: all rows, explicitly selected rows, or rows without errors
        selected_indices: Row indices for SELECTED mode

    Returns:
        (dataset index, row) pairs in dataset order

    Raises:
        InvalidRowSelectionError: A selected index is outside the dataset
    """
    mode = RowSelectionMode(mode)

    if mode == RowSelectionMode.EXCLUDE_ERRORS:
        errors = error_row_indices(issues)
        chosen = [(i, row) for i, row in enumerate(dataset.rows) if i not in errors]
    elif mode == RowSelectionMode.SELECTED:
        selected = set(selected_indices or ())
        invalid = sorted(i for i in selected if i < 0 or i >= dataset.row_count)
        if invalid:
            raise InvalidRowSelectionError(invalid, dataset.row_count)
        chosen = [(i, row) for i, row in enumerate(dataset.rows) if i in selected]
    else:
        chosen = list(enumerate(dataset.rows))

    logger.debug(
        "rows_resolved_for_import",
        mode=mode.value,
        selected=len(chosen),
        total=dataset.row_count
    )
    return chosen


def import_candidate_count(
    stats: ImportStatistics,
    mode: RowSelectionMode,
    selected_indices: Optional[Sequence[int]] = None
) -> int:
    """How many rows an import button would offer to import."""
    mode = RowSelectionMode(mode)
    if mode == RowSelectionMode.SELECTED:
        return len(set(selected_indices or ()))
    if mode == RowSelectionMode.EXCLUDE_ERRORS:
        return stats.valid
    return stats.total


def _row_matches(row: Row, query: str) -> bool:
    return any(query in cell_text(value).lower() for value in row.values() if value is not None)
