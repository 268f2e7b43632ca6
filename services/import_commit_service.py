"""
Batch commit for article imports.

Creates one article per row through the record store, strictly
one at a time: the next create call is not issued until the
previous one settles. Progress is therefore monotonic and each
step belongs to exactly one row.

A failing row is recorded and skipped; the batch never aborts
on a row failure. Duplicate names are checked against the
existing-records snapshot taken before the batch started.
"""

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Protocol, Sequence

import structlog

from exceptions import ImportConfigurationError
from models.article_import import (
    CellValue,
    CommitResult,
    FieldMapping,
    ImportConfiguration,
    ImportOutcome,
    Row,
)
from services.transform_service import Transform, build_record, transform_value
from services.validation_service import (
    ExistingRecord,
    existing_name_index,
    is_blank,
    name_key,
)

logger = structlog.get_logger(__name__)


class RecordStore(Protocol):
    """Where committed articles go."""

    async def create_article(self, data: dict[str, Any]) -> Any: ...

    async def update_article(self, article_id: str, patch: dict[str, Any]) -> Any: ...


ProgressCallback = Callable[[float], None]
CancelCheck = Callable[[], bool]


@dataclass(frozen=True)
class CommitSummary:
    """User-facing summary of a commit run."""
    title: str
    message: str
    level: str  # success, info or error


def prepare_record(
    row: Row,
    mappings: Iterable[FieldMapping],
    config: ImportConfiguration,
    transform: Transform = transform_value
) -> dict[str, CellValue]:
    """
    Build the article payload for one row.

    Empty values are dropped. Configured defaults fill tax_rate and
    min_quantity only when the row left them out.
    """
    record: dict[str, CellValue] = {"branch_id": config.default_branch_id}
    for field, value in build_record(row, mappings, transform).items():
        if value is not None:
            record[field] = value

    if "tax_rate" not in record and config.default_tax_rate is not None:
        record["tax_rate"] = config.default_tax_rate
    if "min_quantity" not in record and config.default_min_quantity is not None:
        record["min_quantity"] = config.default_min_quantity

    return record


async def commit_rows(
    rows: Sequence[tuple[int, Row]],
    mappings: Sequence[FieldMapping],
    config: ImportConfiguration,
    existing_records: Iterable[ExistingRecord],
    store: RecordStore,
    on_progress: Optional[ProgressCallback] = None,
    should_cancel: Optional[CancelCheck] = None,
    transform: Transform = transform_value
) -> CommitResult:
    """
    Commit rows to the record store, one at a time.

    Args:
        rows: (dataset index, row) pairs, in commit order
        mappings: Active column mappings
        config: Import options; default_branch_id is required
        existing_records: Snapshot used for duplicate lookup
        store: Record store (create_article / update_article)
        on_progress: Called after every row with attempted / total
        should_cancel: Checked before every row; True stops the run
        transform: Cell transform (defaults to transform_value)

    Returns:
        CommitResult with success count and failed/skipped row indices

    Raises:
        ImportConfigurationError: No default branch configured
    """
    if not config.default_branch_id:
        raise ImportConfigurationError(
            "Please select a branch",
            details={"field": "default_branch_id"}
        )

    mappings = tuple(mappings)
    existing = existing_name_index(existing_records)
    total = len(rows)

    success_count = 0
    updated_count = 0
    attempted = 0
    failed: list[int] = []
    skipped: list[int] = []
    created_names: set[str] = set()
    cancelled = False

    logger.info(
        "import_commit_started",
        total=total,
        branch_id=config.default_branch_id,
        skip_duplicates=config.skip_duplicates,
        update_existing=config.update_existing
    )

    for index, row in rows:
        if should_cancel is not None and should_cancel():
            cancelled = True
            logger.warning("import_commit_cancelled", attempted=attempted, total=total)
            break

        try:
            record = prepare_record(row, mappings, config, transform)
            key = None if is_blank(record.get("name")) else name_key(record["name"])
            is_existing = key is not None and key in existing

            if is_existing and config.update_existing and existing[key]:
                await store.update_article(existing[key], record)
                success_count += 1
                updated_count += 1
                logger.debug("import_row_updated", row=index, article_id=existing[key])
            elif config.skip_duplicates and (
                is_existing or (config.dedupe_within_batch and key in created_names)
            ):
                skipped.append(index)
                logger.debug("import_row_skipped_duplicate", row=index, name=record.get("name"))
            else:
                await store.create_article(record)
                success_count += 1
                if key is not None:
                    created_names.add(key)
                logger.debug("import_row_created", row=index)
        except Exception as e:
            logger.error(
                "import_row_failed",
                row=index,
                error=str(e),
                error_type=type(e).__name__
            )
            failed.append(index)

        attempted += 1
        if on_progress is not None:
            on_progress(attempted / total)

    result = CommitResult(
        success_count=success_count,
        updated_count=updated_count,
        failed_row_indices=failed,
        skipped_row_indices=skipped,
        attempted=attempted,
        total=total,
        cancelled=cancelled,
    )

    logger.info(
        "import_commit_finished",
        outcome=result.outcome.value,
        success_count=success_count,
        updated_count=updated_count,
        failed_count=len(failed),
        skipped_count=len(skipped),
        attempted=attempted,
        total=total
    )
    return result


def summarize_commit(result: CommitResult) -> CommitSummary:
    """Title, message and level for notifying the user about a run."""
    outcome = result.outcome
    imported = f"{result.success_count} articles"
    if result.updated_count:
        imported += f" ({result.updated_count} updated)"

    if outcome == ImportOutcome.CANCELLED:
        return CommitSummary(
            "Import Cancelled",
            f"Stopped after {result.attempted} of {result.total} rows. Imported {imported}.",
            "info",
        )
    if outcome == ImportOutcome.PARTIAL:
        return CommitSummary(
            "Partial Import",
            f"Imported {imported}. {result.failed_count} failed.",
            "info",
        )
    if outcome == ImportOutcome.COMPLETE:
        return CommitSummary(
            "Import Complete",
            f"Successfully imported {imported}",
            "success",
        )
    if outcome == ImportOutcome.FAILED:
        return CommitSummary(
            "Import Failed",
            f"All {result.failed_count} articles failed to import",
            "error",
        )
    return CommitSummary(
        "Nothing Imported",
        f"No articles were imported ({len(result.skipped_row_indices)} skipped as duplicates)",
        "info",
    )
