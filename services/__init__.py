"""
Business logic services.

Pipeline stages are plain functions over immutable snapshots;
ArticleImportService ties them into an import session.
"""

from services.transform_service import transform_value, build_record
from services.field_mapping_service import (
    FieldMappingSet,
    auto_map,
    can_validate,
    find_ambiguous_headers,
)
from services.validation_service import (
    validate_rows,
    compute_statistics,
    can_proceed_to_preview,
)
from services.preview_service import (
    PreviewRow,
    filter_rows,
    resolve_rows_to_import,
)
from services.import_commit_service import (
    CommitSummary,
    commit_rows,
    summarize_commit,
)
from services.article_service import ArticleService, get_article_service
from services.branch_service import BranchService, get_branch_service
from services.article_import_service import (
    ArticleImportService,
    ImportSession,
    ImportStep,
    get_article_import_service,
)

__all__ = [
    # Transform
    "transform_value",
    "build_record",

    # Mapping
    "FieldMappingSet",
    "auto_map",
    "can_validate",
    "find_ambiguous_headers",

    # Validation
    "validate_rows",
    "compute_statistics",
    "can_proceed_to_preview",

    # Preview
    "PreviewRow",
    "filter_rows",
    "resolve_rows_to_import",

    # Commit
    "CommitSummary",
    "commit_rows",
    "summarize_commit",

    # Persistence
    "ArticleService",
    "get_article_service",
    "BranchService",
    "get_branch_service",

    # Orchestration
    "ArticleImportService",
    "ImportSession",
    "ImportStep",
    "get_article_import_service",
]
