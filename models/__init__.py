"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    SnapshotSchema,
)
from models.article_import import (
    CellValue,
    Row,
    SourceFormat,
    TransformKind,
    Severity,
    IssueCode,
    RowSelectionMode,
    ImportOutcome,
    TargetField,
    TARGET_FIELDS,
    TARGET_FIELD_NAMES,
    REQUIRED_TARGET_FIELDS,
    FieldMapping,
    ValidationIssue,
    ImportConfiguration,
    ImportStatistics,
    ExistingArticle,
    Branch,
    CommitResult,
    ImportConfigUpdate,
    MappingUpdateRequest,
    ImportUploadResponse,
    MappingsResponse,
    ValidationResponse,
    PreviewRowResponse,
    PreviewResponse,
    CommitRequest,
    CommitResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "SnapshotSchema",

    # Cells / enums
    "CellValue",
    "Row",
    "SourceFormat",
    "TransformKind",
    "Severity",
    "IssueCode",
    "RowSelectionMode",
    "ImportOutcome",

    # Target schema
    "TargetField",
    "TARGET_FIELDS",
    "TARGET_FIELD_NAMES",
    "REQUIRED_TARGET_FIELDS",

    # Pipeline
    "FieldMapping",
    "ValidationIssue",
    "ImportConfiguration",
    "ImportStatistics",
    "ExistingArticle",
    "Branch",
    "CommitResult",

    # API
    "ImportConfigUpdate",
    "MappingUpdateRequest",
    "ImportUploadResponse",
    "MappingsResponse",
    "ValidationResponse",
    "PreviewRowResponse",
    "PreviewResponse",
    "CommitRequest",
    "CommitResponse",
]
