"""
Article import schemas.

Covers the fixed article target schema, column mappings, validation
issues, import configuration and commit results, plus the request and
response bodies of the import API.
"""

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field

from models.base import BaseSchema, SnapshotSchema


# One parsed cell. Every transform and validation rule works on this.
CellValue = Union[bool, int, float, str, None]

# One parsed row: source column name -> cell.
Row = dict[str, CellValue]


class SourceFormat(str, Enum):
    """Kind of file a dataset was parsed from."""
    CSV = "csv"
    SPREADSHEET = "spreadsheet"


class TransformKind(str, Enum):
    """Value conversion applied to a mapped cell."""
    NONE = "none"
    UPPERCASE = "uppercase"
    LOWERCASE = "lowercase"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"


class Severity(str, Enum):
    """Blocking (error) or advisory (warning)."""
    ERROR = "error"
    WARNING = "warning"


class IssueCode(str, Enum):
    """Machine-readable reason for a validation issue."""
    REQUIRED = "required"
    DUPLICATE = "duplicate"
    NOT_A_NUMBER = "not_a_number"
    NEGATIVE = "negative"
    INVALID_FORMAT = "invalid_format"
    OUT_OF_RANGE = "out_of_range"
    NOT_POSITIVE_INTEGER = "not_positive_integer"


class RowSelectionMode(str, Enum):
    """Which rows a commit run imports."""
    ALL = "all"
    SELECTED = "selected"
    EXCLUDE_ERRORS = "exclude_errors"


class ImportOutcome(str, Enum):
    """Overall result of one commit run."""
    COMPLETE = "complete"
    PARTIAL = "partial"
    FAILED = "failed"
    NOTHING_IMPORTED = "nothing_imported"
    CANCELLED = "cancelled"


# ===================
# TARGET SCHEMA
# ===================

class TargetField(SnapshotSchema):
    """One destination attribute of an imported article."""

    name: str
    label: str
    required: bool = False
    semantic_type: str = Field(
        "text",
        description="text, currency, code, percent, unit, quantity or flag"
    )


TARGET_FIELDS: tuple[TargetField, ...] = (
    TargetField(name="name", label="Article Name", required=True, semantic_type="text"),
    TargetField(name="description", label="Description", semantic_type="text"),
    TargetField(name="base_rate", label="Base Rate", required=True, semantic_type="currency"),
    TargetField(name="hsn_code", label="HSN Code", semantic_type="code"),
    TargetField(name="tax_rate", label="Tax Rate (%)", semantic_type="percent"),
    TargetField(name="unit_of_measure", label="Unit", semantic_type="unit"),
    TargetField(name="min_quantity", label="Min Quantity", semantic_type="quantity"),
    TargetField(name="is_fragile", label="Fragile", semantic_type="flag"),
    TargetField(name="requires_special_handling", label="Special Handling", semantic_type="flag"),
    TargetField(name="notes", label="Notes", semantic_type="text"),
)

TARGET_FIELD_NAMES: tuple[str, ...] = tuple(f.name for f in TARGET_FIELDS)

REQUIRED_TARGET_FIELDS: tuple[str, ...] = tuple(
    f.name for f in TARGET_FIELDS if f.required
)


# ===================
# PIPELINE SNAPSHOTS
# ===================

class FieldMapping(SnapshotSchema):
    """
    Source column -> target field, with an optional transform.

    At most one mapping exists per source column.
    """

    source_field: str = Field(..., description="Header as it appears in the file")
    target_field: str = Field(..., description="Article field the column feeds")
    transform: TransformKind = Field(
        TransformKind.NONE,
        description="Conversion applied before validation and commit"
    )


class ValidationIssue(SnapshotSchema):
    """A problem found in one row. Row is an index into the dataset."""

    row: int = Field(..., ge=0)
    field: str
    value: CellValue = None
    message: str
    severity: Severity
    code: IssueCode

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    @property
    def is_duplicate(self) -> bool:
        return self.code == IssueCode.DUPLICATE


# Named defaults for ImportConfiguration
DEFAULT_SKIP_DUPLICATES = True
DEFAULT_UPDATE_EXISTING = False
DEFAULT_VALIDATE_DATA = True
DEFAULT_AUTO_MAPPING = True
DEFAULT_MIN_QUANTITY = 1
DEFAULT_DEDUPE_WITHIN_BATCH = False


class ImportConfiguration(SnapshotSchema):
    """
    Options for one import run.

    Passed explicitly into each pipeline stage.
    """

    skip_duplicates: bool = Field(
        DEFAULT_SKIP_DUPLICATES,
        description="Skip rows whose name matches an existing article"
    )
    update_existing: bool = Field(
        DEFAULT_UPDATE_EXISTING,
        description="Update matching articles instead of flagging them"
    )
    validate_data: bool = Field(
        DEFAULT_VALIDATE_DATA,
        description="Run row validation before preview"
    )
    auto_mapping: bool = Field(
        DEFAULT_AUTO_MAPPING,
        description="Infer column mappings from headers on upload"
    )
    default_branch_id: Optional[str] = Field(
        None,
        description="Branch every imported article is created under"
    )
    default_tax_rate: Optional[float] = Field(
        None,
        ge=0,
        le=100,
        description="Tax rate used when a row has none"
    )
    default_min_quantity: Optional[int] = Field(
        DEFAULT_MIN_QUANTITY,
        ge=1,
        description="Min quantity used when a row has none"
    )
    dedupe_within_batch: bool = Field(
        DEFAULT_DEDUPE_WITHIN_BATCH,
        description="Also skip names already created earlier in the same batch"
    )

    @classmethod
    def from_settings(cls, settings: Any, **overrides: Any) -> "ImportConfiguration":
        """Build the default configuration from application settings."""
        values = {
            "skip_duplicates": settings.import_skip_duplicates,
            "default_tax_rate": settings.import_default_tax_rate,
            "default_min_quantity": settings.import_default_min_quantity,
        }
        values.update(overrides)
        return cls(**values)


class ImportStatistics(BaseModel):
    """Counts derived from a dataset and its validation issues."""

    total: int = 0
    valid: int = 0
    invalid: int = 0
    duplicates: int = 0
    warnings: int = 0


class ExistingArticle(SnapshotSchema):
    """Entry of the existing-records snapshot used for duplicate lookup."""

    id: Optional[str] = None
    name: str


class Branch(SnapshotSchema):
    """Entry of the branch directory."""

    id: str
    name: str


class CommitResult(SnapshotSchema):
    """
    Outcome of one commit run.

    Row indices refer to the parsed dataset, not the commit order.
    """

    success_count: int = 0
    updated_count: int = 0
    failed_row_indices: list[int] = Field(default_factory=list)
    skipped_row_indices: list[int] = Field(default_factory=list)
    attempted: int = 0
    total: int = 0
    cancelled: bool = False

    @property
    def failed_count(self) -> int:
        return len(self.failed_row_indices)

    @property
    def outcome(self) -> ImportOutcome:
        if self.cancelled:
            return ImportOutcome.CANCELLED
        if self.success_count and self.failed_row_indices:
            return ImportOutcome.PARTIAL
        if self.success_count:
            return ImportOutcome.COMPLETE
        if self.failed_row_indices:
            return ImportOutcome.FAILED
        return ImportOutcome.NOTHING_IMPORTED


# ===================
# API SCHEMAS
# ===================

class ImportConfigUpdate(BaseSchema):
    """
    Change import options for a session.

    All fields optional - only provided fields are updated.
    """

    skip_duplicates: Optional[bool] = None
    update_existing: Optional[bool] = None
    validate_data: Optional[bool] = None
    auto_mapping: Optional[bool] = None
    default_branch_id: Optional[str] = None
    default_tax_rate: Optional[float] = Field(None, ge=0, le=100)
    default_min_quantity: Optional[int] = Field(None, ge=1)
    dedupe_within_batch: Optional[bool] = None


class MappingUpdateRequest(BaseModel):
    """Upsert one column mapping."""

    source_field: str = Field(..., min_length=1)
    target_field: str = Field(..., min_length=1)
    transform: Optional[TransformKind] = None


class ImportUploadResponse(BaseModel):
    """Result of uploading and parsing a file."""

    import_id: str
    file_name: str
    source_format: SourceFormat
    headers: list[str]
    row_count: int
    mappings: list[FieldMapping]
    ambiguous_headers: dict[str, list[str]] = Field(default_factory=dict)
    duplicate_targets: dict[str, list[str]] = Field(default_factory=dict)
    config: ImportConfiguration


class MappingsResponse(BaseModel):
    """Current mappings of a session."""

    mappings: list[FieldMapping]
    unmapped_required: list[str]
    can_validate: bool
    duplicate_targets: dict[str, list[str]] = Field(default_factory=dict)


class ValidationResponse(BaseModel):
    """Issues and statistics for a session."""

    issues: list[ValidationIssue]
    statistics: ImportStatistics
    can_proceed: bool
    validated: bool = True


class PreviewRowResponse(BaseModel):
    """One row of the preview table."""

    index: int
    values: Row
    has_error: bool
    issues: list[ValidationIssue]


class PreviewResponse(BaseModel):
    """Filtered preview rows of a session."""

    rows: list[PreviewRowResponse]
    total: int
    statistics: ImportStatistics
    candidate_counts: dict[str, int] = Field(default_factory=dict)


class CommitRequest(BaseModel):
    """Which rows to import."""

    mode: RowSelectionMode = RowSelectionMode.ALL
    selected_rows: list[int] = Field(default_factory=list)


class CommitResponse(BaseModel):
    """Summary of a finished commit run."""

    result: CommitResult
    outcome: ImportOutcome
    title: str
    message: str
