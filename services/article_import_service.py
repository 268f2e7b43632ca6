"""
Article import orchestration.

Drives one import session through its steps:

    upload -> mapping -> validation -> preview -> importing -> complete

Each step hands immutable snapshots to the pipeline functions
(parse, auto-map, validate, preview, commit). Sessions live in the
preview cache between API calls.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional, Union

from pydantic import ValidationError as PydanticValidationError
import structlog

from config import settings as app_settings
from exceptions import (
    ImportConfigurationError,
    ImportFileTooLargeError,
    ImportNotReadyError,
    ImportParseError,
    ImportSessionNotFoundError,
    ValidationError,
)
from integrations.notifications import Notifier, get_notifier, notify
from models.article_import import (
    CommitResult,
    ImportConfiguration,
    ImportStatistics,
    RowSelectionMode,
    TransformKind,
    ValidationIssue,
)
from parsers.article_import_parser import ParsedDataset, parse_import_file
from services import preview_cache_service
from services.article_service import ArticleService, get_article_service
from services.branch_service import BranchService, get_branch_service
from services.field_mapping_service import (
    FieldMappingSet,
    can_validate,
    find_ambiguous_headers,
)
from services.import_commit_service import (
    CancelCheck,
    CommitSummary,
    ProgressCallback,
    commit_rows,
    summarize_commit,
)
from services.preview_service import (
    PreviewRow,
    filter_rows,
    import_candidate_count,
    resolve_rows_to_import,
)
from services.validation_service import (
    ExistingRecord,
    can_proceed_to_preview,
    compute_statistics,
    validate_rows,
)

logger = structlog.get_logger(__name__)


class ImportStep(str, Enum):
    """Where a session is in the import flow."""
    UPLOAD = "upload"
    MAPPING = "mapping"
    VALIDATION = "validation"
    PREVIEW = "preview"
    IMPORTING = "importing"
    COMPLETE = "complete"


_PARSE_ERROR_TITLES = {
    "unsupported-format": "Invalid File",
    "empty": "Empty File",
    "malformed": "Parse Failed",
}


@dataclass
class ImportSession:
    """
    State of one import, kept between API calls.

    The dataset is replaced only by a new upload. Any change to
    mappings or configuration clears the validation results.
    """
    import_id: str
    dataset: ParsedDataset
    mappings: FieldMappingSet
    config: ImportConfiguration
    issues: tuple[ValidationIssue, ...] = ()
    validated: bool = False
    step: ImportStep = ImportStep.MAPPING
    result: Optional[CommitResult] = None
    ambiguous_headers: dict[str, list[str]] = field(default_factory=dict)
    cancel_requested: bool = False

    @property
    def statistics(self) -> ImportStatistics:
        return compute_statistics(self.dataset, self.issues)

    def reset_validation(self) -> None:
        self.issues = ()
        self.validated = False
        if self.step in (ImportStep.VALIDATION, ImportStep.PREVIEW):
            self.step = ImportStep.MAPPING


def _warn_duplicate_targets(session: ImportSession) -> None:
    duplicates = session.mappings.duplicate_targets()
    if duplicates:
        logger.warning(
            "duplicate_target_mapping",
            import_id=session.import_id,
            duplicates=duplicates
        )


class ArticleImportService:
    """
    Runs import sessions.

    Collaborators are injectable; by default the Supabase-backed
    article and branch services and the configured notifier are used.
    """

    def __init__(
        self,
        article_service: Optional[ArticleService] = None,
        branch_service: Optional[BranchService] = None,
        notifier: Optional[Notifier] = None,
        settings: Any = None
    ):
        self._article_service = article_service
        self._branch_service = branch_service
        self.notifier = notifier or get_notifier()
        self.settings = settings or app_settings

    @property
    def articles(self) -> ArticleService:
        if self._article_service is None:
            self._article_service = get_article_service()
        return self._article_service

    @property
    def branches(self) -> BranchService:
        if self._branch_service is None:
            self._branch_service = get_branch_service()
        return self._branch_service

    def default_config(self, **overrides: Any) -> ImportConfiguration:
        """Import options seeded from application settings."""
        return ImportConfiguration.from_settings(self.settings, **overrides)

    # ===================
    # UPLOAD / MAPPING
    # ===================

    def upload(
        self,
        content: bytes,
        file_name: str,
        config: Optional[ImportConfiguration] = None
    ) -> ImportSession:
        """
        Parse an upload and open a session.

        Auto-maps columns when config.auto_mapping is on.

        Raises:
            ImportFileTooLargeError: Upload exceeds the size limit
            ImportParseError: File could not be parsed (session not created)
        """
        config = config or self.default_config()

        limit = self.settings.import_max_file_size_bytes
        if len(content) > limit:
            self.notifier.show_error("File Too Large", "Please upload a smaller file")
            raise ImportFileTooLargeError(len(content), limit)

        try:
            dataset = parse_import_file(content, file_name)
        except ImportParseError as e:
            self.notifier.show_error(_PARSE_ERROR_TITLES.get(e.reason, "Parse Failed"), e.message)
            raise

        if config.auto_mapping:
            mappings = FieldMappingSet.from_headers(dataset.headers)
            self.notifier.show_info(
                "Auto-mapping complete",
                f"Mapped {len(mappings)} fields automatically"
            )
        else:
            mappings = FieldMappingSet()

        session = ImportSession(
            import_id="",
            dataset=dataset,
            mappings=mappings,
            config=config,
            ambiguous_headers=find_ambiguous_headers(dataset.headers),
        )
        session.import_id = preview_cache_service.store_preview(
            session,
            ttl_minutes=self.settings.import_preview_ttl_minutes
        )
        _warn_duplicate_targets(session)

        logger.info(
            "import_session_created",
            import_id=session.import_id,
            file_name=file_name,
            row_count=dataset.row_count,
            mapped_count=len(mappings)
        )
        self.notifier.show_success("File Uploaded", f"Successfully parsed {dataset.row_count} rows")
        return session

    def get_session(self, import_id: str) -> ImportSession:
        """
        Raises:
            ImportSessionNotFoundError: Session expired or unknown
        """
        session = preview_cache_service.retrieve_preview(import_id)
        if session is None:
            raise ImportSessionNotFoundError(import_id)
        preview_cache_service.refresh_preview(
            import_id,
            ttl_minutes=self.settings.import_preview_ttl_minutes
        )
        return session

    def update_mapping(
        self,
        import_id: str,
        source_field: str,
        target_field: str,
        transform: Optional[Union[TransformKind, str]] = None
    ) -> ImportSession:
        """Upsert one column mapping. Clears validation results."""
        session = self.get_session(import_id)
        if source_field not in session.dataset.headers:
            raise ValidationError(
                message=f"Unknown source column: {source_field}",
                code="IMPORT_UNKNOWN_SOURCE_FIELD",
                details={"provided": source_field, "valid": list(session.dataset.headers)}
            )
        session.mappings.update_mapping(source_field, target_field, transform)
        session.reset_validation()
        _warn_duplicate_targets(session)
        return session

    def remove_mapping(self, import_id: str, source_field: str) -> ImportSession:
        """Delete one column mapping. Clears validation results."""
        session = self.get_session(import_id)
        session.mappings.remove_mapping(source_field)
        session.reset_validation()
        return session

    def update_config(self, import_id: str, changes: dict[str, Any]) -> ImportSession:
        """
        Change import options. Clears validation results.

        Raises:
            BranchNotFoundError: default_branch_id names an unknown branch
        """
        session = self.get_session(import_id)

        branch_id = changes.get("default_branch_id")
        if branch_id:
            self.branches.get_by_id(branch_id)

        try:
            session.config = ImportConfiguration(**{**session.config.model_dump(), **changes})
        except PydanticValidationError as e:
            raise ValidationError(
                message="Invalid import configuration",
                code="IMPORT_INVALID_CONFIGURATION",
                details={"errors": e.errors(include_url=False, include_context=False)}
            )
        session.reset_validation()
        logger.info("import_config_updated", import_id=import_id, fields=sorted(changes))
        return session

    # ===================
    # VALIDATION / PREVIEW
    # ===================

    def validate(
        self,
        import_id: str,
        existing_records: Optional[Iterable[ExistingRecord]] = None
    ) -> ImportSession:
        """
        Recompute validation issues for a session.

        Skipped (no issues) when config.validate_data is off.

        Raises:
            ImportNotReadyError: Neither name nor base_rate is mapped
        """
        session = self.get_session(import_id)
        mappings = session.mappings.mappings

        if not can_validate(mappings):
            raise ImportNotReadyError(
                "Map the article name or base rate before validating",
                details={"unmapped_required": session.mappings.unmapped_required_fields()}
            )

        if not session.config.validate_data:
            session.issues = ()
            session.validated = False
            session.step = ImportStep.PREVIEW
            logger.info("import_validation_skipped", import_id=import_id)
            return session

        if existing_records is None:
            existing_records = self.articles.list_existing()

        session.issues = tuple(validate_rows(
            session.dataset,
            mappings,
            existing_records,
            session.config
        ))
        session.validated = True
        session.step = ImportStep.VALIDATION
        return session

    def preview(
        self,
        import_id: str,
        search_query: str = "",
        hide_error_rows: bool = False
    ) -> list[PreviewRow]:
        """Filtered preview rows for a session."""
        session = self.get_session(import_id)
        if session.validated and not can_proceed_to_preview(session.statistics, session.config):
            raise ImportNotReadyError(
                "Resolve validation errors or enable skipping duplicates first",
                details=session.statistics.model_dump()
            )
        if session.step in (ImportStep.MAPPING, ImportStep.VALIDATION):
            session.step = ImportStep.PREVIEW
        return filter_rows(session.dataset, session.issues, search_query, hide_error_rows)

    # ===================
    # COMMIT
    # ===================

    async def commit(
        self,
        import_id: str,
        mode: RowSelectionMode = RowSelectionMode.ALL,
        selected_rows: Optional[Iterable[int]] = None,
        existing_records: Optional[Iterable[ExistingRecord]] = None,
        on_progress: Optional[ProgressCallback] = None,
        should_cancel: Optional[CancelCheck] = None
    ) -> tuple[CommitResult, CommitSummary]:
        """
        Import the chosen rows of a session.

        The session is closed once the run finishes (kept if cancelled).
        Only one run per session at a time; cancel() stops a running one
        before its next row.

        Raises:
            ImportConfigurationError: No default branch selected
            ImportNotReadyError: Already importing, nothing selected, or
                unresolved errors block the import
            InvalidRowSelectionError: Selected rows outside the dataset
        """
        session = self.get_session(import_id)
        if session.step == ImportStep.IMPORTING:
            raise ImportNotReadyError(
                "An import is already running for this session",
                details={"import_id": import_id}
            )
        mode = RowSelectionMode(mode)
        selected = list(selected_rows or ())

        if not session.config.default_branch_id:
            self.notifier.show_error("Configuration Error", "Please select a branch")
            raise ImportConfigurationError(
                "Please select a branch",
                details={"field": "default_branch_id"}
            )
        if mode == RowSelectionMode.SELECTED and not selected:
            raise ImportNotReadyError("Select at least one row to import")

        if session.config.validate_data and not session.validated:
            self.validate(import_id, existing_records)

        if (
            mode != RowSelectionMode.EXCLUDE_ERRORS
            and session.validated
            and not can_proceed_to_preview(session.statistics, session.config)
        ):
            raise ImportNotReadyError(
                "Resolve validation errors, skip duplicates, or import only valid rows",
                details=session.statistics.model_dump()
            )

        rows = resolve_rows_to_import(session.dataset, session.issues, mode, selected)
        if existing_records is None:
            existing_records = self.articles.list_existing()

        logger.info(
            "import_commit_requested",
            import_id=import_id,
            mode=mode.value,
            candidate_count=import_candidate_count(session.statistics, mode, selected)
        )

        def cancel_requested() -> bool:
            return session.cancel_requested or (should_cancel is not None and should_cancel())

        # No await between the IMPORTING check above and here
        session.cancel_requested = False
        session.step = ImportStep.IMPORTING
        try:
            result = await commit_rows(
                rows,
                session.mappings.mappings,
                session.config,
                existing_records,
                self.articles,
                on_progress=on_progress,
                should_cancel=cancel_requested,
            )
        except Exception:
            session.step = ImportStep.PREVIEW
            raise
        session.result = result

        summary = summarize_commit(result)
        notify(self.notifier, summary.level, summary.title, summary.message)

        if result.cancelled:
            session.step = ImportStep.PREVIEW
        else:
            session.step = ImportStep.COMPLETE
            preview_cache_service.delete_preview(import_id)

        return result, summary

    def cancel(self, import_id: str) -> None:
        """Discard a session. A running commit stops before its next row."""
        session = preview_cache_service.retrieve_preview(import_id)
        if session is not None:
            session.cancel_requested = True
        preview_cache_service.delete_preview(import_id)
        logger.info("import_session_discarded", import_id=import_id)


# Singleton instance for convenience
_article_import_service: Optional[ArticleImportService] = None


def get_article_import_service() -> ArticleImportService:
    """Get or create ArticleImportService instance."""
    global _article_import_service
    if _article_import_service is None:
        _article_import_service = ArticleImportService()
    return _article_import_service
