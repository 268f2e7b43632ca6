"""
Article import API routes.

Upload -> map -> validate -> preview -> commit, one session per upload.
Errors use the AppError.to_dict() envelope.
"""

from typing import Optional

from fastapi import APIRouter, File, Form, Query, UploadFile
from fastapi.responses import JSONResponse, Response
import structlog

from exceptions import AppError
from models.article_import import (
    Branch,
    CommitRequest,
    CommitResponse,
    ImportConfigUpdate,
    ImportUploadResponse,
    MappingUpdateRequest,
    MappingsResponse,
    PreviewResponse,
    PreviewRowResponse,
    RowSelectionMode,
    TARGET_FIELDS,
    TargetField,
    ValidationResponse,
)
from services.article_import_service import ImportSession, get_article_import_service
from services.field_mapping_service import can_validate
from services.preview_service import import_candidate_count
from services.template_service import (
    TEMPLATE_CSV_FILENAME,
    TEMPLATE_EXCEL_FILENAME,
    build_template_csv,
    build_template_excel,
)
from services.validation_service import can_proceed_to_preview

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


def _mappings_response(session: ImportSession) -> MappingsResponse:
    mappings = list(session.mappings.mappings)
    return MappingsResponse(
        mappings=mappings,
        unmapped_required=session.mappings.unmapped_required_fields(),
        can_validate=can_validate(mappings),
        duplicate_targets=session.mappings.duplicate_targets(),
    )


def _validation_response(session: ImportSession) -> ValidationResponse:
    stats = session.statistics
    return ValidationResponse(
        issues=list(session.issues),
        statistics=stats,
        can_proceed=can_proceed_to_preview(stats, session.config),
        validated=session.validated,
    )


# ===================
# STATIC
# ===================

@router.get("/template")
async def download_template(
    file_format: str = Query("csv", alias="format", pattern="^(csv|xlsx)$", description="csv or xlsx")
):
    """Download the import template (labels + sample articles)."""
    if file_format == "xlsx":
        return Response(
            content=build_template_excel(),
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers={"Content-Disposition": f'attachment; filename="{TEMPLATE_EXCEL_FILENAME}"'},
        )
    return Response(
        content=build_template_csv(),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{TEMPLATE_CSV_FILENAME}"'},
    )


@router.get("/target-fields", response_model=list[TargetField])
async def list_target_fields():
    """Article fields a column can be mapped to."""
    return list(TARGET_FIELDS)


@router.get("/branches", response_model=list[Branch])
async def list_branches():
    """Branches an import can target."""
    try:
        return get_article_import_service().branches.get_all()
    except Exception as e:
        return handle_error(e)


# ===================
# SESSION
# ===================

@router.post("/upload", response_model=ImportUploadResponse, status_code=201)
async def upload_import_file(
    file: UploadFile = File(...),
    auto_mapping: bool = Form(True),
    validate_data: bool = Form(True),
    skip_duplicates: Optional[bool] = Form(None),
    update_existing: bool = Form(False),
    default_branch_id: Optional[str] = Form(None)
):
    """
    Upload a CSV or Excel file and open an import session.

    Returns parsed headers, row count and the inferred mappings.

    Raises:
        422: Unsupported, empty or unreadable file
    """
    logger.info(
        "import_upload_started",
        filename=file.filename,
        content_type=file.content_type
    )

    try:
        content = await file.read()
        service = get_article_import_service()

        overrides = {
            "auto_mapping": auto_mapping,
            "validate_data": validate_data,
            "update_existing": update_existing,
            "default_branch_id": default_branch_id,
        }
        if skip_duplicates is not None:
            overrides["skip_duplicates"] = skip_duplicates

        session = service.upload(content, file.filename or "", service.default_config(**overrides))

        return ImportUploadResponse(
            import_id=session.import_id,
            file_name=session.dataset.file_name,
            source_format=session.dataset.source_format,
            headers=list(session.dataset.headers),
            row_count=session.dataset.row_count,
            mappings=list(session.mappings.mappings),
            ambiguous_headers=session.ambiguous_headers,
            duplicate_targets=session.mappings.duplicate_targets(),
            config=session.config,
        )

    except Exception as e:
        return handle_error(e)


@router.get("/{import_id}/mappings", response_model=MappingsResponse)
async def get_mappings(import_id: str):
    """Current mappings of a session."""
    try:
        return _mappings_response(get_article_import_service().get_session(import_id))
    except Exception as e:
        return handle_error(e)


@router.put("/{import_id}/mappings", response_model=MappingsResponse)
async def update_mapping(import_id: str, data: MappingUpdateRequest):
    """Upsert the mapping of one source column."""
    try:
        session = get_article_import_service().update_mapping(
            import_id,
            data.source_field,
            data.target_field,
            data.transform
        )
        return _mappings_response(session)
    except Exception as e:
        return handle_error(e)


@router.delete("/{import_id}/mappings/{source_field}", response_model=MappingsResponse)
async def remove_mapping(import_id: str, source_field: str):
    """Remove the mapping of one source column."""
    try:
        session = get_article_import_service().remove_mapping(import_id, source_field)
        return _mappings_response(session)
    except Exception as e:
        return handle_error(e)


@router.put("/{import_id}/config")
async def update_config(import_id: str, data: ImportConfigUpdate):
    """Change import options (branch, defaults, duplicate policy)."""
    try:
        session = get_article_import_service().update_config(
            import_id,
            data.model_dump(exclude_unset=True)
        )
        return session.config
    except Exception as e:
        return handle_error(e)


@router.post("/{import_id}/validate", response_model=ValidationResponse)
async def validate_import(import_id: str):
    """Validate every row against the article rules."""
    try:
        session = get_article_import_service().validate(import_id)
        return _validation_response(session)
    except Exception as e:
        return handle_error(e)


@router.get("/{import_id}/preview", response_model=PreviewResponse)
async def preview_import(
    import_id: str,
    search: str = Query("", description="Case-insensitive text search"),
    hide_errors: bool = Query(False, description="Hide rows with errors")
):
    """Preview rows with their validation issues."""
    try:
        service = get_article_import_service()
        rows = service.preview(import_id, search, hide_errors)
        session = service.get_session(import_id)
        stats = session.statistics
        return PreviewResponse(
            rows=[PreviewRowResponse.model_validate(r.to_dict()) for r in rows],
            total=len(rows),
            statistics=stats,
            candidate_counts={
                mode.value: import_candidate_count(stats, mode)
                for mode in (RowSelectionMode.ALL, RowSelectionMode.EXCLUDE_ERRORS)
            },
        )
    except Exception as e:
        return handle_error(e)


@router.post("/{import_id}/commit", response_model=CommitResponse)
async def commit_import(import_id: str, data: CommitRequest):
    """
    Import the chosen rows, one at a time.

    Failed rows are reported, never abort the batch.
    """
    def log_progress(fraction: float) -> None:
        logger.debug("import_progress", import_id=import_id, progress=round(fraction * 100, 1))

    try:
        result, summary = await get_article_import_service().commit(
            import_id,
            mode=data.mode,
            selected_rows=data.selected_rows,
            on_progress=log_progress,
        )
        return CommitResponse(
            result=result,
            outcome=result.outcome,
            title=summary.title,
            message=summary.message,
        )
    except Exception as e:
        return handle_error(e)


@router.delete("/{import_id}", status_code=204)
async def discard_import(import_id: str):
    """Discard an import session."""
    get_article_import_service().cancel(import_id)
    return Response(status_code=204)
