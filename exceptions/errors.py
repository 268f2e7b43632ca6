"""
Custom exception classes for the application.

Parse failures and configuration problems are raised; per-row
validation issues and per-row commit failures are data, not exceptions.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "IMPORT_EMPTY_FILE")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# IMPORT FILE ERRORS
# ===================

class ImportParseError(ValidationError):
    """
    Uploaded import file could not be turned into a dataset.

    Fatal to the parse stage only; the session stays at the upload step.
    """

    reason = "malformed"

    def __init__(
        self,
        message: str,
        code: str = "IMPORT_PARSE_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            details={"reason": self.reason, **(details or {})}
        )


class UnsupportedFileFormatError(ImportParseError):
    """File extension is not csv, xlsx or xls."""

    reason = "unsupported-format"

    def __init__(self, file_name: str, extension: str):
        super().__init__(
            code="IMPORT_UNSUPPORTED_FORMAT",
            message="Please upload a CSV or Excel file",
            details={
                "file_name": file_name,
                "extension": extension,
                "valid": ["csv", "xlsx", "xls"],
            }
        )


class EmptyImportFileError(ImportParseError):
    """File has no header row or no data rows."""

    reason = "empty"

    def __init__(self, file_name: str):
        super().__init__(
            code="IMPORT_EMPTY_FILE",
            message="The file appears to be empty or invalid",
            details={"file_name": file_name}
        )


class MalformedImportFileError(ImportParseError):
    """File content could not be read in its declared format."""

    reason = "malformed"

    def __init__(self, file_name: str, error: str):
        super().__init__(
            code="IMPORT_PARSE_ERROR",
            message="Failed to parse the file. Please check the format.",
            details={"file_name": file_name, "original_error": error}
        )


class ImportFileTooLargeError(ValidationError):
    """Upload exceeds the configured size limit."""

    def __init__(self, size_bytes: int, limit_bytes: int):
        super().__init__(
            code="IMPORT_FILE_TOO_LARGE",
            message=f"File exceeds the {limit_bytes // (1024 * 1024)} MB upload limit",
            details={"size_bytes": size_bytes, "limit_bytes": limit_bytes}
        )


# ===================
# IMPORT SESSION ERRORS
# ===================

class ImportSessionNotFoundError(NotFoundError):
    """Import session expired or never existed."""

    def __init__(self, import_id: str):
        super().__init__(
            resource="Import session",
            identifier=import_id,
            code="IMPORT_SESSION_NOT_FOUND"
        )


class ImportConfigurationError(ValidationError):
    """Import cannot start with the given configuration."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="IMPORT_CONFIGURATION_ERROR",
            message=message,
            details=details
        )


class InvalidTargetFieldError(ValidationError):
    """Mapping points at a field outside the article schema."""

    def __init__(self, target_field: str, valid: list[str]):
        super().__init__(
            code="IMPORT_INVALID_TARGET_FIELD",
            message=f"Unknown target field: {target_field}",
            details={"provided": target_field, "valid": valid}
        )


class InvalidRowSelectionError(ValidationError):
    """Selected row indices do not exist in the dataset."""

    def __init__(self, invalid_indices: list[int], row_count: int):
        super().__init__(
            code="IMPORT_INVALID_ROW_SELECTION",
            message=f"Selection contains {len(invalid_indices)} unknown row(s)",
            details={"invalid_indices": invalid_indices, "row_count": row_count}
        )


class ImportNotReadyError(ValidationError):
    """Session step prerequisites are not met."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="IMPORT_NOT_READY",
            message=message,
            details=details
        )


# ===================
# BRANCH ERRORS
# ===================

class BranchNotFoundError(NotFoundError):
    """Branch not found."""

    def __init__(self, branch_id: str):
        super().__init__(
            resource="Branch",
            identifier=branch_id,
            code="BRANCH_NOT_FOUND"
        )


# ===================
# NOTIFICATION ERRORS
# ===================

class TelegramError(AppError):
    """Telegram API error."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="TELEGRAM_ERROR",
            message=message,
            status_code=500,
            details=details
        )
