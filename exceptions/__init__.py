"""
Custom exceptions module.

AppError subclasses carry an error code, HTTP status and details,
and serialize to the API error envelope via to_dict().
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ExternalServiceError,
    DatabaseError,

    # Import file
    ImportParseError,
    UnsupportedFileFormatError,
    EmptyImportFileError,
    MalformedImportFileError,
    ImportFileTooLargeError,

    # Import session
    ImportSessionNotFoundError,
    ImportConfigurationError,
    InvalidTargetFieldError,
    InvalidRowSelectionError,
    ImportNotReadyError,

    # Branches
    BranchNotFoundError,

    # Notifications
    TelegramError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ExternalServiceError",
    "DatabaseError",

    # Import file
    "ImportParseError",
    "UnsupportedFileFormatError",
    "EmptyImportFileError",
    "MalformedImportFileError",
    "ImportFileTooLargeError",

    # Import session
    "ImportSessionNotFoundError",
    "ImportConfigurationError",
    "InvalidTargetFieldError",
    "InvalidRowSelectionError",
    "ImportNotReadyError",

    # Branches
    "BranchNotFoundError",

    # Notifications
    "TelegramError",
]
