"""
Base schemas for all models.
"""

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """
    Base for request/response schemas.

    Features:
        - Auto-trim whitespace from strings
        - Validate on attribute assignment
        - Allow ORM objects (from_attributes)
    """
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        validate_assignment=True
    )


class SnapshotSchema(BaseModel):
    """
    Base for immutable pipeline snapshots.

    Strings are kept verbatim: source column names must match the
    uploaded file exactly, surrounding whitespace included.
    """
    model_config = ConfigDict(
        from_attributes=True,
        frozen=True
    )
