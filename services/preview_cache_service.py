"""
Temporary storage for import sessions.

Holds an uploaded dataset and its mappings between API calls,
in memory with TTL expiration. Single-process only.
"""
import uuid
from datetime import datetime, timedelta
from typing import Any, Optional

_cache: dict[str, tuple[datetime, Any]] = {}
DEFAULT_TTL_MINUTES = 30


def store_preview(data: Any, ttl_minutes: int = DEFAULT_TTL_MINUTES) -> str:
    """Store session data, return its id."""
    preview_id = str(uuid.uuid4())
    expires_at = datetime.now() + timedelta(minutes=ttl_minutes)
    _cache[preview_id] = (expires_at, data)
    _cleanup_expired()
    return preview_id


def retrieve_preview(preview_id: str) -> Optional[Any]:
    """Retrieve session data by id. Returns None if expired/not found."""
    entry = _cache.get(preview_id)
    if entry is None:
        return None
    expires_at, data = entry
    if datetime.now() > expires_at:
        del _cache[preview_id]
        return None
    return data


def refresh_preview(preview_id: str, ttl_minutes: int = DEFAULT_TTL_MINUTES) -> bool:
    """Push back expiry of a live session. False if it is gone."""
    data = retrieve_preview(preview_id)
    if data is None:
        return False
    _cache[preview_id] = (datetime.now() + timedelta(minutes=ttl_minutes), data)
    return True


def delete_preview(preview_id: str) -> None:
    """Remove session after commit or cancel."""
    _cache.pop(preview_id, None)


def clear_previews() -> None:
    """Drop every stored session."""
    _cache.clear()


def _cleanup_expired() -> None:
    """Remove all expired entries."""
    now = datetime.now()
    expired = [k for k, (exp, _) in _cache.items() if now > exp]
    for k in expired:
        del _cache[k]
