"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.article_import import router as article_import_router

__all__ = [
    "article_import_router",
]
