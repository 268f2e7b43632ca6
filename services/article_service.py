"""
Article record store.

Reads the existing-articles snapshot used for duplicate lookup and
creates/updates articles for the import commit loop.

Supabase calls are synchronous; the async methods run them in a
worker thread so the commit loop can await each one in turn.
"""

import asyncio
from typing import Any, Optional

import structlog

from config import get_supabase_client
from exceptions import DatabaseError
from models.article_import import ExistingArticle

logger = structlog.get_logger(__name__)


# Core columns written by the first insert; the rest follow in an update
CORE_COLUMNS = ("name", "description", "base_rate", "branch_id")

# Applied when an imported record leaves these out
ARTICLE_DEFAULTS = {
    "min_quantity": 1,
    "is_fragile": False,
    "requires_special_handling": False,
}

PAGE_SIZE = 1000


class ArticleService:
    """
    Article persistence for imports.

    Satisfies the RecordStore protocol used by commit_rows().
    """

    def __init__(self, client: Optional[Any] = None):
        self.db = client if client is not None else get_supabase_client()
        self.table = "articles"

    # ===================
    # READ OPERATIONS
    # ===================

    def list_existing(self, branch_id: Optional[str] = None) -> list[ExistingArticle]:
        """
        Snapshot of existing articles (id + name).

        Args:
            branch_id: Limit to one branch; None reads every branch

        Returns:
            List of ExistingArticle
        """
        logger.debug("listing_existing_articles", branch_id=branch_id)

        articles: list[ExistingArticle] = []
        offset = 0
        try:
            while True:
                query = self.db.table(self.table).select("id, name")
                if branch_id:
                    query = query.eq("branch_id", branch_id)
                result = query.order("name").range(offset, offset + PAGE_SIZE - 1).execute()

                batch = result.data or []
                articles.extend(
                    ExistingArticle(id=str(row["id"]) if row.get("id") else None, name=row["name"])
                    for row in batch
                    if row.get("name")
                )
                if len(batch) < PAGE_SIZE:
                    break
                offset += PAGE_SIZE

        except Exception as e:
            logger.error("list_existing_articles_failed", error=str(e))
            raise DatabaseError("select", str(e))

        logger.info("existing_articles_loaded", count=len(articles), branch_id=branch_id)
        return articles

    # ===================
    # WRITE OPERATIONS
    # ===================

    async def create_article(self, data: dict[str, Any]) -> dict:
        """Create an article. Raises DatabaseError on failure."""
        return await asyncio.to_thread(self.create_article_sync, data)

    async def update_article(self, article_id: str, patch: dict[str, Any]) -> dict:
        """Update an article. Raises DatabaseError on failure."""
        return await asyncio.to_thread(self.update_article_sync, article_id, patch)

    def create_article_sync(self, data: dict[str, Any]) -> dict:
        """
        Insert an article.

        Inserts the core columns first, then writes the remaining
        fields in an update. If that update fails the basic article
        is kept and returned.

        Args:
            data: Article fields (name, base_rate and branch_id required)

        Returns:
            Created article row

        Raises:
            DatabaseError: If the insert fails
        """
        core = {
            "name": data.get("name"),
            "description": data.get("description") or "",
            "base_rate": data.get("base_rate"),
            "branch_id": data.get("branch_id"),
        }
        logger.debug("creating_article", name=core["name"], branch_id=core["branch_id"])

        try:
            result = self.db.table(self.table).insert(core).execute()
        except Exception as e:
            logger.error("create_article_failed", name=core["name"], error=str(e))
            raise DatabaseError("insert", str(e))

        if not result.data:
            raise DatabaseError("insert", "No data returned")

        article = result.data[0]
        extras = {k: v for k, v in data.items() if k not in CORE_COLUMNS}
        for field, default in ARTICLE_DEFAULTS.items():
            extras.setdefault(field, default)

        try:
            updated = (
                self.db.table(self.table)
                .update(extras)
                .eq("id", article["id"])
                .execute()
            )
            if updated.data:
                article = updated.data[0]
        except Exception as e:
            # Keep the basic article; only the optional fields are lost
            logger.warning(
                "article_extra_fields_update_failed",
                article_id=article.get("id"),
                error=str(e)
            )

        logger.info("article_created", article_id=article.get("id"), name=article.get("name"))
        return article

    def update_article_sync(self, article_id: str, patch: dict[str, Any]) -> dict:
        """
        Update an existing article.

        branch_id is never changed by an update.

        Raises:
            DatabaseError: If the update fails or matches nothing
        """
        changes = {k: v for k, v in patch.items() if k not in ("id", "branch_id")}
        logger.debug("updating_article", article_id=article_id, fields=list(changes))

        try:
            result = (
                self.db.table(self.table)
                .update(changes)
                .eq("id", article_id)
                .execute()
            )
        except Exception as e:
            logger.error("update_article_failed", article_id=article_id, error=str(e))
            raise DatabaseError("update", str(e))

        if not result.data:
            raise DatabaseError("update", "No data returned", details={"id": article_id})

        logger.info("article_updated", article_id=article_id)
        return result.data[0]


# Singleton instance for convenience
_article_service: Optional[ArticleService] = None


def get_article_service() -> ArticleService:
    """Get or create ArticleService instance."""
    global _article_service
    if _article_service is None:
        _article_service = ArticleService()
    return _article_service
