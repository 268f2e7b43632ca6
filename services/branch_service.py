"""
Branch directory.

Read-only list of branches an import can target.
"""

from typing import Any, Optional

import structlog

from config import get_supabase_client
from exceptions import BranchNotFoundError, DatabaseError
from models.article_import import Branch

logger = structlog.get_logger(__name__)


class BranchService:
    """Branch lookups."""

    def __init__(self, client: Optional[Any] = None):
        self.db = client if client is not None else get_supabase_client()
        self.table = "branches"

    def get_all(self) -> list[Branch]:
        """All branches, ordered by name."""
        try:
            result = self.db.table(self.table).select("id, name").order("name").execute()
        except Exception as e:
            logger.error("get_branches_failed", error=str(e))
            raise DatabaseError("select", str(e))

        branches = [Branch(id=str(row["id"]), name=row["name"]) for row in result.data or []]
        logger.debug("branches_retrieved", count=len(branches))
        return branches

    def get_by_id(self, branch_id: str) -> Branch:
        """
        Get one branch.

        Raises:
            BranchNotFoundError: If no branch has this id
        """
        branch = next((b for b in self.get_all() if b.id == branch_id), None)
        if branch is None:
            raise BranchNotFoundError(branch_id)
        return branch


# Singleton instance for convenience
_branch_service: Optional[BranchService] = None


def get_branch_service() -> BranchService:
    """Get or create BranchService instance."""
    global _branch_service
    if _branch_service is None:
        _branch_service = BranchService()
    return _branch_service
