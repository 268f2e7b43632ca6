"""
Shared test fixtures.

Mock Supabase client, in-memory record store and notifier,
and a TestClient wired to an injected ArticleImportService.
"""

import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

import asyncio
import pytest
from unittest.mock import patch
from datetime import datetime, timezone
from typing import Any, Generator, Optional

from config.settings import Settings
from exceptions import BranchNotFoundError, DatabaseError
from models.article_import import Branch, ExistingArticle
from services import preview_cache_service
from services.article_import_service import ArticleImportService

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


class MockSupabaseQuery:
    """Mock Supabase query builder with chainable methods."""

    def __init__(self, client: "MockSupabaseClient", table: str, data: list = None, count: int = None):
        self._client = client
        self._table = table
        self._data = data or []
        self._count = count
        self._is_single = False
        self._operation = "select"
        self._payload = None
        self._filters: list[tuple[str, Any]] = []

    def select(self, *args, **kwargs):
        return self

    def insert(self, data):
        # Simulate insert - add id and timestamps
        self._operation = "insert"
        self._payload = dict(data)
        now = datetime.now(timezone.utc).isoformat()
        item = {**data, "id": f"article-{len(self._client.writes) + 1}", "created_at": now}
        self._data = [item]
        return self

    def update(self, data):
        # Simulate update - merge with the row being updated
        self._operation = "update"
        self._payload = dict(data)
        self._data = [{**item, **data} for item in self._data] or [dict(data)]
        return self

    def delete(self):
        self._operation = "delete"
        return self

    def eq(self, column, value):
        self._filters.append((column, value))
        return self

    def single(self):
        self._is_single = True
        return self

    def order(self, column, **kwargs):
        return self

    def range(self, start, end):
        return self

    def limit(self, count):
        return self

    def execute(self) -> MockSupabaseResponse:
        if self._operation in self._client.fail_on:
            raise RuntimeError(f"mock {self._operation} failure")
        if self._operation != "select":
            self._client.writes.append({
                "table": self._table,
                "operation": self._operation,
                "data": self._payload,
                "filters": list(self._filters),
            })
        if self._is_single:
            data = self._data[0] if self._data else None
            return MockSupabaseResponse(data=data, count=1 if data else 0)
        return MockSupabaseResponse(
            data=self._data,
            count=self._count if self._count is not None else len(self._data)
        )


class MockSupabaseTable:
    """Mock Supabase table with configurable responses."""

    def __init__(self, client: "MockSupabaseClient", name: str, data: list = None, count: int = None):
        self._client = client
        self._name = name
        self._data = data or []
        self._count = count

    def _query(self) -> MockSupabaseQuery:
        return MockSupabaseQuery(self._client, self._name, [dict(d) for d in self._data], self._count)

    def select(self, *args, **kwargs):
        return self._query()

    def insert(self, data):
        return self._query().insert(data)

    def update(self, data):
        return self._query().update(data)

    def delete(self):
        return self._query().delete()


class MockSupabaseClient:
    """
    Mock Supabase client.

    Records every insert/update in `writes`. Operations named in
    `fail_on` raise when executed.
    """

    def __init__(self):
        self._tables = {}
        self.writes: list[dict] = []
        self.fail_on: set[str] = set()

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Configure mock data for a table."""
        self._tables[table_name] = {"data": data, "count": count}

    def table(self, name: str) -> MockSupabaseTable:
        """Get mock table."""
        config = self._tables.get(name, {"data": [], "count": None})
        return MockSupabaseTable(self, name, config["data"], config["count"])


# ===================
# IN-MEMORY COLLABORATORS
# ===================

class FakeRecordStore:
    """
    In-memory article store.

    Rows whose name is in `fail_names` raise on create/update.
    Tracks how many calls were in flight at once.
    """

    def __init__(self, existing: Optional[list[dict]] = None, fail_names: Optional[set] = None):
        self.existing = existing or []
        self.fail_names = fail_names or set()
        self.created: list[dict] = []
        self.updated: list[tuple[str, dict]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def list_existing(self, branch_id: Optional[str] = None) -> list[ExistingArticle]:
        return [ExistingArticle(id=r.get("id"), name=r["name"]) for r in self.existing]

    async def _call(self, data: dict) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if data.get("name") in self.fail_names:
                raise DatabaseError("insert", f"rejected {data.get('name')}")
        finally:
            self.in_flight -= 1

    async def create_article(self, data: dict) -> dict:
        await self._call(data)
        self.created.append(data)
        return {"id": f"new-{len(self.created)}", **data}

    async def update_article(self, article_id: str, patch: dict) -> dict:
        await self._call(patch)
        self.updated.append((article_id, patch))
        return {"id": article_id, **patch}


class FakeBranchService:
    """Fixed branch directory."""

    def __init__(self, branches: Optional[list[Branch]] = None):
        self.branches = branches if branches is not None else [
            Branch(id="branch-1", name="Main Branch"),
            Branch(id="branch-2", name="North Branch"),
        ]

    def get_all(self) -> list[Branch]:
        return list(self.branches)

    def get_by_id(self, branch_id: str) -> Branch:
        for branch in self.branches:
            if branch.id == branch_id:
                return branch
        raise BranchNotFoundError(branch_id)


class RecordingNotifier:
    """Collects (level, title, message) tuples."""

    def __init__(self):
        self.messages: list[tuple[str, str, str]] = []

    def show_success(self, title: str, message: str) -> None:
        self.messages.append(("success", title, message))

    def show_error(self, title: str, message: str) -> None:
        self.messages.append(("error", title, message))

    def show_info(self, title: str, message: str) -> None:
        self.messages.append(("info", title, message))

    def titles(self) -> list[str]:
        return [title for _, title, _ in self.messages]


# ===================
# FIXTURES
# ===================

@pytest.fixture(autouse=True)
def clear_import_sessions() -> Generator:
    """Every test starts with an empty session cache."""
    preview_cache_service.clear_previews()
    yield
    preview_cache_service.clear_previews()


@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("articles", [
                {"id": "1", "name": "Cotton Fabric"}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Usage:
        def test_something(mock_db, mock_supabase):
            mock_supabase.set_table_data("branches", [...])
            # Now any code using get_supabase_client() gets the mock
    """
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("services.article_service.get_supabase_client", return_value=mock_supabase):
            with patch("services.branch_service.get_supabase_client", return_value=mock_supabase):
                yield mock_supabase


@pytest.fixture
def test_settings() -> Settings:
    """Settings independent of the environment."""
    return Settings(
        _env_file=None,
        import_max_file_size_mb=1,
        import_skip_duplicates=True,
        import_default_min_quantity=1,
        import_default_tax_rate=None,
    )


@pytest.fixture
def record_store() -> FakeRecordStore:
    return FakeRecordStore(existing=[{"id": "existing-1", "name": "Premium Cotton Fabric"}])


@pytest.fixture
def branch_service() -> FakeBranchService:
    return FakeBranchService()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def import_service(record_store, branch_service, notifier, test_settings) -> ArticleImportService:
    """ArticleImportService backed by in-memory collaborators."""
    return ArticleImportService(
        article_service=record_store,
        branch_service=branch_service,
        notifier=notifier,
        settings=test_settings,
    )


@pytest.fixture
def sample_csv() -> bytes:
    """Article upload with one valid row, one duplicate and one broken row."""
    return (
        "Article Name,Description,Base Rate,HSN Code,GST %,Unit\n"
        "Silk Saree Bundle,Assorted colors,2500,5007,5,bundle\n"
        "Premium Cotton Fabric,Cotton,450,5208,12,meter\n"
        ",Missing name,abc,12,150,box\n"
    ).encode("utf-8")


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client(import_service):
    """
    Create FastAPI test client wired to the in-memory import service.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/api/articles/import/target-fields")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from main import app

    with patch("routes.article_import.get_article_import_service", return_value=import_service):
        yield TestClient(app)
