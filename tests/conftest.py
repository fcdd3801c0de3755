"""
Shared test fixtures.

Supabase is replaced by an in-memory MockSupabaseClient and the
Anthropic client by FakeAnthropicClient. Neither touches the network.
"""

import os
import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings are loaded at import time
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("MAPPING_SUGGESTER", "fuzzy")
os.environ.setdefault("ENVIRONMENT", "development")

import pytest
from unittest.mock import patch
import re
from datetime import datetime
from typing import Any, Callable, Generator, Optional

from tests.factories import FakeAnthropicClient

# ===================
# MOCK SUPABASE CLIENT
# ===================

def _like_regex(pattern: str) -> "re.Pattern":
    """Translate a LIKE pattern (with backslash escapes) to a regex."""
    parts = []
    chars = iter(pattern)
    for ch in chars:
        if ch == "\\":
            parts.append(re.escape(next(chars, "\\")))
        elif ch == "%":
            parts.append(".*")
        elif ch == "_":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


_QUOTED = r'"((?:[^"\\]|\\.)*)"'
_OR_ILIKE = re.compile(_QUOTED + r"\.ilike\." + _QUOTED)


def _unquote(token: str) -> str:
    return re.sub(r"\\(.)", r"\1", token)


def _ilike(column: str, pattern: str) -> Callable[[dict], bool]:
    regex = _like_regex(pattern)
    return lambda row: bool(regex.fullmatch(str(row.get(column) or "")))


class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: Any = None, count: int = None):
        self.data = data if data is not None else []
        if count is not None:
            self.count = count
        else:
            self.count = len(self.data) if isinstance(self.data, list) else (1 if self.data else 0)


class MockSupabaseQuery:
    """
    Mock Supabase query builder with chainable methods.

    Filters are applied against the table's rows on execute().
    """

    def __init__(self, table: "MockSupabaseTable", operation: str, payload: Any = None):
        self._table = table
        self._operation = operation
        self._payload = payload
        self._filters: list[Callable[[dict], bool]] = []
        self._orders: list[tuple[str, bool]] = []
        self._limit: Optional[int] = None
        self._range: Optional[tuple[int, int]] = None
        self._is_single = False

    def select(self, *args, **kwargs):
        return self

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self._filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column, values):
        values = list(values)
        self._filters.append(lambda row: row.get(column) in values)
        return self

    def ilike(self, column, pattern):
        self._filters.append(_ilike(column, pattern))
        return self

    def or_(self, filters: str):
        conditions = [
            _ilike(_unquote(column), _unquote(pattern))
            for column, pattern in _OR_ILIKE.findall(filters)
        ]
        self._filters.append(lambda row: any(cond(row) for cond in conditions))
        return self

    def single(self):
        self._is_single = True
        return self

    def order(self, column, desc: bool = False, **kwargs):
        self._orders.append((column, desc))
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def _matches(self) -> list[dict]:
        return [row for row in self._table.rows if all(f(row) for f in self._filters)]

    def execute(self) -> MockSupabaseResponse:
        self._table.check_error(self._operation, self._payload)

        if self._operation == "insert":
            return MockSupabaseResponse(data=self._table.add_rows(self._payload))

        matched = self._matches()

        if self._operation == "update":
            for row in matched:
                row.update(self._payload)
                row["updated_at"] = datetime.utcnow().isoformat() + "Z"
            return MockSupabaseResponse(data=[dict(row) for row in matched])

        if self._operation == "delete":
            self._table.rows = [
                row for row in self._table.rows if not any(row is m for m in matched)
            ]
            return MockSupabaseResponse(data=[dict(row) for row in matched])

        total = self._table.count if self._table.count is not None else len(matched)
        # Later orders break ties of earlier ones
        for column, desc in reversed(self._orders):
            matched = sorted(matched, key=lambda row: str(row.get(column) or ""), reverse=desc)
        if self._range:
            start, end = self._range
            matched = matched[start:end + 1]
        if self._limit is not None:
            matched = matched[:self._limit]

        if self._is_single:
            data = dict(matched[0]) if matched else None
            return MockSupabaseResponse(data=data, count=1 if data else 0)

        return MockSupabaseResponse(data=[dict(row) for row in matched], count=total)


class MockSupabaseTable:
    """Mock Supabase table holding rows in memory."""

    def __init__(self, name: str, data: list = None, count: int = None):
        self.name = name
        self.rows: list[dict] = [dict(row) for row in (data or [])]
        self.count = count
        self.inserted: list[dict] = []
        self.error: Optional[Exception] = None
        self.error_operation: Optional[str] = None
        self.error_when: Optional[Callable[[dict], bool]] = None
        self._next_id = 1

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self, "select")

    def insert(self, data):
        return MockSupabaseQuery(self, "insert", data)

    def update(self, data):
        return MockSupabaseQuery(self, "update", data)

    def delete(self):
        return MockSupabaseQuery(self, "delete")

    def add_rows(self, data) -> list[dict]:
        items = data if isinstance(data, list) else [data]
        created = []
        for item in items:
            row = dict(item)
            row.setdefault("id", f"{self.name}-uuid-{self._next_id}")
            row.setdefault("created_at", datetime.utcnow().isoformat() + "Z")
            self._next_id += 1
            self.rows.append(row)
            self.inserted.append(row)
            created.append(dict(row))
        return created

    def check_error(self, operation: str, payload: Any) -> None:
        if self.error is None:
            return
        if self.error_operation and self.error_operation != operation:
            return
        if self.error_when is not None:
            items = payload if isinstance(payload, list) else [payload]
            if not any(self.error_when(item or {}) for item in items):
                return
        raise self.error


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables: dict[str, MockSupabaseTable] = {}

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Configure mock data for a table."""
        self._tables[table_name] = MockSupabaseTable(table_name, data, count)

    def set_table_error(
        self,
        table_name: str,
        error: Exception,
        operation: Optional[str] = None,
        when: Optional[Callable[[dict], bool]] = None,
    ):
        """
        Make calls on a table raise.

        Args:
            error: Exception raised by execute()
            operation: Only fail this operation (insert/select/update/delete)
            when: Only fail writes whose payload matches
        """
        table = self.table(table_name)
        table.error = error
        table.error_operation = operation
        table.error_when = when

    def rows(self, table_name: str) -> list[dict]:
        return self.table(table_name).rows

    def inserted(self, table_name: str) -> list[dict]:
        return self.table(table_name).inserted

    def table(self, name: str) -> MockSupabaseTable:
        """Get mock table."""
        if name not in self._tables:
            self._tables[name] = MockSupabaseTable(name)
        return self._tables[name]


def _reset_service_singletons() -> None:
    import services.candidate_service as candidate_service
    import services.upload_history_service as upload_history_service

    candidate_service._service = None
    upload_history_service._service = None


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("candidates", [
                {"id": "1", "Name": "Jane Doe", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Usage:
        def test_something(mock_db, mock_supabase):
            mock_supabase.set_table_data("candidates", [...])
            # Now any code using get_supabase_client() gets the mock
    """
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("services.candidate_service.get_supabase_client", return_value=mock_supabase):
            with patch("services.upload_history_service.get_supabase_client", return_value=mock_supabase):
                _reset_service_singletons()
                yield mock_supabase
                _reset_service_singletons()


@pytest.fixture(autouse=True)
def clear_workflow_cache():
    """Every test starts without stored workflows."""
    from services.workflow_cache_service import clear_workflows

    clear_workflows()
    yield
    clear_workflows()


@pytest.fixture
def fake_anthropic() -> Callable[..., FakeAnthropicClient]:
    """
    Build a fake Anthropic client.

    Usage:
        client = fake_anthropic('{"Full Name": "Name"}')
        client = fake_anthropic(make_api_connection_error(), '{"Email": "Email"}')
    """
    return FakeAnthropicClient


@pytest.fixture
def user_id() -> str:
    return "user-123"


@pytest.fixture
def auth_headers(user_id) -> dict:
    return {"X-User-Id": user_id}


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client_with_mock_db(mock_db):
    """
    Create FastAPI test client with mocked database.

    Usage:
        def test_endpoint(test_client_with_mock_db, mock_supabase):
            mock_supabase.set_table_data("candidates", [...])
            response = test_client_with_mock_db.get("/api/candidates", headers=...)
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)
