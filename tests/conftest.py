"""Pytest configuration and fixtures.

Supabase and Anthropic are replaced by in-memory fakes so the whole app can
run through FastAPI's TestClient without network access.
"""

import asyncio
from types import SimpleNamespace
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from journal_api.application import create_app
from journal_api.core.config import Config
from journal_api.core.context import AppContext

TEST_USER_ID = "11111111-2222-3333-4444-555555555555"
VALID_TOKEN = "valid-token"

BASE_ENV = {
    "ENVIRONMENT": "test",
    "SUPABASE_URL": "https://example.supabase.co",
    "SUPABASE_SERVICE_ROLE_KEY": "service-role-key",
    "ANTHROPIC_API_KEY": "test-anthropic-key",
    "OUTBOUND_BACKOFF_SECONDS": "0",
    "OUTBOUND_BACKOFF_MAX_SECONDS": "0",
}


# ============================================================================
# Supabase fakes
# ============================================================================


class FakeQuery:
    """Minimal PostgREST query builder over in-memory rows."""

    def __init__(self, store: "FakeSupabase", table: str):
        self.store = store
        self.table = table
        self.filters: List[tuple] = []
        self._order: Optional[tuple] = None
        self._limit: Optional[int] = None

    def select(self, *_columns: str) -> "FakeQuery":
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append((column, value))
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self._order = (column, desc)
        return self

    def limit(self, count: int) -> "FakeQuery":
        self._limit = count
        return self

    async def execute(self) -> SimpleNamespace:
        self.store.calls.append(("select", self.table))
        if self.store.read_error is not None:
            raise self.store.read_error
        rows = [
            row for row in self.store.tables.get(self.table, [])
            if all(row.get(column) == value for column, value in self.filters)
        ]
        if self._order:
            column, desc = self._order
            rows = sorted(rows, key=lambda row: row.get(column) or "", reverse=desc)
        if self._limit is not None:
            rows = rows[: self._limit]
        return SimpleNamespace(data=[dict(row) for row in rows])


class FakeIncrement:
    """Naive read-modify-write, yielding between the read and the write."""

    def __init__(self, store: "FakeSupabase", user_id: str):
        self.store = store
        self.user_id = user_id

    async def execute(self) -> SimpleNamespace:
        self.store.calls.append(("rpc", "increment_free_insights_used"))
        if self.store.write_error is not None:
            raise self.store.write_error
        users = self.store.tables.setdefault("users", [])
        row = next((r for r in users if r["id"] == self.user_id), None)
        current = row["free_insights_used"] if row else 0
        await asyncio.sleep(0)
        if row is None:
            users.append({"id": self.user_id, "subscription_status": "free", "free_insights_used": current + 1})
        else:
            row["free_insights_used"] = current + 1
        return SimpleNamespace(data=current + 1)


class FakeAuth:
    def __init__(self, tokens: Dict[str, str]):
        self.tokens = tokens
        self.get_user = AsyncMock(side_effect=self._get_user)

    async def _get_user(self, jwt: str) -> SimpleNamespace:
        user_id = self.tokens.get(jwt)
        if user_id is None:
            raise RuntimeError("invalid JWT: unable to parse or verify signature")
        return SimpleNamespace(
            user=SimpleNamespace(id=user_id, email="writer@example.com", created_at="2024-01-01T00:00:00Z")
        )


class FakeSupabase:
    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {
            "users": [],
            "journal_entries": [],
            "user_preferences": [],
        }
        self.calls: List[tuple] = []
        self.read_error: Optional[Exception] = None
        self.write_error: Optional[Exception] = None
        self.auth = FakeAuth({VALID_TOKEN: TEST_USER_ID})

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: Dict[str, Any]) -> FakeIncrement:
        assert name == "increment_free_insights_used"
        return FakeIncrement(self, params["p_user_id"])

    def set_user(
        self, user_id: str = TEST_USER_ID, status: str = "free", used: int = 0, ai_style: str = "reflector",
    ) -> None:
        self.tables["users"] = [r for r in self.tables["users"] if r["id"] != user_id]
        self.tables["users"].append(
            {"id": user_id, "subscription_status": status, "free_insights_used": used, "ai_style": ai_style}
        )

    def used(self, user_id: str = TEST_USER_ID) -> int:
        row = next((r for r in self.tables["users"] if r["id"] == user_id), None)
        return row["free_insights_used"] if row else 0


# ============================================================================
# Anthropic fake
# ============================================================================


def claude_message(text: str, input_tokens: int = 120, output_tokens: int = 80) -> SimpleNamespace:
    """Shape of ``anthropic.types.Message`` that the orchestrator reads."""
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=text)],
        usage=SimpleNamespace(input_tokens=input_tokens, output_tokens=output_tokens),
    )


INSIGHT_JSON = (
    '{"insight": "You keep returning to deadlines as the main source of pressure. '
    'Block two focused hours tomorrow for the report.", '
    '"followUpQuestion": "Which task would free up the most time if it were finished first?", '
    '"confidence": 0.87}'
)


class FakeAnthropic:
    def __init__(self, text: str = INSIGHT_JSON):
        self.messages = SimpleNamespace(create=AsyncMock(return_value=claude_message(text)))
        self.close = AsyncMock()


# ============================================================================
# Application fixtures
# ============================================================================


@pytest.fixture
def settings() -> Config:
    return Config(dict(BASE_ENV))


@pytest.fixture
def supabase() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def anthropic_client() -> FakeAnthropic:
    return FakeAnthropic()


@pytest.fixture
def context(settings, supabase, anthropic_client) -> AppContext:
    return AppContext(settings, supabase_client=supabase, anthropic_client=anthropic_client)


@pytest.fixture
def app(context):
    return create_app(context=context)


@pytest.fixture
def client(app):
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {VALID_TOKEN}"}
