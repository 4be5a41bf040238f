"""Tests for bearer token validation and the authentication guard on routes."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import pytest

from journal_api.core.config import OutboundPolicy
from journal_api.features.auth.validator import CredentialValidator, extract_bearer_token
from journal_api.shared.errors import InvalidToken, Unauthenticated

FAST_POLICY = OutboundPolicy(timeout_seconds=1, max_attempts=3, backoff_seconds=0, backoff_max_seconds=0)

PROTECTED_ROUTES = [
    ("POST", "/api/ai/insights", {"content": "Today was long."}),
    ("GET", "/api/ai/usage", None),
    ("GET", "/api/ai/health", None),
    ("POST", "/api/ai/chat", {"messages": [{"role": "user", "content": "Hi"}]}),
    ("POST", "/api/summarise", {"journalContent": "Today was long."}),
]


class TestExtractBearerToken:
    def test_returns_token(self):
        assert extract_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"

    def test_scheme_is_case_insensitive(self):
        assert extract_bearer_token("bearer abc") == "abc"

    @pytest.mark.parametrize("header", [None, "", "Bearer", "Bearer ", "Basic abc", "Token abc", "Bearer a b"])
    def test_rejects_malformed_headers(self, header):
        with pytest.raises(Unauthenticated):
            extract_bearer_token(header)


class TestCredentialValidator:
    @pytest.mark.asyncio
    async def test_returns_principal_for_valid_token(self):
        user = SimpleNamespace(id="user-1", email="a@example.com", created_at=None)
        auth = SimpleNamespace(get_user=AsyncMock(return_value=SimpleNamespace(user=user)))

        principal = await CredentialValidator(auth, FAST_POLICY).authenticate("Bearer good")

        assert principal.id == "user-1"
        assert principal.email == "a@example.com"
        auth.get_user.assert_awaited_once_with("good")

    @pytest.mark.asyncio
    async def test_missing_header_makes_no_identity_call(self):
        auth = SimpleNamespace(get_user=AsyncMock())

        with pytest.raises(Unauthenticated):
            await CredentialValidator(auth, FAST_POLICY).authenticate(None)

        auth.get_user.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejected_token_is_invalid(self):
        auth = SimpleNamespace(get_user=AsyncMock(side_effect=RuntimeError("bad jwt")))

        with pytest.raises(InvalidToken):
            await CredentialValidator(auth, FAST_POLICY).authenticate("Bearer expired")

        assert auth.get_user.await_count == 1

    @pytest.mark.asyncio
    async def test_response_without_user_is_invalid(self):
        auth = SimpleNamespace(get_user=AsyncMock(return_value=SimpleNamespace(user=None)))

        with pytest.raises(InvalidToken):
            await CredentialValidator(auth, FAST_POLICY).authenticate("Bearer orphan")

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self):
        user = SimpleNamespace(id="user-1", email=None, created_at=None)
        auth = SimpleNamespace(
            get_user=AsyncMock(side_effect=[httpx.ConnectError("refused"), SimpleNamespace(user=user)])
        )

        principal = await CredentialValidator(auth, FAST_POLICY).authenticate("Bearer good")

        assert principal.id == "user-1"
        assert auth.get_user.await_count == 2

    @pytest.mark.asyncio
    async def test_identity_outage_reports_invalid_token(self):
        auth = SimpleNamespace(get_user=AsyncMock(side_effect=httpx.ConnectError("refused")))

        with pytest.raises(InvalidToken):
            await CredentialValidator(auth, FAST_POLICY).authenticate("Bearer good")

        assert auth.get_user.await_count == FAST_POLICY.max_attempts


class TestRouteAuthentication:
    @pytest.mark.parametrize("method,path,body", PROTECTED_ROUTES)
    def test_missing_token_returns_401_before_any_upstream_call(
        self, client, supabase, anthropic_client, method, path, body
    ):
        response = client.request(method, path, json=body)

        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHENTICATED"
        supabase.auth.get_user.assert_not_awaited()
        assert supabase.calls == []
        anthropic_client.messages.create.assert_not_awaited()

    @pytest.mark.parametrize("method,path,body", PROTECTED_ROUTES)
    def test_invalid_token_returns_401_before_store_or_ai(
        self, client, supabase, anthropic_client, method, path, body
    ):
        response = client.request(method, path, json=body, headers={"Authorization": "Bearer forged"})

        assert response.status_code == 401
        payload = response.json()
        assert payload["code"] == "INVALID_TOKEN"
        assert payload["error"] == "Invalid token"
        assert supabase.calls == []
        anthropic_client.messages.create.assert_not_awaited()

    def test_unauthenticated_insight_does_not_touch_quota(self, client, supabase):
        supabase.set_user(used=0)

        client.post("/api/ai/insights", json={"content": "Entry"})

        assert supabase.used() == 0
