"""
Credential validation against Supabase Auth.

Turns an ``Authorization: Bearer <jwt>`` header into a ``Principal``. Header
problems are rejected before any outbound call; anything that goes wrong while
exchanging the token is reported as an invalid token.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import httpx

from journal_api.core.config import OutboundPolicy
from journal_api.core.logging_utils import mask_user_id
from journal_api.core.resilience import call_with_policy
from journal_api.shared.errors import InvalidToken, Unauthenticated

logger = logging.getLogger("JournalAI.Auth")


@dataclass(frozen=True)
class Principal:
    """The authenticated identity behind a request."""

    id: str
    email: Optional[str] = None
    created_at: Optional[str] = None


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Return the token from a bearer header or raise ``Unauthenticated``."""
    if not authorization:
        raise Unauthenticated()

    scheme, _, token = authorization.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token or " " in token:
        raise Unauthenticated()
    return token


def _as_iso(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class CredentialValidator:
    """Exchange bearer tokens for principals through the identity service."""

    def __init__(self, auth_client: Any, policy: OutboundPolicy) -> None:
        # ``auth_client`` is ``supabase.AsyncClient.auth`` in production
        self._auth = auth_client
        self._policy = policy

    async def authenticate(self, authorization: Optional[str]) -> Principal:
        token = extract_bearer_token(authorization)

        try:
            response = await call_with_policy(
                lambda: self._auth.get_user(token),
                self._policy,
                name="identity.get_user",
                retry_on=(httpx.TransportError,),
            )
        except Exception as exc:
            logger.warning("Token exchange failed: %s", type(exc).__name__)
            raise InvalidToken() from exc

        user = getattr(response, "user", None) if response is not None else None
        if user is None or not getattr(user, "id", None):
            logger.info("Token exchange returned no user")
            raise InvalidToken()

        principal = Principal(
            id=str(user.id),
            email=getattr(user, "email", None),
            created_at=_as_iso(getattr(user, "created_at", None)),
        )
        logger.debug("Authenticated user %s", mask_user_id(principal.id))
        return principal
