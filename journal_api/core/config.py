import logging
import os
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import List, Mapping, Optional

from dotenv import load_dotenv

from journal_api.shared.errors import ConfigurationError

# Load environment variables
load_dotenv()

logger = logging.getLogger("JournalAI.Config")

SERVICE_NAME = "AI Journaling API"
SERVICE_VERSION = "1.0.0"

DEFAULT_CLAUDE_MODEL_FREE = "claude-3-5-haiku-20241022"
DEFAULT_CLAUDE_MODEL_PREMIUM = "claude-sonnet-4-5-20250929"


class QuotaFailurePolicy(str, Enum):
    """What the quota gate and usage recorder do when the store is unhealthy."""

    # Allow the generation and drop the bookkeeping error
    AVAILABILITY_OVER_CONSISTENCY = "availability_over_consistency"
    # Refuse the generation and surface the bookkeeping error
    CONSISTENCY_OVER_AVAILABILITY = "consistency_over_availability"


@dataclass(frozen=True)
class OutboundPolicy:
    """Timeout and bounded-retry settings for one upstream dependency."""

    timeout_seconds: float = 10.0
    max_attempts: int = 3
    backoff_seconds: float = 0.5
    backoff_max_seconds: float = 4.0


@dataclass(frozen=True)
class RateLimitConfig:
    max_requests: int = 100
    window_seconds: int = 15 * 60


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s, using default %s", name, default)
        return default


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s, using default %s", name, default)
        return default


def _first(env: Mapping[str, str], *names: str) -> Optional[str]:
    for name in names:
        value = env.get(name)
        if value:
            return value
    return None


class Config:
    """Central configuration for the journaling AI service.

    Values are read once from the given mapping (``os.environ`` by default),
    so tests can build an isolated instance with ``Config({...})``.
    """

    MAX_CONTENT_LENGTH = 10_000
    MAX_BODY_BYTES = 10 * 1024 * 1024
    FREE_INSIGHT_LIMIT = 3

    def __init__(self, environ: Optional[Mapping[str, str]] = None) -> None:
        env = os.environ if environ is None else environ

        self.ENVIRONMENT = (env.get("ENVIRONMENT") or "production").lower()

        self.SUPABASE_URL = env.get("SUPABASE_URL")
        self.SUPABASE_SERVICE_ROLE_KEY = _first(env, "SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_KEY")

        self.ANTHROPIC_API_KEY = _first(env, "ANTHROPIC_API_KEY", "CLAUDE_API_KEY")
        self.CLAUDE_MODEL_FREE = env.get("CLAUDE_MODEL_FREE") or DEFAULT_CLAUDE_MODEL_FREE
        self.CLAUDE_MODEL_PREMIUM = env.get("CLAUDE_MODEL_PREMIUM") or DEFAULT_CLAUDE_MODEL_PREMIUM
        self.CLAUDE_MODEL_CHAT = env.get("CLAUDE_MODEL_CHAT") or self.CLAUDE_MODEL_FREE

        origins = env.get("CORS_ORIGINS", "")
        self.CORS_ORIGINS: List[str] = [o.strip() for o in origins.split(",") if o.strip()] or ["*"]

        window_seconds = _int(env, "RATE_LIMIT_WINDOW_SECONDS", 0)
        if not window_seconds:
            window_seconds = _int(env, "RATE_LIMIT_WINDOW_MS", 15 * 60 * 1000) // 1000
        self.RATE_LIMIT = RateLimitConfig(
            max_requests=_int(env, "RATE_LIMIT_MAX_REQUESTS", 100),
            window_seconds=max(1, window_seconds),
        )

        raw_policy = (env.get("QUOTA_FAILURE_POLICY") or "").lower()
        try:
            self.QUOTA_FAILURE_POLICY = QuotaFailurePolicy(raw_policy)
        except ValueError:
            if raw_policy:
                logger.warning("Unknown QUOTA_FAILURE_POLICY %r, failing open", raw_policy)
            self.QUOTA_FAILURE_POLICY = QuotaFailurePolicy.AVAILABILITY_OVER_CONSISTENCY

        max_attempts = max(1, _int(env, "OUTBOUND_MAX_ATTEMPTS", 3))
        backoff = _float(env, "OUTBOUND_BACKOFF_SECONDS", 0.5)
        backoff_max = _float(env, "OUTBOUND_BACKOFF_MAX_SECONDS", 4.0)
        self.IDENTITY_POLICY = OutboundPolicy(
            timeout_seconds=_float(env, "IDENTITY_TIMEOUT_SECONDS", 10.0),
            max_attempts=max_attempts,
            backoff_seconds=backoff,
            backoff_max_seconds=backoff_max,
        )
        self.STORE_POLICY = OutboundPolicy(
            timeout_seconds=_float(env, "STORE_TIMEOUT_SECONDS", 10.0),
            max_attempts=max_attempts,
            backoff_seconds=backoff,
            backoff_max_seconds=backoff_max,
        )
        self.AI_POLICY = OutboundPolicy(
            timeout_seconds=_float(env, "AI_TIMEOUT_SECONDS", 60.0),
            max_attempts=max_attempts,
            backoff_seconds=backoff,
            backoff_max_seconds=backoff_max,
        )

        self.LOG_LEVEL = (env.get("LOG_LEVEL") or "INFO").upper()

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @property
    def anthropic_configured(self) -> bool:
        return bool(self.ANTHROPIC_API_KEY)

    def missing_required(self) -> List[str]:
        """Names of required variables that are unset. Never includes values."""
        missing = []
        if not self.SUPABASE_URL:
            missing.append("SUPABASE_URL")
        if not self.SUPABASE_SERVICE_ROLE_KEY:
            missing.append("SUPABASE_SERVICE_ROLE_KEY")
        # Development may run on the offline fallback generator
        if not self.ANTHROPIC_API_KEY and not self.is_development:
            missing.append("ANTHROPIC_API_KEY")
        return missing

    def validate(self) -> None:
        missing = self.missing_required()
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}",
                missing=missing,
            )


@lru_cache(maxsize=1)
def get_settings() -> Config:
    """Process-wide configuration read from the environment."""
    return Config()
