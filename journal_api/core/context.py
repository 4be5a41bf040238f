"""
Application context - owns the upstream clients and the components built on them.

Created once per FastAPI application and driven by its lifespan:

    context = AppContext(Config())
    await context.startup()     # validates config, opens clients, wires components
    ...
    await context.shutdown()    # closes what it opened

Clients passed in by the caller (tests, scripts) are used as-is and never
closed by the context.
"""

import logging
from typing import Any, Optional

from anthropic import AsyncAnthropic
from supabase import acreate_client
from supabase.lib.client_options import AsyncClientOptions

from journal_api.core.config import Config
from journal_api.features.auth.validator import CredentialValidator
from journal_api.features.database.client import DatabaseClient
from journal_api.features.insights.orchestrator import InsightOrchestrator
from journal_api.features.quota.gate import TierQuotaGate
from journal_api.features.quota.recorder import UsageRecorder

logger = logging.getLogger("JournalAI.Context")


class AppContext:
    """Explicit owner of clients and components for one application."""

    def __init__(
        self,
        settings: Config,
        supabase_client: Optional[Any] = None,
        anthropic_client: Optional[Any] = None,
    ) -> None:
        self.settings = settings
        self.supabase = supabase_client
        self.anthropic = anthropic_client
        self._owns_supabase = False
        self._owns_anthropic = False
        self.started = False

        self.validator: Optional[CredentialValidator] = None
        self.database: Optional[DatabaseClient] = None
        self.gate: Optional[TierQuotaGate] = None
        self.recorder: Optional[UsageRecorder] = None
        self.orchestrator: Optional[InsightOrchestrator] = None

        if supabase_client is not None:
            self._build_components()

    def _build_components(self) -> None:
        settings = self.settings
        self.validator = CredentialValidator(self.supabase.auth, settings.IDENTITY_POLICY)
        self.database = DatabaseClient(self.supabase, settings.STORE_POLICY)
        self.gate = TierQuotaGate(
            self.database.subscriptions,
            failure_policy=settings.QUOTA_FAILURE_POLICY,
            free_limit=settings.FREE_INSIGHT_LIMIT,
        )
        self.recorder = UsageRecorder(
            self.database.subscriptions,
            failure_policy=settings.QUOTA_FAILURE_POLICY,
        )
        self.orchestrator = InsightOrchestrator(self.anthropic, settings)

    async def startup(self) -> None:
        """Validate configuration, open missing clients, and wire components."""
        if self.started:
            logger.warning("Application context already started")
            return

        self.settings.validate()
        opened = False

        if self.supabase is None:
            self.supabase = await acreate_client(
                self.settings.SUPABASE_URL,
                self.settings.SUPABASE_SERVICE_ROLE_KEY,
                options=AsyncClientOptions(
                    postgrest_client_timeout=self.settings.STORE_POLICY.timeout_seconds,
                    auto_refresh_token=False,
                    persist_session=False,
                ),
            )
            self._owns_supabase = True
            opened = True

        if self.anthropic is None and self.settings.anthropic_configured:
            # Retries are handled by the AI OutboundPolicy, not the SDK
            self.anthropic = AsyncAnthropic(
                api_key=self.settings.ANTHROPIC_API_KEY,
                timeout=self.settings.AI_POLICY.timeout_seconds,
                max_retries=0,
            )
            self._owns_anthropic = True
            opened = True
        elif self.anthropic is None:
            logger.warning("ANTHROPIC_API_KEY not configured - AI responses will use the offline fallback")

        if opened or self.validator is None:
            self._build_components()
        self.started = True
        logger.info(
            "Application context started",
            extra={
                "environment": self.settings.ENVIRONMENT,
                "anthropic_configured": self.orchestrator.configured,
                "quota_failure_policy": self.settings.QUOTA_FAILURE_POLICY.value,
            },
        )

    async def shutdown(self) -> None:
        """Close clients opened by ``startup``."""
        if self._owns_anthropic and self.anthropic is not None:
            await self.anthropic.close()
            self.anthropic = None
            self._owns_anthropic = False

        if self._owns_supabase:
            # The Supabase async client keeps no pooled connections of its own to close
            self.supabase = None
            self._owns_supabase = False

        self.started = False
        logger.info("Application context shut down")
