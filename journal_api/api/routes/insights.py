"""
AI Routes

Authenticated endpoints under /api/ai:

    POST /insights   quota-gated insight for a journal entry
    GET  /usage      free-tier usage for the caller
    GET  /health     AI provider status
    POST /chat       short conversational reply, not quota-gated

Every route authenticates first; a request without a valid bearer token never
reaches the store or Claude.
"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends

from journal_api.api.dependencies import get_context, require_principal
from journal_api.api.models import (
    AIHealthResponse,
    AIServiceStatus,
    ChatRequest,
    ChatResponse,
    InsightPayload,
    InsightRequest,
    InsightResponse,
    UsagePayload,
    UsageResponse,
    UserContext,
)
from journal_api.core.context import AppContext
from journal_api.core.logging_utils import mask_user_id
from journal_api.features.auth.validator import Principal
from journal_api.features.quota.gate import remaining_free
from journal_api.features.quota.models import SubscriptionStatus, UsagePermission
from journal_api.shared.correlation import get_correlation_id
from journal_api.shared.errors import SubscriptionError

router = APIRouter(prefix="/api/ai", tags=["AI"])
logger = logging.getLogger("JournalAI.API.Insights")

RECENT_ENTRY_COUNT = 3


def _remaining_after_generation(permission: UsagePermission) -> Optional[int]:
    """Free insights left once the one just generated is counted."""
    if permission.tier is not SubscriptionStatus.FREE or permission.remaining is None:
        return None
    return max(0, permission.remaining - 1)


@router.post("/insights", response_model=InsightResponse)
async def generate_insights(
    payload: InsightRequest,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(require_principal),
    context: AppContext = Depends(get_context),
) -> InsightResponse:
    """
    Generate an insight for a journal entry.

    Order matters: content is validated before the quota is read, the quota
    is read before Claude is called, and usage is only recorded (in the
    background) after a successful generation for a free-tier caller.
    """
    content = context.orchestrator.validate_content(payload.content)

    permission = await context.gate.can_generate(principal)
    if not permission.allowed:
        logger.info("Free insight limit reached for %s", mask_user_id(principal.id))
        raise SubscriptionError(
            f"You have used all {context.gate.free_limit} free insights. "
            "Upgrade to Premium for unlimited AI insights.",
            remaining=0,
        )

    recent_entries = await context.database.journals.get_recent(principal.id, limit=RECENT_ENTRY_COUNT)
    preferences = await context.database.preferences.get(principal.id)

    result = await context.orchestrator.generate_insight(
        content,
        mood_rating=payload.mood_rating,
        history=recent_entries,
        preferences=preferences,
        tier=permission.tier,
    )

    if permission.tier is SubscriptionStatus.FREE:
        background_tasks.add_task(context.recorder.record_usage, principal, get_correlation_id())

    is_premium = permission.tier is SubscriptionStatus.PREMIUM
    tier = permission.tier or SubscriptionStatus.FREE
    return InsightResponse(
        insight=InsightPayload.from_result(result, is_premium=is_premium),
        user_context=UserContext(
            subscription_status=tier.value,
            remaining_free_insights=_remaining_after_generation(permission),
        ),
    )


@router.get("/usage", response_model=UsageResponse)
async def get_usage(
    principal: Principal = Depends(require_principal),
    context: AppContext = Depends(get_context),
) -> UsageResponse:
    record = await context.gate.get_subscription(principal)
    return UsageResponse(
        usage=UsagePayload(
            subscription_status=record.subscription_status.value,
            free_insights_used=record.free_insights_used,
            remaining_free_insights=remaining_free(record, context.gate.free_limit),
            is_unlimited=record.is_premium,
        )
    )


@router.get("/health", response_model=AIHealthResponse)
async def ai_health(
    principal: Principal = Depends(require_principal),
    context: AppContext = Depends(get_context),
) -> AIHealthResponse:
    configured = context.orchestrator.configured
    return AIHealthResponse(
        ai_service=AIServiceStatus(
            status="operational" if configured else "degraded",
            anthropic_configured=configured,
            fallback_available=context.settings.is_development,
        )
    )


@router.post("/chat", response_model=ChatResponse)
async def chat(
    payload: ChatRequest,
    principal: Principal = Depends(require_principal),
    context: AppContext = Depends(get_context),
) -> ChatResponse:
    messages = [turn.to_turn() for turn in payload.messages]
    context.orchestrator.validate_conversation(messages, payload.journal_context)
    preferences = await context.database.preferences.get(principal.id)
    result = await context.orchestrator.chat(
        messages,
        journal_context=payload.journal_context,
        preferences=preferences,
    )
    logger.info("Chat reply for %s (%s)", mask_user_id(principal.id), result.source)
    return ChatResponse(response=result.content)
