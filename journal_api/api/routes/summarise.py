"""
Summarise Route

POST /api/summarise condenses a journal entry and an optional conversation
about it. Authenticated but not quota-gated; the caller's tier only picks the
Claude model.
"""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from journal_api.api.dependencies import get_context, require_principal
from journal_api.api.models import RequestDebug, SummariseRequest, SummariseResponse, SummaryPayload
from journal_api.core.context import AppContext
from journal_api.core.logging_utils import mask_user_id
from journal_api.features.auth.validator import Principal
from journal_api.shared.correlation import get_correlation_id

router = APIRouter(prefix="/api", tags=["Summaries"])
logger = logging.getLogger("JournalAI.API.Summarise")


@router.post("/summarise", response_model=SummariseResponse)
async def summarise(
    payload: SummariseRequest,
    principal: Principal = Depends(require_principal),
    context: AppContext = Depends(get_context),
) -> SummariseResponse:
    started = time.monotonic()
    content = context.orchestrator.validate_content(payload.journal_content)

    tier = await context.gate.tier_for(principal)
    preferences = await context.database.preferences.get(principal.id)
    result = await context.orchestrator.generate_summary(
        content,
        history=[turn.to_turn() for turn in payload.conversation_history],
        preferences=preferences,
        tier=tier,
    )

    duration_ms = int((time.monotonic() - started) * 1000)
    logger.info(
        "Summary for %s generated in %sms (%s)", mask_user_id(principal.id), duration_ms, result.source,
    )
    return SummariseResponse(
        summary=SummaryPayload.from_result(result),
        debug=RequestDebug(
            request_id=get_correlation_id(),
            duration=duration_ms,
            timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        ),
    )
