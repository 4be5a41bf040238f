"""
Claude-powered insights, summaries and chat replies for journal entries.

Input is validated before anything is sent upstream so invalid requests
never cost tokens or quota. Each generation is one logical Claude call,
bounded by the AI ``OutboundPolicy`` (timeout plus jittered retries on
transient provider errors). Failures surface as ``AIServiceError``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

import anthropic

from journal_api.core.config import Config
from journal_api.core.logging_utils import log_llm_usage, preview
from journal_api.core.resilience import call_with_policy
from journal_api.core.tracing import get_tracer
from journal_api.features.insights import fallback
from journal_api.features.insights.models import (
    ConversationTurn,
    InsightResult,
    JournalEntry,
    UserPreferences,
)
from journal_api.features.insights.prompts import (
    build_chat_system_prompt,
    build_insight_prompt,
    build_summary_prompt,
)
from journal_api.features.quota.models import SubscriptionStatus
from journal_api.shared.errors import AIServiceError, ValidationError

logger = logging.getLogger("JournalAI.Insights")
tracer = get_tracer(__name__)

CLAUDE_SOURCE = "claude"
DEFAULT_FOLLOW_UP = "What would you like to explore further about this reflection?"
DEFAULT_INSIGHT_CONFIDENCE = 0.85
TEXT_INSIGHT_CONFIDENCE = 0.8
SUMMARY_CONFIDENCE = 0.9
FALLBACK_SUMMARY_CONFIDENCE = 0.75
FALLBACK_CHAT_CONFIDENCE = 0.8

# Conversation turns forwarded with a summary request
MAX_HISTORY_TURNS = 20
CHAT_ROLES = {"user", "assistant"}

# Provider failures worth another attempt
TRANSIENT_AI_ERRORS = (
    anthropic.APIConnectionError,
    anthropic.RateLimitError,
    anthropic.InternalServerError,
)

_JSON_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_SENTENCE = re.compile(r"[^.!?]+[.!?]*")


def _is_premium(tier: Optional[SubscriptionStatus]) -> bool:
    return tier is SubscriptionStatus.PREMIUM


def parse_insight_text(text: str) -> Tuple[str, str, float]:
    """
    Read Claude's insight answer into (insight, follow-up question, confidence).

    The prompt asks for JSON. A JSON answer with an ``insight`` is used as is,
    with defaults for a missing question or confidence. When the answer is not
    JSON, the last sentence is used as the follow-up question if it is one.
    """
    cleaned = _JSON_FENCE.sub("", text.strip()).strip()
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        parsed = None

    if isinstance(parsed, dict) and str(parsed.get("insight") or "").strip():
        try:
            confidence = float(parsed.get("confidence", DEFAULT_INSIGHT_CONFIDENCE))
        except (TypeError, ValueError):
            confidence = DEFAULT_INSIGHT_CONFIDENCE
        confidence = min(1.0, max(0.0, confidence))
        question = str(parsed.get("followUpQuestion") or "").strip() or DEFAULT_FOLLOW_UP
        return str(parsed["insight"]).strip(), question, confidence

    logger.warning("Insight answer was not the requested JSON, using text fallback")
    sentences = [s.strip() for s in _SENTENCE.findall(cleaned) if s.strip()]
    if len(sentences) > 1 and sentences[-1].endswith("?"):
        return " ".join(sentences[:-1]), sentences[-1], TEXT_INSIGHT_CONFIDENCE
    return cleaned, DEFAULT_FOLLOW_UP, TEXT_INSIGHT_CONFIDENCE


class InsightOrchestrator:
    """Build prompts, call Claude, and shape ``InsightResult`` envelopes."""

    def __init__(self, client: Optional[Any], settings: Config) -> None:
        # ``client`` is an ``anthropic.AsyncAnthropic``; None selects the offline fallback
        self.client = client
        self.settings = settings

    @property
    def configured(self) -> bool:
        return self.client is not None

    def model_for(self, tier: Optional[SubscriptionStatus]) -> str:
        if _is_premium(tier):
            return self.settings.CLAUDE_MODEL_PREMIUM
        return self.settings.CLAUDE_MODEL_FREE

    def validate_content(self, content: Optional[str], field: str = "Journal content") -> str:
        """Return trimmed content or raise ``ValidationError``."""
        if not isinstance(content, str) or not content.strip():
            raise ValidationError(f"{field} is required")
        limit = self.settings.MAX_CONTENT_LENGTH
        if len(content) > limit:
            raise ValidationError(f"{field} is too long (max {limit:,} characters)")
        return content.strip()

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    async def generate_insight(
        self,
        content: str,
        mood_rating: Optional[float] = None,
        history: Sequence[JournalEntry] = (),
        preferences: Optional[UserPreferences] = None,
        tier: Optional[SubscriptionStatus] = SubscriptionStatus.FREE,
    ) -> InsightResult:
        content = self.validate_content(content)
        is_premium = _is_premium(tier)

        if not self.configured:
            insight, question, confidence = fallback.fallback_insight(content, mood_rating, preferences)
            return InsightResult(
                content=insight,
                follow_up_question=question,
                confidence=confidence,
                source=fallback.FALLBACK_SOURCE,
                model=fallback.FALLBACK_MODEL,
            )

        model = self.model_for(tier)
        prompt = build_insight_prompt(content, mood_rating, preferences, history, is_premium)
        logger.info(
            "Generating insight with %s (chars=%s, history=%s, preview=%r)",
            model, len(content), len(history), preview(content, 40),
        )
        text = await self._complete(
            messages=[{"role": "user", "content": prompt}],
            model=model,
            max_tokens=500 if is_premium else 300,
            endpoint="insight",
            tier=tier,
        )
        insight, question, confidence = parse_insight_text(text)
        return InsightResult(
            content=insight,
            follow_up_question=question,
            confidence=confidence,
            source=CLAUDE_SOURCE,
            model=model,
        )

    async def generate_summary(
        self,
        content: str,
        history: Sequence[ConversationTurn] = (),
        preferences: Optional[UserPreferences] = None,
        tier: Optional[SubscriptionStatus] = SubscriptionStatus.FREE,
    ) -> InsightResult:
        content = self.validate_content(content)
        history = list(history)[-MAX_HISTORY_TURNS:]
        is_premium = _is_premium(tier)

        if not self.configured:
            return InsightResult(
                content=fallback.fallback_summary(content, history),
                confidence=FALLBACK_SUMMARY_CONFIDENCE,
                source=fallback.FALLBACK_SOURCE,
                model=fallback.FALLBACK_MODEL,
            )

        model = self.model_for(tier)
        prompt = build_summary_prompt(content, history, preferences, is_premium)
        logger.info(
            "Generating summary with %s (chars=%s, turns=%s)", model, len(content), len(history),
        )
        text = await self._complete(
            messages=[{"role": "user", "content": prompt}],
            model=model,
            max_tokens=300 if is_premium else 200,
            endpoint="summary",
            tier=tier,
        )
        return InsightResult(
            content=text.strip(),
            confidence=SUMMARY_CONFIDENCE,
            source=CLAUDE_SOURCE,
            model=model,
        )

    def validate_conversation(
        self,
        messages: Sequence[ConversationTurn],
        journal_context: Optional[str] = None,
    ) -> None:
        """Raise ``ValidationError`` unless the conversation can be sent to Claude."""
        if not messages:
            raise ValidationError("Messages array is required")
        for turn in messages:
            if turn.role not in CHAT_ROLES:
                raise ValidationError(f"Unsupported message role: {turn.role!r}")
            self.validate_content(turn.content, field="Message content")
        if messages[-1].role != "user":
            raise ValidationError("The last message must come from the user")
        if journal_context is not None and len(journal_context) > self.settings.MAX_CONTENT_LENGTH:
            raise ValidationError(
                f"Journal context is too long (max {self.settings.MAX_CONTENT_LENGTH:,} characters)"
            )

    async def chat(
        self,
        messages: Sequence[ConversationTurn],
        journal_context: Optional[str] = None,
        preferences: Optional[UserPreferences] = None,
    ) -> InsightResult:
        """Reply to the latest user turn of a journaling conversation. Not quota-gated."""
        self.validate_conversation(messages, journal_context)

        if not self.configured:
            return InsightResult(
                content=fallback.fallback_chat_reply(messages[-1].content),
                confidence=FALLBACK_CHAT_CONFIDENCE,
                source=fallback.FALLBACK_SOURCE,
                model=fallback.FALLBACK_MODEL,
            )

        model = self.settings.CLAUDE_MODEL_CHAT
        text = await self._complete(
            messages=[{"role": turn.role, "content": turn.content} for turn in messages],
            model=model,
            max_tokens=150,
            endpoint="chat",
            system=build_chat_system_prompt(journal_context, preferences),
        )
        return InsightResult(
            content=text.strip(),
            confidence=SUMMARY_CONFIDENCE,
            source=CLAUDE_SOURCE,
            model=model,
        )

    # =========================================================================
    # CLAUDE CALL
    # =========================================================================

    async def _complete(
        self,
        messages: List[Dict[str, str]],
        model: str,
        max_tokens: int,
        endpoint: str,
        tier: Optional[SubscriptionStatus] = None,
        system: Optional[str] = None,
    ) -> str:
        kwargs: Dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": 0.7,
            "messages": messages,
        }
        if system:
            kwargs["system"] = system

        started = time.monotonic()
        try:
            with tracer.start_as_current_span(f"anthropic.{endpoint}") as span:
                span.set_attribute("llm.model", model)
                response = await call_with_policy(
                    lambda: self.client.messages.create(**kwargs),
                    self.settings.AI_POLICY,
                    name=f"anthropic.{endpoint}",
                    retry_on=TRANSIENT_AI_ERRORS,
                )
        except anthropic.APIStatusError as exc:
            logger.error("Claude %s call failed with status %s: %s", endpoint, exc.status_code, exc)
            raise AIServiceError() from exc
        except (anthropic.APIError, asyncio.TimeoutError) as exc:
            logger.error("Claude %s call failed: %s", endpoint, type(exc).__name__)
            raise AIServiceError() from exc

        duration_ms = int((time.monotonic() - started) * 1000)
        text = "".join(
            getattr(block, "text", "") for block in (response.content or [])
            if getattr(block, "type", None) == "text"
        )
        if not text.strip():
            logger.error("Claude %s response had no text content", endpoint)
            raise AIServiceError()

        usage = getattr(response, "usage", None)
        log_llm_usage(
            model=model,
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
            duration_ms=duration_ms,
            endpoint=endpoint,
            tier=tier.value if tier else None,
        )
        return text
