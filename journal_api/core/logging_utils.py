"""
Logging helpers that keep journal text and identities out of the logs.

Includes:
- PII redaction and truncation for log previews
- Structured usage logging for Claude calls
"""
import json
import logging
import re
from typing import Optional

_EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
_CONTROL_CHARS = re.compile(r"[\x00-\x1F\x7F]")


def redact_emails(text: str) -> str:
    return _EMAIL_PATTERN.sub("[EMAIL_REDACTED]", text)


def preview(text: Optional[str], max_len: int = 80) -> str:
    """
    Single-line, email-redacted, truncated preview of user text.

    Journal entries are personal; only previews ever reach the logs.
    """
    if not text:
        return ""
    cleaned = redact_emails(_CONTROL_CHARS.sub(" ", text)).strip()
    if len(cleaned) > max_len:
        return cleaned[:max_len] + "..."
    return cleaned


def mask_user_id(user_id: Optional[str]) -> str:
    """Keep enough of a user id to correlate logs without storing it whole."""
    if not user_id:
        return "-"
    if len(user_id) <= 8:
        return user_id
    return f"{user_id[:8]}..."


# =============================================================================
# STRUCTURED USAGE LOGGING
# =============================================================================

_usage_logger = logging.getLogger("JournalAI.Usage")


def log_llm_usage(
    model: str,
    input_tokens: int,
    output_tokens: int,
    duration_ms: Optional[int] = None,
    endpoint: str = "unknown",
    tier: Optional[str] = None,
) -> None:
    """
    Log one structured line per Claude call for token-usage dashboards.

    Args:
        model: Model identifier
        input_tokens: Number of input tokens
        output_tokens: Number of output tokens
        duration_ms: Wall time of the call including retries
        endpoint: Operation that triggered the call (insight, summary, chat)
        tier: Subscription tier of the caller
    """
    event = {
        "event": "llm_usage",
        "model": model,
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "total_tokens": input_tokens + output_tokens,
        "endpoint": endpoint,
    }
    if duration_ms is not None:
        event["duration_ms"] = duration_ms
    if tier:
        event["tier"] = tier

    _usage_logger.info("LLM_USAGE %s", json.dumps(event))
