"""Shapes passed into and out of the insight orchestrator."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

DEFAULT_FOCUS_AREAS = ("general",)
DEFAULT_PERSONALITY_TYPE = "balanced"


class AIStyle(str, Enum):
    """Voice the writer picked for AI replies."""

    COACH = "coach"
    REFLECTOR = "reflector"

    @classmethod
    def parse(cls, value: Any) -> "AIStyle":
        if isinstance(value, str) and value.strip().lower() == cls.COACH.value:
            return cls.COACH
        return cls.REFLECTOR


@dataclass(frozen=True)
class UserPreferences:
    focus_areas: List[str] = field(default_factory=lambda: list(DEFAULT_FOCUS_AREAS))
    personality_type: str = DEFAULT_PERSONALITY_TYPE
    ai_style: AIStyle = AIStyle.REFLECTOR


@dataclass(frozen=True)
class ConversationTurn:
    role: str
    content: str


@dataclass(frozen=True)
class JournalEntry:
    """A stored entry used as recent-history context."""

    id: Optional[str]
    content: str
    mood_rating: Optional[int] = None
    created_at: Optional[str] = None


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class InsightResult:
    """Generated text plus the tags the client shows next to it."""

    content: str
    confidence: float
    source: str
    model: str
    follow_up_question: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: str = field(default_factory=_utc_now_iso)
