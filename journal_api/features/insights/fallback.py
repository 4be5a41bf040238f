"""
Offline text generation used when no Anthropic key is configured.

Only reachable in development, where startup allows a missing key. Picks
canned text by keyword themes and mood so the app stays usable end to end.
"""

import re
from typing import Dict, List, Optional, Sequence, Tuple

from journal_api.features.insights.models import ConversationTurn, UserPreferences

FALLBACK_SOURCE = "fallback"
FALLBACK_MODEL = "internal"

_THEMES: List[Tuple[str, "re.Pattern[str]"]] = [
    ("wellbeing", re.compile(r"stress|anxious|worried|overwhelm|pressure|tired")),
    ("relationships", re.compile(r"friend|family|partner|relationship|love|social|connect")),
    ("career", re.compile(r"work|job|career|boss|colleague|meeting|project|deadline")),
]

# (insight, follow-up question, confidence) keyed by theme then mood bucket
_INSIGHTS: Dict[str, Dict[str, Tuple[str, str, float]]] = {
    "career": {
        "positive": (
            "Your satisfaction at work suggests your tasks line up with what you value. "
            "Note what made today work so you can set up more days like it.",
            "What specific part of this success can you repeat in your next project?",
            0.88,
        ),
        "negative": (
            "Work frustration like this often points to a gap between expectations and reality. "
            "Pick one small boundary or change you could test this week.",
            "What would need to change for work to feel more aligned with your values?",
            0.82,
        ),
        "neutral": (
            "Your measured view of work reads like an evaluation phase. "
            "That is a good moment to write down what you want more and less of.",
            "Which career direction feels most authentic to you right now?",
            0.85,
        ),
    },
    "relationships": {
        "positive": (
            "The connection you describe is clearly energising. "
            "Relationships that leave you like this are worth protecting time for.",
            "How could you make more room for this kind of connection?",
            0.87,
        ),
        "negative": (
            "Tension with people close to you usually signals an unmet need on one side or both. "
            "Naming that need is the first practical step.",
            "What do you need from this relationship that you are not getting?",
            0.8,
        ),
        "neutral": (
            "You are reflecting on your relationships without strong judgement, "
            "which makes it easier to see patterns in how you connect.",
            "Which relationship would benefit most from your attention this week?",
            0.83,
        ),
    },
    "wellbeing": {
        "positive": (
            "You are noticing pressure while still feeling steady, which shows real resilience. "
            "Keep the routines that are holding you up.",
            "Which habit is doing the most to keep you balanced right now?",
            0.84,
        ),
        "negative": (
            "Stress often signals a mismatch between your current load and your capacity. "
            "Choose one thing to drop or delegate in the next few days.",
            "What is one commitment you could let go of to create some breathing room?",
            0.86,
        ),
        "neutral": (
            "You are tracking your energy and stress, which is the groundwork for managing them. "
            "Look for the situations that reliably drain or restore you.",
            "When during the week do you feel most and least like yourself?",
            0.82,
        ),
    },
    "general": {
        "positive": (
            "This entry has a clear positive thread. "
            "Capturing what went right makes it easier to recreate on purpose.",
            "What contributed most to how good today felt?",
            0.85,
        ),
        "negative": (
            "Writing through a hard day is already a useful step. "
            "Separating what you can influence from what you cannot will make the next step clearer.",
            "What part of this situation is within your control?",
            0.8,
        ),
        "neutral": (
            "Your reflection is balanced and observant. "
            "Patterns tend to show up when entries like this are read together over a few weeks.",
            "What would you like to explore further about this reflection?",
            0.8,
        ),
    },
}

_SUMMARY_THEMES: List[Tuple[str, "re.Pattern[str]"]] = [
    ("professional experiences", re.compile(r"work|job|career|meeting|project")),
    ("relationships", re.compile(r"friend|family|relationship|love|social")),
    ("emotional challenges", re.compile(r"stress|anxious|worried|pressure")),
    ("positive experiences", re.compile(r"happy|excited|grateful|good|great")),
    ("future planning", re.compile(r"goal|plan|future|dream")),
]

_CHAT_REPLIES: List[Tuple["re.Pattern[str]", str]] = [
    (re.compile(r"feel|emotion"),
     "Your feelings are valid. What patterns do you notice in them, and what might they say about your needs?"),
    (re.compile(r"stress|anxious|worried"),
     "Stress often signals a gap between where you are and where you want to be. What would need to change to close it?"),
    (re.compile(r"work|job|career"),
     "Career questions often come down to values. What matters most to you in your work right now?"),
    (re.compile(r"why|understand"),
     "Understanding usually comes from looking at the patterns behind an experience. What connections are you starting to see?"),
    (re.compile(r"help|advice"),
     "Let's work through it together. What outcome would you most like from this situation?"),
]

_DEFAULT_CHAT_REPLY = "That's worth sitting with. How does this connect to what matters most to you right now?"


def _theme(content: str, preferences: Optional[UserPreferences]) -> str:
    lowered = content.lower()
    for name, pattern in _THEMES:
        if pattern.search(lowered):
            return name
    if preferences and preferences.focus_areas and preferences.focus_areas[0] in _INSIGHTS:
        return preferences.focus_areas[0]
    return "general"


def _mood_bucket(mood_rating: Optional[float]) -> str:
    if mood_rating is None:
        return "neutral"
    if mood_rating >= 4:
        return "positive"
    if mood_rating <= 2:
        return "negative"
    return "neutral"


def fallback_insight(
    content: str,
    mood_rating: Optional[float],
    preferences: Optional[UserPreferences],
) -> Tuple[str, str, float]:
    """Return (insight, follow-up question, confidence)."""
    return _INSIGHTS[_theme(content, preferences)][_mood_bucket(mood_rating)]


def fallback_summary(content: str, history: Sequence[ConversationTurn]) -> str:
    lowered = content.lower()
    themes = [name for name, pattern in _SUMMARY_THEMES if pattern.search(lowered)]
    if not themes:
        themes = ["personal thoughts and experiences"]

    words = len(content.split())
    summary = f"This journal entry contains {words} words reflecting on {' and '.join(themes[:2])}. "
    if history:
        summary += (
            f"The related conversation explored these themes further through "
            f"{len(history)} exchanges. "
        )
    summary += "Key patterns include self-reflection, emotional processing, and consideration of next steps."
    return summary


def fallback_chat_reply(message: str) -> str:
    lowered = message.lower()
    for pattern, reply in _CHAT_REPLIES:
        if pattern.search(lowered):
            return reply
    return _DEFAULT_CHAT_REPLY
