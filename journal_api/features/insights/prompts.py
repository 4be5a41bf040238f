"""Prompt builders for insights, summaries and chat."""

from typing import Optional, Sequence

from journal_api.features.insights.models import AIStyle, ConversationTurn, JournalEntry, UserPreferences

# Characters of each past entry quoted back as context
HISTORY_PREVIEW_CHARS = 150

COACH_TONE = """You are a strategic thinking partner who responds to journal entries with analytical depth and practical guidance.

How to respond:
- Break situations down into clear patterns and root causes, explained in plain language.
- Be direct and honest. Skip flattery and motivational platitudes.
- Connect what happened today to longer-term goals and recurring themes.
- Always finish with concrete next steps, separating the next 30 days from longer-term positioning.
- Offer analysis and let the writer decide; be curious, not prescriptive.

Avoid generic advice, validation without insight, and analysis without a next step."""

REFLECTOR_TONE = """You are a thoughtful reflection partner who helps the writer process what they wrote.

How to respond:
- Name the feelings and experiences in the entry before interpreting them.
- Be gentle and curious. Leave room for the writer to reach their own conclusions.
- Reflect patterns back as observations, not instructions.
- Validate what is hard without glossing over it.
- Ask questions that open space rather than push toward action.

Avoid prescriptive advice, to-do lists, and judging the writer's choices."""

STYLE_TONES = {
    AIStyle.COACH: COACH_TONE,
    AIStyle.REFLECTOR: REFLECTOR_TONE,
}

SUMMARY_VOICES = {
    AIStyle.COACH: "Use a coach voice: focus on patterns and actions.",
    AIStyle.REFLECTOR: "Use a reflector voice: focus on feelings and processing.",
}

CHAT_VOICES = {
    AIStyle.COACH: "You are a strategic, action-oriented coach helping someone with their journaling. "
    "Be direct, point out patterns, and suggest one concrete next step when it helps.",
    AIStyle.REFLECTOR: "You are a supportive AI companion helping someone with their journaling and self-reflection. "
    "Be empathetic, ask thoughtful questions, and provide gentle guidance.",
}

CHAT_LENGTH = "Keep responses concise (1-2 sentences)."


def _style(preferences: Optional[UserPreferences]) -> AIStyle:
    return preferences.ai_style if preferences else AIStyle.REFLECTOR


def _focus_areas(preferences: Optional[UserPreferences]) -> str:
    if preferences and preferences.focus_areas:
        return ", ".join(preferences.focus_areas)
    return "General well-being"


def _recent_entries(entries: Sequence[JournalEntry]) -> str:
    if not entries:
        return "No recent entries available"
    lines = []
    for entry in entries:
        text = entry.content[:HISTORY_PREVIEW_CHARS]
        if len(entry.content) > HISTORY_PREVIEW_CHARS:
            text += "..."
        lines.append(f'"{text}"')
    return "\n".join(lines)


def build_insight_prompt(
    content: str,
    mood_rating: Optional[float],
    preferences: Optional[UserPreferences],
    recent_entries: Sequence[JournalEntry],
    is_premium: bool,
) -> str:
    style = _style(preferences)
    mood = f"{mood_rating:g}/5" if mood_rating else "Not specified"
    personality = preferences.personality_type if preferences else "Not specified"
    tier_note = (
        "Premium subscriber: provide deeper pattern analysis across life areas and long-term positioning"
        if is_premium
        else "Free tier: focus on immediate patterns and what stands out most"
    )
    word_range = "75-150" if is_premium else "75-125"
    if style is AIStyle.COACH:
        insight_ask = f"A {word_range} word analysis naming 2-3 key patterns with specific, actionable next steps"
        question_ask = "One follow-up question that helps the writer decide what to do next"
    else:
        insight_ask = f"A {word_range} word reflection on what the writer is feeling and the patterns behind it"
        question_ask = "One open question that invites the writer to reflect further"

    return f"""{STYLE_TONES[style]}

User Context:
- Focus areas: {_focus_areas(preferences)}
- Current mood: {mood}
- Personality type: {personality}
- {tier_note}

Current Entry:
"{content}"

Recent Context:
{_recent_entries(recent_entries)}

Respond with EXACTLY this JSON and nothing else:
{{
  "insight": "{insight_ask}",
  "followUpQuestion": "{question_ask}",
  "confidence": 0.85
}}

Confidence must be between 0.7 and 0.95."""


def build_summary_prompt(
    content: str,
    history: Sequence[ConversationTurn],
    preferences: Optional[UserPreferences],
    is_premium: bool,
) -> str:
    tier_note = (
        "Premium subscriber: provide a comprehensive summary with patterns and insights"
        if is_premium
        else "Free tier: focus on a concise summary of key points"
    )
    conversation = (
        "\n".join(f"{turn.role}: {turn.content}" for turn in history)
        if history
        else "No conversation occurred"
    )
    depth, word_range = ("comprehensive", "100-150") if is_premium else ("concise", "75-100")

    return f"""You are helping someone summarize a journal entry and any related conversation. Capture the key points and insights.

User Context:
- Focus areas: {_focus_areas(preferences)}
- {tier_note}

Journal Entry:
"{content}"

Related Conversation:
{conversation}

Write a {depth} summary ({word_range} words) that covers:
1. Main themes from the journal entry
2. Key insights from the conversation (if any)
3. Notable emotional or experiential patterns

{SUMMARY_VOICES[_style(preferences)]} Write something the writer can come back to later. Focus on what matters most rather than every detail."""


def build_chat_system_prompt(
    journal_context: Optional[str],
    preferences: Optional[UserPreferences] = None,
) -> str:
    prompt = f"{CHAT_VOICES[_style(preferences)]} {CHAT_LENGTH}"
    if not journal_context:
        return prompt
    return f'{prompt}\n\nContext from their recent journal entry: "{journal_context}"'
