from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from journal_api.features.insights.models import ConversationTurn, InsightResult


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# =========================================================================
# REQUEST MODELS
# =========================================================================

class InsightRequest(CamelModel):
    # Content checks live in the orchestrator so they run before any upstream call
    content: Optional[str] = None
    # Fractional ratings such as 3.5 are allowed
    mood_rating: Optional[float] = Field(default=None, alias="moodRating", ge=1, le=5)


class TurnModel(CamelModel):
    role: str
    content: str

    def to_turn(self) -> ConversationTurn:
        return ConversationTurn(role=self.role, content=self.content)


class SummariseRequest(CamelModel):
    journal_content: Optional[str] = Field(default=None, alias="journalContent")
    conversation_history: List[TurnModel] = Field(default_factory=list, alias="conversationHistory")


class ChatRequest(CamelModel):
    messages: List[TurnModel] = Field(default_factory=list)
    journal_context: Optional[str] = Field(default=None, alias="journalContext")


# =========================================================================
# RESPONSE MODELS
# =========================================================================

class InsightPayload(CamelModel):
    id: str
    insight: str
    follow_up_question: Optional[str] = Field(default=None, alias="followUpQuestion")
    confidence: float
    source: str
    model: str
    is_premium: bool = Field(alias="isPremium")
    created_at: str = Field(alias="createdAt")

    @classmethod
    def from_result(cls, result: InsightResult, is_premium: bool) -> "InsightPayload":
        return cls(
            id=result.id,
            insight=result.content,
            follow_up_question=result.follow_up_question,
            confidence=result.confidence,
            source=result.source,
            model=result.model,
            is_premium=is_premium,
            created_at=result.created_at,
        )


class UserContext(CamelModel):
    subscription_status: str = Field(alias="subscriptionStatus")
    # None means unlimited
    remaining_free_insights: Optional[int] = Field(default=None, alias="remainingFreeInsights")


class InsightResponse(CamelModel):
    success: bool = True
    insight: InsightPayload
    user_context: UserContext = Field(alias="userContext")


class UsagePayload(CamelModel):
    subscription_status: str = Field(alias="subscriptionStatus")
    free_insights_used: int = Field(alias="freeInsightsUsed")
    remaining_free_insights: Optional[int] = Field(default=None, alias="remainingFreeInsights")
    is_unlimited: bool = Field(alias="isUnlimited")


class UsageResponse(CamelModel):
    success: bool = True
    usage: UsagePayload


class AIServiceStatus(CamelModel):
    status: str
    anthropic_configured: bool = Field(alias="anthropicConfigured")
    fallback_available: bool = Field(alias="fallbackAvailable")


class AIHealthResponse(CamelModel):
    success: bool = True
    ai_service: AIServiceStatus = Field(alias="aiService")


class SummaryPayload(CamelModel):
    id: str
    content: str
    confidence: float
    source: str
    model: str
    created_at: str = Field(alias="createdAt")

    @classmethod
    def from_result(cls, result: InsightResult) -> "SummaryPayload":
        return cls(
            id=result.id,
            content=result.content,
            confidence=result.confidence,
            source=result.source,
            model=result.model,
            created_at=result.created_at,
        )


class RequestDebug(CamelModel):
    request_id: Optional[str] = Field(default=None, alias="requestId")
    duration: int
    timestamp: str


class SummariseResponse(CamelModel):
    success: bool = True
    summary: SummaryPayload
    debug: RequestDebug


class ChatResponse(CamelModel):
    success: bool = True
    response: str


class HealthResponse(CamelModel):
    success: bool = True
    status: str
    timestamp: str
    service: str
    anthropic_configured: bool = Field(alias="anthropicConfigured")
    version: str
