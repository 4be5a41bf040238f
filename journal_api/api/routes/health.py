from datetime import datetime, timezone

from fastapi import APIRouter, Request

from journal_api.api.models import HealthResponse
from journal_api.core.config import SERVICE_NAME, SERVICE_VERSION

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Liveness for monitoring. No authentication and no upstream calls."""
    settings = request.app.state.settings
    return HealthResponse(
        status="operational",
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        service=SERVICE_NAME,
        anthropic_configured=settings.anthropic_configured,
        version=SERVICE_VERSION,
    )
