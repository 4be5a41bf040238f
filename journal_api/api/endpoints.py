from fastapi import APIRouter

from journal_api.api.routes import health, insights, summarise


router = APIRouter()

router.include_router(health.router)
router.include_router(insights.router)
router.include_router(summarise.router)
