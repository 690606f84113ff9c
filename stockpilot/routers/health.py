from datetime import datetime, timezone

from fastapi import APIRouter

from stockpilot.config import get_settings

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check():
    settings = get_settings()
    return {
        "status": "ok",
        "app": settings.APP_NAME,
        "environment": settings.ENVIRONMENT,
        "reorder_ai_configured": bool((settings.GEMINI_API_KEY or "").strip()),
        "time": datetime.now(timezone.utc).isoformat(),
    }
