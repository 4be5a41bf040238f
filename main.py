import os

from journal_api.application import create_app
from journal_api.core.config import get_settings
from journal_api.shared.logging_config import setup_logging

settings = get_settings()

# Configure logging
setup_logging("journal-ai-service", level=settings.LOG_LEVEL, json_output=not settings.is_development)

app = create_app(settings=settings)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
