"""
Entry point for the adaptive assessment service.

Run with:
    uvicorn adaptive_assessment.api.main:app --reload --port 8100
    python main.py
"""
import uvicorn

from config import get_settings

settings = get_settings()

if __name__ == "__main__":
    uvicorn.run(
        "adaptive_assessment.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
        log_level=settings.log_level.lower(),
    )
