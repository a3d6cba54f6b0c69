"""
Calling Bot - service entry point.
"""
from callbot_core.api.app import create_app
from callbot_core.config import get_settings

settings = get_settings()
app = create_app(settings)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "callbot_core.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
    )
