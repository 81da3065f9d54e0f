"""FastAPI application factory."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..app import Application
from ..errors import ChatError
from ..logging_config import get_logger
from .errors import chat_error_handler
from .routes import create_chat_router, create_health_router, create_relay_router

logger = get_logger(__name__)

# Process-wide application used when the factory is called without one
_app: Application | None = None


def get_app() -> Application:
    """Get (or lazily build) the process-wide Application."""
    global _app
    if not _app:
        _app = Application()
    return _app


def _build_lifespan(application: Application):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Start the core before serving, stop it after the last request."""
        await application.start()
        logger.info("Chat core API ready")
        try:
            yield
        finally:
            await application.stop()
            logger.info("Chat core API stopped")

    return lifespan


def create_fastapi_app(application: Application | None = None) -> FastAPI:
    """Create the API around an Application (the global one by default)."""
    application = application or get_app()
    settings = application.settings

    fastapi_app = FastAPI(
        title="Chat Core API",
        description="Message fan-out, history, delivery state and real-time relay",
        version="0.1.0",
        lifespan=_build_lifespan(application),
    )
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
        expose_headers=["X-Failed-Receivers"],
    )
    fastapi_app.add_exception_handler(ChatError, chat_error_handler)

    for router in (
        create_chat_router(application),
        create_relay_router(application),
        create_health_router(application),
    ):
        fastapi_app.include_router(router)

    return fastapi_app
