"""
FastAPI application factory
"""
import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.sessions import SessionMiddleware
from starlette.responses import Response

from app.config import get_settings
from app.infrastructure.db.session import check_db_connection
from app.api.v1 import email, print_orders, reminders, subscriptions, webhooks

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class ErrorLoggingMiddleware(BaseHTTPMiddleware):
    """Catches everything, including exceptions from sync routes."""

    async def dispatch(self, request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            tb_str = traceback.format_exc()
            logger.error(f"\n{'='*60}\nERROR on {request.method} {request.url.path}\n{tb_str}{'='*60}")
            return Response(content=f"Internal Server Error: {exc}", status_code=500)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.SCHEDULER_ENABLED:
        from app.application.scheduler import start_scheduler, shutdown_scheduler
        start_scheduler()
        yield
        shutdown_scheduler()
    else:
        yield


def create_app() -> FastAPI:
    """
    Application factory: builds and configures the FastAPI app
    """
    settings = get_settings()

    app = FastAPI(
        title="Journalizer",
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    app.add_middleware(ErrorLoggingMiddleware)
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SECRET_KEY
    )

    app.include_router(reminders.router)
    app.include_router(subscriptions.router)
    app.include_router(email.router)
    app.include_router(print_orders.router)
    app.include_router(webhooks.router)

    # Health checks
    @app.get("/health", response_class=PlainTextResponse, tags=["system"])
    def health():
        """Health check endpoint"""
        return "ok"

    @app.get("/ready", response_class=PlainTextResponse, tags=["system"])
    def ready():
        """Readiness check endpoint (database reachable)"""
        check_db_connection()
        return "ok"

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
