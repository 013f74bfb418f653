from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from dotenv import load_dotenv
from pathlib import Path
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

env_path = Path(__file__).resolve().parent.parent / ".env"
_ = load_dotenv(dotenv_path=env_path)

from slotpoll.config import settings
from slotpoll.core.background_tasks import (
    notification_tasks,
    startup_background_tasks,
    shutdown_background_tasks,
)
from slotpoll.core.exceptions import NotFoundError, PollValidationError
from slotpoll.core.middleware import setup_middleware
from slotpoll.api import polls

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    logger.info("🚀 Slotpoll API starting up")

    try:
        if settings.DEBUG:
            logger.info("Running in debug mode - enhanced logging enabled")

        await startup_background_tasks()
        logger.info("✅ Notification dispatcher started")

    except Exception as e:
        logger.error(f"❌ Startup failed: {e}")
        raise

    yield

    logger.info("🛑 Slotpoll API shutting down")

    try:
        await shutdown_background_tasks()
        logger.info("✅ All services stopped gracefully")
    except Exception as e:
        logger.error(f"❌ Shutdown error: {e}")


if settings.SENTRY_DSN:
    _ = sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        traces_sample_rate=1.0 if settings.DEBUG else 0.1,
        environment=settings.ENVIRONMENT,
        release=f"slotpoll@{settings.VERSION}",
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            StarletteIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        ignore_errors=[
            KeyboardInterrupt,
            NotFoundError,
        ],
        send_default_pii=False,
        attach_stacktrace=True,
    )

    logger.info(f"✅ Sentry initialized for environment: {settings.ENVIRONMENT}")
else:
    logger.info("⚠️  Sentry DSN not configured - error tracking disabled")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    openapi_url="/api/openapi.json" if settings.DOCS_ENABLED else None,
    docs_url="/docs" if settings.DOCS_ENABLED else None,
    redoc_url=None,
    lifespan=lifespan,
)

setup_middleware(app)

app.include_router(polls.router, prefix="/api/poll", tags=["polls"])


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "version": settings.VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "features": {
            "mail": settings.mail_enabled,
            "error_tracking": bool(settings.SENTRY_DSN),
            "pending_notifications": notification_tasks.pending,
        },
    }


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(PollValidationError)
async def poll_validation_handler(request: Request, exc: PollValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}: {exc}",
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": "An unexpected error occurred",
        },
    )
