"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from passportkit.api.ratelimit import SlidingWindowRateLimiter
from passportkit.api.routes import router
from passportkit.config import Settings, get_settings
from passportkit.services.compliance_evaluator import ComplianceEvaluator
from passportkit.services.mailer import DownloadMailer
from passportkit.services.paypal import PayPalClient
from passportkit.services.photo_store import LocalPhotoStore

logger = logging.getLogger(__name__)


def init_state(app: FastAPI, settings: Settings) -> None:
    """Build the per-process collaborators and attach them to ``app.state``."""
    app.state.settings = settings
    app.state.rate_limiters = {
        "compliance": SlidingWindowRateLimiter(settings.compliance_rate_limit, settings.rate_limit_window),
        "payment": SlidingWindowRateLimiter(settings.payment_rate_limit, settings.rate_limit_window),
        "store": SlidingWindowRateLimiter(settings.store_rate_limit, settings.rate_limit_window),
        "download": SlidingWindowRateLimiter(settings.download_rate_limit, settings.rate_limit_window),
    }
    app.state.evaluator = ComplianceEvaluator(settings) if settings.gemini_api_key else None
    app.state.paypal = PayPalClient(settings) if settings.payments_configured else None
    app.state.mailer = DownloadMailer(settings) if settings.resend_api_key else None
    app.state.photo_store = LocalPhotoStore(
        settings.storage_dir,
        signing_key=settings.signing_key,
        public_base_url=settings.public_base_url,
        url_ttl=settings.download_url_ttl,
    )


async def close_state(app: FastAPI) -> None:
    for name in ("evaluator", "paypal", "mailer"):
        client = getattr(app.state, name, None)
        if client is not None:
            await client.aclose()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: initialize on startup, clean up on shutdown."""
    settings: Settings = app.state.settings

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    init_state(app, settings)
    logger.info(
        "Starting passportkit (environment=%s, compliance=%s, payments=%s, email=%s)",
        settings.environment,
        app.state.evaluator is not None,
        app.state.paypal is not None,
        app.state.mailer is not None,
    )
    if settings.environment == "production" and settings.signing_key == "change-me":
        logger.warning("PASSPORTKIT_SIGNING_KEY is the default; download links can be forged")

    logger.info("passportkit ready")
    yield

    logger.info("Shutting down passportkit")
    await close_state(app)
    logger.info("passportkit shutdown complete")


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    field = ""
    if errors:
        loc = errors[0].get("loc", ())
        field = ".".join(part for part in loc if isinstance(part, str) and part not in ("body", "query", "path"))
    detail = f"Missing or invalid {field}" if field else "Invalid request"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": detail})


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    application = FastAPI(
        title="passportkit",
        description="Passport photo compliance, payment and delivery API",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_origin_regex=settings.allowed_origin_regex,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
        max_age=86400,
    )

    application.state.settings = settings
    application.add_exception_handler(RequestValidationError, _validation_error_handler)
    application.include_router(router)
    return application


app = create_app()


def run() -> None:
    """Serve the API with uvicorn."""
    settings = get_settings()
    uvicorn.run("passportkit.main:app", host=settings.host, port=settings.port)
