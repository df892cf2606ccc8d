"""FastAPI application entry point."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from marketplace.config import settings
from marketplace.database import dispose_engine
from marketplace.errors import (
    MarketplaceError,
    marketplace_error_handler,
    request_validation_error_handler,
)
from marketplace.middleware import BodySizeLimitMiddleware, SecurityHeadersMiddleware
from marketplace.redis import close_redis_pool
from marketplace.routers import bids, jobs, profiles

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown."""
    logger.info(
        "Starting marketplace API (env=%s, approval attempts=%d)",
        settings.env, settings.approval_max_attempts,
    )

    yield

    await close_redis_pool()
    await dispose_engine()
    logger.info("Marketplace API stopped")


app = FastAPI(
    title="Home Services Marketplace",
    description="Clients post jobs, pros bid on them, owners pick a winner",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Middleware (order matters: last added is outermost)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_request_body_bytes)

app.add_exception_handler(MarketplaceError, marketplace_error_handler)  # type: ignore[arg-type]
app.add_exception_handler(RequestValidationError, request_validation_error_handler)  # type: ignore[arg-type]

app.include_router(profiles.router)
app.include_router(jobs.router)
app.include_router(bids.router)


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}
