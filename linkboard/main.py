"""Linkboard FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from linkboard.config import Settings, get_settings
from linkboard.database import Database
from linkboard.exceptions import register_exception_handlers
from linkboard.logging_config import configure_logging, get_logger
from linkboard.middleware.rate_limit import RateLimitMiddleware
from linkboard.middleware.request_context import RequestContextMiddleware
from linkboard.redis import close_redis, init_redis, redis_getter
from linkboard.routes.auth import router as auth_router
from linkboard.routes.comments import router as comments_router
from linkboard.routes.posts import router as posts_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: verify DB + connect Redis on startup, cleanup on shutdown."""
    settings: Settings = app.state.settings
    db: Database = app.state.db

    logger.info("starting_database_check")
    await db.verify()

    if settings.redis_url:
        app.state.redis = await init_redis(settings.redis_url)
    else:
        logger.info("rate_limiting_disabled", reason="redis_url not set")

    logger.info("application_started", environment=settings.environment)
    yield

    # Shutdown
    logger.info("shutting_down")
    await close_redis(app.state.redis)
    app.state.redis = None
    await db.dispose()
    logger.info("shutdown_complete")


def create_app(settings: Settings | None = None, db: Database | None = None) -> FastAPI:
    """Build the application; tests pass their own settings and database."""
    settings = settings or get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_format == "json")

    app = FastAPI(
        title=settings.app_name,
        description="Link aggregator: posts, threaded comments and upvotes",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.db = db or Database(settings)
    app.state.redis = None

    register_exception_handlers(app, settings)

    # Outermost last: request context wraps CORS wraps rate limiting
    app.add_middleware(
        RateLimitMiddleware,
        redis_getter=redis_getter(app),
        limit=settings.rate_limit,
        window=settings.rate_limit_window,
        cookie_name=settings.session_cookie_name,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)

    app.include_router(auth_router, prefix=settings.api_prefix)
    app.include_router(posts_router, prefix=settings.api_prefix)
    app.include_router(comments_router, prefix=settings.api_prefix)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok", "service": "linkboard"}

    return app


app = create_app()
