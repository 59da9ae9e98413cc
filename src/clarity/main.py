"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, CORS, Sentry,
and the v1 API router. The lifespan is the single composition point: it
builds every client once, wires the transcript pipeline, and drains
in-flight background work on shutdown.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import Response

from src.clarity.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.clarity.api.v1 import health
from src.clarity.api.v1.router import router as v1_router
from src.clarity.config import Settings, get_settings
from src.clarity.core.background import BackgroundTaskRunner
from src.clarity.core.database import close_db, get_session, init_db
from src.clarity.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.clarity.services.llm import LLMService
from src.clarity.services.slack import SlackClient
from src.clarity.services.zoom import ZoomClient
from src.clarity.transcripts.analysis import MetadataExtractor
from src.clarity.transcripts.downloader import TranscriptDownloader
from src.clarity.transcripts.notifier import SummaryNotifier
from src.clarity.transcripts.pipeline import TranscriptPipeline
from src.clarity.transcripts.prompts import DEFAULT_INTERNAL_STAFF, DEFAULT_KNOWN_CLIENTS
from src.clarity.transcripts.repository import TranscriptRepository
from src.clarity.transcripts.summarizer import SummaryGenerator

logger = structlog.get_logger(__name__)


def build_pipeline(
    settings: Settings,
    http_client: httpx.AsyncClient,
    repository: TranscriptRepository,
    slack_client: SlackClient,
) -> TranscriptPipeline:
    """Wire the transcript pipeline from settings and shared clients."""
    llm_service = LLMService(settings)

    staff_roster = settings.internal_staff_roster() or list(DEFAULT_INTERNAL_STAFF)
    if not staff_roster:
        logger.warning(
            "startup.internal_staff_roster_empty",
            hint="set INTERNAL_STAFF_ROSTER so staff are told apart from clients",
        )

    summarizer = SummaryGenerator(
        llm_service=llm_service,
        model=settings.LLM_SUMMARY_MODEL,
        max_attempts=settings.LLM_MAX_ATTEMPTS,
        retry_delay_seconds=settings.LLM_RETRY_DELAY_SECONDS,
        bypass_enabled=settings.TEST_PHRASE_BYPASS_ENABLED,
    )
    extractor = MetadataExtractor(
        llm_service=llm_service,
        model=settings.LLM_ANALYSIS_MODEL,
        staff_roster=staff_roster,
        client_roster=settings.known_client_roster() or list(DEFAULT_KNOWN_CLIENTS),
        max_attempts=settings.LLM_MAX_ATTEMPTS,
        retry_delay_seconds=settings.LLM_RETRY_DELAY_SECONDS,
        bypass_enabled=settings.TEST_PHRASE_BYPASS_ENABLED,
    )
    downloader = TranscriptDownloader(
        http_client=http_client,
        max_attempts=settings.DOWNLOAD_MAX_ATTEMPTS,
        backoff_base_seconds=settings.DOWNLOAD_BACKOFF_BASE_SECONDS,
    )
    notifier = SummaryNotifier(
        slack_client=slack_client,
        timezone_name=settings.NOTIFY_TIMEZONE,
        public_base_url=settings.PUBLIC_BASE_URL,
        max_summary_chars=settings.SLACK_SUMMARY_MAX_CHARS,
        allowed_hosts=settings.notify_allowed_hosts(),
    )
    zoom_client = ZoomClient(
        http_client=http_client,
        account_id=settings.ZOOM_ACCOUNT_ID,
        client_id=settings.ZOOM_CLIENT_ID,
        client_secret=settings.ZOOM_CLIENT_SECRET,
    )

    return TranscriptPipeline(
        repository=repository,
        downloader=downloader,
        summarizer=summarizer,
        extractor=extractor,
        notifier=notifier,
        attendance=zoom_client if zoom_client.configured else None,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: build clients on startup, drain and close on shutdown."""
    log = structlog.get_logger(__name__)
    settings: Settings = app.state.settings
    configure_structlog(settings)
    await init_db()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    http_client = httpx.AsyncClient(timeout=settings.DOWNLOAD_TIMEOUT)
    repository = TranscriptRepository(session_factory=get_session)
    slack_client = SlackClient(http_client=http_client, bot_token=settings.SLACK_BOT_TOKEN)
    task_runner = BackgroundTaskRunner()

    app.state.http_client = http_client
    app.state.transcript_repository = repository
    app.state.slack_client = slack_client
    app.state.task_runner = task_runner
    app.state.transcript_pipeline = build_pipeline(settings, http_client, repository, slack_client)

    if not settings.ZOOM_WEBHOOK_SECRET_TOKEN:
        log.warning("startup.zoom_webhook_secret_missing")
    if not settings.SLACK_SIGNING_SECRET:
        log.warning("startup.slack_signing_secret_missing")
    log.info("startup.complete", environment=settings.ENVIRONMENT.value)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    # Accepted webhooks finish before their clients are closed
    await task_runner.drain(timeout=settings.BACKGROUND_DRAIN_TIMEOUT)
    await http_client.aclose()
    await close_db()
    log.info("shutdown.complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Clarity Copilot API",
        version="0.1.0",
        description="Zoom transcript summarization with Slack host notifications",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Middleware is added in reverse order (last added = outermost)

    # CORS middleware
    if settings.CORS_ALLOWED_ORIGINS == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(health.router)
    app.include_router(v1_router)

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
