"""
Ticket Ledger API - Main Application Entry Point

An HTTP front for the ticket-issuance ledger:
- One authoritative in-memory ledger per process, single writer
- Exact-payment purchases, pull-based refunds, escrowed organizer earnings
- Write-through persistence to PostgreSQL, rebuilt from the tables on startup
- Structured logging with request correlation and Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ticket_ledger.core.config import get_settings
from ticket_ledger.core.logging import setup_logging, get_logger
from ticket_ledger.core.metrics import metrics_endpoint
from ticket_ledger.api.router import api_router
from ticket_ledger.api.errors import register_error_handlers
from ticket_ledger.api.middleware import RequestLoggingMiddleware
from ticket_ledger.db.session import AsyncSessionLocal, engine
from ticket_ledger.services.ledger_service import LedgerService, limits_from_settings

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: build the ledger once, dispose the engine on shutdown."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        persistence=settings.LEDGER_PERSISTENCE_ENABLED,
    )

    async with AsyncSessionLocal() as db:
        app.state.ledger_service = await LedgerService.start(
            db,
            limits_from_settings(settings),
            persistence_enabled=settings.LEDGER_PERSISTENCE_ENABLED,
        )
    logger.info("ledger_ready")

    yield

    await engine.dispose()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Ticket-issuance ledger with exact-payment accounting and escrowed refunds",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)
register_error_handlers(app)

app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    service = getattr(app.state, "ledger_service", None)
    ready = service is not None and not service.stale
    return {
        "status": "healthy" if ready else "degraded",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "ledger": {
            "events": service.ledger.get_event_count() if service else None,
            "tickets": service.ledger.get_ticket_count() if service else None,
            "persistence": settings.LEDGER_PERSISTENCE_ENABLED,
        },
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
