"""
Charity Watchdog API Server

Entry point for the FastAPI application.
"""

from __future__ import annotations

import argparse

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import Settings, get_settings
from app.core.database import create_engine, create_session_factory
from app.core.errors import CharityWatchdogError, register_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import AccessLogMiddleware
from app.api.v1 import router as api_v1_router
from app.api.v1.webhooks import router as webhook_router
from app.services.ingestion import WebhookIngestionGateway
from app.services.onboarding import SubscriptionOrchestrator
from app.services.store import CharityStore
from app.services.wallet_watch import HttpWalletWatchClient

log = structlog.get_logger()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Charity Watchdog",
        description="Tracks charities and the crypto donations sent to their wallets.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.settings = settings

    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )
    register_exception_handlers(app)

    # API routes
    app.include_router(api_v1_router, prefix="/api/v1")

    # Wallet-watch notifications
    app.include_router(webhook_router, prefix="/webhook/v1", tags=["Webhooks"])

    @app.get("/api", tags=["API"])
    async def api_index():
        return {"message": "Coming Soon"}

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check endpoint: verifies database connectivity."""
        store: CharityStore | None = getattr(app.state, "store", None)
        if store is None:
            return JSONResponse(status_code=503, content={"status": "starting"})
        try:
            await store.ping()
        except CharityWatchdogError:
            return JSONResponse(status_code=503, content={"status": "unavailable"})
        return {"status": "ready"}

    @app.on_event("startup")
    async def on_startup():
        configure_logging(settings.log_level, settings.log_format)
        engine = create_engine(settings)
        store = CharityStore(create_session_factory(engine), timeout=settings.store_timeout_seconds)
        wallet_watch = HttpWalletWatchClient.from_settings(settings)
        await wallet_watch.open()

        app.state.engine = engine
        app.state.wallet_watch = wallet_watch
        app.state.store = store
        app.state.orchestrator = SubscriptionOrchestrator(wallet_watch, store)
        app.state.gateway = WebhookIngestionGateway(store)
        log.info("Charity Watchdog starting", wallet_watch_url=settings.wallet_watch_url)

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("Charity Watchdog shutting down")
        wallet_watch = getattr(app.state, "wallet_watch", None)
        if wallet_watch:
            await wallet_watch.close()
        engine = getattr(app.state, "engine", None)
        if engine:
            await engine.dispose()

    return app


app = create_app()


def run() -> None:
    """CLI entry point: one uvicorn server with ``--workers`` processes sharing nothing but the database."""
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Charity Watchdog API server")
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    parser.add_argument("--workers", type=int, default=settings.workers)
    args = parser.parse_args()

    configure_logging(settings.log_level, settings.log_format)
    log.info("server.starting", host=args.host, port=args.port, workers=args.workers)
    uvicorn.run(
        "app.main:app",
        host=args.host,
        port=args.port,
        workers=args.workers,
        access_log=False,
    )


if __name__ == "__main__":
    run()
