"""FastAPI application factory for the agency auth service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import AgencyAuthSettings, settings
from .errors import StorageError
from .routers import debug, health, oauth, webhooks
from .services.menu_svc import CustomMenuProvisioner
from .services.store import CredentialStore
from .services.token_svc import TokenExchangeClient

logger = logging.getLogger(__name__)


def create_app(
    settings_obj: AgencyAuthSettings | None = None,
    *,
    store: CredentialStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the app.

    When ``store`` is given the caller owns its lifecycle; otherwise the
    lifespan opens one from ``database_url`` and closes it on shutdown.
    """
    cfg = settings_obj or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.getLogger("agency_auth").setLevel(cfg.log_level.upper())
        owned = app.state.store is None
        if owned:
            app.state.store = CredentialStore.open(cfg.database_url, echo=cfg.echo_sql)
            await app.state.store.create_schema()
        if not cfg.oauth_configured:
            logger.warning("GHL_CLIENT_ID / GHL_CLIENT_SECRET not set; token exchange will fail")
        try:
            yield
        finally:
            if owned:
                await app.state.store.close()
                app.state.store = None

    app = FastAPI(title=cfg.app_title, lifespan=lifespan)

    exchange = TokenExchangeClient.from_settings(cfg, transport=transport)
    app.state.settings = cfg
    app.state.store = store
    app.state.exchange = exchange
    app.state.menu = CustomMenuProvisioner.from_settings(cfg, exchange)

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error("Credential store error on %s: %s", request.url.path, exc)
        return JSONResponse({"error": str(exc)}, status_code=500)

    app.include_router(oauth.router)
    app.include_router(webhooks.router)
    app.include_router(health.router)
    app.include_router(debug.router)
    return app


app = create_app()
