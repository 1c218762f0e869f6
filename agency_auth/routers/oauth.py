"""OAuth install routes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse

from ..deps import get_exchange, get_resolver
from ..errors import ExchangeError, StorageError, ValidationError
from ..services.callback_svc import CallbackResolver
from ..services.token_svc import TokenExchangeClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["oauth"])


@router.get("/oauth/authorize")
async def authorize(exchange: TokenExchangeClient = Depends(get_exchange)):
    """Send the agency admin to the marketplace consent page."""
    return RedirectResponse(exchange.get_authorization_url(), status_code=302)


@router.get("/oauth/callback")
async def oauth_callback(
    code: str | None = None,
    locationId: str | None = None,  # noqa: N803 - GHL query parameter name
    resolver: CallbackResolver = Depends(get_resolver),
):
    try:
        outcome = await resolver.handle_callback(code, locationId)
    except ValidationError as e:
        return PlainTextResponse(str(e), status_code=400)
    except ExchangeError as e:
        logger.error("Error in /oauth/callback: %s %s", e.status_code, e.body)
        return JSONResponse({"ok": False, "error": e.body or e.message}, status_code=e.http_status)
    except StorageError as e:
        logger.exception("Error in /oauth/callback")
        return JSONResponse({"ok": False, "error": str(e)}, status_code=500)

    if outcome.advisories:
        logger.info("Callback completed with advisories: %s", [a.value for a in outcome.advisories])
    return PlainTextResponse(outcome.message())
