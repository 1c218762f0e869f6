"""Marketplace app webhook route."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PayloadError

from ..deps import get_install_handler
from ..errors import StorageError
from ..schemas.webhook import AppInstallEvent
from ..security.webhooks import verify_webhook_token
from ..services.install_svc import InstallEventHandler

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post("/app-webhook")
async def app_webhook(
    request: Request,
    handler: InstallEventHandler = Depends(get_install_handler),
):
    verify_webhook_token(request, request.app.state.settings.webhook_token)

    try:
        payload = await request.json()
    except ValueError:
        logger.info("Ignoring webhook with a non-JSON body")
        return {"ignored": True, "reason": "invalid body"}
    if not isinstance(payload, dict):
        return {"ignored": True, "reason": "invalid body"}

    try:
        event = AppInstallEvent.model_validate(payload)
    except PayloadError:
        logger.info("Ignoring malformed webhook payload")
        return {"ignored": True, "reason": "invalid body"}

    try:
        outcome = await handler.handle(event)
    except StorageError as e:
        logger.exception("Error in /app-webhook")
        return JSONResponse({"error": str(e)}, status_code=500)
    return outcome.to_response()
