"""Webhook validation helpers."""

from __future__ import annotations

import hmac

from fastapi import HTTPException, Request


def verify_webhook_token(request: Request, expected: str) -> None:
    """Check the shared secret on app webhooks when one is configured.

    The token may be sent as ``x-webhook-token`` or as ``?token=``.
    """
    if not expected:
        return

    provided = (
        request.headers.get("x-webhook-token", "").strip()
        or request.query_params.get("token", "").strip()
    )
    if not provided:
        raise HTTPException(status_code=401, detail="Missing webhook token")
    if not hmac.compare_digest(provided, expected):
        raise HTTPException(status_code=401, detail="Invalid webhook token")
