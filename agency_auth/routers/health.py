"""Health check for the agency auth service."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..deps import get_store
from ..errors import StorageError
from ..services.store import CredentialStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(store: CredentialStore = Depends(get_store)):
    try:
        db_time = await store.ping()
    except StorageError as e:
        logger.warning("Credential store health check failed", exc_info=True)
        return JSONResponse({"ok": False, "error": str(e)}, status_code=500)
    return {"ok": True, "dbTime": db_time}
