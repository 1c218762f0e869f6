"""Credential inspection routes. Disabled unless debug routes are enabled."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from ..credentials import CredentialBundle
from ..deps import get_store
from ..errors import InvalidTenantKey
from ..schemas.debug import InsertAuthRequest, TenantRecordView
from ..services.store import CredentialStore, StoredCredential
from ..tenant import TenantKey


def require_debug_routes(request: Request) -> None:
    if not request.app.state.settings.debug_routes_enabled:
        raise HTTPException(status_code=404, detail="Not Found")


router = APIRouter(tags=["debug"], dependencies=[Depends(require_debug_routes)])


def _view(record: StoredCredential) -> TenantRecordView:
    return TenantRecordView(
        locationid=record.key.storage_key,
        kind=record.key.kind.value,
        version=record.version,
        updated_at=record.updated_at,
        summary=record.bundle.summary(),
    )


@router.get("/auth_db", response_model=list[TenantRecordView])
async def list_auth_records(store: CredentialStore = Depends(get_store)):
    return [_view(r) for r in await store.list_records()]


@router.post("/insert_auth", response_model=TenantRecordView, status_code=201)
async def insert_auth_record(
    body: InsertAuthRequest,
    store: CredentialStore = Depends(get_store),
):
    try:
        key = TenantKey.from_storage_key(body.locationid)
    except InvalidTenantKey as e:
        raise HTTPException(status_code=400, detail=str(e))
    try:
        bundle = CredentialBundle.from_dict(body.tokenres)
    except (KeyError, TypeError, ValueError):
        raise HTTPException(status_code=400, detail="tokenres must include access_token")

    await store.put(key, bundle)
    record = await store.get_record(key)
    return _view(record)
