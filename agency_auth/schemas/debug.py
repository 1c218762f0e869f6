"""Schemas for the credential debug routes."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class TenantRecordView(BaseModel):
    locationid: str
    kind: str
    version: int
    updated_at: datetime | None = None
    summary: dict[str, Any]


class InsertAuthRequest(BaseModel):
    locationid: str
    tokenres: dict[str, Any]
