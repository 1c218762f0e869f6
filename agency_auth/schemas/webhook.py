"""Marketplace app webhook payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class AppInstallEvent(BaseModel):
    """App lifecycle event (INSTALL, UNINSTALL, ...).

    Only the fields the install flow reads are modelled; the rest of the
    payload (appId, userId, timestamp, webhookId, ...) is kept as extra.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    event_type: str | None = Field(default=None, alias="type")
    install_type: str | None = Field(default=None, alias="installType")
    location_id: str | None = Field(default=None, alias="locationId")
    company_id: str | None = Field(default=None, alias="companyId")
