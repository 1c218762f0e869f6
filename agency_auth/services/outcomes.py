"""Results of the callback and install flows.

Best-effort steps never fail a flow; what went wrong is listed in
``advisories`` so callers (and the webhook response) can see it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..credentials import CredentialBundle
from ..tenant import TenantKey


class Advisory(str, Enum):
    LOCATION_UNRESOLVED = "location_unresolved"
    LOCATION_LOOKUP_FAILED = "location_lookup_failed"
    LOCATION_TOKEN_FAILED = "location_token_failed"
    LOCATION_TOKEN_NOT_SAVED = "location_token_not_saved"
    CUSTOM_MENU_FAILED = "custom_menu_failed"


@dataclass
class CallbackOutcome:
    """What an OAuth callback exchanged and stored."""

    bundle: CredentialBundle
    location_id: str | None = None
    stored: list[TenantKey] = field(default_factory=list)
    location_access: CredentialBundle | None = None
    advisories: list[Advisory] = field(default_factory=list)

    @property
    def agency_installed(self) -> bool:
        return self.bundle.is_agency

    def message(self) -> str:
        if self.agency_installed:
            text = "App installed at agency level. Sub-account installs will be handled via webhook."
        else:
            text = "App installed."
        if self.location_access is not None:
            text += f" Location {self.location_id} is connected."
        return text


class InstallStatus(str, Enum):
    OK = "ok"
    IGNORED = "ignored"
    NO_AGENCY_TOKEN = "no_agency_token"
    LOCATION_TOKEN_FAILED = "location_token_failed"


@dataclass
class InstallOutcome:
    """Result of one app install webhook. Always acknowledged with a 200."""

    status: InstallStatus
    location_id: str | None = None
    reason: str | None = None
    advisories: list[Advisory] = field(default_factory=list)

    @classmethod
    def ignored(cls, reason: str) -> "InstallOutcome":
        return cls(InstallStatus.IGNORED, reason=reason)

    def to_response(self) -> dict[str, Any]:
        if self.status is InstallStatus.IGNORED:
            return {"ignored": True, "reason": self.reason}
        if self.status is InstallStatus.NO_AGENCY_TOKEN:
            return {"ok": False, "reason": "no_agency_token"}

        body: dict[str, Any] = {"locationId": self.location_id}
        if self.status is InstallStatus.LOCATION_TOKEN_FAILED:
            body = {"ok": False, "error": "location_token_failed", **body}
        else:
            body = {"ok": True, **body}
        if self.advisories:
            body["advisories"] = [a.value for a in self.advisories]
        return body
