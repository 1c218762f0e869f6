"""Credential bundle model.

A bundle is one OAuth grant response from GHL. It is stored verbatim:
fields we don't model (userId, isBulkInstallation, planId, ...) ride along
in ``extra`` and are written back unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class GrantLevel(str, Enum):
    """Value of the ``userType`` field on a token response."""

    COMPANY = "Company"
    LOCATION = "Location"

    @classmethod
    def parse(cls, value: Any) -> "GrantLevel | None":
        for level in cls:
            if isinstance(value, str) and value.lower() == level.value.lower():
                return level
        return None


# Keys owned by CredentialBundle; everything else is kept in ``extra``
_KNOWN_KEYS = {
    "access_token",
    "refresh_token",
    "expires_in",
    "token_type",
    "scope",
    "userType",
    "companyId",
    "locationId",
    "locationAccess",
}


def mask_token(token: str | None, visible: int = 6) -> str:
    """Shorten a bearer secret for logs and debug listings."""
    if not token:
        return ""
    if len(token) <= visible:
        return "*" * len(token)
    return f"{token[:visible]}…({len(token)} chars)"


@dataclass
class CredentialBundle:
    """OAuth grant for the agency or for a single location."""

    access_token: str
    refresh_token: str = ""
    expires_in: int = 86400  # seconds
    scope: str = ""
    grant_level: GrantLevel | None = None
    company_id: str | None = None
    location_id: str | None = None
    token_type: str = "Bearer"
    location_access: "CredentialBundle | None" = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_agency(self) -> bool:
        return self.grant_level is GrantLevel.COMPANY

    @property
    def is_location(self) -> bool:
        return self.grant_level is GrantLevel.LOCATION

    @property
    def scopes(self) -> list[str]:
        return [s for s in self.scope.split() if s]

    def with_location_access(self, location_bundle: "CredentialBundle") -> "CredentialBundle":
        """Composite bundle: this grant with a location grant attached."""
        nested = replace(location_bundle, location_access=None)
        return replace(self, location_access=nested)

    def summary(self) -> dict[str, Any]:
        """Loggable view. Never includes full secrets."""
        return {
            "userType": self.grant_level.value if self.grant_level else None,
            "companyId": self.company_id,
            "locationId": self.location_id,
            "scope": self.scope,
            "access_token": mask_token(self.access_token),
            "hasLocationAccess": self.location_access is not None,
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to the GHL-shaped payload stored in ``raw_token``."""
        data: dict[str, Any] = dict(self.extra)
        data.update(
            {
                "access_token": self.access_token,
                "refresh_token": self.refresh_token,
                "expires_in": self.expires_in,
                "token_type": self.token_type,
                "scope": self.scope,
            }
        )
        if self.grant_level is not None:
            data["userType"] = self.grant_level.value
        if self.company_id is not None:
            data["companyId"] = self.company_id
        if self.location_id is not None:
            data["locationId"] = self.location_id
        if self.location_access is not None:
            data["locationAccess"] = self.location_access.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CredentialBundle":
        """Create from a token response or a stored payload.

        Raises:
            KeyError: If ``access_token`` is missing
        """
        nested = data.get("locationAccess")
        expires_in = data.get("expires_in")
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or "",
            expires_in=int(expires_in) if expires_in is not None else 86400,
            scope=data.get("scope") or "",
            grant_level=GrantLevel.parse(data.get("userType")),
            company_id=data.get("companyId"),
            location_id=data.get("locationId"),
            token_type=data.get("token_type") or "Bearer",
            location_access=cls.from_dict(nested) if isinstance(nested, dict) else None,
            extra={k: v for k, v in data.items() if k not in _KNOWN_KEYS},
        )
