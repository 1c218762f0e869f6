"""Tenant identity for stored credentials.

A tenant is either the agency itself or one sub-account (location). The
agency row is stored under a reserved key that no location can take.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .errors import InvalidTenantKey

AGENCY_ROW_ID = "__AGENCY__"


class TenantKind(str, Enum):
    AGENCY = "agency"
    LOCATION = "location"


@dataclass(frozen=True)
class TenantKey:
    """Primary identity of a stored credential.

    Usage:
        TenantKey.agency().storage_key           # "__AGENCY__"
        TenantKey.location("L1").storage_key     # "L1"
        TenantKey.location("__AGENCY__")         # raises InvalidTenantKey
    """

    kind: TenantKind
    location_id: str | None = None

    def __post_init__(self) -> None:
        if self.kind is TenantKind.AGENCY:
            if self.location_id is not None:
                raise InvalidTenantKey("Agency tenant key cannot carry a location id")
            return

        location_id = (self.location_id or "").strip()
        if not location_id:
            raise InvalidTenantKey("Location tenant key requires a location id")
        if location_id == AGENCY_ROW_ID:
            raise InvalidTenantKey(f"{AGENCY_ROW_ID!r} is reserved for the agency credential")
        object.__setattr__(self, "location_id", location_id)

    @classmethod
    def agency(cls) -> "TenantKey":
        return cls(TenantKind.AGENCY)

    @classmethod
    def location(cls, location_id: str) -> "TenantKey":
        return cls(TenantKind.LOCATION, location_id)

    @classmethod
    def from_storage_key(cls, raw: str) -> "TenantKey":
        """Rebuild a key read back from the store."""
        if raw == AGENCY_ROW_ID:
            return cls.agency()
        return cls.location(raw)

    @property
    def is_agency(self) -> bool:
        return self.kind is TenantKind.AGENCY

    @property
    def storage_key(self) -> str:
        if self.is_agency:
            return AGENCY_ROW_ID
        return self.location_id  # type: ignore[return-value]

    def __str__(self) -> str:
        return "agency" if self.is_agency else f"location:{self.location_id}"


def is_usable_location_id(value: str | None) -> bool:
    """True when value can name a location tenant."""
    if not value or not str(value).strip():
        return False
    return str(value).strip() != AGENCY_ROW_ID
