"""Error taxonomy for the agency credential service."""

from __future__ import annotations

from typing import Any


class AgencyAuthError(Exception):
    """Base exception for agency credential errors."""


class ValidationError(AgencyAuthError):
    """Missing or malformed caller input. Nothing was exchanged or stored."""


class InvalidTenantKey(ValidationError):
    """A location identifier that cannot be used as a tenant key."""


class ExchangeError(AgencyAuthError):
    """The authorization server rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None, body: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body

    @property
    def http_status(self) -> int:
        """Status to relay to our own caller."""
        if self.status_code and 400 <= self.status_code < 600:
            return self.status_code
        return 502


class StorageError(AgencyAuthError):
    """The credential store is unreachable or rejected a write."""


class MergeConflictError(StorageError):
    """A read-modify-write kept losing to concurrent writers."""


class ProvisioningError(AgencyAuthError):
    """Custom menu provisioning failed."""

    def __init__(self, message: str, status_code: int | None = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
