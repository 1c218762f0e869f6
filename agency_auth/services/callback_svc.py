"""OAuth callback handling.

A callback carries a one-time code. We always ask for an agency grant,
store it under the agency key, work out which sub-account (if any) the
install is for, and attach a derived location grant to that sub-account's
record.
"""

from __future__ import annotations

import logging

from ..credentials import CredentialBundle, GrantLevel
from ..errors import (
    ExchangeError,
    InvalidTenantKey,
    MergeConflictError,
    ProvisioningError,
    StorageError,
    ValidationError,
)
from ..tenant import TenantKey, is_usable_location_id
from .menu_svc import CustomMenuProvisioner
from .outcomes import Advisory, CallbackOutcome
from .store import CredentialStore
from .token_svc import TokenExchangeClient

logger = logging.getLogger(__name__)


async def attach_location_access(
    store: CredentialStore,
    exchange: TokenExchangeClient,
    agency_bundle: CredentialBundle,
    company_id: str | None,
    location_id: str,
    advisories: list[Advisory],
    *,
    max_attempts: int = 3,
) -> CredentialBundle | None:
    """Derive a location grant and merge it into the location's record.

    The record becomes a snapshot of the current agency bundle with the new
    grant under ``locationAccess``, replacing whatever was stored there.
    Failures are logged and added to ``advisories``; returns the derived
    grant on success.
    """
    if not company_id:
        logger.warning("Cannot derive a token for location %s: no companyId", location_id)
        advisories.append(Advisory.LOCATION_TOKEN_FAILED)
        return None

    try:
        derived = await exchange.derive_location_token(agency_bundle, company_id, location_id)
    except ExchangeError as e:
        logger.warning(
            "Location token derivation failed for %s: %s %s", location_id, e.status_code, e.body
        )
        advisories.append(Advisory.LOCATION_TOKEN_FAILED)
        return None

    snapshot = CredentialBundle.from_dict(agency_bundle.to_dict())
    snapshot.location_access = None
    try:
        await store.update(
            TenantKey.location(location_id),
            lambda _stored: snapshot.with_location_access(derived),
            default=snapshot,
            max_attempts=max_attempts,
        )
    except MergeConflictError:
        logger.error("Location token for %s was derived but could not be saved", location_id)
        advisories.append(Advisory.LOCATION_TOKEN_NOT_SAVED)
        return None
    return derived


async def provision_menu(
    menu: CustomMenuProvisioner | None,
    bundle: CredentialBundle,
    location_id: str | None,
    advisories: list[Advisory],
) -> None:
    """Best-effort custom menu provisioning."""
    if menu is None or not menu.enabled:
        return
    try:
        await menu.provision(bundle, location_id)
    except ProvisioningError as e:
        logger.warning(
            "Custom menu provisioning failed for %s: %s %s",
            location_id or "agency",
            e.status_code,
            e.body,
        )
        advisories.append(Advisory.CUSTOM_MENU_FAILED)


class CallbackResolver:
    """Turns an OAuth callback into stored agency and location credentials."""

    def __init__(
        self,
        store: CredentialStore,
        exchange: TokenExchangeClient,
        menu: CustomMenuProvisioner | None = None,
        *,
        merge_max_attempts: int = 3,
    ):
        self.store = store
        self.exchange = exchange
        self.menu = menu
        self.merge_max_attempts = merge_max_attempts

    async def handle_callback(
        self,
        code: str | None,
        location_id: str | None = None,
    ) -> CallbackOutcome:
        """Run the whole callback flow.

        Raises:
            ValidationError: Missing code or a reserved location id
            ExchangeError: The code exchange failed; nothing was stored
            StorageError: A primary write failed
        """
        code = (code or "").strip()
        if not code:
            raise ValidationError("Missing 'code' parameter in callback URL.")

        explicit = (location_id or "").strip() or None
        if explicit is not None and not is_usable_location_id(explicit):
            raise InvalidTenantKey(f"locationId {explicit!r} is reserved")

        bundle = await self.exchange.exchange_authorization_code(code, GrantLevel.COMPANY)
        outcome = CallbackOutcome(bundle=bundle)
        outcome.location_id = await self.resolve_location_id(bundle, explicit, outcome.advisories)

        if bundle.is_agency:
            outcome.stored.append(await self.store.put(TenantKey.agency(), bundle))
        if outcome.location_id:
            outcome.stored.append(
                await self.store.put(TenantKey.location(outcome.location_id), bundle)
            )
        else:
            logger.info("No location resolved for this install; stored agency credential only")
            outcome.advisories.append(Advisory.LOCATION_UNRESOLVED)

        # Deriving needs an agency token
        if bundle.is_agency and outcome.location_id:
            try:
                outcome.location_access = await attach_location_access(
                    self.store,
                    self.exchange,
                    bundle,
                    bundle.company_id,
                    outcome.location_id,
                    outcome.advisories,
                    max_attempts=self.merge_max_attempts,
                )
            except StorageError as e:
                logger.error(
                    "Location token for %s could not be saved: %s", outcome.location_id, e
                )
                outcome.advisories.append(Advisory.LOCATION_TOKEN_NOT_SAVED)

        await provision_menu(self.menu, bundle, outcome.location_id, outcome.advisories)
        return outcome

    async def resolve_location_id(
        self,
        bundle: CredentialBundle,
        explicit: str | None,
        advisories: list[Advisory],
    ) -> str | None:
        """Pick the location an install applies to.

        Tries, in order: the id passed with the callback, the id in the token
        response, then the first location the company has the app installed
        on. The reserved agency key is never returned.
        """
        if explicit and is_usable_location_id(explicit):
            return explicit

        if bundle.location_id:
            if is_usable_location_id(bundle.location_id):
                return bundle.location_id.strip()
            logger.warning("Ignoring reserved locationId %r in token response", bundle.location_id)

        if not (bundle.is_agency and bundle.company_id):
            return None

        try:
            locations = await self.exchange.list_installed_locations(bundle, bundle.company_id)
        except ExchangeError as e:
            logger.warning("Installed locations lookup failed: %s %s", e.status_code, e.body)
            advisories.append(Advisory.LOCATION_LOOKUP_FAILED)
            return None

        for entry in locations:
            candidate = entry.get("_id") or entry.get("id")
            if is_usable_location_id(candidate):
                return str(candidate).strip()
            if candidate:
                logger.warning("Skipping reserved location id %r from installed locations", candidate)
        return None
