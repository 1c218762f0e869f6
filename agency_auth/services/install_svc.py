"""App install webhook handling.

When the app is installed on a sub-account GHL sends an INSTALL event. We
use the stored agency grant to derive a token for that location. Every
event is acknowledged with a 200 so GHL does not keep redelivering it; the
body says what happened.
"""

from __future__ import annotations

import logging

from ..schemas.webhook import AppInstallEvent
from ..tenant import TenantKey, is_usable_location_id
from .callback_svc import attach_location_access, provision_menu
from .menu_svc import CustomMenuProvisioner
from .outcomes import InstallOutcome, InstallStatus
from .store import CredentialStore
from .token_svc import TokenExchangeClient

logger = logging.getLogger(__name__)

INSTALL_EVENT = "INSTALL"
LOCATION_INSTALL = "Location"


class InstallEventHandler:
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

    async def handle(self, event: AppInstallEvent) -> InstallOutcome:
        """Process one webhook event.

        Raises:
            StorageError: The agency credential could not be read
        """
        if event.event_type != INSTALL_EVENT or event.install_type != LOCATION_INSTALL:
            logger.info(
                "Ignoring app event type=%r installType=%r", event.event_type, event.install_type
            )
            return InstallOutcome.ignored("not a location install")

        location_id = (event.location_id or "").strip()
        company_id = (event.company_id or "").strip()
        if not location_id or not company_id:
            logger.info("Ignoring install event without locationId/companyId")
            return InstallOutcome.ignored("missing locationId or companyId")
        if not is_usable_location_id(location_id):
            logger.warning("Ignoring install event for reserved location id %r", location_id)
            return InstallOutcome.ignored("reserved locationId")

        agency = await self.store.get(TenantKey.agency())
        if agency is None:
            logger.error(
                "No agency credential stored; cannot derive a token for location %s. "
                "Reinstall the app at agency level.",
                location_id,
            )
            return InstallOutcome(InstallStatus.NO_AGENCY_TOKEN, location_id=location_id)

        if agency.company_id and agency.company_id != company_id:
            logger.warning(
                "Install event company %s does not match stored agency company %s",
                company_id,
                agency.company_id,
            )

        outcome = InstallOutcome(InstallStatus.OK, location_id=location_id)
        derived = await attach_location_access(
            self.store,
            self.exchange,
            agency,
            company_id,
            location_id,
            outcome.advisories,
            max_attempts=self.merge_max_attempts,
        )
        if derived is None:
            outcome.status = InstallStatus.LOCATION_TOKEN_FAILED

        await provision_menu(self.menu, agency, location_id, outcome.advisories)
        return outcome
