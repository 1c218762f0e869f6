"""Custom menu link provisioning.

After an install the app adds its custom menu link to the agency or to the
installed sub-account. This is best effort: callers record a failure as an
advisory and carry on.
"""

from __future__ import annotations

import logging
from typing import Any

from ..config import AgencyAuthSettings
from ..credentials import CredentialBundle
from ..errors import ExchangeError, ProvisioningError
from .token_svc import TokenExchangeClient

logger = logging.getLogger(__name__)

CUSTOM_MENUS_PATH = "/custom-menus/"


class CustomMenuProvisioner:
    """Creates the app's custom menu link through the GHL API."""

    def __init__(
        self,
        exchange: TokenExchangeClient,
        *,
        title: str,
        url: str,
        icon: str = "link",
        open_mode: str = "iframe",
        user_role: str = "all",
        enabled: bool = True,
    ):
        self._exchange = exchange
        self.title = title
        self.url = url
        self.icon = icon
        self.open_mode = open_mode
        self.user_role = user_role
        self._enabled = enabled

    @classmethod
    def from_settings(
        cls, settings_obj: AgencyAuthSettings, exchange: TokenExchangeClient
    ) -> "CustomMenuProvisioner":
        return cls(
            exchange,
            title=settings_obj.custom_menu_title,
            url=settings_obj.custom_menu_url,
            icon=settings_obj.custom_menu_icon,
            open_mode=settings_obj.custom_menu_open_mode,
            user_role=settings_obj.custom_menu_user_role,
            enabled=settings_obj.custom_menu_configured,
        )

    @property
    def enabled(self) -> bool:
        return bool(self._enabled and self.title and self.url)

    def build_payload(self, location_id: str | None = None) -> dict[str, Any]:
        """Menu definition scoped to one location, or agency-wide when None."""
        return {
            "title": self.title,
            "url": self.url,
            "icon": {"name": self.icon, "fontFamily": "fas"},
            "showOnCompany": location_id is None,
            "showOnLocation": True,
            "showToAllLocations": location_id is None,
            "locations": [location_id] if location_id else [],
            "openMode": self.open_mode,
            "userRole": self.user_role,
            "allowCamera": False,
            "allowMicrophone": False,
        }

    async def provision(
        self,
        bundle: CredentialBundle,
        location_id: str | None = None,
    ) -> dict[str, Any]:
        """Create the menu link.

        Raises:
            ProvisioningError: If GHL rejects the request or cannot be reached
        """
        try:
            result = await self._exchange.request_json(
                "Custom menu provisioning",
                "POST",
                CUSTOM_MENUS_PATH,
                json=self.build_payload(location_id),
                headers=self._exchange.bearer_headers(bundle, json_body=True),
            )
        except ExchangeError as e:
            raise ProvisioningError(e.message, status_code=e.status_code, body=e.body) from e

        logger.info("Custom menu %r provisioned for %s", self.title, location_id or "agency")
        return result
