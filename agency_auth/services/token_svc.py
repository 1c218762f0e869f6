"""Token exchange client for the GHL authorization server.

Handles the two exchanges the install flow needs:
1. Authorization code -> agency (Company) grant
2. Agency grant -> location grant (``/oauth/locationToken``)

plus the installed-locations listing used to find a sub-account when the
callback does not name one. Every call is bounded by a timeout and never
retried here; GHL redelivers callbacks and webhooks on its own.
"""

from __future__ import annotations

import logging
import secrets
from typing import Any
from urllib.parse import urlencode

import httpx

from ..config import AgencyAuthSettings
from ..credentials import CredentialBundle, GrantLevel
from ..errors import ExchangeError

logger = logging.getLogger(__name__)

TOKEN_PATH = "/oauth/token"
LOCATION_TOKEN_PATH = "/oauth/locationToken"
INSTALLED_LOCATIONS_PATH = "/oauth/installedLocations"


def _error_body(response: httpx.Response) -> Any:
    try:
        return response.json() if response.content else {}
    except ValueError:
        return {"raw_response": response.text[:500]}


class TokenExchangeClient:
    """OAuth client for a GHL Marketplace App installed at agency level.

    Usage:
        client = TokenExchangeClient.from_settings(settings)

        agency = await client.exchange_authorization_code(code)
        locations = await client.list_installed_locations(agency, agency.company_id)
        location = await client.derive_location_token(agency, agency.company_id, "L1")
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        *,
        app_id: str = "",
        scopes: list[str] | None = None,
        base_url: str = "https://services.leadconnectorhq.com",
        authorize_url: str = "https://marketplace.leadconnectorhq.com/oauth/chooselocation",
        api_version: str = "2021-07-28",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.app_id = app_id
        self.scopes = scopes or []
        self.base_url = base_url.rstrip("/")
        self.authorize_url = authorize_url
        self.api_version = api_version
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings_obj: AgencyAuthSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "TokenExchangeClient":
        return cls(
            client_id=settings_obj.client_id,
            client_secret=settings_obj.client_secret,
            redirect_uri=settings_obj.redirect_uri,
            app_id=settings_obj.app_id,
            scopes=settings_obj.scope_list,
            base_url=settings_obj.api_base_url,
            authorize_url=settings_obj.authorize_url,
            api_version=settings_obj.api_version,
            timeout=settings_obj.http_timeout_seconds,
            transport=transport,
        )

    def http_client(self) -> httpx.AsyncClient:
        """A short-lived client bound to the API base URL and timeout."""
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )

    def bearer_headers(self, bundle: CredentialBundle, *, json_body: bool = False) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {bundle.access_token}",
            "Version": self.api_version,
        }
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    def get_authorization_url(self, state: str | None = None) -> str:
        """URL of the marketplace consent page for an agency install."""
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "state": state or secrets.token_urlsafe(32),
        }
        if self.scopes:
            params["scope"] = " ".join(self.scopes)
        return f"{self.authorize_url}?{urlencode(params)}"

    async def request_json(self, what: str, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Send one request, mapping every failure to ExchangeError."""
        try:
            async with self.http_client() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise ExchangeError(
                f"{what} timed out after {self.timeout:g}s",
                status_code=504,
                body={"error": "timeout"},
            ) from e
        except httpx.HTTPError as e:
            raise ExchangeError(
                f"{what} failed: {e}",
                status_code=502,
                body={"error": "network_error", "detail": str(e)},
            ) from e

        if not response.is_success:
            raise ExchangeError(
                f"{what} failed: {response.status_code}",
                status_code=response.status_code,
                body=_error_body(response),
            )

        try:
            return response.json()
        except ValueError as e:
            raise ExchangeError(
                f"{what} returned a non-JSON body",
                status_code=502,
                body={"raw_response": response.text[:500]},
            ) from e

    def _parse_bundle(self, what: str, data: Any) -> CredentialBundle:
        if not isinstance(data, dict):
            raise ExchangeError(
                f"Invalid {what} response: expected an object",
                status_code=502,
                body={"error": "invalid_response"},
            )
        token = data.get("access_token")
        if not isinstance(token, str) or not token.strip():
            raise ExchangeError(
                f"Invalid {what} response: no access_token",
                status_code=502,
                body={"error": "invalid_response", "response_keys": sorted(data)},
            )
        try:
            return CredentialBundle.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise ExchangeError(
                f"Invalid {what} response: missing {e}",
                status_code=502,
                body={"error": "invalid_response", "response_keys": sorted(data)},
            ) from e

    async def exchange_authorization_code(
        self,
        code: str,
        expected_grant_level: GrantLevel = GrantLevel.COMPANY,
    ) -> CredentialBundle:
        """Exchange a one-time code for a grant.

        The grant level actually returned may differ from the one requested
        (e.g. a sub-account user installed the app); that is logged, not
        treated as an error.

        Raises:
            ExchangeError: If GHL rejects the code or cannot be reached
        """
        data = await self.request_json(
            "Token exchange",
            "POST",
            TOKEN_PATH,
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "grant_type": "authorization_code",
                "code": code,
                "user_type": expected_grant_level.value,
                "redirect_uri": self.redirect_uri,
            },
            headers={
                "Accept": "application/json",
                "Content-Type": "application/x-www-form-urlencoded",
            },
        )
        bundle = self._parse_bundle("token exchange", data)
        logger.info("Token exchange succeeded: %s", bundle.summary())

        if bundle.grant_level is not expected_grant_level:
            logger.warning(
                "Requested a %s grant but received userType=%r",
                expected_grant_level.value,
                data.get("userType"),
            )
        return bundle

    async def derive_location_token(
        self,
        agency_bundle: CredentialBundle,
        company_id: str,
        location_id: str,
    ) -> CredentialBundle:
        """Obtain a location grant using the agency access token.

        Raises:
            ExchangeError: If the agency token is rejected or the location
                is not part of the company
        """
        data = await self.request_json(
            "Location token derivation",
            "POST",
            LOCATION_TOKEN_PATH,
            data={"companyId": company_id, "locationId": location_id},
            headers={
                **self.bearer_headers(agency_bundle),
                "Content-Type": "application/x-www-form-urlencoded",
            },
        )
        bundle = self._parse_bundle("location token", data)
        if bundle.grant_level is None:
            bundle.grant_level = GrantLevel.LOCATION
        if not bundle.location_id:
            bundle.location_id = location_id
        if not bundle.company_id:
            bundle.company_id = company_id
        logger.info("Derived location token: %s", bundle.summary())
        return bundle

    async def list_installed_locations(
        self,
        agency_bundle: CredentialBundle,
        company_id: str,
    ) -> list[dict[str, Any]]:
        """Locations of the company where this app is installed, in GHL's order.

        Raises:
            ExchangeError: If the listing call fails
        """
        params: dict[str, Any] = {"companyId": company_id, "isInstalled": "true"}
        if self.app_id:
            params["appId"] = self.app_id

        data = await self.request_json(
            "Installed locations lookup",
            "GET",
            INSTALLED_LOCATIONS_PATH,
            params=params,
            headers=self.bearer_headers(agency_bundle),
        )
        locations = data.get("locations") if isinstance(data, dict) else None
        if not isinstance(locations, list):
            return []
        return [loc for loc in locations if isinstance(loc, dict)]
