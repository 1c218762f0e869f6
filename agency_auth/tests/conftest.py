"""Async test fixtures for agency auth tests using SQLite and a fake GHL API."""

from __future__ import annotations

from typing import Any
from urllib.parse import parse_qs

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from agency_auth.app import create_app
from agency_auth.config import AgencyAuthSettings
from agency_auth.services.menu_svc import CustomMenuProvisioner
from agency_auth.services.store import CredentialStore
from agency_auth.services.token_svc import TokenExchangeClient

SAMPLE_COMPANY_ID = "C1"
SAMPLE_LOCATION_ID = "L1"

AGENCY_TOKEN_RESPONSE = {
    "access_token": "tok1",
    "token_type": "Bearer",
    "expires_in": 86399,
    "refresh_token": "refresh1",
    "scope": "locations.readonly oauth.readonly oauth.write",
    "userType": "Company",
    "companyId": SAMPLE_COMPANY_ID,
    "userId": "U1",
    "isBulkInstallation": True,
}

LOCATION_TOKEN_RESPONSE = {
    "access_token": "loctok1",
    "token_type": "Bearer",
    "expires_in": 86399,
    "refresh_token": "locrefresh1",
    "scope": "contacts.readonly",
    "userType": "Location",
    "companyId": SAMPLE_COMPANY_ID,
    "locationId": SAMPLE_LOCATION_ID,
}


class FakeGHL:
    """Stands in for services.leadconnectorhq.com.

    Each response attribute is ``(status, json_body)`` or an exception to raise.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.token_response: Any = (200, dict(AGENCY_TOKEN_RESPONSE))
        self.location_token_response: Any = (200, dict(LOCATION_TOKEN_RESPONSE))
        self.installed_locations_response: Any = (
            200,
            {"locations": [{"_id": SAMPLE_LOCATION_ID, "name": "Main Street", "isInstalled": True}]},
        )
        self.custom_menu_response: Any = (201, {"id": "menu1"})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        routes = {
            "/oauth/token": "token_response",
            "/oauth/locationToken": "location_token_response",
            "/oauth/installedLocations": "installed_locations_response",
            "/custom-menus/": "custom_menu_response",
        }
        attr = routes.get(request.url.path)
        if attr is None:
            return httpx.Response(404, json={"message": "Not found"})
        result = getattr(self, attr)
        if isinstance(result, Exception):
            raise result
        status, body = result
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    @staticmethod
    def form(request: httpx.Request) -> dict[str, str]:
        return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


@pytest.fixture
def test_settings() -> AgencyAuthSettings:
    return AgencyAuthSettings(
        database_url="sqlite+aiosqlite://",
        client_id="client123",
        client_secret="secret456",
        redirect_uri="https://app.example.com/oauth/callback",
        app_id="app789",
        scopes="locations.readonly oauth.write",
        custom_menu_enabled=True,
        custom_menu_title="Reports",
        custom_menu_url="https://app.example.com/menu",
    )


@pytest.fixture
def ghl() -> FakeGHL:
    return FakeGHL()


@pytest.fixture
def exchange(test_settings: AgencyAuthSettings, ghl: FakeGHL) -> TokenExchangeClient:
    return TokenExchangeClient.from_settings(test_settings, transport=ghl.transport)


@pytest.fixture
def menu(test_settings: AgencyAuthSettings, exchange: TokenExchangeClient) -> CustomMenuProvisioner:
    return CustomMenuProvisioner.from_settings(test_settings, exchange)


@pytest_asyncio.fixture
async def store(tmp_path):
    st = CredentialStore.open(f"sqlite+aiosqlite:///{tmp_path / 'auth.db'}")
    await st.create_schema()
    yield st
    await st.close()


@pytest_asyncio.fixture
async def client(test_settings: AgencyAuthSettings, store: CredentialStore, ghl: FakeGHL):
    """HTTPX async test client against a freshly built app."""
    app = create_app(test_settings, store=store, transport=ghl.transport)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
