"""Tests for the GHL token exchange client."""

from __future__ import annotations

import logging
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from agency_auth.credentials import CredentialBundle, GrantLevel
from agency_auth.errors import ExchangeError
from agency_auth.services.token_svc import TokenExchangeClient


@pytest.fixture
def agency_bundle():
    return CredentialBundle(access_token="tok1", grant_level=GrantLevel.COMPANY, company_id="C1")


class TestAuthorizationUrl:
    def test_contains_client_and_redirect(self, exchange: TokenExchangeClient):
        url = exchange.get_authorization_url(state="xyz")
        parsed = urlparse(url)
        params = parse_qs(parsed.query)

        assert url.startswith("https://marketplace.leadconnectorhq.com/oauth/chooselocation?")
        assert params["client_id"] == ["client123"]
        assert params["redirect_uri"] == ["https://app.example.com/oauth/callback"]
        assert params["response_type"] == ["code"]
        assert params["state"] == ["xyz"]
        assert params["scope"] == ["locations.readonly oauth.write"]

    def test_generates_state(self, exchange: TokenExchangeClient):
        params = parse_qs(urlparse(exchange.get_authorization_url()).query)
        assert len(params["state"][0]) > 20


class TestExchangeAuthorizationCode:
    @pytest.mark.asyncio
    async def test_success_posts_form(self, exchange: TokenExchangeClient, ghl):
        bundle = await exchange.exchange_authorization_code("abc")

        assert bundle.access_token == "tok1"
        assert bundle.is_agency
        assert bundle.company_id == "C1"
        assert bundle.extra["userId"] == "U1"

        (request,) = ghl.calls("/oauth/token")
        assert request.method == "POST"
        assert request.headers["content-type"] == "application/x-www-form-urlencoded"
        form = ghl.form(request)
        assert form == {
            "client_id": "client123",
            "client_secret": "secret456",
            "grant_type": "authorization_code",
            "code": "abc",
            "user_type": "Company",
            "redirect_uri": "https://app.example.com/oauth/callback",
        }

    @pytest.mark.asyncio
    async def test_grant_level_mismatch_is_logged_not_fatal(self, exchange, ghl, caplog):
        ghl.token_response = (
            200,
            {"access_token": "t", "refresh_token": "r", "userType": "Location", "locationId": "L7"},
        )

        with caplog.at_level(logging.WARNING):
            bundle = await exchange.exchange_authorization_code("abc")

        assert bundle.is_location
        assert bundle.location_id == "L7"
        assert "Requested a Company grant" in caplog.text

    @pytest.mark.asyncio
    async def test_error_response_raises(self, exchange, ghl):
        ghl.token_response = (401, {"error": "invalid_grant", "error_description": "bad code"})

        with pytest.raises(ExchangeError) as exc_info:
            await exchange.exchange_authorization_code("bad")

        assert exc_info.value.status_code == 401
        assert exc_info.value.http_status == 401
        assert exc_info.value.body["error"] == "invalid_grant"

    @pytest.mark.asyncio
    async def test_timeout_raises_gateway_timeout(self, exchange, ghl):
        ghl.token_response = httpx.ReadTimeout("timed out")

        with pytest.raises(ExchangeError) as exc_info:
            await exchange.exchange_authorization_code("abc")

        assert exc_info.value.status_code == 504
        assert exc_info.value.body == {"error": "timeout"}
        assert len(ghl.calls("/oauth/token")) == 1

    @pytest.mark.asyncio
    async def test_network_error_raises_bad_gateway(self, exchange, ghl):
        ghl.token_response = httpx.ConnectError("refused")

        with pytest.raises(ExchangeError) as exc_info:
            await exchange.exchange_authorization_code("abc")

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_missing_access_token_is_invalid_response(self, exchange, ghl):
        ghl.token_response = (200, {"refresh_token": "r"})

        with pytest.raises(ExchangeError) as exc_info:
            await exchange.exchange_authorization_code("abc")

        assert exc_info.value.body["error"] == "invalid_response"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", [None, "", "   ", 42])
    async def test_blank_access_token_is_invalid_response(self, exchange, ghl, token):
        ghl.token_response = (200, {"access_token": token, "userType": "Company", "companyId": "C1"})

        with pytest.raises(ExchangeError) as exc_info:
            await exchange.exchange_authorization_code("abc")

        assert exc_info.value.status_code == 502
        assert exc_info.value.body["error"] == "invalid_response"

    def test_timeout_comes_from_settings(self, exchange):
        assert exchange.timeout == 15.0


class TestDeriveLocationToken:
    @pytest.mark.asyncio
    async def test_sends_bearer_and_version(self, exchange, ghl, agency_bundle):
        bundle = await exchange.derive_location_token(agency_bundle, "C1", "L1")

        assert bundle.access_token == "loctok1"
        assert bundle.is_location
        assert bundle.location_id == "L1"

        (request,) = ghl.calls("/oauth/locationToken")
        assert request.headers["authorization"] == "Bearer tok1"
        assert request.headers["version"] == "2021-07-28"
        assert ghl.form(request) == {"companyId": "C1", "locationId": "L1"}

    @pytest.mark.asyncio
    async def test_fills_missing_identity_fields(self, exchange, ghl, agency_bundle):
        ghl.location_token_response = (200, {"access_token": "bare"})

        bundle = await exchange.derive_location_token(agency_bundle, "C1", "L1")

        assert bundle.grant_level is GrantLevel.LOCATION
        assert bundle.company_id == "C1"
        assert bundle.location_id == "L1"
        assert bundle.refresh_token == ""

    @pytest.mark.asyncio
    async def test_rejected_agency_token(self, exchange, ghl, agency_bundle):
        ghl.location_token_response = (401, {"message": "Invalid JWT"})

        with pytest.raises(ExchangeError) as exc_info:
            await exchange.derive_location_token(agency_bundle, "C1", "L1")

        assert exc_info.value.status_code == 401


class TestInstalledLocations:
    @pytest.mark.asyncio
    async def test_lists_in_server_order(self, exchange, ghl, agency_bundle):
        ghl.installed_locations_response = (
            200,
            {"locations": [{"_id": "L2"}, {"_id": "L1"}, "junk"], "count": 2},
        )

        locations = await exchange.list_installed_locations(agency_bundle, "C1")

        assert [loc["_id"] for loc in locations] == ["L2", "L1"]
        (request,) = ghl.calls("/oauth/installedLocations")
        assert request.method == "GET"
        assert request.url.params["companyId"] == "C1"
        assert request.url.params["appId"] == "app789"
        assert request.url.params["isInstalled"] == "true"
        assert request.headers["authorization"] == "Bearer tok1"

    @pytest.mark.asyncio
    async def test_unexpected_shape_is_empty(self, exchange, ghl, agency_bundle):
        ghl.installed_locations_response = (200, {"data": []})

        assert await exchange.list_installed_locations(agency_bundle, "C1") == []
