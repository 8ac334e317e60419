"""Tests for the Google OAuth client using a mocked HTTP transport"""

import httpx
import pytest
from tenacity import wait_none

from finance_tracker.config import GoogleOAuthSettings
from finance_tracker.exceptions import UnauthorizedError, UpstreamUnavailableError
from finance_tracker.services.auth import GoogleOAuthClient


def make_client(handler) -> GoogleOAuthClient:
    settings = GoogleOAuthSettings(client_id="client-id", client_secret="client-secret")
    return GoogleOAuthClient(settings, transport=httpx.MockTransport(handler))


@pytest.fixture(autouse=True)
def no_retry_wait(monkeypatch):
    monkeypatch.setattr(GoogleOAuthClient._request.retry, "wait", wait_none())


class TestRefreshAccessToken:
    """Tests for the refresh_token grant."""

    async def test_successful_refresh(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = request.content.decode()
            return httpx.Response(200, json={"access_token": "new-token", "expires_in": 3599})

        token = await make_client(handler).refresh_access_token("refresh-1")

        assert token.access_token == "new-token"
        assert token.refresh_token is None
        assert token.expires_in == 3599
        assert seen["url"] == "https://oauth2.googleapis.com/token"
        assert "grant_type=refresh_token" in seen["body"]
        assert "refresh_token=refresh-1" in seen["body"]
        assert "client_id=client-id" in seen["body"]

    async def test_missing_refresh_token(self):
        client = make_client(lambda request: httpx.Response(200, json={}))
        with pytest.raises(UnauthorizedError, match="No refresh token available"):
            await client.refresh_access_token("")

    async def test_rejected_refresh(self):
        client = make_client(lambda request: httpx.Response(400, json={"error": "invalid_grant"}))
        with pytest.raises(UnauthorizedError, match="400"):
            await client.refresh_access_token("refresh-1")

    async def test_provider_error(self):
        client = make_client(lambda request: httpx.Response(503))
        with pytest.raises(UpstreamUnavailableError):
            await client.refresh_access_token("refresh-1")

    async def test_malformed_response(self):
        client = make_client(lambda request: httpx.Response(200, text="not json"))
        with pytest.raises(UpstreamUnavailableError, match="Invalid token response"):
            await client.refresh_access_token("refresh-1")

    async def test_transport_failure_is_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(UpstreamUnavailableError, match="unreachable"):
            await make_client(handler).refresh_access_token("refresh-1")
        assert len(calls) == 3

    async def test_transient_failure_recovers(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ReadTimeout("timed out", request=request)
            return httpx.Response(200, json={"access_token": "new-token"})

        token = await make_client(handler).refresh_access_token("refresh-1")

        assert token.access_token == "new-token"
        assert len(calls) == 2


class TestProbeSheetAccess:
    """Tests for the spreadsheet access probe."""

    async def test_probe_sends_bearer_token(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["path"] = request.url.path
            seen["fields"] = request.url.params["fields"]
            return httpx.Response(200, json={"spreadsheetId": "sheet-1"})

        status = await make_client(handler).probe_sheet_access("token-1", "sheet-1")

        assert status == 200
        assert seen["auth"] == "Bearer token-1"
        assert seen["path"] == "/v4/spreadsheets/sheet-1"
        assert seen["fields"] == "spreadsheetId"

    async def test_probe_reports_expired_token(self):
        client = make_client(lambda request: httpx.Response(401))
        assert await client.probe_sheet_access("stale", "sheet-1") == 401

    async def test_probe_transport_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(UpstreamUnavailableError, match="Sheets API unreachable"):
            await make_client(handler).probe_sheet_access("token-1", "sheet-1")
