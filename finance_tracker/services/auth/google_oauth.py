"""
Google OAuth Client

Keeps tenant access tokens usable for the nightly batch: probes a
tenant's spreadsheet with its current token and, when Google answers
401, trades the stored refresh token for a new access token.

Transport failures are retried with backoff; a rejected refresh is a
tenant problem, not an outage, and is reported as UnauthorizedError.
"""

from typing import Optional

import httpx
import structlog
from pydantic import BaseModel
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from finance_tracker.config import GoogleOAuthSettings, get_settings
from finance_tracker.exceptions import UnauthorizedError, UpstreamUnavailableError


logger = structlog.get_logger(__name__)


class RefreshedToken(BaseModel):
    """Token endpoint response for a refresh_token grant."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None


class GoogleOAuthClient:
    """Client for Google's token endpoint and a lightweight Sheets probe."""

    def __init__(
        self,
        settings: Optional[GoogleOAuthSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings or get_settings().google_oauth
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._settings.http_timeout_seconds,
            transport=self._transport,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        async with self._client() as client:
            return await client.request(method, url, **kwargs)

    async def refresh_access_token(self, refresh_token: str) -> RefreshedToken:
        """
        Exchange a refresh token for a new access token.

        Raises:
            UnauthorizedError: The provider rejected the refresh token
            UpstreamUnavailableError: Transport failure or a 5xx answer
        """
        if not refresh_token:
            raise UnauthorizedError("No refresh token available")

        try:
            response = await self._request(
                "POST",
                self._settings.token_url,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                    "client_id": self._settings.client_id,
                    "client_secret": self._settings.client_secret,
                },
            )
        except httpx.TransportError as e:
            raise UpstreamUnavailableError(f"Token endpoint unreachable: {e}") from e

        if response.status_code >= 500:
            raise UpstreamUnavailableError(f"Token endpoint error: {response.status_code}")
        if response.status_code != 200:
            logger.warning("token_refresh_rejected", status_code=response.status_code)
            raise UnauthorizedError(f"Token refresh rejected: {response.status_code}")

        try:
            return RefreshedToken.model_validate(response.json())
        except ValueError as e:
            raise UpstreamUnavailableError(f"Invalid token response: {e}") from e

    async def probe_sheet_access(self, access_token: str, sheet_id: str) -> int:
        """
        Check whether `access_token` can read spreadsheet `sheet_id`.

        Returns:
            The HTTP status code of the probe (200 when access works)

        Raises:
            UpstreamUnavailableError: Transport failure
        """
        try:
            response = await self._request(
                "GET",
                f"{self._settings.sheets_api_base}/{sheet_id}",
                params={"fields": "spreadsheetId"},
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.TransportError as e:
            raise UpstreamUnavailableError(f"Sheets API unreachable: {e}") from e
        return response.status_code
