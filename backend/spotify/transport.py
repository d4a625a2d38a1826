"""Raw HTTP transport for the Spotify Web API.

Every call takes the bearer token explicitly; token lifecycle lives in
:class:`spotify.client.RefreshingTransport`. HTTP failures are mapped onto the
shared error taxonomy:

- 401                 -> TransientAuthError
- 404                 -> NotFoundError
- other >= 400, I/O   -> ProviderError
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from shared.errors import NotFoundError, ProviderError, TransientAuthError

logger = logging.getLogger(__name__)

API_BASE = "https://api.spotify.com/v1"
TOKEN_URL = "https://accounts.spotify.com/api/token"


@dataclass
class TokenRefreshResult:
    """Result of a token refresh operation."""

    access_token: str
    refresh_token: str | None = None
    expires_in: int = 0


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return error.get("message") or f"HTTP {response.status_code}"
    if isinstance(error, str):
        return data.get("error_description") or error
    return f"HTTP {response.status_code}"


class SpotifyTransport:
    """Client for interacting with the Spotify Web API.

    Manages a shared httpx client for connection reuse.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        http: httpx.AsyncClient | None = None,
        api_base: str = API_BASE,
        token_url: str = TOKEN_URL,
    ) -> None:
        if not client_id or not client_secret:
            logger.warning("Spotify client credentials are not configured; token refresh will fail")

        self.client_id = client_id
        self.client_secret = client_secret
        self.api_base = api_base.rstrip("/")
        self.token_url = token_url

        # Shared HTTP client, reuses TCP connections across requests
        self._own_http = http is None
        self._http = http or httpx.AsyncClient(timeout=10.0)

    async def close(self) -> None:
        """Close the shared HTTP client. Call on shutdown."""
        if self._own_http:
            await self._http.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        token: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send one API request. Returns the decoded JSON body, or None when empty."""
        try:
            response = await self._http.request(
                method,
                f"{self.api_base}/{path.lstrip('/')}",
                params=params,
                json=json,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.TimeoutException as e:
            raise ProviderError(f"Spotify {method} /{path} timed out") from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Spotify {method} /{path} failed: {e}") from e

        status = response.status_code
        if status == 401:
            raise TransientAuthError(_error_message(response))
        if status == 404:
            raise NotFoundError(_error_message(response), status_code=status)
        if status >= 400:
            message = _error_message(response)
            logger.warning(f"Spotify {method} /{path} -> {status}: {message}")
            raise ProviderError(message, status_code=status)

        if status == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            # Player endpoints answer some calls with a non-JSON body
            return None

    async def refresh(self, refresh_token: str) -> TokenRefreshResult:
        """Exchange a refresh token for a new access token.

        Raises TransientAuthError when Spotify refuses the refresh.
        """
        try:
            response = await self._http.post(
                self.token_url,
                data={"grant_type": "refresh_token", "refresh_token": refresh_token},
                auth=(self.client_id, self.client_secret),
            )
        except httpx.HTTPError as e:
            raise TransientAuthError(f"Token refresh failed: {e}") from e

        if response.status_code != 200:
            message = _error_message(response)
            logger.error(f"Spotify token refresh failed: {message}")
            raise TransientAuthError(f"Token refresh failed: {message}")

        try:
            data = response.json()
        except ValueError as e:
            raise TransientAuthError("Token refresh returned a non-JSON body") from e
        access_token = data.get("access_token")
        if not access_token:
            raise TransientAuthError("No access_token in refresh response")

        return TokenRefreshResult(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or None,
            expires_in=int(data.get("expires_in") or 0),
        )
