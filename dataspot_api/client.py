import logging
from typing import Any, Dict, Iterable, Optional

import httpx

from config import DashboardConfig
from .errors import AuthError, AuthErrorKind, DataError, DataErrorKind
from .models import Credential

logger = logging.getLogger(__name__)

TOP_ITEM_KINDS = ("artists", "tracks")


class SpotifyClient:
    """Thin async Spotify Web API client.

    Every read takes the Credential to use explicitly; the client never holds
    one. Failures are mapped to DataError:
    - 401: AUTH_EXPIRED
    - other 4xx/5xx: UPSTREAM with the status code
    - timeout: TIMEOUT
    - transport failure (no response): UPSTREAM without a status code
    """

    def __init__(self, config: DashboardConfig, *, http_client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._http = http_client
        self._owns_http = http_client is None

    def _get_http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.request_timeout),
                follow_redirects=False,
            )
        return self._http

    async def aclose(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    # -----------------
    # HTTP helpers
    # -----------------

    async def get_json(
        self,
        path: str,
        credential: Credential,
        *,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """GET an API path with the bearer credential and return parsed JSON."""

        if credential is None or not credential.is_usable():
            raise DataError(DataErrorKind.AUTH_EXPIRED, message="No access token provided.")

        url = f"{self.config.api_base_url}{path}"
        query = {k: str(v) for k, v in (params or {}).items() if v is not None}

        try:
            resp = await self._get_http().get(
                url,
                params=query,
                headers={
                    "Authorization": credential.authorization_header(),
                    "Accept": "application/json",
                },
                timeout=self.config.request_timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning("GET %s timed out after %ss", path, self.config.request_timeout)
            raise DataError(DataErrorKind.TIMEOUT) from e
        except httpx.HTTPError as e:
            logger.warning("GET %s failed: %s", path, e)
            raise DataError(DataErrorKind.UPSTREAM, None, f"Spotify API request failed: {e}") from e

        status = resp.status_code
        if status == 401:
            logger.debug("GET %s -> 401", path)
            raise DataError(DataErrorKind.AUTH_EXPIRED, 401)

        if status >= 400:
            logger.warning("GET %s -> HTTP %s", path, status)
            raise DataError(DataErrorKind.UPSTREAM, status, f"Spotify API error {status}: {resp.text[:200]}")

        if not resp.content:
            return {}

        try:
            payload = resp.json()
        except ValueError as e:
            raise DataError(DataErrorKind.UPSTREAM, status, f"Spotify API response was not JSON (status {status})") from e

        if not isinstance(payload, dict):
            raise DataError(DataErrorKind.UPSTREAM, status, "Spotify API response was not an object")

        return payload

    async def post_form(self, url: str, form: Dict[str, Any]) -> Dict[str, Any]:
        """POST a form to the accounts service (token exchange).

        A rejected exchange raises AuthError(EXPIRED); a request that never got
        an answer raises AuthError(NETWORK_FAILURE).
        """

        data = {k: str(v) for k, v in (form or {}).items() if v is not None}

        try:
            resp = await self._get_http().post(
                url,
                data=data,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.config.request_timeout,
            )
        except httpx.HTTPError as e:
            raise AuthError(AuthErrorKind.NETWORK_FAILURE, f"Spotify token request failed: {e}") from e

        if resp.status_code >= 400:
            logger.warning("Token exchange rejected (HTTP %s)", resp.status_code)
            raise AuthError(
                AuthErrorKind.EXPIRED,
                f"Spotify token request failed (HTTP {resp.status_code}). Please log in again.",
            )

        try:
            payload = resp.json()
        except ValueError as e:
            raise AuthError(AuthErrorKind.EXPIRED, "Spotify token response was not JSON.") from e

        if not isinstance(payload, dict):
            raise AuthError(AuthErrorKind.EXPIRED, "Spotify token response was not an object.")

        return payload

    # -----------------
    # Convenience endpoints
    # -----------------

    async def me(self, credential: Credential) -> Dict[str, Any]:
        return await self.get_json("/me", credential)

    async def current_user_playlists(self, credential: Credential, *, limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        return await self.get_json("/me/playlists", credential, params={"limit": limit, "offset": offset})

    async def top_items(
        self,
        credential: Credential,
        kind: str,
        *,
        limit: int = 20,
        time_range: str = "medium_term",
    ) -> Dict[str, Any]:
        """One page of the user's top artists or tracks, most-played first."""

        if kind not in TOP_ITEM_KINDS:
            raise ValueError(f"Unknown top item kind: {kind}")
        return await self.get_json(
            f"/me/top/{kind}",
            credential,
            params={"limit": min(50, int(limit)), "time_range": time_range},
        )

    async def search(
        self,
        credential: Credential,
        query: str,
        types: Iterable[str],
        *,
        limit: int = 10,
    ) -> Dict[str, Any]:
        return await self.get_json(
            "/search",
            credential,
            params={"q": query, "type": ",".join(types), "limit": min(50, int(limit))},
        )
