import logging
from typing import Any, Dict, Optional

from config import DashboardConfig
from .auth import (
    RedirectLocation,
    build_authorize_url,
    check_spotify_credentials,
    extract_credential,
    generate_state,
    refresh_access_token,
)
from .client import SpotifyClient
from .errors import AuthError, AuthErrorKind, DataError, DataErrorKind
from .models import Credential
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "spotify_access_token"
REFRESH_TOKEN_KEY = "spotify_refresh_token"


class TokenManager:
    """Obtains, validates, persists and refreshes the Spotify credential."""

    def __init__(
        self,
        config: DashboardConfig,
        *,
        client: Optional[SpotifyClient] = None,
        store: Optional[KeyValueStore] = None,
    ):
        self.config = config
        self.client = client or SpotifyClient(config)
        self.store = store or KeyValueStore(config.storage_file)
        self._pending_state: Optional[str] = None

    # -----------------
    # Login
    # -----------------

    def build_authorization_url(self) -> str:
        """Authorize URL with a fresh state nonce; the nonce is kept for the redirect check."""

        state = generate_state()
        url = build_authorize_url(self.config, state=state)
        self._pending_state = state
        return url

    def extract_credential_from_location(self, location: RedirectLocation) -> Optional[Credential]:
        """Credential from the redirect fragment, or None if there isn't one.

        Clears the fragment from `location`. Raises AuthError(INVALID) if
        Spotify reported an error or the state nonce does not match.
        """

        credential = extract_credential(location, expected_state=self._pending_state)
        if credential is not None:
            self._pending_state = None
        return credential

    def check_credentials(self) -> Dict[str, Any]:
        return check_spotify_credentials(self.config)

    # -----------------
    # Validation / refresh
    # -----------------

    async def validation_error(self, credential: Optional[Credential]) -> Optional[AuthError]:
        """Probe /me with the credential; None means it is valid.

        401 (or an empty bearer) gives AuthError(INVALID). Anything else that
        prevents a 2xx answer gives AuthError(NETWORK_FAILURE): the credential
        may still be fine.
        """

        if credential is None or not credential.is_usable():
            return AuthError(AuthErrorKind.INVALID, "No access token provided. Please log in.")

        try:
            await self.client.me(credential)
        except DataError as e:
            if e.kind == DataErrorKind.AUTH_EXPIRED:
                logger.info("Access token rejected by Spotify (401)")
                return AuthError(AuthErrorKind.INVALID)
            logger.warning("Could not validate access token: %s", e)
            return AuthError(AuthErrorKind.NETWORK_FAILURE, f"Could not reach Spotify to verify your login: {e}")

        return None

    async def validate(self, credential: Optional[Credential]) -> bool:
        return (await self.validation_error(credential)) is None

    async def refresh(self, credential: Optional[Credential]) -> Credential:
        """Exchange the credential's refresh string for a new credential.

        Raises AuthError(EXPIRED) if there is nothing to refresh with, refresh
        is disabled, or Spotify rejects the exchange.
        """

        if not self.config.auto_refresh:
            raise AuthError(AuthErrorKind.EXPIRED, "Spotify token expired and spotify_auto_refresh is disabled.")

        if credential is None or not credential.refresh_token:
            raise AuthError(AuthErrorKind.EXPIRED)

        try:
            return await refresh_access_token(self.client, self.config, refresh_token=credential.refresh_token)
        except AuthError as e:
            if e.kind == AuthErrorKind.EXPIRED:
                raise
            raise AuthError(AuthErrorKind.EXPIRED, e.message) from e

    # -----------------
    # Persistence
    # -----------------

    def load_persisted(self) -> Optional[Credential]:
        """Credential from durable storage if caching is enabled and one is stored."""

        if not self.config.cache_tokens:
            return None

        access_token = self.store.get(ACCESS_TOKEN_KEY)
        if not access_token:
            return None

        return Credential(access_token=access_token, refresh_token=self.store.get(REFRESH_TOKEN_KEY) or None)

    def persist(self, credential: Credential) -> bool:
        if not self.config.cache_tokens:
            return False

        ok = self.store.set(ACCESS_TOKEN_KEY, credential.access_token)
        if credential.refresh_token:
            ok = self.store.set(REFRESH_TOKEN_KEY, credential.refresh_token) and ok
        else:
            ok = self.store.remove(REFRESH_TOKEN_KEY) and ok

        if not ok:
            logger.warning("Could not persist Spotify credential to %s", self.store.path)
        return ok

    def clear(self) -> bool:
        ok = self.store.remove(ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY)
        if not ok:
            logger.warning("Could not clear stored Spotify credential in %s", self.store.path)
        return ok
