import logging
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional, TypeVar

from .auth import RedirectLocation
from .client import SpotifyClient
from .data_loader import ProfileDataLoader
from .errors import AuthError, AuthErrorKind, DataError, DataErrorKind, DashboardError
from .models import Credential, DashboardData, ProfilePage, SearchResults
from .storage import KeyValueStore
from .token_manager import TokenManager

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AuthState(str, Enum):
    START = "start"
    VALIDATING_FROM_URL = "validating_from_url"
    VALIDATING_FROM_STORAGE = "validating_from_storage"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"
    LOGGED_OUT = "logged_out"


STABLE_STATES = (AuthState.AUTHENTICATED, AuthState.LOGGED_OUT)


class DashboardSession:
    """Per-run authentication state machine in front of the data loader.

    start() resolves the credential (redirect fragment first, then storage)
    into AUTHENTICATED or LOGGED_OUT. Reads go through _with_refresh(): a 401,
    or a credential already past its expiry hint, triggers exactly one
    refresh, and a failed refresh or a 401 after it logs the user out.
    """

    def __init__(self, token_manager: TokenManager, loader: ProfileDataLoader):
        self.token_manager = token_manager
        self.loader = loader
        self.state = AuthState.START
        self.credential: Optional[Credential] = None
        self.error: Optional[DashboardError] = None
        self.data: Optional[DashboardData] = None

    @property
    def is_authenticated(self) -> bool:
        return self.state == AuthState.AUTHENTICATED and self.credential is not None

    def _transition(self, new_state: AuthState) -> None:
        logger.debug("Auth state %s -> %s", self.state.value, new_state.value)
        self.state = new_state

    def _set_logged_out(self, error: Optional[DashboardError] = None, *, clear_storage: bool = False) -> None:
        if clear_storage:
            self.token_manager.clear()
        self.credential = None
        self.data = None
        self.error = error
        if error is not None:
            logger.warning("Logged out: %s", error)
        self._transition(AuthState.LOGGED_OUT)

    def _set_authenticated(self, credential: Credential, *, persist: bool) -> None:
        self.credential = credential
        self.error = None
        if persist:
            self.token_manager.persist(credential)
        self._transition(AuthState.AUTHENTICATED)

    # -----------------
    # Startup
    # -----------------

    async def start(self, location: Optional[RedirectLocation] = None) -> AuthState:
        """Recover a credential from the redirect fragment, else from storage."""

        self._transition(AuthState.START)
        self.error = None

        try:
            from_url = self.token_manager.extract_credential_from_location(location) if location is not None else None
        except AuthError as e:
            self._set_logged_out(e)
            return self.state

        if from_url is not None:
            self._transition(AuthState.VALIDATING_FROM_URL)
            error = await self.token_manager.validation_error(from_url)
            if error is None:
                self._set_authenticated(from_url, persist=True)
            else:
                self._set_logged_out(error)
            return self.state

        stored = self.token_manager.load_persisted()
        if stored is None:
            self._set_logged_out()
            return self.state

        self._transition(AuthState.VALIDATING_FROM_STORAGE)
        error = await self.token_manager.validation_error(stored)
        if error is None:
            self._set_authenticated(stored, persist=False)
        else:
            # Only a rejected token is cleared; a network failure keeps it for next time.
            self._set_logged_out(error, clear_storage=error.kind == AuthErrorKind.INVALID)
        return self.state

    async def aclose(self) -> None:
        await self.token_manager.client.aclose()

    def logout(self) -> None:
        logger.info("Logging out")
        self._set_logged_out(clear_storage=True)

    # -----------------
    # Reads
    # -----------------

    async def _refresh_or_logout(self) -> Credential:
        self._transition(AuthState.REFRESHING)
        try:
            refreshed = await self.token_manager.refresh(self.credential)
        except AuthError as e:
            self._set_logged_out(e, clear_storage=True)
            raise
        self._set_authenticated(refreshed, persist=True)
        return refreshed

    async def _with_refresh(self, op: Callable[[Credential], Awaitable[T]]) -> T:
        if not self.is_authenticated:
            raise AuthError(AuthErrorKind.INVALID, "Not logged in.")

        credential = self.credential
        refreshed = False
        if credential.is_expired() and credential.refresh_token and self.token_manager.config.auto_refresh:
            logger.info("Access token is past its expiry; refreshing before the request")
            credential = await self._refresh_or_logout()
            refreshed = True

        while True:
            try:
                result = await op(credential)
            except DataError as e:
                if e.kind != DataErrorKind.AUTH_EXPIRED:
                    self.error = e
                    raise
                if refreshed:
                    expired = AuthError(AuthErrorKind.EXPIRED)
                    self._set_logged_out(expired, clear_storage=True)
                    raise expired from e
                logger.info("Spotify returned 401; refreshing the access token once")
                credential = await self._refresh_or_logout()
                refreshed = True
                continue
            self.error = None
            return result

    async def load_dashboard(self) -> DashboardData:
        data = await self._with_refresh(self.loader.load_all)
        self.data = data
        return data

    async def load_profile_page(self) -> ProfilePage:
        return await self._with_refresh(self.loader.load_profile_page)

    async def search(self, query: str, kinds: Optional[Iterable[str]] = None) -> SearchResults:
        kinds = list(kinds) if kinds is not None else None
        return await self._with_refresh(lambda credential: self.loader.search(credential, query, kinds))


def build_session(config, *, http_client=None) -> DashboardSession:
    """Wire client, storage, token manager and loader for one DashboardConfig."""

    client = SpotifyClient(config, http_client=http_client)
    token_manager = TokenManager(config, client=client, store=KeyValueStore(config.storage_file))
    return DashboardSession(token_manager, ProfileDataLoader(client, config))
