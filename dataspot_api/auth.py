import logging
import secrets
import urllib.parse
from typing import Any, Dict, Iterable, Optional

from config import DashboardConfig
from .errors import AuthError, AuthErrorKind
from .models import Credential

logger = logging.getLogger(__name__)

AUTHORIZE_PATH = "/authorize"
TOKEN_PATH = "/api/token"


def generate_state() -> str:
    """Anti-replay nonce sent as `state` and expected back in the fragment."""
    return secrets.token_urlsafe(16).rstrip("=")


def build_authorize_url(
    config: DashboardConfig,
    *,
    state: str,
    scopes: Optional[Iterable[str]] = None,
    show_dialog: Optional[bool] = None,
) -> str:
    """Return the implicit-grant authorize URL (response_type=token)."""

    if not config.client_id:
        raise ValueError("Missing Spotify client id (spotify_client_id or SPOTIFY_CLIENT_ID)")
    if not config.redirect_uri:
        raise ValueError("Missing config.spotify_redirect_uri")

    scope_list = list(scopes if scopes is not None else config.scopes)
    scope_str = " ".join([str(s).strip() for s in scope_list if str(s).strip()])
    dialog = config.show_dialog if show_dialog is None else show_dialog

    params: Dict[str, str] = {
        "client_id": config.client_id,
        "response_type": "token",
        "redirect_uri": config.redirect_uri,
        "show_dialog": "true" if dialog else "false",
    }
    if scope_str:
        params["scope"] = scope_str
    if state:
        params["state"] = str(state)

    return f"{config.accounts_base_url}{AUTHORIZE_PATH}?{urllib.parse.urlencode(params, quote_via=urllib.parse.quote)}"


def parse_fragment(fragment: str) -> Dict[str, str]:
    """Parse `key=value&key=value` (leading '#' optional) with URL-decoding.

    Later duplicates win. Pairs without a key are skipped.
    """

    fragment = (fragment or "").strip()
    if fragment.startswith("#"):
        fragment = fragment[1:]

    out: Dict[str, str] = {}
    for pair in fragment.split("&"):
        if not pair:
            continue
        key, _, value = pair.partition("=")
        key = urllib.parse.unquote_plus(key)
        if not key:
            continue
        out[key] = urllib.parse.unquote_plus(value)
    return out


class RedirectLocation:
    """The URL Spotify redirected the browser to.

    The CLI equivalent of the page location: the user pastes it, the token
    manager reads its fragment and then clears it so the token is not kept
    around in history.
    """

    def __init__(self, url: str):
        self.url = str(url or "").strip()

    @classmethod
    def from_pasted(cls, text: str) -> "RedirectLocation":
        """Accept a full redirect URL (with or without scheme), a bare `#fragment`, or `access_token=...`."""

        text = str(text or "").strip()
        if "#" in text:
            return cls(text)
        if "access_token=" in text or "error=" in text:
            return cls(f"#{text}")
        return cls(text)

    @property
    def fragment(self) -> str:
        _, sep, frag = self.url.partition("#")
        return frag if sep else ""

    def has_fragment(self) -> bool:
        return bool(self.fragment)

    def clear_fragment(self) -> None:
        self.url = self.url.partition("#")[0]

    def __repr__(self) -> str:
        # The fragment holds the token; never print it.
        return f"RedirectLocation({self.url.partition('#')[0]!r}, has_fragment={self.has_fragment()})"


def extract_credential(location: RedirectLocation, *, expected_state: Optional[str] = None) -> Optional[Credential]:
    """Read the implicit-grant fragment of `location` into a Credential.

    Returns None if there is no fragment or it holds no access_token. The
    fragment is cleared from the location whenever one was present.
    """

    if location is None or not location.has_fragment():
        return None

    params = parse_fragment(location.fragment)
    location.clear_fragment()

    if params.get("error"):
        raise AuthError(AuthErrorKind.INVALID, f"Spotify returned an error: {params['error']}")

    if not params.get("access_token"):
        logger.debug("Redirect fragment had no access_token")
        return None

    returned_state = params.get("state")
    if expected_state and returned_state and returned_state != expected_state:
        raise AuthError(
            AuthErrorKind.INVALID,
            "OAuth state mismatch. Paste the redirect URL from the most recent login attempt.",
        )

    return Credential.from_token_response(params)


async def refresh_access_token(client, config: DashboardConfig, *, refresh_token: str) -> Credential:
    """Exchange a refresh token for a new Credential (public client, no secret)."""

    payload = await client.post_form(
        f"{config.accounts_base_url}{TOKEN_PATH}",
        {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": config.client_id,
        },
    )

    token = Credential.from_token_response(payload)
    if not token.is_usable():
        raise AuthError(AuthErrorKind.EXPIRED, "Spotify token refresh returned no access token.")

    # Spotify may omit refresh_token on refresh; keep existing.
    if not token.refresh_token:
        token = Credential(
            access_token=token.access_token,
            token_type=token.token_type,
            expires_at=token.expires_at,
            refresh_token=refresh_token,
            scope=token.scope,
        )

    return token


def check_spotify_credentials(config: DashboardConfig) -> Dict[str, Any]:
    """Validate the OAuth settings and return a structured status dict."""

    status: Dict[str, Any] = {
        "ok": True,
        "client_id": config.client_id,
        "redirect_uri": config.redirect_uri,
        "scopes": list(config.scopes),
        "message": "Spotify credentials look OK.",
    }

    if not config.client_id:
        status["ok"] = False
        status["message"] = (
            "Missing Spotify client id.\n"
            "Set spotify_client_id in config.json or SPOTIFY_CLIENT_ID in the environment / .env file."
        )
    elif not config.redirect_uri:
        status["ok"] = False
        status["message"] = (
            "Missing spotify_redirect_uri in config.json.\n"
            "Recommended default: http://localhost:3000"
        )
    elif "user-top-read" not in config.scopes:
        status["message"] = "spotify_scopes does not include user-top-read; top artists/tracks will be refused."

    return status


def spotify_app_setup_instructions(*, redirect_uri: str = "http://localhost:3000") -> str:
    """Return user-facing setup instructions for creating a Spotify Developer app."""

    redirect_uri = str(redirect_uri or "").strip() or "http://localhost:3000"
    return (
        "Spotify app setup:\n"
        "1) Go to https://developer.spotify.com/dashboard\n"
        "2) Create an app (or select an existing app)\n"
        f"3) Add this Redirect URI in the app settings: {redirect_uri}\n"
        "4) Copy the Client ID into config.json as spotify_client_id (or SPOTIFY_CLIENT_ID in .env)\n\n"
        "Notes:\n"
        "- Login uses the implicit grant: the token comes back in the redirect URL after '#'.\n"
        "- No client secret is needed or stored.\n"
        "- Nothing has to listen on the redirect URI; just copy the URL from the address bar.\n"
    )
