import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class Credential:
    """Access credential for the Spotify Web API.

    Never mutated: a refresh produces a new Credential that replaces the old
    reference.
    """

    access_token: str
    token_type: str = "Bearer"
    expires_at: Optional[float] = None
    refresh_token: Optional[str] = None
    scope: Optional[str] = None

    @staticmethod
    def from_token_response(payload: Dict[str, Any], *, now: Optional[float] = None) -> "Credential":
        """Convert a token payload (redirect fragment or token endpoint JSON).

        Spotify returns:
        - access_token
        - token_type
        - expires_in (seconds, optional hint)
        - refresh_token (token endpoint only)
        - scope (space-delimited string)
        """

        now_ts = float(time.time() if now is None else now)
        expires_at = None
        raw_expires_in = payload.get("expires_in")
        if raw_expires_in not in (None, ""):
            try:
                expires_at = now_ts + float(raw_expires_in)
            except (TypeError, ValueError):
                expires_at = None

        return Credential(
            access_token=str(payload.get("access_token") or ""),
            token_type=str(payload.get("token_type") or "Bearer"),
            expires_at=expires_at,
            refresh_token=payload.get("refresh_token") or None,
            scope=payload.get("scope") or None,
        )

    def is_usable(self) -> bool:
        return bool(self.access_token and self.access_token.strip())

    def is_expired(self, *, skew_seconds: int = 60) -> bool:
        if self.expires_at is None:
            return False
        return time.time() >= float(self.expires_at) - float(skew_seconds)

    def authorization_header(self) -> str:
        # The Web API only accepts the Bearer scheme, whatever token_type says.
        return f"Bearer {self.access_token}"

    def __repr__(self) -> str:
        return f"Credential(token_type={self.token_type!r}, expires_at={self.expires_at!r}, has_refresh={bool(self.refresh_token)})"



@dataclass(frozen=True)
class ProfileSnapshot:
    display_name: str
    avatar_url: Optional[str] = None
    playlist_count: int = 0
    follower_count: int = 0
    user_id: Optional[str] = None
    country: Optional[str] = None
    product: Optional[str] = None


@dataclass(frozen=True)
class RankedItem:
    """One entry of a top-artists or top-tracks ranking.

    `rank` is the 1-based position in the response; Spotify returns the
    ranking most-played first and the loader never re-sorts it.
    """

    kind: str
    id: str
    name: str
    popularity: int
    rank: int
    # tracks
    artists: Tuple[str, ...] = ()
    album_name: Optional[str] = None
    album_image_url: Optional[str] = None
    duration_ms: Optional[int] = None
    # artists
    genres: Tuple[str, ...] = ()
    image_url: Optional[str] = None
    follower_count: Optional[int] = None

    @property
    def artist_names(self) -> str:
        return ", ".join(self.artists)


@dataclass(frozen=True)
class DashboardData:
    top_artists: Tuple[RankedItem, ...]
    top_tracks: Tuple[RankedItem, ...]
    profile: ProfileSnapshot


@dataclass(frozen=True)
class ProfilePage:
    profile: ProfileSnapshot
    top_tracks: Tuple[RankedItem, ...]


@dataclass(frozen=True)
class SearchHit:
    kind: str
    id: str
    name: str
    image_url: Optional[str] = None


@dataclass(frozen=True)
class SearchResults:
    query: str
    artists: Tuple[SearchHit, ...] = ()
    albums: Tuple[SearchHit, ...] = ()
    playlists: Tuple[SearchHit, ...] = ()

    def is_empty(self) -> bool:
        return not (self.artists or self.albums or self.playlists)
