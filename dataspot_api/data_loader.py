import asyncio
from typing import Any, Dict, Iterable, List, Optional, Tuple

from config import DashboardConfig
from .client import SpotifyClient
from .models import (
    Credential,
    DashboardData,
    ProfilePage,
    ProfileSnapshot,
    RankedItem,
    SearchHit,
    SearchResults,
)

SEARCH_KINDS = ("artist", "album", "playlist")


class ProfileDataLoader:
    """Fetches the dashboard data for one credential.

    Independent reads run concurrently and are joined with asyncio.gather:
    the first failure propagates as-is (DataError from the client) and the
    sibling requests are left to finish with their results discarded.

    Rankings keep Spotify's order (most-played first). Only one bounded page
    is requested per ranking.
    """

    def __init__(self, client: SpotifyClient, config: DashboardConfig):
        self.client = client
        self.config = config

    async def load_all(self, credential: Credential) -> DashboardData:
        top_artists, top_tracks, profile = await asyncio.gather(
            self.load_top_artists(credential),
            self.load_top_tracks(credential),
            self.load_profile(credential),
        )
        return DashboardData(top_artists=top_artists, top_tracks=top_tracks, profile=profile)

    async def load_top_artists(
        self,
        credential: Credential,
        *,
        limit: Optional[int] = None,
        time_range: Optional[str] = None,
    ) -> Tuple[RankedItem, ...]:
        page = await self.client.top_items(
            credential,
            "artists",
            limit=limit or self.config.top_items_limit,
            time_range=time_range or self.config.top_items_time_range,
        )
        return self._rank(page.get("items"), self._normalize_artist)

    async def load_top_tracks(
        self,
        credential: Credential,
        *,
        limit: Optional[int] = None,
        time_range: Optional[str] = None,
    ) -> Tuple[RankedItem, ...]:
        page = await self.client.top_items(
            credential,
            "tracks",
            limit=limit or self.config.top_items_limit,
            time_range=time_range or self.config.top_items_time_range,
        )
        return self._rank(page.get("items"), self._normalize_track)

    async def load_profile(self, credential: Credential) -> ProfileSnapshot:
        me, playlists = await asyncio.gather(
            self.client.me(credential),
            self.client.current_user_playlists(credential, limit=self.config.playlists_limit),
        )
        return self._normalize_profile(me, playlists)

    async def load_profile_page(self, credential: Credential) -> ProfilePage:
        """Profile plus the recent (short-term by default) top tracks."""

        profile, tracks = await asyncio.gather(
            self.load_profile(credential),
            self.load_top_tracks(
                credential,
                limit=self.config.profile_tracks_limit,
                time_range=self.config.profile_tracks_time_range,
            ),
        )
        return ProfilePage(profile=profile, top_tracks=tracks)

    async def search(
        self,
        credential: Credential,
        query: str,
        kinds: Optional[Iterable[str]] = None,
    ) -> SearchResults:
        query = (query or "").strip()
        kinds = [k for k in (kinds if kinds is not None else SEARCH_KINDS) if k in SEARCH_KINDS]
        if not query or not kinds:
            return SearchResults(query=query)

        payload = await self.client.search(credential, query, kinds, limit=self.config.search_limit)

        def hits(kind: str) -> Tuple[SearchHit, ...]:
            block = payload.get(f"{kind}s") or {}
            items = block.get("items") if isinstance(block, dict) else None
            out: List[SearchHit] = []
            for item in items or []:
                # Spotify pads playlist results with nulls.
                if not isinstance(item, dict) or not item.get("id"):
                    continue
                out.append(
                    SearchHit(
                        kind=kind,
                        id=str(item.get("id")),
                        name=str(item.get("name") or ""),
                        image_url=self._first_image_url(item.get("images")),
                    )
                )
            return tuple(out)

        return SearchResults(
            query=query,
            artists=hits("artist") if "artist" in kinds else (),
            albums=hits("album") if "album" in kinds else (),
            playlists=hits("playlist") if "playlist" in kinds else (),
        )

    # -----------------
    # Normalization
    # -----------------

    @staticmethod
    def _rank(items: Any, normalize) -> Tuple[RankedItem, ...]:
        if not isinstance(items, list):
            return ()
        ranked = []
        for obj in items:
            item = normalize(obj, len(ranked) + 1)
            if item is not None:
                ranked.append(item)
        return tuple(ranked)

    @staticmethod
    def _first_image_url(images: Any, index: int = 0) -> Optional[str]:
        if not isinstance(images, list) or not images:
            return None
        # Fall back to the largest image when the requested size is missing.
        img = images[index] if index < len(images) else images[0]
        if isinstance(img, dict) and img.get("url"):
            return str(img["url"])
        return None

    @staticmethod
    def _popularity(value: Any) -> int:
        try:
            return max(0, min(100, int(value)))
        except (TypeError, ValueError):
            return 0

    @staticmethod
    def _artist_names(artists: Any) -> Tuple[str, ...]:
        if not isinstance(artists, list):
            return ()
        names = []
        for a in artists:
            if isinstance(a, dict) and a.get("name"):
                names.append(str(a.get("name")).strip())
        return tuple(n for n in names if n)

    @classmethod
    def _normalize_artist(cls, obj: Any, rank: int) -> Optional[RankedItem]:
        if not isinstance(obj, dict) or not obj.get("name"):
            return None

        followers = obj.get("followers")
        genres = obj.get("genres") if isinstance(obj.get("genres"), list) else []

        return RankedItem(
            kind="artist",
            id=str(obj.get("id") or ""),
            name=str(obj.get("name")),
            popularity=cls._popularity(obj.get("popularity")),
            rank=rank,
            genres=tuple(str(g) for g in genres if g),
            image_url=cls._first_image_url(obj.get("images")),
            follower_count=(followers or {}).get("total") if isinstance(followers, dict) else None,
        )

    @classmethod
    def _normalize_track(cls, obj: Any, rank: int) -> Optional[RankedItem]:
        if not isinstance(obj, dict) or not obj.get("name"):
            return None

        album = obj.get("album") if isinstance(obj.get("album"), dict) else {}
        duration = obj.get("duration_ms")

        return RankedItem(
            kind="track",
            id=str(obj.get("id") or ""),
            name=str(obj.get("name")),
            popularity=cls._popularity(obj.get("popularity")),
            rank=rank,
            artists=cls._artist_names(obj.get("artists")),
            album_name=album.get("name") or None,
            album_image_url=cls._first_image_url(album.get("images")),
            duration_ms=int(duration) if isinstance(duration, (int, float)) else None,
        )

    @classmethod
    def _normalize_profile(cls, me: Dict[str, Any], playlists: Dict[str, Any]) -> ProfileSnapshot:
        me = me or {}
        followers = me.get("followers")

        try:
            playlist_count = int((playlists or {}).get("total") or 0)
        except (TypeError, ValueError):
            playlist_count = 0

        return ProfileSnapshot(
            display_name=str(me.get("display_name") or me.get("id") or ""),
            avatar_url=cls._first_image_url(me.get("images")),
            playlist_count=playlist_count,
            follower_count=int((followers or {}).get("total") or 0) if isinstance(followers, dict) else 0,
            user_id=me.get("id"),
            country=me.get("country"),
            product=me.get("product"),
        )
