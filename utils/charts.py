"""Plain-text renderings of the dashboard data."""

from typing import Iterable, List, Optional, Sequence

from dataspot_api.models import ProfileSnapshot, RankedItem

BAR_CHAR = "█"


def format_duration(duration_ms: Optional[int]) -> str:
    """Milliseconds as m:ss (e.g. 215000 -> '3:35')."""
    if duration_ms is None or duration_ms < 0:
        return "-:--"
    minutes = int(duration_ms) // 60000
    seconds = (int(duration_ms) % 60000) // 1000
    return f"{minutes}:{seconds:02d}"


def _fit(text: str, width: int) -> str:
    text = text or ""
    if len(text) <= width:
        return text.ljust(width)
    return text[: max(0, width - 1)] + "…"


def render_popularity_chart(items: Sequence[RankedItem], *, width: int = 40, label_width: int = 24) -> List[str]:
    """Horizontal bar chart of popularity (0-100), one line per item in rank order."""

    if not items:
        return ["(nothing to show yet)"]

    lines = []
    for item in items:
        bar_len = round(width * max(0, min(100, item.popularity)) / 100)
        lines.append(f"{item.rank:>3}. {_fit(item.name, label_width)} {BAR_CHAR * bar_len} {item.popularity}")
    return lines


def render_track_list(tracks: Iterable[RankedItem], *, show_album: bool = False, name_width: int = 32) -> List[str]:
    lines = []
    for track in tracks:
        line = f"{track.rank:>3}. {_fit(track.name, name_width)} {_fit(track.artist_names, 28)}"
        if show_album:
            line += f" {_fit(track.album_name or '', 24)}"
        line += f" {format_duration(track.duration_ms):>6}"
        lines.append(line.rstrip())
    return lines or ["(no tracks)"]


def render_profile_header(profile: ProfileSnapshot) -> List[str]:
    lines = [
        "Profile",
        profile.display_name or "(unnamed)",
        f"{profile.playlist_count} Playlists • {profile.follower_count} Followers",
    ]
    if profile.avatar_url:
        lines.append(f"Avatar: {profile.avatar_url}")
    return lines
