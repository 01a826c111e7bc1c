import webbrowser

import questionary

from dataspot_api.auth import RedirectLocation, spotify_app_setup_instructions
from dataspot_api.data_loader import SEARCH_KINDS
from dataspot_api.errors import AuthError, DashboardError
from dataspot_api.models import RankedItem
from dataspot_api.session import DashboardSession
from utils.charts import (
    format_duration,
    render_popularity_chart,
    render_profile_header,
    render_track_list,
)
from utils.logger import log_info, log_success, log_warning, log_error


def _report(e: DashboardError) -> None:
    if isinstance(e, AuthError) and e.requires_login:
        log_error(f"{e.message} Choose 'Log in with Spotify' to continue.")
    else:
        log_error(e.message if hasattr(e, "message") else str(e))


def spotify_setup_help(session: DashboardSession) -> None:
    creds = session.token_manager.check_credentials()
    log_info("\n" + "=" * 72)
    log_info("SPOTIFY WEB API SETUP")
    log_info("=" * 72)
    log_info(spotify_app_setup_instructions(redirect_uri=creds.get("redirect_uri") or "http://localhost:3000"))
    log_info("Current config status:")
    log_info(f"- client id: {'SET' if creds.get('client_id') else 'NOT SET'}")
    log_info(f"- redirect uri: {creds.get('redirect_uri') or ''}")
    log_info(f"- scopes: {', '.join(creds.get('scopes') or [])}")
    log_info("")
    if not creds.get("ok"):
        log_warning(creds.get("message") or "Spotify credentials are incomplete.")
    else:
        log_info(creds.get("message") or "Spotify credentials look OK.")
    log_info("=" * 72 + "\n")


async def login(session: DashboardSession) -> bool:
    """Interactive implicit-grant login: open the authorize URL, paste the redirect URL back."""

    creds = session.token_manager.check_credentials()
    if not creds.get("ok"):
        log_warning(creds.get("message") or "Spotify credentials are incomplete.")
        spotify_setup_help(session)
        return False

    auth_url = session.token_manager.build_authorization_url()

    log_info("\n" + "=" * 72)
    log_info("SPOTIFY LOGIN")
    log_info("=" * 72)
    log_info("1) A browser login will open (or you can copy/paste the URL).")
    log_info("2) After approving, Spotify redirects you to your redirect URI.")
    log_info("3) Copy the FULL redirect URL (it contains #access_token=...) and paste it here.")
    log_info("")
    log_info(f"Authorize URL:\n{auth_url}")
    log_info("=" * 72)

    if await questionary.confirm("Open the authorize URL in your default browser?", default=True).ask_async():
        if not webbrowser.open(auth_url):
            log_warning("Could not open a browser. Copy the URL above instead.")

    pasted = (await questionary.text("Paste the full redirect URL:").ask_async() or "").strip()
    if not pasted:
        log_warning("No redirect URL provided. Cancelling login.")
        return False

    location = RedirectLocation.from_pasted(pasted)
    if not location.has_fragment():
        log_error("That URL has no #access_token=... part. Paste the URL from the address bar after approving.")
        return False

    await session.start(location)
    if not session.is_authenticated:
        if session.error is not None:
            _report(session.error)
        else:
            log_error("Spotify did not return an access token in that URL. Please log in again.")
        return False

    log_success("Logged in to Spotify.")
    return await reload_data(session)


async def reload_data(session: DashboardSession) -> bool:
    try:
        data = await session.load_dashboard()
    except DashboardError as e:
        _report(e)
        return False

    name = data.profile.display_name
    log_info(f"Signed in as: {name}" if name else "Signed in.")
    log_info(f"Loaded {len(data.top_artists)} top artists and {len(data.top_tracks)} top tracks.")
    return True


async def _ensure_data(session: DashboardSession) -> bool:
    if session.data is not None:
        return True
    return await reload_data(session)


def _artist_details(artist: RankedItem) -> None:
    print(f"\n{artist.rank}. {artist.name}")
    print(f"   Popularity: {artist.popularity}/100")
    if artist.follower_count is not None:
        print(f"   Followers: {artist.follower_count:,}")
    if artist.genres:
        print(f"   Genres: {', '.join(artist.genres)}")
    if artist.image_url:
        print(f"   Image: {artist.image_url}")


def _track_details(track: RankedItem) -> None:
    print(f"\n{track.rank}. {track.name}")
    print(f"   Artists: {track.artist_names}")
    if track.album_name:
        print(f"   Album: {track.album_name}")
    print(f"   Duration: {format_duration(track.duration_ms)}")
    print(f"   Popularity: {track.popularity}/100")
    if track.album_image_url:
        print(f"   Artwork: {track.album_image_url}")


async def _pick_item(message: str, items, show) -> None:
    while True:
        choices = [questionary.Choice(f"{i.rank}. {i.name}", value=i) for i in items]
        choices.append(questionary.Choice("Back", value=None))
        picked = await questionary.select(message, choices=choices).ask_async()
        if picked is None:
            return
        show(picked)


async def show_top_artists(session: DashboardSession) -> None:
    if not await _ensure_data(session):
        return

    width = session.loader.config.chart_width
    print("\n🎤 Your Top Artists (popularity)\n")
    for line in render_popularity_chart(session.data.top_artists, width=width):
        print(line)
    print()

    if session.data.top_artists:
        await _pick_item("Select an artist for details:", session.data.top_artists, _artist_details)


async def show_top_tracks(session: DashboardSession) -> None:
    if not await _ensure_data(session):
        return

    print("\n🎵 Your Top Tracks\n")
    for line in render_track_list(session.data.top_tracks):
        print(line)
    print()

    if session.data.top_tracks:
        await _pick_item("Select a track for details:", session.data.top_tracks, _track_details)


async def show_profile(session: DashboardSession) -> None:
    try:
        page = await session.load_profile_page()
    except DashboardError as e:
        _report(e)
        return

    print()
    for line in render_profile_header(page.profile):
        print(line)

    preview = session.loader.config.profile_preview_count
    show_all = False
    while True:
        tracks = page.top_tracks if show_all else page.top_tracks[:preview]
        print("\nYour top tracks this month (only visible to you)\n")
        for line in render_track_list(tracks, show_album=True):
            print(line)
        print()

        if len(page.top_tracks) <= preview:
            return

        toggle = "Show less" if show_all else "Show all"
        choice = await questionary.select("Profile", choices=[toggle, "Back"]).ask_async()
        if choice != toggle:
            return
        show_all = not show_all


async def search(session: DashboardSession) -> None:
    kinds = await questionary.checkbox(
        "Search for:",
        choices=[questionary.Choice(k.capitalize() + "s", value=k, checked=True) for k in SEARCH_KINDS],
    ).ask_async()
    if not kinds:
        log_warning("Select at least one type to search for.")
        return

    query = (await questionary.text("Search Spotify:").ask_async() or "").strip()
    if not query:
        log_warning("Search query is empty.")
        return

    try:
        results = await session.search(query, kinds)
    except DashboardError as e:
        _report(e)
        return

    if results.is_empty():
        log_info(f"No results for '{query}'.")
        return

    for title, hits in (("Artists", results.artists), ("Albums", results.albums), ("Playlists", results.playlists)):
        if not hits:
            continue
        print(f"\n{title}:")
        for hit in hits:
            print(f"  - {hit.name}")
    print()
