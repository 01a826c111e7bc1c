import questionary

from dataspot_api.session import DashboardSession
from menus.config_menu import config_menu
from menus.dashboard_menu import (
    login,
    reload_data,
    search,
    show_profile,
    show_top_artists,
    show_top_tracks,
    spotify_setup_help,
)
from utils.logger import log_info, log_success, log_error

LOGGED_OUT_CHOICES = [
    "Log in with Spotify",
    "Spotify app setup help",
    "Config Menu",
    "Exit",
]

LOGGED_IN_CHOICES = [
    "Top Artists",
    "Top Tracks",
    "Profile",
    "Search",
    "Reload data",
    "Log out",
    "Config Menu",
    "Exit",
]


def menu_choices(session: DashboardSession) -> list:
    return LOGGED_IN_CHOICES if session.is_authenticated else LOGGED_OUT_CHOICES


async def main_menu(session: DashboardSession) -> str:
    """Displays the main menu and returns the user's choice."""
    title = "🎧 DataSpot — your top artists and tracks"
    if not session.is_authenticated:
        title += " (not logged in)"
    choice = await questionary.select(title, choices=menu_choices(session)).ask_async()
    return choice or "Exit"


async def resume_session(session: DashboardSession) -> None:
    """Pick up a stored login from a previous run, if there is one."""
    await session.start()
    if session.is_authenticated:
        log_success("Resumed your previous Spotify login.")
        await reload_data(session)
    elif session.error is not None:
        log_error(session.error.message)


async def run_dashboard(session: DashboardSession, config: dict) -> dict:
    """Main loop. Returns the (possibly edited) config dict."""
    await resume_session(session)

    while True:
        choice = await main_menu(session)

        if choice == "Log in with Spotify":
            await login(session)

        elif choice == "Spotify app setup help":
            spotify_setup_help(session)

        elif choice == "Top Artists":
            await show_top_artists(session)

        elif choice == "Top Tracks":
            await show_top_tracks(session)

        elif choice == "Profile":
            await show_profile(session)

        elif choice == "Search":
            await search(session)

        elif choice == "Reload data":
            await reload_data(session)

        elif choice == "Log out":
            session.logout()
            log_success("Logged out. Stored Spotify token removed.")

        elif choice == "Config Menu":
            config = await config_menu(config)

        elif choice == "Exit":
            log_info("Exiting DataSpot...")
            break

        else:
            log_error("Invalid choice.")

    return config
