"""Spotify Web API side of the dashboard (implicit grant + top items)."""

from .auth import RedirectLocation
from .client import SpotifyClient
from .data_loader import ProfileDataLoader
from .errors import AuthError, AuthErrorKind, DataError, DataErrorKind, DashboardError
from .models import Credential, DashboardData, ProfilePage, ProfileSnapshot, RankedItem, SearchResults
from .session import AuthState, DashboardSession, build_session
from .storage import KeyValueStore
from .token_manager import TokenManager

__all__ = [
    "AuthError",
    "AuthErrorKind",
    "AuthState",
    "Credential",
    "DashboardData",
    "DashboardError",
    "DashboardSession",
    "DataError",
    "DataErrorKind",
    "KeyValueStore",
    "ProfileDataLoader",
    "ProfilePage",
    "ProfileSnapshot",
    "RankedItem",
    "RedirectLocation",
    "SearchResults",
    "SpotifyClient",
    "TokenManager",
    "build_session",
]
