from enum import Enum
from typing import Optional


class AuthErrorKind(str, Enum):
    INVALID = "invalid"
    EXPIRED = "expired"
    NETWORK_FAILURE = "network_failure"


class DataErrorKind(str, Enum):
    AUTH_EXPIRED = "auth_expired"
    UPSTREAM = "upstream"
    TIMEOUT = "timeout"


class DashboardError(RuntimeError):
    """Base class for errors surfaced to the dashboard UI."""


class AuthError(DashboardError):
    """Credential could not be obtained, validated or refreshed."""

    def __init__(self, kind: AuthErrorKind, message: str = ""):
        self.kind = AuthErrorKind(kind)
        self.message = message or _AUTH_MESSAGES[self.kind]
        super().__init__(self.message)

    @property
    def requires_login(self) -> bool:
        """Invalid and expired credentials mean the user has to log in again."""
        return self.kind in (AuthErrorKind.INVALID, AuthErrorKind.EXPIRED)

    def __repr__(self) -> str:
        return f"AuthError({self.kind.value!r}, {self.message!r})"


class DataError(DashboardError):
    """A profile/ranking read failed."""

    def __init__(self, kind: DataErrorKind, status_code: Optional[int] = None, message: str = ""):
        self.kind = DataErrorKind(kind)
        self.status_code = status_code
        if not message:
            message = _DATA_MESSAGES[self.kind]
            if status_code is not None and self.kind == DataErrorKind.UPSTREAM:
                message = f"{message} (HTTP {status_code})"
        self.message = message
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"DataError({self.kind.value!r}, {self.status_code!r}, {self.message!r})"


_AUTH_MESSAGES = {
    AuthErrorKind.INVALID: "Spotify rejected the access token. Please log in again.",
    AuthErrorKind.EXPIRED: "Your Spotify session has expired. Please log in again.",
    AuthErrorKind.NETWORK_FAILURE: "Could not reach Spotify to verify your login.",
}

_DATA_MESSAGES = {
    DataErrorKind.AUTH_EXPIRED: "Access token expired or invalid.",
    DataErrorKind.UPSTREAM: "Spotify returned an error",
    DataErrorKind.TIMEOUT: "Spotify took too long to respond.",
}
