import json
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

CONFIG_PATH = "config.json"

CLIENT_ID_ENV_VAR = "SPOTIFY_CLIENT_ID"

TIME_RANGES = ["short_term", "medium_term", "long_term"]

# Default configuration values
DEFAULT_CONFIG = {
    # Spotify Web API (implicit grant)
    # The client id can also come from the SPOTIFY_CLIENT_ID environment variable.
    "spotify_client_id": "",
    "spotify_redirect_uri": "http://localhost:3000",
    "spotify_scopes": [
        "user-top-read",
        "user-read-private",
        "playlist-read-private",
    ],
    "spotify_show_dialog": True,
    "spotify_cache_tokens": True,
    "spotify_auto_refresh": True,
    "accounts_base_url": "https://accounts.spotify.com",
    "api_base_url": "https://api.spotify.com/v1",
    "request_timeout": 10,

    # Local state
    "storage_file": "data/dashboard_storage.json",

    # Dashboard data
    "top_items_limit": 20,
    "top_items_time_range": "medium_term",
    "profile_tracks_limit": 50,
    "profile_tracks_time_range": "short_term",
    "profile_preview_count": 4,
    "playlists_limit": 50,
    "search_limit": 10,

    # Display
    "chart_width": 40,

    # Logging
    "log_level": "INFO",
    "log_file": "",
}

# Validation rules for config fields
CONFIG_SCHEMA = {
    "spotify_client_id": {"type": str, "required": False},
    "spotify_redirect_uri": {"type": str, "required": True},
    "spotify_scopes": {"type": list, "required": True, "element_type": str},
    "spotify_show_dialog": {"type": bool, "required": False},
    "spotify_cache_tokens": {"type": bool, "required": False},
    "spotify_auto_refresh": {"type": bool, "required": False},
    "accounts_base_url": {"type": str, "required": False},
    "api_base_url": {"type": str, "required": False},
    "request_timeout": {"type": (int, float), "required": False, "min": 1, "max": 120},

    "storage_file": {"type": str, "required": True},

    "top_items_limit": {"type": int, "required": False, "min": 1, "max": 50},
    "top_items_time_range": {"type": str, "required": False, "choices": TIME_RANGES},
    "profile_tracks_limit": {"type": int, "required": False, "min": 1, "max": 50},
    "profile_tracks_time_range": {"type": str, "required": False, "choices": TIME_RANGES},
    "profile_preview_count": {"type": int, "required": False, "min": 1, "max": 50},
    "playlists_limit": {"type": int, "required": False, "min": 1, "max": 50},
    "search_limit": {"type": int, "required": False, "min": 1, "max": 50},

    "chart_width": {"type": int, "required": False, "min": 10, "max": 200},

    "log_level": {"type": str, "required": False, "choices": ["DEBUG", "INFO", "WARNING", "ERROR"]},
    "log_file": {"type": str, "required": False},
}


@dataclass(frozen=True)
class DashboardConfig:
    """Settings handed to the API components at construction time."""

    client_id: str
    redirect_uri: str
    scopes: Tuple[str, ...]
    show_dialog: bool = True
    cache_tokens: bool = True
    auto_refresh: bool = True
    accounts_base_url: str = DEFAULT_CONFIG["accounts_base_url"]
    api_base_url: str = DEFAULT_CONFIG["api_base_url"]
    request_timeout: float = 10.0
    storage_file: str = DEFAULT_CONFIG["storage_file"]
    top_items_limit: int = 20
    top_items_time_range: str = "medium_term"
    profile_tracks_limit: int = 50
    profile_tracks_time_range: str = "short_term"
    profile_preview_count: int = 4
    playlists_limit: int = 50
    search_limit: int = 10
    chart_width: int = 40

    @staticmethod
    def from_dict(config: Optional[Dict[str, Any]], *, environ: Optional[Dict[str, str]] = None) -> "DashboardConfig":
        """Build a DashboardConfig from a config.json dict, filling defaults.

        An empty spotify_client_id falls back to the SPOTIFY_CLIENT_ID
        environment variable.
        """

        merged = {**DEFAULT_CONFIG, **(config or {})}
        env = os.environ if environ is None else environ

        client_id = str(merged.get("spotify_client_id") or "").strip()
        if not client_id:
            client_id = str(env.get(CLIENT_ID_ENV_VAR, "")).strip()

        scopes = tuple(str(s).strip() for s in (merged.get("spotify_scopes") or []) if str(s).strip())

        return DashboardConfig(
            client_id=client_id,
            redirect_uri=str(merged.get("spotify_redirect_uri") or "").strip(),
            scopes=scopes,
            show_dialog=bool(merged.get("spotify_show_dialog", True)),
            cache_tokens=bool(merged.get("spotify_cache_tokens", True)),
            auto_refresh=bool(merged.get("spotify_auto_refresh", True)),
            accounts_base_url=str(merged["accounts_base_url"]).rstrip("/"),
            api_base_url=str(merged["api_base_url"]).rstrip("/"),
            request_timeout=float(merged["request_timeout"]),
            storage_file=str(merged["storage_file"]),
            top_items_limit=int(merged["top_items_limit"]),
            top_items_time_range=str(merged["top_items_time_range"]),
            profile_tracks_limit=int(merged["profile_tracks_limit"]),
            profile_tracks_time_range=str(merged["profile_tracks_time_range"]),
            profile_preview_count=int(merged["profile_preview_count"]),
            playlists_limit=int(merged["playlists_limit"]),
            search_limit=int(merged["search_limit"]),
            chart_width=int(merged["chart_width"]),
        )


def load_config() -> Dict[str, Any]:
    """Load configuration from file, applying defaults for missing fields."""
    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file {CONFIG_PATH} not found.")

    with open(CONFIG_PATH, "r", encoding="utf-8") as f:
        config = json.load(f)

    # Apply defaults for missing fields
    for key, value in DEFAULT_CONFIG.items():
        if key not in config:
            config[key] = value

    return config


def save_config(config: Dict[str, Any]) -> bool:
    """Save configuration to file."""
    try:
        with open(CONFIG_PATH, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        return True
    except OSError as e:
        raise IOError(f"Failed to save config: {e}")


def validate_config(config: Dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate configuration against schema.
    Returns (is_valid, list_of_errors).
    """
    errors = []

    for key, rules in CONFIG_SCHEMA.items():
        # Check required fields
        if rules.get("required", False) and key not in config:
            errors.append(f"Missing required field: {key}")
            continue

        if key not in config:
            continue

        value = config[key]

        # bool is an int subclass; don't let True pass as a limit.
        expected_type = rules.get("type")
        if isinstance(value, bool) and expected_type is not bool:
            errors.append(f"Field '{key}' must not be a boolean, got {value}")
            continue

        if expected_type and not isinstance(value, expected_type):
            type_names = expected_type.__name__ if not isinstance(expected_type, tuple) else "/".join(t.__name__ for t in expected_type)
            errors.append(f"Field '{key}' must be {type_names}, got {type(value).__name__}")
            continue

        if isinstance(value, list) and "element_type" in rules:
            elem_type = rules["element_type"]
            bad_elems = [v for v in value if not isinstance(v, elem_type)]
            if bad_elems:
                errors.append(
                    f"Field '{key}' must be a list of {elem_type.__name__}, got invalid elements: {bad_elems}"
                )
                continue

        # Choices check
        if "choices" in rules and value not in rules["choices"]:
            errors.append(f"Field '{key}' must be one of {rules['choices']}, got '{value}'")

        # Range check for numeric values
        if isinstance(value, (int, float)):
            if "min" in rules and value < rules["min"]:
                errors.append(f"Field '{key}' must be >= {rules['min']}, got {value}")
            if "max" in rules and value > rules["max"]:
                errors.append(f"Field '{key}' must be <= {rules['max']}, got {value}")

    return len(errors) == 0, errors


def update_config(key: str, value: Any) -> tuple[bool, str]:
    """
    Update a single config field with validation.
    Returns (success, message).
    """
    config = load_config()

    if key not in CONFIG_SCHEMA:
        return False, f"Unknown config key: {key}"

    test_config = config.copy()
    test_config[key] = value

    is_valid, errors = validate_config(test_config)
    if not is_valid:
        return False, f"Validation failed: {', '.join(errors)}"

    config[key] = value
    save_config(config)

    return True, f"Updated '{key}' to '{value}'"


def reset_to_defaults() -> tuple[bool, str]:
    """Reset configuration to default values."""
    try:
        save_config(DEFAULT_CONFIG.copy())
        return True, "Configuration reset to defaults"
    except IOError as e:
        return False, f"Failed to reset config: {e}"
