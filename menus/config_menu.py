import questionary
from config import (
    load_config, validate_config, update_config, reset_to_defaults,
    CONFIG_SCHEMA
)
from utils.logger import log_info, log_error, log_success

CATEGORIES = {
    "Spotify Login": [
        "spotify_client_id", "spotify_redirect_uri", "spotify_scopes", "spotify_show_dialog",
        "spotify_cache_tokens", "spotify_auto_refresh",
    ],
    "Dashboard Data": [
        "top_items_limit", "top_items_time_range", "profile_tracks_limit",
        "profile_tracks_time_range", "profile_preview_count", "playlists_limit", "search_limit",
    ],
    "Network": ["accounts_base_url", "api_base_url", "request_timeout"],
    "Local Files & Logging": ["storage_file", "log_level", "log_file"],
    "Display": ["chart_width"],
}


async def config_menu(config: dict) -> dict:
    """
    Display the configuration menu and handle user selections.
    Returns the potentially updated config dict.
    """
    while True:
        choice = await questionary.select(
            "⚙️ Config Menu — What would you like to do?",
            choices=[
                "View current config",
                "Update a setting",
                "Reset to defaults",
                "Validate configuration",
                "Back"
            ]
        ).ask_async()

        if choice == "View current config":
            view_config(config)

        elif choice == "Update a setting":
            config = await update_setting_menu(config)

        elif choice == "Reset to defaults":
            config = await reset_config_menu(config)

        elif choice == "Validate configuration":
            validate_config_menu(config)

        else:
            break

    return config


def view_config(config: dict):
    """Display the current configuration in a readable format."""
    print("\n" + "=" * 50)
    print("📋 Current Configuration")
    print("=" * 50)

    for category, keys in CATEGORIES.items():
        print(f"\n{category}:")
        for key in keys:
            if key in config:
                value = config[key]
                if isinstance(value, bool):
                    value = "✓ Enabled" if value else "✗ Disabled"
                elif isinstance(value, list):
                    value = ", ".join(str(v) for v in value)
                elif key == "spotify_client_id" and not value:
                    value = "(not set, SPOTIFY_CLIENT_ID is used)"
                print(f"  {key}: {value}")

    print("\n" + "=" * 50)


def parse_setting_value(key: str, raw: str):
    """Convert text input to the type CONFIG_SCHEMA expects for `key`.

    Raises ValueError for numbers that don't parse.
    """
    schema = CONFIG_SCHEMA.get(key, {})
    expected = schema.get("type")
    raw = (raw or "").strip()

    if expected == int:
        return int(raw)
    if expected == (int, float):
        value = float(raw)
        return int(value) if value.is_integer() else value
    if expected == list:
        return [part.strip() for part in raw.replace(",", " ").split() if part.strip()]
    return raw


async def update_setting_menu(config: dict) -> dict:
    """Menu to update individual settings."""
    editable_keys = list(CONFIG_SCHEMA.keys())
    editable_keys.append("Back")

    key = await questionary.select(
        "Select setting to update:",
        choices=editable_keys
    ).ask_async()

    if key in (None, "Back"):
        return config

    schema = CONFIG_SCHEMA.get(key, {})
    current_value = config.get(key, "Not set")

    print(f"\nCurrent value: {current_value}")

    if "choices" in schema:
        new_value = await questionary.select(
            f"Select new value for {key}:",
            choices=schema["choices"]
        ).ask_async()

    elif schema.get("type") == bool:
        new_value = await questionary.confirm(
            f"Enable {key}?",
            default=current_value if isinstance(current_value, bool) else True
        ).ask_async()

    else:
        if isinstance(current_value, list):
            default = " ".join(str(v) for v in current_value)
        else:
            default = str(current_value) if current_value != "Not set" else ""

        hint = ""
        if "min" in schema or "max" in schema:
            hint = f" ({schema.get('min', 0)}-{schema.get('max', 9999)})"
        elif schema.get("type") == list:
            hint = " (space or comma separated)"

        raw = await questionary.text(f"Enter new value for {key}{hint}:", default=default).ask_async()
        if raw is None:
            return config

        try:
            new_value = parse_setting_value(key, raw)
        except ValueError:
            log_error("Invalid number format")
            return config

    if new_value is None:
        return config

    success, message = update_config(key, new_value)

    if success:
        log_success(message)
        log_info("Restart DataSpot for login and network settings to take effect.")
        config[key] = new_value
    else:
        log_error(message)

    return config


async def reset_config_menu(config: dict) -> dict:
    """Menu to reset configuration to defaults."""
    confirm = await questionary.confirm(
        "⚠️ Reset all settings to defaults? This cannot be undone.",
        default=False
    ).ask_async()

    if confirm:
        success, message = reset_to_defaults()

        if success:
            log_success(message)
            config = load_config()
        else:
            log_error(message)

    return config


def validate_config_menu(config: dict):
    """Validate the current configuration and show any errors."""
    is_valid, errors = validate_config(config)

    print("\n" + "=" * 50)
    print("🔍 Configuration Validation")
    print("=" * 50)

    if is_valid:
        log_success("Configuration is valid! ✓")
    else:
        log_error("Configuration has errors:")
        for error in errors:
            print(f"  ✗ {error}")

    print("=" * 50)
