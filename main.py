import asyncio
import json
import sys

from dotenv import load_dotenv

from config import DEFAULT_CONFIG, DashboardConfig, load_config, save_config, validate_config
from dataspot_api.session import build_session
from menus.main_menu import run_dashboard
from utils.logger import setup_logging, log_info, log_warning, log_error


async def _run(config: dict) -> None:
    session = build_session(DashboardConfig.from_dict(config))
    try:
        await run_dashboard(session, config)
    finally:
        await session.aclose()


def main() -> int:
    load_dotenv()

    try:
        config = load_config()
    except FileNotFoundError:
        config = DEFAULT_CONFIG.copy()
        try:
            save_config(config)
            print("No config.json found; created one with default settings.")
        except IOError as e:
            print(f"No config.json found and could not create one: {e}")
    except json.JSONDecodeError as e:
        setup_logging()
        log_error(f"Config file contains invalid JSON: {e}")
        return 1

    setup_logging(config.get("log_level", "INFO"), config.get("log_file") or None)

    is_valid, errors = validate_config(config)
    if not is_valid:
        log_error("Configuration has errors:")
        for error in errors:
            log_error(f"  {error}")
        return 1

    if not DashboardConfig.from_dict(config).client_id:
        log_warning("No Spotify client id configured. Use 'Spotify app setup help' to get one.")

    try:
        asyncio.run(_run(config))
    except KeyboardInterrupt:
        log_info("Interrupted.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
