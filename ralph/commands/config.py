"""
ralph config - Show, get, or set persistent settings.
"""

import logging

from ralph.lib.config import (
    SETTING_KEYS,
    ConfigError,
    get_config_file,
    get_setting,
    load_settings,
    save_settings,
    set_setting,
)
from ralph.lib.output import color, header

logger = logging.getLogger(__name__)


def cmd_config(args) -> int:
    """Show all settings, or get/set a single key."""
    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"ERROR: {e}")
        return 2

    if args.get:
        try:
            value = get_setting(settings, args.get)
        except ConfigError as e:
            print(f"ERROR: {e}")
            print(f"  Known keys: {', '.join(SETTING_KEYS)}")
            return 2
        print(value if value is not None else "(not set)")
        return 0

    if args.set:
        key, value = args.set
        try:
            set_setting(settings, key, value)
            path = save_settings(settings)
        except ConfigError as e:
            print(f"ERROR: {e}")
            return 2
        logger.info(f"Saved {key} to {path}")
        print(f"{key} = {get_setting(settings, key)}")
        return 0

    header("ralph configuration")
    print(color(f"File: {get_config_file()}", "dim"))
    print()
    for key, description in SETTING_KEYS.items():
        value = get_setting(settings, key)
        print(f"{key:<20} {value if value is not None else '(not set)':<12} {color(description, 'dim')}")
    return 0
