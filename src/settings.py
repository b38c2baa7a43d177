"""Static configuration for instabridge.

All user-editable settings (homeserver, appservice listener, naming, bot
appearance, profile endpoint, logging) live in a single JSON file. Secrets
stay in the environment and are read by client.py.
"""

import json
import os

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# config.json sits at the project root unless INSTABRIDGE_CONFIG points elsewhere.
CONFIG_PATH = os.getenv("INSTABRIDGE_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Where to store the SQLite database.
DB_PATH = _CONFIG.get("database", os.path.join(PROJECT_ROOT, "instabridge.db"))
if not os.path.isabs(DB_PATH):
    DB_PATH = os.path.join(PROJECT_ROOT, DB_PATH)

_homeserver = _CONFIG.get("homeserver", {})
HOMESERVER_URL = _homeserver.get("url", "http://localhost:8008")
HOMESERVER_DOMAIN = _homeserver.get("domain", "localhost")

# Listener for homeserver transactions and the ids from the registration file.
_appservice = _CONFIG.get("appservice", {})
APPSERVICE_ID = _appservice.get("id", "instagram")
APPSERVICE_HOST = _appservice.get("host", "0.0.0.0")
APPSERVICE_PORT = int(_appservice.get("port", 9000))
BOT_LOCALPART = _appservice.get("bot_localpart", "_instagram")

# Naming of virtual users and rooms.
# - USER_PREFIX must match the user and alias namespaces in the registration.
# - MEDIA_GRACE_HOURS is how long a relayed post stays eligible for re-discovery.
_bridge = _CONFIG.get("bridge", {})
USER_PREFIX = _bridge.get("user_prefix", "_instagram_")
SOURCE_LABEL = _bridge.get("source_label", "Instagram")
MEDIA_GRACE_HOURS = float(_bridge.get("media_grace_hours", 24))
ACCOUNT_INFO_EVENT_TYPE = _bridge.get("account_info_event_type", "org.instabridge.account_info")

_appearance = _CONFIG.get("appearance", {})
BOT_DISPLAY_NAME = _appearance.get("display_name", "Instagram Bridge")
BOT_AVATAR_URL = _appearance.get("avatar_url")

# Profile endpoint; "{handle}" is replaced with the Instagram username.
_instagram = _CONFIG.get("instagram", {})
PROFILE_URL = _instagram.get("profile_url", "https://api.instagram.com/v1/users/{handle}")
PROFILE_CACHE_SECONDS = float(_instagram.get("profile_cache_seconds", 300))

# Recent-media endpoint polled for every authorized account.
MEDIA_URL = _instagram.get("media_url", "https://api.instagram.com/v1/users/{handle}/media/recent")
MEDIA_POLL_SECONDS = float(_instagram.get("media_poll_seconds", 300))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
