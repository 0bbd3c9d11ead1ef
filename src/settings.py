"""Static configuration for triage reminders.

All user-editable settings (reminders, level/status labels, scheduler and
logging) live in a single JSON file for quick edits without touching Python.
"""

import json
import os

from dotenv import load_dotenv

load_dotenv()

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Reminders and labels are loaded from config.json so operators can tweak
# schedules without editing code.
CONFIG_PATH = os.getenv("TRIAGE_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Where to store the SQLite team store. Relative paths are resolved against
# the project root; TRIAGE_DB_PATH overrides the config file.
DB_PATH = os.getenv("TRIAGE_DB_PATH") or _CONFIG.get("db_path", "triage.db")
if not os.path.isabs(DB_PATH):
    DB_PATH = os.path.join(PROJECT_ROOT, DB_PATH)

# Scheduled reminders are validated against the label tables at startup.
SCHEDULED_REMINDERS = _CONFIG.get("scheduled_reminders", [])

# Display labels keyed by level/status. Every key a reminder uses must be here.
LEVEL_TO_EMOJI = _CONFIG.get("levels", {})
STATUS_TO_EMOJI = _CONFIG.get("statuses", {})

# Scheduler and channel listing controls.
# - MAX_CONCURRENT_SCANS: overlapping runs allowed per reminder
# - MISFIRE_GRACE_TIME: seconds a late firing is still run
# - CHANNEL_PAGE_SIZE / MAX_CHANNEL_PAGES: users.conversations paging
_scheduler = _CONFIG.get("scheduler", {})
MAX_CONCURRENT_SCANS = int(_scheduler.get("max_concurrent_scans", 1))
MISFIRE_GRACE_TIME = int(_scheduler.get("misfire_grace_time", 60))
CHANNEL_PAGE_SIZE = int(_scheduler.get("channel_page_size", 100))
MAX_CHANNEL_PAGES = int(_scheduler.get("max_channel_pages", 1))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
