import logging
import os


def _env(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        return default


def _level(name: str, default: str) -> str:
    level = os.getenv(name, default).strip().upper()
    # getLevelName maps known names to their numeric level
    return level if isinstance(logging.getLevelName(level), int) else default


DEFAULT_PORT = _env("PINGSCAN_DEFAULT_PORT", 25565, int)
PING_TIMEOUT = _env("PINGSCAN_PING_TIMEOUT", 2.5, float)
SCAN_TIMEOUT = _env("PINGSCAN_SCAN_TIMEOUT", 0.5, float)
PING_WORKERS = _env("PINGSCAN_WORKERS", 500, int)
SCAN_FROM = 1
SCAN_TO = 65535
RESULTS_SHOW_LIMIT = _env("PINGSCAN_RESULTS_SHOW_LIMIT", 15, int)
LOG_LEVEL = _level("PINGSCAN_LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

DISCORD_TOKEN = os.getenv("DISCORD_TOKEN")
MESSAGES_JSON_PATH = os.getenv(
    "MESSAGES_JSON_PATH",
    os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "messages.json"),
)
