import os

from medtrack.core.env import load_env

load_env()

def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"

MEDTRACK_DB_PATH = os.getenv("MEDTRACK_DB_PATH", "data/medtrack.db")

# nearest-time match between generated doses and stored adherence records
MATCH_WINDOW_MINUTES = int(os.getenv("MEDTRACK_MATCH_WINDOW_MINUTES", "15"))
STATS_DEFAULT_DAYS = int(os.getenv("MEDTRACK_STATS_DEFAULT_DAYS", "30"))
# widest look-back accepted by GET /adherence/stats?days=
MAX_STATS_DAYS = int(os.getenv("MEDTRACK_MAX_STATS_DAYS", "3650"))
# a processed refill moves next_refill_date this far ahead
REFILL_INTERVAL_DAYS = int(os.getenv("MEDTRACK_REFILL_INTERVAL_DAYS", "30"))

# label hour 0 as "12AM" instead of "0AM"
MIDNIGHT_AS_12AM = _flag("MEDTRACK_MIDNIGHT_AS_12AM")
# "every N hours" without a usable N gets the default 8AM dose instead of none
FALLBACK_UNPARSED_INTERVAL = _flag("MEDTRACK_FALLBACK_UNPARSED_INTERVAL")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
