import os

from dotenv import find_dotenv, load_dotenv

# A .env in the working directory (or above it) fills in anything the environment leaves unset
load_dotenv(find_dotenv(usecwd=True))


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


GOOGLE_CLOUD_PROJECT_ID = os.getenv("GOOGLE_CLOUD_PROJECT_ID")
LOCAL_ENV = _env_flag("LOCAL_ENV")
TESTING = _env_flag("TESTING")

# Server-side cap applied to every listing query
DEFAULT_QUERY_LIMIT = _env_int("FIRESTORE_DEFAULT_QUERY_LIMIT", 100)

# Opt-in last_update_time precondition on status writes
STATUS_WRITE_PRECONDITION = _env_flag("STATUS_WRITE_PRECONDITION")

STORAGE_BUCKET = os.getenv("STORAGE_BUCKET")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()
