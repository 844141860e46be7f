import os

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    # --- Database ---
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_PUBLIC_URL = os.environ.get("DATABASE_PUBLIC_URL")

    # --- Redis (Celery broker + result backend) ---
    REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

    # --- Push gateway (Expo) ---
    PUSH_GATEWAY_URL = os.environ.get("PUSH_GATEWAY_URL", "https://exp.host/--/api/v2/push/send")
    PUSH_ACCESS_TOKEN = os.environ.get("PUSH_ACCESS_TOKEN")
    PUSH_TIMEOUT = int(os.environ.get("PUSH_TIMEOUT", "10"))
    PUSH_TITLE = os.environ.get("PUSH_TITLE", "Throw Notes")

    # --- Sweep ---
    SWEEP_INTERVAL_SECONDS = float(os.environ.get("SWEEP_INTERVAL_SECONDS", "60"))
    SWEEP_BATCH_SIZE = int(os.environ.get("SWEEP_BATCH_SIZE", "32"))

    # --- Delivery ---
    NOTE_CANDIDATE_LIMIT = int(os.environ.get("NOTE_CANDIDATE_LIMIT", "200"))
    EXCLUDE_MUTED_NOTES = _flag("EXCLUDE_MUTED_NOTES")

    # --- API ---
    # Identity header injected by the authenticating proxy in front of the API
    AUTH_USER_HEADER = os.environ.get("AUTH_USER_HEADER", "X-User-Id")

    # --- Logging ---
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

settings = Settings()
