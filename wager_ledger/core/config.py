from dotenv import load_dotenv
import os

load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return str(v).strip().lower() in ("1", "true", "yes", "y", "on")


class Settings:
    ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
    DEBUG = env_bool("DEBUG")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./wager_ledger.db")

    # payout service that moves funds to the player's wallet
    TRANSFER_SERVICE_URL = os.getenv("TRANSFER_SERVICE_URL")
    TRANSFER_TIMEOUT_SECONDS = float(os.getenv("TRANSFER_TIMEOUT_SECONDS", 8))

    HISTORY_PAGE_SIZE = int(os.getenv("HISTORY_PAGE_SIZE", 20))
    HISTORY_MAX_PAGE_SIZE = int(os.getenv("HISTORY_MAX_PAGE_SIZE", 100))

    ADMIN_TOKEN = os.getenv("ADMIN_TOKEN")
    # pending withdrawals younger than this may still get a transfer answer
    PENDING_RECONCILE_AFTER_SECONDS = int(os.getenv("PENDING_RECONCILE_AFTER_SECONDS", 300))

    CORS_ORIGINS = [
        o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()
    ]

settings = Settings()
