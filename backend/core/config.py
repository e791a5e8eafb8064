import os

from dotenv import load_dotenv


load_dotenv()



def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
DEBUG = _get_bool(os.getenv("DEBUG"), default=False)
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./scheduler.db")

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:3000"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

# Scheduling
DEFAULT_SESSION_MINUTES = int(os.getenv("DEFAULT_SESSION_MINUTES", "60"))
DEFAULT_LISTING_MINUTES = int(os.getenv("DEFAULT_LISTING_MINUTES", "30"))
MIN_SLOT_MINUTES = int(os.getenv("MIN_SLOT_MINUTES", "5"))
MAX_SLOT_MINUTES = int(os.getenv("MAX_SLOT_MINUTES", "120"))
SUGGEST_TOP_N = int(os.getenv("SUGGEST_TOP_N", "20"))
MAX_SUGGEST_RANGE_DAYS = int(os.getenv("MAX_SUGGEST_RANGE_DAYS", "62"))
MAX_NOTES_LENGTH = int(os.getenv("MAX_NOTES_LENGTH", "600"))

def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if MIN_SLOT_MINUTES <= 0 or MAX_SLOT_MINUTES < MIN_SLOT_MINUTES:
        raise RuntimeError("MIN_SLOT_MINUTES/MAX_SLOT_MINUTES are misconfigured.")
