import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

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
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./schedule.db")

HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "8000"))

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:4200"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

# Weekday and time-of-day of every reservation are read in this zone.
SCHEDULE_TIMEZONE = os.getenv("SCHEDULE_TIMEZONE", "UTC")
SCHEDULE_REJECT_OVERLAPS = _get_bool(os.getenv("SCHEDULE_REJECT_OVERLAPS"), default=True)

MAX_SLOTS_PER_TEACHER = int(os.getenv("MAX_SLOTS_PER_TEACHER", "50"))
DEFAULT_CONFLICT_RANGE_DAYS = int(os.getenv("DEFAULT_CONFLICT_RANGE_DAYS", "30"))
MAX_CONFLICT_RANGE_DAYS = int(os.getenv("MAX_CONFLICT_RANGE_DAYS", "365"))

def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    try:
        ZoneInfo(SCHEDULE_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise RuntimeError(f"SCHEDULE_TIMEZONE '{SCHEDULE_TIMEZONE}' is not a known IANA timezone.") from exc
