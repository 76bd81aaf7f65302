import os

from dotenv import load_dotenv

load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./salon.db")
DATABASE_ECHO = _get_bool(os.getenv("DATABASE_ECHO"), default=False)

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = _get_int(os.getenv("JWT_EXPIRES_MINUTES"), 7 * 24 * 60)

CLIENT_URL = os.getenv("CLIENT_URL", "http://localhost:5173")
CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), [CLIENT_URL])

BUSINESS_NAME = os.getenv("BUSINESS_NAME", "New Flow Salon")
BUSINESS_PHONE = os.getenv("BUSINESS_PHONE", "804-745-2525")

# Width of one bookable slot. Weekly windows, blocks and appointments all
# snap to this grid.
SLOT_GRANULARITY_MINUTES = _get_int(os.getenv("SLOT_GRANULARITY_MINUTES"), 30)

SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = _get_int(os.getenv("SMTP_PORT"), 587)
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL", "") or SMTP_USER

TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID", "")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN", "")
TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER", "")

NOTIFICATIONS_TIMEOUT_SECONDS = _get_int(os.getenv("NOTIFICATIONS_TIMEOUT_SECONDS"), 10)

MEDIA_ROOT = os.getenv("MEDIA_ROOT", "./uploads")
MEDIA_URL_PREFIX = "/uploads"
MEDIA_MAX_BYTES = _get_int(os.getenv("MEDIA_MAX_MB"), 50) * 1024 * 1024


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if SLOT_GRANULARITY_MINUTES <= 0 or (24 * 60) % SLOT_GRANULARITY_MINUTES != 0:
        raise RuntimeError("SLOT_GRANULARITY_MINUTES must evenly divide a day.")
