import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv(override=True)


def _env_bool(name: str, default: bool = False) -> bool:
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_list(name: str) -> list[str]:
    raw_value = os.getenv(name, "")
    return [item.strip() for item in raw_value.split(",") if item.strip()]


def _database_url() -> str:
    raw_url = os.getenv("DATABASE_URL", "")
    if raw_url.startswith("postgresql://"):
        return raw_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return raw_url


@dataclass(frozen=True)
class Settings:
    database_url: str = _database_url()
    otp_ttl_seconds: int = int(os.getenv("OTP_TTL_SECONDS", "300"))
    otp_max_attempts: int = int(os.getenv("OTP_MAX_ATTEMPTS", "3"))
    otp_debug: bool = _env_bool("OTP_DEBUG", False)
    otp_email_sender: str = os.getenv("OTP_EMAIL_SENDER") or os.getenv("SMTP_FROM", "")
    otp_email_subject: str = os.getenv(
        "OTP_EMAIL_SUBJECT", "Your One-Time Password (OTP) for Login"
    )
    smtp_host: str = os.getenv("SMTP_HOST", "")
    smtp_port: int = int(os.getenv("SMTP_PORT", "587"))
    smtp_user: str = os.getenv("SMTP_USER", "")
    smtp_password: str = os.getenv("SMTP_PASSWORD", os.getenv("SMTP_PASS", ""))
    smtp_starttls: bool = _env_bool("SMTP_STARTTLS", True)
    webhook_timeout_seconds: float = float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", "10"))
    cors_origins: list[str] = field(default_factory=lambda: _env_list("CORS_ORIGINS"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
    seed_email: str = os.getenv("SEED_EMAIL", "").strip().lower()
    seed_full_name: str = os.getenv("SEED_FULL_NAME", "").strip()


settings = Settings()
