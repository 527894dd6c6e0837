import os
from functools import lru_cache
from pathlib import Path
from typing import Optional


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        secret_key: str,
        token_max_age_hours: int,
        cron_secret: Optional[str],
        smtp_host: Optional[str],
        smtp_port: int,
        smtp_user: Optional[str],
        smtp_password: Optional[str],
        mail_from: str,
        scheduler_enabled: bool,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.secret_key = secret_key
        self.token_max_age_hours = token_max_age_hours
        self.cron_secret = cron_secret
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.mail_from = mail_from
        self.scheduler_enabled = scheduler_enabled


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINANCE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "finance.db"
    database_url = os.getenv("FINANCE_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("FINANCE_TIMEZONE", "Europe/Madrid")
    secret_key = os.getenv(
        "FINANCE_SECRET_KEY",
        "3f6c1a9d7e0b42c58a1d9e7f60b3c2a4d8e1f0a7b6c5d4e3f2a1b0c9d8e7f6a5",
    )
    token_max_age_hours = int(os.getenv("FINANCE_TOKEN_MAX_AGE_HOURS", "168"))
    # Cron routes stay closed until a secret is configured.
    cron_secret = os.getenv("FINANCE_CRON_SECRET") or None
    smtp_host = os.getenv("FINANCE_SMTP_HOST") or None
    smtp_port = int(os.getenv("FINANCE_SMTP_PORT", "587"))
    smtp_user = os.getenv("FINANCE_SMTP_USER") or None
    smtp_password = os.getenv("FINANCE_SMTP_PASSWORD") or None
    mail_from = os.getenv(
        "FINANCE_MAIL_FROM", "Finance Tracker <notifications@localhost>"
    )
    scheduler_enabled = _env_flag("FINANCE_SCHEDULER_ENABLED", "true")
    return Settings(
        database_url=database_url,
        timezone=timezone,
        secret_key=secret_key,
        token_max_age_hours=token_max_age_hours,
        cron_secret=cron_secret,
        smtp_host=smtp_host,
        smtp_port=smtp_port,
        smtp_user=smtp_user,
        smtp_password=smtp_password,
        mail_from=mail_from,
        scheduler_enabled=scheduler_enabled,
    )
