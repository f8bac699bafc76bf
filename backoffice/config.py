"""Application configuration."""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from dotenv import load_dotenv

# Base directory (project root)
BASE_DIR = Path(__file__).resolve().parent.parent
_env_file = BASE_DIR / ".env"


def _read_env_file(path: Path) -> dict[str, str]:
    """Read KEY=VALUE lines from path; return dict. Does not rely on dotenv or import order."""
    out: dict[str, str] = {}
    if not path.exists():
        return out
    raw = path.read_text(encoding="utf-8", errors="replace")
    for line in raw.splitlines():
        line = line.strip().replace("\r", "").strip("\ufeff")  # BOM
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        k = key.strip()
        v = value.strip().strip("'\"").replace("\r", "")
        if k and v:
            out[k] = v
    return out


# Load .env into os.environ (file wins over the shell, same as the deploy scripts)
_env_vars = _read_env_file(_env_file)
if not _env_vars and (Path.cwd() / ".env").exists():
    _env_vars = _read_env_file(Path.cwd() / ".env")
for key, value in _env_vars.items():
    os.environ[key] = value

# Then load_dotenv for anything our reader skipped (e.g. multi-line values)
if _env_file.exists():
    load_dotenv(_env_file, override=False)


def _get_sqlalchemy_uri() -> str:
    """Database URI for the SQL sheet backend: DATABASE_URL, or SQLite for local dev when unset."""
    uri = (os.environ.get("DATABASE_URL") or "").strip()
    if uri:
        return uri.replace("postgres://", "postgresql://", 1)
    path = BASE_DIR / "local.db"
    return f"sqlite:///{path.as_posix()}"


def _default_backend() -> str:
    explicit = (os.environ.get("SHEETS_BACKEND") or "").strip().lower()
    if explicit:
        return explicit
    # No service account configured → keep everything local
    return "google" if (os.environ.get("GOOGLE_APPLICATION_CREDENTIALS") or "").strip() else "sql"


class Config:
    """Default configuration."""

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-in-production")
    DEBUG = os.environ.get("FLASK_DEBUG", "0") == "1"
    TESTING = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Lead database: one spreadsheet, one append-only sheet per record type
    SPREADSHEET_ID = os.environ.get("SPREADSHEET_ID", "").strip()
    LEADS_SHEET_NAME = os.environ.get("LEADS_SHEET_NAME", "Leads").strip() or "Leads"
    TIMEZONE = os.environ.get("TIMEZONE", "Asia/Bangkok").strip() or "Asia/Bangkok"

    # 'google' talks to Google Sheets with a service account; 'sql' keeps sheets in SQLAlchemy tables
    SHEETS_BACKEND = _default_backend()
    GOOGLE_APPLICATION_CREDENTIALS = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS", "").strip()
    SQLALCHEMY_DATABASE_URI = _get_sqlalchemy_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    # Notifications: Brevo transactional email, optional Slack ping for the operator
    NOTIFICATION_EMAIL = os.environ.get("NOTIFICATION_EMAIL", "").strip()
    BREVO_API_KEY = os.environ.get("BREVO_API_KEY", "").strip()
    MAIL_SENDER = os.environ.get("MAIL_SENDER", "").strip()
    MAIL_SENDER_NAME = os.environ.get("MAIL_SENDER_NAME", "AI Smart Backoffice").strip()
    SLACK_WEBHOOK_URL = os.environ.get("SLACK_WEBHOOK_URL", "").strip()

    # Serverless payment API (create-session / verify-payment)
    PAYMENT_API_URL = os.environ.get("PAYMENT_API_URL", "").strip().rstrip("/")


class ProductionConfig(Config):
    """Production configuration."""

    DEBUG = False


class DevelopmentConfig(Config):
    """Development configuration."""

    DEBUG = True


class TestingConfig(Config):
    """In-memory SQL sheets, no outbound calls configured."""

    TESTING = True
    SHEETS_BACKEND = "sql"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SPREADSHEET_ID = "test-leads"
    NOTIFICATION_EMAIL = "admin@example.com"
    BREVO_API_KEY = "test-key"
    MAIL_SENDER = "noreply@example.com"
    SLACK_WEBHOOK_URL = ""
    PAYMENT_API_URL = ""


@dataclass(frozen=True)
class Settings:
    """Typed view of the Flask config, built once in create_app and handed to the services."""

    spreadsheet_id: str
    leads_sheet_name: str = "Leads"
    timezone: str = "Asia/Bangkok"
    notification_email: str = ""
    brevo_api_key: str = ""
    mail_sender: str = ""
    mail_sender_name: str = "AI Smart Backoffice"
    slack_webhook_url: str = ""
    payment_api_url: str = ""

    @classmethod
    def from_mapping(cls, config: Mapping) -> "Settings":
        return cls(
            spreadsheet_id=config.get("SPREADSHEET_ID") or "",
            leads_sheet_name=config.get("LEADS_SHEET_NAME") or "Leads",
            timezone=config.get("TIMEZONE") or "Asia/Bangkok",
            notification_email=config.get("NOTIFICATION_EMAIL") or "",
            brevo_api_key=config.get("BREVO_API_KEY") or "",
            mail_sender=config.get("MAIL_SENDER") or "",
            mail_sender_name=config.get("MAIL_SENDER_NAME") or "AI Smart Backoffice",
            slack_webhook_url=config.get("SLACK_WEBHOOK_URL") or "",
            payment_api_url=(config.get("PAYMENT_API_URL") or "").rstrip("/"),
        )

    @property
    def spreadsheet_url(self) -> str:
        return spreadsheet_url(self.spreadsheet_id)


def spreadsheet_url(spreadsheet_id: str) -> str:
    return f"https://docs.google.com/spreadsheets/d/{spreadsheet_id}/edit"
