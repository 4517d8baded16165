"""
Application configuration.
This module defines the configuration settings for the Flask application, including database connection, secret key,
logging and the GRV intake defaults. It uses environment variables for sensitive information and defaults for
development. In production, make sure to set the appropriate environment variables and secure the secret key.
"""

import os
from decimal import Decimal
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


def _env_list(name: str) -> tuple:
    raw = os.environ.get(name, "")
    return tuple(part.strip() for part in raw.split(",") if part.strip())


class Config:
    """Base configuration shared by all environments."""

    # IMPORTANT: change this in production
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me-please")

    # Database: SQLite for development (simple file in project folder)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'bizdesk.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CSRF protection (JSON clients send the token in the X-CSRFToken header)
    WTF_CSRF_ENABLED = True

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Import path of the PDF extraction callable: "package.module:function"
    GRV_PDF_EXTRACTOR = os.environ.get("GRV_PDF_EXTRACTOR")

    # Auto-provisioned stock pricing
    STOCK_MARKUP = Decimal(os.environ.get("STOCK_MARKUP", "1.5"))
    DEFAULT_STOCK_VAT = Decimal(os.environ.get("DEFAULT_STOCK_VAT", "15"))

    # Invoice statuses left out of client statements, e.g. "Draft,Cancelled"
    STATEMENT_EXCLUDED_STATUSES = _env_list("STATEMENT_EXCLUDED_STATUSES")

    APP_NAME = "Bizdesk"


class TestConfig(Config):
    """In-memory database, no CSRF, login not enforced."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    LOGIN_DISABLED = True
    LOG_LEVEL = "DEBUG"
    GRV_PDF_EXTRACTOR = None
    STATEMENT_EXCLUDED_STATUSES = ()
