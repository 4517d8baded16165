"""Payments, supplier payments and client statements blueprint package."""

from .routes import ledger_bp  # noqa: F401
