"""Invoices and quotes blueprint package."""

from .routes import documents_bp  # noqa: F401
