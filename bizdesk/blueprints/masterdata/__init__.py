"""Clients, suppliers and stock items (master data) blueprint package."""

from .routes import masterdata_bp  # noqa: F401
