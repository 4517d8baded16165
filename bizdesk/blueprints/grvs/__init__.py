"""Goods received vouchers blueprint package."""

from .routes import grvs_bp  # noqa: F401
