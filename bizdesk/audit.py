"""
bizdesk/audit.py

Audit logging helper utilities.

Goals:
- Capture WHO did WHAT to WHICH record, with BEFORE/AFTER snapshots.
- Store username snapshot to preserve identity even if username changes later.
- Store IP address for traceability when the change comes from an HTTP request.

IMPORTANT:
- This helper ADDS AuditLog entries to the current SQLAlchemy session.
  The calling service controls transaction boundaries (commit/rollback).
- Services also run from the CLI and from tests, so request/user data is optional.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from flask import has_request_context, request
from flask_login import current_user

from .extensions import db
from .models import AuditLog


def _safe_str(value: Any) -> Optional[str]:
    """
    Convert a value to a stable string representation suitable for JSON and DB storage.

    - For Decimal/date/datetime: str(value) is safe.
    - For None: return None.
    """
    if value is None:
        return None
    return str(value)


def serialize_model(instance: Any) -> Dict[str, Optional[str]]:
    """
    Convert a SQLAlchemy model instance to a dict snapshot based on table columns.

    NOTES:
    - Captures only scalar column values (not relationships).
    - Values are converted to string for JSON safety and SQLite/PostgreSQL portability.
    """
    data: Dict[str, Optional[str]] = {}
    for column in instance.__table__.columns:
        data[column.name] = _safe_str(getattr(instance, column.name))
    return data


def _actor() -> tuple[Optional[int], Optional[str], Optional[str]]:
    """(user_id, username, ip) for the current request, or Nones outside one."""
    if not has_request_context():
        return None, None, None

    ip_address = request.remote_addr
    if current_user and current_user.is_authenticated:
        return current_user.id, current_user.username, ip_address
    return None, None, ip_address


def log_action(
    entity: Any,
    action: str,
    *,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
    session: Any = None,
) -> AuditLog:
    """
    Add an AuditLog entry to the given (or current) db session.

    Parameters:
        entity: SQLAlchemy model instance with .id (flushed)
        action: CREATE / UPDATE / DELETE or a domain verb (e.g. RECEIVE, CONVERT)
        before: dict snapshot (optional)
        after: dict snapshot (optional)
        session: session to add the entry to; defaults to db.session. Pass the
            store's session so the entry commits with the change it records.
    """
    entity_id = getattr(entity, "id", None)
    if entity_id is None:
        raise ValueError("log_action entity must have an 'id' attribute (after flush).")

    user_id, username, ip_address = _actor()

    entry = AuditLog(
        user_id=user_id,
        username_snapshot=username,
        entity_type=entity.__class__.__name__,
        entity_id=int(entity_id),
        action=str(action),
        before_data=json.dumps(before, ensure_ascii=False) if before else None,
        after_data=json.dumps(after, ensure_ascii=False) if after else None,
        ip_address=ip_address,
    )
    (session if session is not None else db.session).add(entry)
    return entry
