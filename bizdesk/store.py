"""
bizdesk/store.py

Record-oriented persistence over the Flask-SQLAlchemy session.

The services talk to this class instead of issuing queries themselves, so every
read/insert/update/delete they perform goes through one seam (and tests can replace
a single method to simulate a failing write).

IMPORTANT:
- Methods flush but never commit; the calling service owns the transaction.
- increment() is the only way shared counters are changed. It issues a single
  UPDATE ... SET col = col + :delta so two concurrent intakes cannot lose an increment.
"""

from __future__ import annotations

from typing import Any, Iterable

from sqlalchemy import select, update

from .errors import RecordNotFoundError
from .extensions import db


class RecordStore:
    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    # -----------------------------
    # Reads
    # -----------------------------
    def get(self, model, record_id):
        if record_id is None:
            return None
        return self.session.get(model, record_id)

    def get_or_raise(self, model, record_id):
        record = self.get(model, record_id)
        if record is None:
            raise RecordNotFoundError(model.__name__, record_id)
        return record

    def filter_by(self, model, *, order_by: Iterable[Any] = (), **criteria) -> list:
        """All records whose fields equal the given values, in order_by order."""
        stmt = select(model).filter_by(**criteria)
        order_by = tuple(order_by)
        if order_by:
            stmt = stmt.order_by(*order_by)
        return list(self.session.scalars(stmt))

    def first_by(self, model, *, order_by: Iterable[Any] = (), **criteria):
        stmt = select(model).filter_by(**criteria)
        order_by = tuple(order_by)
        if order_by:
            stmt = stmt.order_by(*order_by)
        return self.session.scalars(stmt.limit(1)).first()

    # -----------------------------
    # Writes
    # -----------------------------
    def insert(self, record):
        self.session.add(record)
        self.session.flush()
        return record

    def insert_many(self, records: Iterable[Any]) -> list:
        records = list(records)
        self.session.add_all(records)
        self.session.flush()
        return records

    def update(self, record, **values):
        for name, value in values.items():
            setattr(record, name, value)
        self.session.flush()
        return record

    def increment(self, model, record_id, deltas: dict, **values) -> None:
        """
        Atomically add deltas to numeric columns and set plain values in one UPDATE.

        Raises RecordNotFoundError when no row has this id.
        """
        assignments = {name: getattr(model, name) + delta for name, delta in deltas.items()}
        assignments.update(values)

        result = self.session.execute(
            update(model).where(model.id == record_id).values(**assignments)
        )
        if result.rowcount == 0:
            raise RecordNotFoundError(model.__name__, record_id)

    # -----------------------------
    # Transactions
    # -----------------------------
    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
