# Overview: Service-layer helpers for transaction boundaries and row locking.

from __future__ import annotations

from contextlib import contextmanager

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


@contextmanager
def transaction():
    """
    Unit of work for one stock-mutating call.

    Yields the session that every ledger, movement and ref operation must
    receive explicitly. Commits on success; any exception rolls back every
    write made inside the block and propagates unchanged. No retries.
    """
    session = db.session
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
