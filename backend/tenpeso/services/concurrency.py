# Overview: Transaction helpers shared by the settlement services.

from __future__ import annotations

import time

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ValidationError
from ..extensions import db


class CodeCollision(Exception):
    """A human-readable code lost a race with a concurrent insert of the same code."""


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() covers it there.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Open the current transaction as a writer.

    On SQLite this issues BEGIN IMMEDIATE so concurrent writers serialize on
    the database lock before reading stock. Other databases rely on
    lock_for_update() row locks instead.
    """
    if db.engine.dialect.name != "sqlite":
        return
    conn = db.session.connection()
    raw = conn.connection.dbapi_connection
    if not raw.in_transaction:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def flush_unique_code(field: str, code: str) -> None:
    """
    Flush a pending row whose `field` carries a unique code.

    The pre-insert uniqueness check cannot see a concurrent transaction's
    uncommitted row; the unique constraint can. A violation becomes
    CodeCollision so run_with_retry re-runs the whole operation.
    """
    try:
        db.session.flush()
    except IntegrityError as exc:
        raise CodeCollision(f"{field} {code} is already taken") from exc


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation as one all-or-nothing unit.

    Retries on OperationalError (locks, deadlocks), StaleDataError
    (optimistic locking conflicts) and CodeCollision (unique code races).
    Any other error rolls the session back and propagates unchanged.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except CodeCollision as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise ValidationError(f"Could not allocate a unique code: {exc}, try again") from exc
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc
