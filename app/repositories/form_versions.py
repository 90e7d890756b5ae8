"""
Version Lock Manager: per (scope, form_key) optimistic-concurrency counter.

Contract:
    lock_current_version() must run inside an open transaction.  It takes a
    ``SELECT ... FOR UPDATE`` row lock on the version row so a second writer
    on the same form blocks until the first commits or rolls back.  When no
    row exists yet there is nothing to lock and 0 is returned; two racing
    first writers then collide on the primary key in bump_version() and the
    loser surfaces as a StorageFailureError.

    bump_version() runs after the mutation succeeded and before commit, in
    the same transaction as the lock.

Locking is per form: a write to ``causes`` never waits on ``facts``.

Usage:
    with write_transaction(session, lock_timeout_ms=5000):
        current = lock_current_version(session, scope, "causes")
        ...
        new_version = bump_version(session, scope, "causes", actor)
        session.commit()
"""

import logging
from contextlib import contextmanager

from sqlalchemy import select, text, update
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import StorageFailureError
from app.models.forms import FormVersion

logger = logging.getLogger(__name__)


def _version_filter(scope, form_key: str) -> list:
    return [
        FormVersion.access_id == scope.access_id,
        FormVersion.team_no == scope.team_no,
        FormVersion.outline_id == scope.outline_id,
        FormVersion.exercise_no == scope.exercise_no,
        FormVersion.form_key == form_key,
    ]


def lock_current_version(session, scope, form_key: str) -> int:
    """Lock and return the current version for a form; 0 if never written."""
    stmt = (
        select(FormVersion.version)
        .where(*_version_filter(scope, form_key))
        .with_for_update()
    )
    version = session.execute(stmt).scalar_one_or_none()
    return int(version) if version is not None else 0


def bump_version(session, scope, form_key: str, actor_token: str) -> int:
    """Increment the version (insert at 1 when absent) and return the new value."""
    result = session.execute(
        update(FormVersion)
        .where(*_version_filter(scope, form_key))
        .values(version=FormVersion.version + 1, actor_token=actor_token)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        session.add(FormVersion(
            access_id=scope.access_id,
            team_no=scope.team_no,
            outline_id=scope.outline_id,
            exercise_no=scope.exercise_no,
            form_key=form_key,
            version=1,
            actor_token=actor_token,
        ))
        session.flush()
        return 1

    # Row is still locked by this transaction; read back the bumped value.
    return lock_current_version(session, scope, form_key)


def read_version(session, scope, form_key: str) -> int:
    """Lock-free version read for the read path."""
    stmt = select(FormVersion.version).where(*_version_filter(scope, form_key))
    version = session.execute(stmt).scalar_one_or_none()
    return int(version) if version is not None else 0


def read_versions(session, scope) -> dict[str, int]:
    """Return ``{form_key: version}`` for every form written in the scope."""
    stmt = select(FormVersion.form_key, FormVersion.version).where(
        FormVersion.access_id == scope.access_id,
        FormVersion.team_no == scope.team_no,
        FormVersion.outline_id == scope.outline_id,
        FormVersion.exercise_no == scope.exercise_no,
    )
    return {row.form_key: int(row.version) for row in session.execute(stmt) if row.form_key}


# ── Transaction guard ────────────────────────────────────────────────────────


def _apply_lock_timeout(session, lock_timeout_ms: int | None) -> None:
    """Bound lock waits on PostgreSQL; other dialects rely on their own timeouts."""
    if not lock_timeout_ms:
        return
    bind = session.get_bind()
    if bind.dialect.name == "postgresql":
        session.execute(text(f"SET LOCAL lock_timeout = '{int(lock_timeout_ms)}ms'"))


@contextmanager
def write_transaction(session, lock_timeout_ms: int | None = None, *, operation: str = "write"):
    """
    Scoped transaction guard for one OCC write.

    Any exception rolls the whole unit back (mutation, audit entry and
    version bump).  SQLAlchemy errors are re-raised as StorageFailureError;
    everything else propagates unchanged.  The caller commits explicitly.
    """
    try:
        _apply_lock_timeout(session, lock_timeout_ms)
        yield session
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("Form %s failed, transaction rolled back: %s", operation, exc, exc_info=True)
        raise StorageFailureError(f"Storage failure during {operation}", operation=operation) from exc
    except Exception:
        session.rollback()
        raise
