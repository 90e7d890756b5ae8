"""
Version lock manager tests.

Covers the per-(scope, form_key) counter:
    - absent row reads as version 0
    - bump inserts at 1, then increments by exactly 1
    - forms and scopes never share a counter
    - write_transaction rolls back and wraps storage errors
"""

import pytest
from sqlalchemy.exc import OperationalError

from app.core.exceptions import StorageFailureError
from app.models import db
from app.models.forms import FormVersion
from app.repositories.form_versions import (
    _apply_lock_timeout,
    bump_version,
    lock_current_version,
    read_version,
    read_versions,
    write_transaction,
)


def test_absent_version_is_zero(scope):
    assert read_version(db.session, scope, "causes") == 0
    assert lock_current_version(db.session, scope, "causes") == 0
    db.session.rollback()


def test_bump_inserts_then_increments(scope, actor):
    assert bump_version(db.session, scope, "causes", actor) == 1
    db.session.commit()
    assert bump_version(db.session, scope, "causes", actor) == 2
    db.session.commit()
    assert bump_version(db.session, scope, "causes", "actor-b") == 3
    db.session.commit()

    row = db.session.get(
        FormVersion,
        (scope.access_id, scope.team_no, scope.outline_id, scope.exercise_no, "causes"),
    )
    assert row.version == 3
    assert row.actor_token == "actor-b"


def test_bump_is_per_form_key(scope, actor):
    bump_version(db.session, scope, "causes", actor)
    bump_version(db.session, scope, "causes", actor)
    bump_version(db.session, scope, "facts", actor)
    db.session.commit()

    assert read_version(db.session, scope, "causes") == 2
    assert read_version(db.session, scope, "facts") == 1
    assert read_version(db.session, scope, "symptoms") == 0


def test_bump_is_per_scope(scope, other_scope, actor):
    bump_version(db.session, scope, "causes", actor)
    db.session.commit()

    assert read_version(db.session, scope, "causes") == 1
    assert read_version(db.session, other_scope, "causes") == 0


def test_read_versions_lists_written_forms_only(scope, actor):
    bump_version(db.session, scope, "symptoms", actor)
    bump_version(db.session, scope, "reflections", actor)
    bump_version(db.session, scope, "reflections", actor)
    db.session.commit()

    assert read_versions(db.session, scope) == {"symptoms": 1, "reflections": 2}


def test_lock_returns_current_value(scope, actor):
    bump_version(db.session, scope, "actions", actor)
    db.session.commit()

    with write_transaction(db.session):
        assert lock_current_version(db.session, scope, "actions") == 1
        db.session.commit()


def test_write_transaction_wraps_storage_errors(scope, actor):
    with pytest.raises(StorageFailureError) as exc_info:
        with write_transaction(db.session, operation="causes.create"):
            bump_version(db.session, scope, "causes", actor)
            raise OperationalError("UPDATE problem_form_versions", {}, Exception("lock timeout"))

    assert exc_info.value.operation == "causes.create"
    assert isinstance(exc_info.value.__cause__, OperationalError)
    # The bump was rolled back with the failed unit
    assert read_version(db.session, scope, "causes") == 0


def test_write_transaction_reraises_other_errors(scope, actor):
    with pytest.raises(ValueError):
        with write_transaction(db.session):
            bump_version(db.session, scope, "facts", actor)
            raise ValueError("boom")

    assert read_version(db.session, scope, "facts") == 0


class _Dialect:
    def __init__(self, name):
        self.name = name


class _Bind:
    def __init__(self, dialect_name):
        self.dialect = _Dialect(dialect_name)


class _RecordingSession:
    """Captures executed SQL without touching a database."""

    def __init__(self, dialect_name):
        self.bind = _Bind(dialect_name)
        self.statements = []

    def get_bind(self):
        return self.bind

    def execute(self, stmt):
        self.statements.append(str(stmt))


def test_lock_timeout_set_on_postgresql():
    session = _RecordingSession("postgresql")
    _apply_lock_timeout(session, 1500)
    assert session.statements == ["SET LOCAL lock_timeout = '1500ms'"]


def test_lock_timeout_applied_by_write_transaction():
    session = _RecordingSession("postgresql")
    with write_transaction(session, lock_timeout_ms=250):
        pass
    assert session.statements == ["SET LOCAL lock_timeout = '250ms'"]


@pytest.mark.parametrize("dialect_name,timeout", [("sqlite", 1500), ("postgresql", None), ("postgresql", 0)])
def test_lock_timeout_skipped(dialect_name, timeout):
    session = _RecordingSession(dialect_name)
    _apply_lock_timeout(session, timeout)
    assert session.statements == []
