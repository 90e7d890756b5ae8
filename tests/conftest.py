"""
Shared pytest fixtures for the Exercise Forms Sync test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - scope / other_scope: ExerciseScope values for two independent teams
    - scope_params: the scope as request fields
    - forms: FormsService bound to the test session
    - actor: default actor token
"""

import pytest

from app import create_app
from app.core.scope import ExerciseScope
from app.models import db as _db
from app.services.forms_service import FormsService

ACTOR = "actor-token-a"


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def scope():
    return ExerciseScope(access_id=11, team_no=2, outline_id=7, exercise_no=3, theme_id=5, scenario_id=9)


@pytest.fixture()
def other_scope():
    """Same exercise, different team."""
    return ExerciseScope(access_id=11, team_no=3, outline_id=7, exercise_no=3, theme_id=5, scenario_id=9)


@pytest.fixture()
def scope_params(scope):
    return {
        "access_id": scope.access_id,
        "team_no": scope.team_no,
        "outline_id": scope.outline_id,
        "exercise_no": scope.exercise_no,
        "theme_id": scope.theme_id,
        "scenario_id": scope.scenario_id,
    }


@pytest.fixture()
def actor():
    return ACTOR


@pytest.fixture()
def forms():
    return FormsService(_db.session)
