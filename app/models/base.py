"""
ExerciseScopedModel: Abstract base class for exercise-scoped form tables.

Every form row belongs to exactly one team's run of one exercise.  Models
inherit from ExerciseScopedModel instead of db.Model directly. This adds:
  - access_id / team_no / outline_id / exercise_no scope columns
  - actor_token + created_at / updated_at bookkeeping
  - scope_filter(scope) classmethod for explicit scoped selects
  - Composite index macro helper
"""

from datetime import datetime, timezone

from app.models import db


def _utcnow():
    return datetime.now(timezone.utc)


class ExerciseScopedModel(db.Model):
    """Abstract base for (access_id, team_no, outline_id, exercise_no) scoped tables."""
    __abstract__ = True

    access_id = db.Column(db.Integer, nullable=False)
    team_no = db.Column(db.Integer, nullable=False)
    outline_id = db.Column(db.Integer, nullable=False)
    exercise_no = db.Column(db.Integer, nullable=False)

    actor_token = db.Column(
        db.String(128), nullable=True,
        comment="Session token of the last writer (polling clients skip their own writes)",
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    @classmethod
    def scope_filter(cls, scope) -> list:
        """Return the WHERE clauses that pin a select to one exercise scope."""
        return [
            cls.access_id == scope.access_id,
            cls.team_no == scope.team_no,
            cls.outline_id == scope.outline_id,
            cls.exercise_no == scope.exercise_no,
        ]

    @classmethod
    def content_filter(cls, scope) -> list:
        """Scope clauses plus theme/scenario for content-addressed singleton rows."""
        return cls.scope_filter(scope) + [
            cls.theme_id == scope.theme_id,
            cls.scenario_id == scope.scenario_id,
        ]

    @classmethod
    def scope_composite_index(cls, tablename, *extra_cols, unique=False):
        """Helper to build a (scope..., extra...) composite index."""
        suffix = "_".join(extra_cols) if extra_cols else "scope"
        name = f"{'uq' if unique else 'ix'}_{tablename}_{suffix}"
        cols = ("access_id", "team_no", "outline_id", "exercise_no") + extra_cols
        return db.Index(name, *cols, unique=unique)
