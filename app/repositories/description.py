"""Description repository: singleton row per (scope, theme, scenario)."""

from sqlalchemy import select

from app.models.forms import Description


def _find(session, scope) -> Description | None:
    return session.scalars(select(Description).where(*Description.content_filter(scope))).first()


def read(session, scope) -> dict:
    row = _find(session, scope)
    if row is None:
        return {"short_description": "", "long_description": "", "work_notes": ""}
    return row.to_dict()


def upsert(session, scope, *, short_description: str, long_description: str, work_notes: str,
           actor_token: str) -> None:
    """Replace all three text fields wholesale."""
    row = _find(session, scope)
    if row is None:
        row = Description(
            access_id=scope.access_id,
            team_no=scope.team_no,
            outline_id=scope.outline_id,
            exercise_no=scope.exercise_no,
            theme_id=scope.theme_id,
            scenario_id=scope.scenario_id,
        )
        session.add(row)
    row.short_description = short_description
    row.long_description = long_description
    row.work_notes = work_notes
    row.actor_token = actor_token
    session.flush()
