"""Iterations repository: singleton free-text row per (scope, theme, scenario)."""

from sqlalchemy import select

from app.models.forms import Iteration


def _find(session, scope) -> Iteration | None:
    return session.scalars(select(Iteration).where(*Iteration.content_filter(scope))).first()


def read(session, scope) -> dict:
    row = _find(session, scope)
    return row.to_dict() if row else {"text": ""}


def upsert(session, scope, *, text: str, actor_token: str) -> None:
    row = _find(session, scope)
    if row is None:
        row = Iteration(
            access_id=scope.access_id,
            team_no=scope.team_no,
            outline_id=scope.outline_id,
            exercise_no=scope.exercise_no,
            theme_id=scope.theme_id,
            scenario_id=scope.scenario_id,
        )
        session.add(row)
    row.text = text
    row.actor_token = actor_token
    session.flush()
