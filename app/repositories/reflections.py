"""Reflections repository: singleton keep/improve row per scope (no theme/scenario)."""

from sqlalchemy import select

from app.models.forms import Reflection


def _find(session, scope) -> Reflection | None:
    return session.scalars(select(Reflection).where(*Reflection.scope_filter(scope))).first()


def read(session, scope) -> dict:
    row = _find(session, scope)
    if row is None:
        return {"keep_text": "", "improve_text": ""}
    return row.to_dict()


def upsert(session, scope, *, keep_text: str, improve_text: str, actor_token: str) -> None:
    row = _find(session, scope)
    if row is None:
        row = Reflection(
            access_id=scope.access_id,
            team_no=scope.team_no,
            outline_id=scope.outline_id,
            exercise_no=scope.exercise_no,
        )
        session.add(row)
    row.keep_text = keep_text
    row.improve_text = improve_text
    row.actor_token = actor_token
    session.flush()
