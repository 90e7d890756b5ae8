"""Symptoms repository: scoped CRUD over ``problem_form_symptoms``."""

from sqlalchemy import delete as sa_delete
from sqlalchemy import select, update

from app.models.forms import Symptom


def read(session, scope) -> list[dict]:
    stmt = select(Symptom).where(*Symptom.scope_filter(scope)).order_by(Symptom.id.asc())
    return [row.to_dict() for row in session.scalars(stmt)]


def find_by_id(session, scope, symptom_id: int) -> Symptom | None:
    stmt = select(Symptom).where(*Symptom.scope_filter(scope), Symptom.id == symptom_id)
    return session.scalars(stmt).first()


def create(session, scope, *, deviation_id: int, function_id: int, clarify_text: str,
           actor_token: str) -> int:
    row = Symptom(
        access_id=scope.access_id,
        team_no=scope.team_no,
        outline_id=scope.outline_id,
        exercise_no=scope.exercise_no,
        theme_id=scope.theme_id or None,
        scenario_id=scope.scenario_id or None,
        deviation_id=deviation_id,
        function_id=function_id,
        clarify_text=clarify_text,
        is_priority=False,
        actor_token=actor_token,
    )
    session.add(row)
    session.flush()
    return row.id


def update_text(session, scope, symptom_id: int, clarify_text: str, actor_token: str) -> int:
    """Change the clarify text only. Returns the number of rows touched."""
    result = session.execute(
        update(Symptom)
        .where(*Symptom.scope_filter(scope), Symptom.id == symptom_id)
        .values(clarify_text=clarify_text, actor_token=actor_token)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def delete(session, scope, symptom_id: int) -> int:
    result = session.execute(
        sa_delete(Symptom)
        .where(*Symptom.scope_filter(scope), Symptom.id == symptom_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def set_priority(session, scope, symptom_id: int, actor_token: str) -> None:
    """Clear every priority flag in the scope, then flag exactly one symptom."""
    session.execute(
        update(Symptom)
        .where(*Symptom.scope_filter(scope), Symptom.is_priority.is_(True))
        .values(is_priority=False)
        .execution_options(synchronize_session=False)
    )
    session.execute(
        update(Symptom)
        .where(*Symptom.scope_filter(scope), Symptom.id == symptom_id)
        .values(is_priority=True, actor_token=actor_token)
        .execution_options(synchronize_session=False)
    )
