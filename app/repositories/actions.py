"""Actions repository: scoped CRUD over ``problem_form_actions``."""

from sqlalchemy import delete as sa_delete
from sqlalchemy import select, update

from app.models.forms import Action


def read(session, scope) -> list[dict]:
    stmt = select(Action).where(*Action.scope_filter(scope)).order_by(Action.id.asc())
    return [row.to_dict() for row in session.scalars(stmt)]


def find_by_id(session, scope, row_id: int) -> Action | None:
    stmt = select(Action).where(*Action.scope_filter(scope), Action.id == row_id)
    return session.scalars(stmt).first()


def create(session, scope, *, ci_id: str, action_id: int, effect_text: str, actor_token: str) -> int:
    row = Action(
        access_id=scope.access_id,
        team_no=scope.team_no,
        outline_id=scope.outline_id,
        exercise_no=scope.exercise_no,
        theme_id=scope.theme_id or None,
        scenario_id=scope.scenario_id or None,
        ci_id=ci_id,
        action_id=action_id,
        effect_text=effect_text,
        actor_token=actor_token,
    )
    session.add(row)
    session.flush()
    return row.id


def update_effect(session, scope, row_id: int, effect_text: str, actor_token: str) -> int:
    """Change the effect text only."""
    result = session.execute(
        update(Action)
        .where(*Action.scope_filter(scope), Action.id == row_id)
        .values(effect_text=effect_text, actor_token=actor_token)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def delete(session, scope, row_id: int) -> int:
    result = session.execute(
        sa_delete(Action)
        .where(*Action.scope_filter(scope), Action.id == row_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
