"""Facts repository: scoped CRUD over ``problem_form_facts``."""

from sqlalchemy import delete as sa_delete
from sqlalchemy import select, update

from app.models.forms import Fact


def read(session, scope) -> list[dict]:
    stmt = select(Fact).where(*Fact.scope_filter(scope)).order_by(Fact.id.asc())
    return [row.to_dict() for row in session.scalars(stmt)]


def create(session, scope, *, key_meta: str, key_value: str, text: str, actor_token: str) -> int:
    row = Fact(
        access_id=scope.access_id,
        team_no=scope.team_no,
        outline_id=scope.outline_id,
        exercise_no=scope.exercise_no,
        theme_id=scope.theme_id or None,
        scenario_id=scope.scenario_id or None,
        key_meta=key_meta,
        key_value=key_value,
        text=text,
        actor_token=actor_token,
    )
    session.add(row)
    session.flush()
    return row.id


def update_text(session, scope, fact_id: int, text: str, actor_token: str) -> int:
    result = session.execute(
        update(Fact)
        .where(*Fact.scope_filter(scope), Fact.id == fact_id)
        .values(text=text, actor_token=actor_token)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def delete(session, scope, fact_id: int) -> int:
    result = session.execute(
        sa_delete(Fact)
        .where(*Fact.scope_filter(scope), Fact.id == fact_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
