"""
Causes repository: scoped CRUD over ``problem_form_causes``.

Causes carry a dense 1..N ``list_no`` ordering: create appends at
MAX(list_no)+1 and arrange() rewrites the ordering wholesale.
"""

from sqlalchemy import delete as sa_delete
from sqlalchemy import func, select, update

from app.models.forms import Cause

# Likelihood column starts with the up/down marker the UI renders as a toggle.
DEFAULT_LIKELIHOOD = "▲▼"


def read(session, scope) -> list[dict]:
    stmt = (
        select(Cause)
        .where(*Cause.scope_filter(scope))
        .order_by(Cause.list_no.asc(), Cause.id.asc())
    )
    return [row.to_dict() for row in session.scalars(stmt)]


def find_by_id(session, scope, cause_id: int) -> Cause | None:
    stmt = select(Cause).where(*Cause.scope_filter(scope), Cause.id == cause_id)
    return session.scalars(stmt).first()


def count_rows(session, scope) -> int:
    stmt = select(func.count(Cause.id)).where(*Cause.scope_filter(scope))
    return int(session.execute(stmt).scalar() or 0)


def next_list_no(session, scope) -> int:
    stmt = select(func.coalesce(func.max(Cause.list_no), 0)).where(*Cause.scope_filter(scope))
    return int(session.execute(stmt).scalar() or 0) + 1


def create(session, scope, *, ci_id: str, deviation_text: str, list_no: int, actor_token: str) -> int:
    row = Cause(
        access_id=scope.access_id,
        team_no=scope.team_no,
        outline_id=scope.outline_id,
        exercise_no=scope.exercise_no,
        theme_id=scope.theme_id or None,
        scenario_id=scope.scenario_id or None,
        ci_id=ci_id,
        deviation_text=deviation_text,
        likelihood_text=DEFAULT_LIKELIHOOD,
        evidence_text="",
        is_proven=False,
        is_disproven=False,
        list_no=list_no,
        actor_token=actor_token,
    )
    session.add(row)
    session.flush()
    return row.id


def update_cause(
    session,
    scope,
    cause_id: int,
    *,
    likelihood_text: str,
    evidence_text: str,
    is_proven: bool,
    is_disproven: bool,
    test_what: str,
    test_where: str,
    test_when: str,
    test_extent: str,
    actor_token: str,
) -> int:
    result = session.execute(
        update(Cause)
        .where(*Cause.scope_filter(scope), Cause.id == cause_id)
        .values(
            likelihood_text=likelihood_text,
            evidence_text=evidence_text,
            is_proven=is_proven,
            is_disproven=is_disproven,
            test_what=test_what,
            test_where=test_where,
            test_when=test_when,
            test_extent=test_extent,
            actor_token=actor_token,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def delete(session, scope, cause_id: int) -> int:
    result = session.execute(
        sa_delete(Cause)
        .where(*Cause.scope_filter(scope), Cause.id == cause_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def arrange(session, scope, ids_in_order: list[int], actor_token: str) -> list[int]:
    """Rewrite list_no = 1..N following ``ids_in_order``.

    Ids that do not belong to the scope (and repeats) are dropped before
    numbering, so the ordering stays dense.  Returns the ids actually placed.
    """
    owned = set(session.scalars(
        select(Cause.id).where(*Cause.scope_filter(scope), Cause.id.in_(ids_in_order))
    )) if ids_in_order else set()

    placed: list[int] = []
    for cause_id in ids_in_order:
        if cause_id in owned and cause_id not in placed:
            placed.append(cause_id)

    for list_no, cause_id in enumerate(placed, start=1):
        session.execute(
            update(Cause)
            .where(*Cause.scope_filter(scope), Cause.id == cause_id)
            .values(list_no=list_no, actor_token=actor_token)
            .execution_options(synchronize_session=False)
        )
    return placed
