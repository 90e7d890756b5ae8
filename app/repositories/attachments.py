"""
Attachments repository: single binary row per (scope, theme, scenario).

Read paths never fail on a missing attachment: they return the empty
``{"id": 0, "file_name": None}`` shape instead.
"""

from sqlalchemy import delete as sa_delete
from sqlalchemy import select

from app.models.forms import Attachment

EMPTY_META = {"id": 0, "file_name": None}


def _find(session, scope) -> Attachment | None:
    return session.scalars(select(Attachment).where(*Attachment.content_filter(scope))).first()


def read(session, scope) -> dict:
    """Full row including the blob."""
    row = _find(session, scope)
    if row is None:
        return {**EMPTY_META, "file": None}
    return {"id": row.id, "file_name": row.file_name, "file": row.file}


def read_meta(session, scope) -> dict:
    stmt = select(Attachment.id, Attachment.file_name).where(*Attachment.content_filter(scope))
    row = session.execute(stmt).first()
    if row is None:
        return dict(EMPTY_META)
    return {"id": row.id, "file_name": row.file_name}


def upsert(session, scope, *, file_name: str, blob: bytes, actor_token: str) -> int:
    row = _find(session, scope)
    if row is None:
        row = Attachment(
            access_id=scope.access_id,
            team_no=scope.team_no,
            outline_id=scope.outline_id,
            exercise_no=scope.exercise_no,
            theme_id=scope.theme_id,
            scenario_id=scope.scenario_id,
        )
        session.add(row)
    row.file_name = file_name
    row.file = blob
    row.actor_token = actor_token
    session.flush()
    return row.id


def delete(session, scope) -> int:
    result = session.execute(
        sa_delete(Attachment)
        .where(*Attachment.content_filter(scope))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
