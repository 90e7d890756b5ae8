"""
Specification repository: sparse field map, one row per whitelisted field.

Field names outside ALLOWED_FIELDS are ignored without error: the write
leaves storage untouched and upsert_one() reports False.
"""

from sqlalchemy import select

from app.models.forms import SpecificationField

_DIMENSIONS = ("what", "where", "when", "extent")
_FACETS = ("is", "isnot", "distinctions", "changes")

ALLOWED_FIELDS = frozenset(
    ["problem_statement"] + [f"{dim}_{facet}" for dim in _DIMENSIONS for facet in _FACETS]
)


def normalize_field(field: str) -> str:
    return (field or "").strip().lower()


def read_all(session, scope) -> dict[str, str]:
    stmt = (
        select(SpecificationField.field, SpecificationField.text)
        .where(*SpecificationField.content_filter(scope))
        .order_by(SpecificationField.field.asc())
    )
    return {row.field: row.text or "" for row in session.execute(stmt) if row.field}


def upsert_one(session, scope, field: str, text: str, actor_token: str) -> bool:
    """Write one field. Returns False (and writes nothing) for an unknown field."""
    field = normalize_field(field)
    if field not in ALLOWED_FIELDS:
        return False

    row = session.scalars(
        select(SpecificationField).where(
            *SpecificationField.content_filter(scope),
            SpecificationField.field == field,
        )
    ).first()
    if row is None:
        row = SpecificationField(
            access_id=scope.access_id,
            team_no=scope.team_no,
            outline_id=scope.outline_id,
            exercise_no=scope.exercise_no,
            theme_id=scope.theme_id,
            scenario_id=scope.scenario_id,
            field=field,
        )
        session.add(row)
    row.text = text
    row.actor_token = actor_token
    session.flush()
    return True
